from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    LOG_LEVEL: str = "INFO"
    DB_URL: str = "sqlite+aiosqlite:///./paragon.db"

    # --- Minimal auth for debug routes ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # --- Paragon RESO feed (OAuth2 client credentials -> OData) ---
    RESO_BASE_URL: str = ""
    RESO_TOKEN_URL: str = ""
    RESO_CLIENT_ID: str = ""
    RESO_CLIENT_SECRET: str = ""
    RESO_SCOPE: str = "OData"

    RESO_MAX_PAGE_SIZE: int = 2500
    RESO_MAX_CONCURRENT_QUERIES: int = 120
    RESO_MAX_PAGES: int = 200
    RESO_MAX_URL_LENGTH: int = 2048

    # "limited" mode caps location searches at a single small page
    RESO_LIMITED_MODE: bool = False
    RESO_LIMITED_TOP: int = 50

    # Comma-separated postal codes a tenant is restricted to (empty = no restriction)
    RESO_ZIP_CODES: str = ""

    # Max media items attached per property (0 = all)
    RESO_MEDIA_LIMIT: int = 0

    # --- Outbound HTTP ---
    HTTP_TIMEOUT_S: float = 20.0
    TOKEN_TIMEOUT_S: float = 10.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_S: float = 0.25
    TOKEN_EXPIRY_SKEW_S: int = 30

    # --- Geocoding (Google Geocoding JSON API) ---
    GEOCODER_API_KEY: str | None = None
    GEOCODER_BASE_URL: str = "https://maps.googleapis.com/maps/api/geocode/json"
    GEOCODER_TIMEOUT_S: float = 5.0
    GEOCODER_CONCURRENCY: int = 5

    # --- Response cache ---
    RESPONSE_CACHE_ENABLED: bool = True
    RESPONSE_CACHE_TTL_S: int = 300

    def zip_code_list(self) -> list[str]:
        return [z.strip() for z in (self.RESO_ZIP_CODES or "").split(",") if z.strip()]


settings = Settings()
