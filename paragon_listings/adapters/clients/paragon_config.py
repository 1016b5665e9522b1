# paragon_listings/adapters/clients/paragon_config.py
from __future__ import annotations

from dataclasses import dataclass, field

from ...config import settings


@dataclass(frozen=True)
class ParagonConfig:
    base_url: str         # e.g. https://<paragon-host>/OData/<dataset>
    token_url: str        # OAuth token endpoint
    client_id: str
    client_secret: str
    scope: str | None = "OData"

    max_page_size: int = 2500
    max_concurrent_queries: int = 120
    max_pages: int = 200
    max_url_length: int = 2048

    limited_mode: bool = False
    limited_top: int = 50
    zip_codes: tuple[str, ...] = field(default_factory=tuple)
    media_limit: int = 0

    timeout_s: float = 20.0
    token_timeout_s: float = 10.0
    max_retries: int = 2
    backoff_base_s: float = 0.25
    token_expiry_skew_s: int = 30

    @classmethod
    def from_settings(cls) -> "ParagonConfig":
        return cls(
            base_url=settings.RESO_BASE_URL.rstrip("/"),
            token_url=settings.RESO_TOKEN_URL,
            client_id=settings.RESO_CLIENT_ID,
            client_secret=settings.RESO_CLIENT_SECRET,
            scope=settings.RESO_SCOPE or None,
            max_page_size=settings.RESO_MAX_PAGE_SIZE,
            max_concurrent_queries=settings.RESO_MAX_CONCURRENT_QUERIES,
            max_pages=settings.RESO_MAX_PAGES,
            max_url_length=settings.RESO_MAX_URL_LENGTH,
            limited_mode=settings.RESO_LIMITED_MODE,
            limited_top=settings.RESO_LIMITED_TOP,
            zip_codes=tuple(settings.zip_code_list()),
            media_limit=settings.RESO_MEDIA_LIMIT,
            timeout_s=settings.HTTP_TIMEOUT_S,
            token_timeout_s=settings.TOKEN_TIMEOUT_S,
            max_retries=settings.HTTP_MAX_RETRIES,
            backoff_base_s=settings.HTTP_BACKOFF_BASE_S,
            token_expiry_skew_s=settings.TOKEN_EXPIRY_SKEW_S,
        )
