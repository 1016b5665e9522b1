from typing import Any

from pydantic import BaseModel, Field


class ErrorOut(BaseModel):
    error: str


class HealthOut(BaseModel):
    status: str = "ok"


class CacheStatsOut(BaseModel):
    hits: int
    misses: int
    errors: int


class MediaJoinStatsOut(BaseModel):
    batches: int
    failed_batches: int
    media_items: int


class DebugConfigOut(BaseModel):
    ENV: str
    DB_URL: str
    RESO_BASE_URL: str
    RESO_TOKEN_URL: str
    RESO_CLIENT_ID: str | None
    RESO_CLIENT_SECRET_SET: bool
    RESO_LIMITED_MODE: bool
    RESO_ZIP_CODES: list[str] = Field(default_factory=list)
    GEOCODER_ENABLED: bool
    RESPONSE_CACHE_ENABLED: bool
    API_KEY_SET: bool


class DebugStatsOut(BaseModel):
    response_cache: CacheStatsOut | None = None
    media_join: MediaJoinStatsOut | None = None
    geocoding: dict[str, Any] = Field(default_factory=dict)
