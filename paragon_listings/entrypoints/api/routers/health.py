# paragon_listings/entrypoints/api/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ....config import settings
from ....schemas import CacheStatsOut, DebugConfigOut, DebugStatsOut, HealthOut, MediaJoinStatsOut
from ..deps import get_cache, require_api_key

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthOut)
def health() -> HealthOut:
    return HealthOut(status="ok")


def _redact(v: str | None) -> str | None:
    if not v:
        return v
    if len(v) <= 8:
        return "***"
    return v[:4] + "***" + v[-4:]


@router.get("/debug/config", response_model=DebugConfigOut, dependencies=[Depends(require_api_key)])
def debug_config() -> DebugConfigOut:
    """Reads the running server's settings; secrets redacted."""
    return DebugConfigOut(
        ENV=settings.ENV,
        DB_URL=settings.DB_URL,
        RESO_BASE_URL=settings.RESO_BASE_URL,
        RESO_TOKEN_URL=settings.RESO_TOKEN_URL,
        RESO_CLIENT_ID=_redact(settings.RESO_CLIENT_ID),
        RESO_CLIENT_SECRET_SET=bool(settings.RESO_CLIENT_SECRET),
        RESO_LIMITED_MODE=settings.RESO_LIMITED_MODE,
        RESO_ZIP_CODES=settings.zip_code_list(),
        GEOCODER_ENABLED=bool(settings.GEOCODER_API_KEY),
        RESPONSE_CACHE_ENABLED=settings.RESPONSE_CACHE_ENABLED,
        API_KEY_SET=bool(settings.API_KEY),
    )


@router.get("/debug/stats", response_model=DebugStatsOut, dependencies=[Depends(require_api_key)])
def debug_stats(request: Request) -> DebugStatsOut:
    out = DebugStatsOut()
    cache = get_cache(request)
    if cache is not None:
        out.response_cache = CacheStatsOut(**cache.stats.snapshot())
    service = getattr(request.app.state, "service", None)
    if service is not None:
        out.media_join = MediaJoinStatsOut(**service.media.last_stats.snapshot())
        counts: dict[str, int] = {}
        for o in service.last_geocode_outcomes:
            counts[o.status] = counts.get(o.status, 0) + 1
        out.geocoding = counts
    return out
