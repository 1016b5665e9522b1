# paragon_listings/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Header, HTTPException, Request

from ...config import settings
from ...service_layer.properties import PropertyQueryService
from ...service_layer.response_cache import ResponseCache


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


def get_service(request: Request) -> PropertyQueryService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Listing service not ready")
    return service


def get_cache(request: Request) -> ResponseCache | None:
    return getattr(request.app.state, "cache", None)
