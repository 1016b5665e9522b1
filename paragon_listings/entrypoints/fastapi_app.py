# paragon_listings/entrypoints/fastapi_app.py
from __future__ import annotations

import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..adapters.clients.geocoding import GoogleGeocoder
from ..adapters.clients.odata import ODataClient
from ..adapters.clients.paragon_config import ParagonConfig
from ..adapters.clients.token_manager import TokenManager
from ..adapters.kv_store import KeyValueStore, SqlKeyValueStore
from ..config import settings
from ..db import create_all, make_engine, make_session_factory
from ..errors import AuthError, FeedError, ValidationError
from ..schemas import ErrorOut
from ..service_layer.media_join import MediaJoiner
from ..service_layer.properties import PropertyQueryService
from ..service_layer.response_cache import ResponseCache
from .api.routers import health, listings

log = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_service(http: httpx.AsyncClient, store: KeyValueStore, cfg: ParagonConfig | None = None) -> PropertyQueryService:
    """One explicit object graph per process; authentication is deferred to first use."""
    cfg = cfg or ParagonConfig.from_settings()
    tokens = TokenManager(cfg, store, http)
    client = ODataClient(cfg, tokens, http)
    return PropertyQueryService(
        client,
        MediaJoiner(client, cfg),
        cfg,
        geocoder=GoogleGeocoder.from_settings(http),
        geocode_concurrency=settings.GEOCODER_CONCURRENCY,
    )


_FEED_FAILED = "Failed to fetch properties from feed"


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ErrorOut(error=message).model_dump())


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(_: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(AuthError)
    async def _auth(_: Request, exc: AuthError) -> JSONResponse:
        log.error("feed authentication failed: %s (status=%s)", exc, exc.status)
        return _error(502, _FEED_FAILED)

    @app.exception_handler(FeedError)
    async def _feed(_: Request, exc: FeedError) -> JSONResponse:
        log.error("feed request failed: %s (status=%s url=%s)", exc, exc.status, exc.url)
        return _error(502, _FEED_FAILED)


def create_app(
    service: PropertyQueryService | None = None,
    cache: ResponseCache | None = None,
) -> FastAPI:
    """
    Tests pass a ready service (and optional cache); otherwise the default
    wiring is built at startup against settings.
    """
    configure_logging()
    app = FastAPI(title="Paragon Listings")
    app.state.service = service
    app.state.cache = cache
    app.state.http = None
    app.state.engine = None

    @app.on_event("startup")
    async def _startup() -> None:
        if app.state.service is not None:
            return
        engine = make_engine()
        await create_all(engine)
        store = SqlKeyValueStore(make_session_factory(engine))
        http = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_S)

        app.state.engine = engine
        app.state.http = http
        app.state.service = build_service(http, store)
        app.state.cache = ResponseCache(
            store,
            ttl_s=settings.RESPONSE_CACHE_TTL_S,
            enabled=settings.RESPONSE_CACHE_ENABLED,
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        if app.state.http is not None:
            await app.state.http.aclose()
        if app.state.engine is not None:
            await app.state.engine.dispose()

    _register_error_handlers(app)

    # Routers
    app.include_router(health.router)
    app.include_router(listings.router)

    return app
