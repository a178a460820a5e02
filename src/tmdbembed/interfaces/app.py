"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from tmdbembed import __version__
from tmdbembed.infrastructure.config import AppConfig
from tmdbembed.interfaces.app_state import AppState
from tmdbembed.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app (configuration ONLY, NO resource initialization).

    Resources (HTTP client, cache, providers) are created in lifespan().
    Relay routes are mounted only when relay mode is enabled.
    Browser callers are admitted per ``http.cors_origins``.
    """
    app = FastAPI(
        title="TMDB Embed REST API",
        description="Multi-provider stream aggregation for TMDB titles",
        version=__version__,
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from tmdbembed.interfaces.api.auth import router as auth_router
    from tmdbembed.interfaces.api.stats import router as stats_router
    from tmdbembed.interfaces.api.streams import router as streams_router

    app.include_router(auth_router)
    app.include_router(stats_router)
    app.include_router(streams_router)

    if config.relay.enabled:
        from tmdbembed.interfaces.api.relay import router as relay_router

        app.include_router(relay_router)
        log.info("relay_routes_mounted")
    else:
        log.info("relay_routes_disabled")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.http_cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                query=str(request.url.query),
                status_code=response.status_code if response is not None else 500,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
