"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from tmdbembed.application.use_cases.aggregate_streams import AggregateStreamsUseCase
from tmdbembed.infrastructure.auth import LoginAttemptGovernor, SessionStore
from tmdbembed.infrastructure.cache import DiskcacheAdapter
from tmdbembed.infrastructure.config.schema import AppConfig
from tmdbembed.infrastructure.metrics import MetricsCollector
from tmdbembed.infrastructure.providers import MP4HydraProvider, ProviderRegistry
from tmdbembed.infrastructure.streams.relay import RelayRewriter
from tmdbembed.infrastructure.streams.stream_filter import apply_filters
from tmdbembed.infrastructure.tmdb.client import HttpxTmdbClient
from tmdbembed.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_providers(state: AppState) -> ProviderRegistry:
    """Register every known provider, then apply ``providers.disabled``."""
    registry = ProviderRegistry(
        [
            MP4HydraProvider(tmdb=state.tmdb_client, http_client=state.http_client),
        ]
    )
    registry.disable(state.config.providers.disabled)
    return registry


def build_relay(config: AppConfig) -> RelayRewriter | None:
    if not config.relay.enabled:
        return None
    secret = config.relay.secret
    if not secret:
        # Tokens signed with a per-process key stop working after a restart.
        secret = secrets.token_urlsafe(32)
        log.warning("relay_secret_generated")
    return RelayRewriter(secret, rewrite_all=config.relay.rewrite_all)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Cache (used by the TMDB client)
        2. HTTP client (shared by TMDB client, providers and relay)
        3. TMDB client
        4. Provider registry
        5. Relay, login gate
        6. Aggregation use case
    """
    state = cast(AppState, app.state)
    config = state.config

    # 0) Metrics collector (must exist before components that record)
    state.metrics = MetricsCollector()

    # 1) Cache
    cache = DiskcacheAdapter(
        directory=config.cache_dir,
        ttl_seconds=config.cache_ttl_seconds,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", directory=str(config.cache_dir))

    # 2) HTTP client
    state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=True,
    )
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    # 3) TMDB client (optional: without a key no IMDb ids and no titles)
    if config.tmdb_api_key:
        state.tmdb_client = HttpxTmdbClient(
            api_key=config.tmdb_api_key,
            http_client=state.http_client,
            cache=state.cache,
            ttl_seconds=config.cache_ttl_seconds,
        )
        log.info("tmdb_client_initialized")
    else:
        state.tmdb_client = None
        log.warning("tmdb_client_disabled", reason="no API key configured")

    # 4) Providers
    state.providers = build_providers(state)
    log.info("providers_initialized", providers=state.providers.list_names())

    # 5) Relay + login gate
    state.relay = build_relay(config)
    state.governor = LoginAttemptGovernor()
    state.sessions = SessionStore(ttl_seconds=config.auth.session_ttl_seconds)
    if not config.auth.password:
        log.warning("auth_password_not_set")

    # 6) Use case
    state.aggregate_uc = AggregateStreamsUseCase(
        providers=state.providers,
        config=config.providers,
        filter_fn=apply_filters,
        tmdb=state.tmdb_client,
        relay=state.relay,
        metrics=state.metrics,
    )

    log.info("app_startup_complete", relay_enabled=state.relay is not None)

    try:
        yield
    finally:
        await state.providers.cleanup()
        log.info("providers_cleaned_up")

        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
