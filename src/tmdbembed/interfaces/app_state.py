"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from tmdbembed.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from tmdbembed.application.use_cases.aggregate_streams import (
        AggregateStreamsUseCase,
    )
    from tmdbembed.domain.ports import CachePort, TmdbClientPort
    from tmdbembed.infrastructure.auth import LoginAttemptGovernor, SessionStore
    from tmdbembed.infrastructure.metrics import MetricsCollector
    from tmdbembed.infrastructure.providers import ProviderRegistry
    from tmdbembed.infrastructure.streams.relay import RelayRewriter


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient

    # Providers + TMDB (TMDB is optional: requires an API key)
    providers: ProviderRegistry
    tmdb_client: TmdbClientPort | None

    # Metrics (in-memory counters)
    metrics: MetricsCollector

    # Login gate
    governor: LoginAttemptGovernor
    sessions: SessionStore

    # Relay (None when relay mode is off)
    relay: RelayRewriter | None

    # Application services
    aggregate_uc: AggregateStreamsUseCase
