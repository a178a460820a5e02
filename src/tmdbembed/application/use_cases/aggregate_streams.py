"""Multi-provider stream aggregation use case.

TMDB id -> IMDb id -> parallel provider fetch
-> concatenate (selection order) -> filter -> optional relay rewrite.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Protocol

import structlog

from tmdbembed.domain.entities.streams import (
    MEDIA_TYPES,
    AggregationResult,
    FetchCriteria,
    ProviderCallResult,
    Stream,
    StreamRequest,
)
from tmdbembed.domain.errors import (
    InvalidMediaTypeError,
    NoMatchingStreamError,
    ProviderDisabledError,
    ProviderNotFoundError,
)
from tmdbembed.domain.ports.provider_registry import ProviderRegistryPort
from tmdbembed.domain.ports.tmdb import TmdbClientPort
from tmdbembed.domain.providers.base import ProviderProtocol
from tmdbembed.infrastructure.streams.quality import quality_score

log = structlog.get_logger(__name__)

AGGREGATE_SCOPE = "aggregate"

# ---------------------------------------------------------------------------
# Protocols: what this use case needs from its dependencies.
# ---------------------------------------------------------------------------


class _ProvidersConfig(Protocol):
    """Configuration values consumed by AggregateStreamsUseCase."""

    default_providers: list[str]
    min_qualities: dict[str, str]
    exclude_codecs: dict[str, list[str]]


class _RelayRewriter(Protocol):
    """Rewrites stream URLs to pass through the local relay."""

    def rewrite(self, streams: Sequence[Stream], origin_base: str) -> list[Stream]: ...


class _MetricsRecorder(Protocol):
    """Records aggregation counters."""

    def record_stream_request(self) -> None: ...

    def record_provider_call(self, name: str) -> None: ...

    def record_provider_result(
        self,
        name: str,
        duration_ns: int,
        stream_count: int,
        *,
        success: bool,
    ) -> None: ...

    def record_streams_returned(self, count: int) -> None: ...

    def record_imdb_lookup(self) -> None: ...


_FilterFn = Callable[
    [Sequence[Stream], str, Mapping[str, str], Mapping[str, Iterable[str]]],
    list[Stream],
]


def _tmdb_kind(media_type: str) -> str:
    return "tv" if media_type == "series" else "movie"


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def pick_best_stream(
    streams: Sequence[Stream],
    preferred_provider: str | None = None,
) -> Stream | None:
    """Pick the highest-quality stream.

    Ties keep their original order (``sorted`` is stable), so the first
    stream in input order wins among equal scores.

    Raises:
        NoMatchingStreamError: *preferred_provider* is set but none of
            the streams came from it.
    """
    candidates = list(streams)
    if preferred_provider:
        candidates = [s for s in candidates if s.provider == preferred_provider]
        if not candidates:
            raise NoMatchingStreamError(preferred_provider)
    if not candidates:
        return None
    ranked = sorted(candidates, key=lambda s: quality_score(s.quality), reverse=True)
    return ranked[0]


# ---------------------------------------------------------------------------
# Use case
# ---------------------------------------------------------------------------


class AggregateStreamsUseCase:
    """Fan a stream request out to every eligible provider.

    Providers run concurrently and are isolated from each other: a
    provider that raises contributes no streams and a ``None`` timing,
    the request itself never fails because of it.
    """

    def __init__(
        self,
        *,
        providers: ProviderRegistryPort,
        config: _ProvidersConfig,
        filter_fn: _FilterFn,
        tmdb: TmdbClientPort | None = None,
        relay: _RelayRewriter | None = None,
        metrics: _MetricsRecorder | None = None,
    ) -> None:
        self._providers = providers
        self._default_providers = list(config.default_providers)
        self._min_qualities = dict(config.min_qualities)
        self._exclude_codecs = dict(config.exclude_codecs)
        self._filter_fn = filter_fn
        self._tmdb = tmdb
        self._relay = relay
        self._metrics = metrics

    @property
    def relay_enabled(self) -> bool:
        return self._relay is not None

    async def aggregate(
        self,
        request: StreamRequest,
        *,
        provider_filter: str | None = None,
        origin_base: str = "",
    ) -> AggregationResult:
        """Fetch, merge and filter streams from all selected providers.

        Args:
            request: Catalog id, media type and optional season/episode.
            provider_filter: Restrict fan-out to the provider with this
                exact name.  No enabled match yields an empty result.
            origin_base: ``scheme://host`` used to build relay URLs.
        """
        self._validate(request)
        if self._metrics is not None:
            self._metrics.record_stream_request()

        selected = [p for p in self._select_providers() if p.enabled]
        if provider_filter is not None:
            selected = [p for p in selected if p.name == provider_filter]

        imdb_id = await self._resolve_imdb_id(request)
        criteria = self._criteria(request, imdb_id)

        log.info(
            "aggregate_started",
            tmdb_id=request.tmdb_id,
            media_type=request.media_type,
            providers=[p.name for p in selected],
        )

        calls = await asyncio.gather(
            *(self._call_provider(p, criteria) for p in selected)
        )

        # gather preserves argument order, so this is selection order.
        merged: list[Stream] = []
        timings: dict[str, int | None] = {}
        for call in calls:
            timings[call.provider] = call.elapsed_ms
            merged.extend(call.streams)

        streams = self._finish(merged, AGGREGATE_SCOPE, origin_base)
        if self._metrics is not None:
            self._metrics.record_streams_returned(len(streams))

        log.info(
            "aggregate_done",
            tmdb_id=request.tmdb_id,
            before_filter=len(merged),
            returned=len(streams),
            failed=[c.provider for c in calls if c.failed],
        )
        return AggregationResult(
            streams=streams, provider_timings=timings, imdb_id=imdb_id
        )

    async def fetch_from_provider(
        self,
        provider_name: str,
        request: StreamRequest,
        *,
        origin_base: str = "",
    ) -> AggregationResult:
        """Fetch from one named provider.

        Unlike :meth:`aggregate`, an exception raised by the provider
        propagates to the caller.

        Raises:
            ProviderNotFoundError: No provider registered under that name.
            ProviderDisabledError: The provider exists but is disabled.
        """
        self._validate(request)
        provider = self._providers.get(provider_name)
        if provider is None:
            raise ProviderNotFoundError(provider_name)
        if not provider.enabled:
            raise ProviderDisabledError(provider_name)

        if self._metrics is not None:
            self._metrics.record_stream_request()

        imdb_id = await self._resolve_imdb_id(request)
        criteria = self._criteria(request, imdb_id)

        if self._metrics is not None:
            self._metrics.record_provider_call(provider.name)
        t0 = time.perf_counter_ns()
        success = False
        raw: list[Stream] = []
        try:
            raw = list(await provider.fetch(criteria))
            success = True
        finally:
            duration_ns = time.perf_counter_ns() - t0
            if self._metrics is not None:
                self._metrics.record_provider_result(
                    provider.name, duration_ns, len(raw), success=success
                )

        streams = self._finish(raw, provider.name, origin_base)
        if self._metrics is not None:
            self._metrics.record_streams_returned(len(streams))

        return AggregationResult(
            streams=streams,
            provider_timings={provider.name: duration_ns // 1_000_000},
            imdb_id=imdb_id,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(request: StreamRequest) -> None:
        if request.media_type not in MEDIA_TYPES:
            raise InvalidMediaTypeError(request.media_type)

    @staticmethod
    def _criteria(request: StreamRequest, imdb_id: str | None) -> FetchCriteria:
        return FetchCriteria(
            tmdb_id=request.tmdb_id,
            media_type=request.media_type,  # type: ignore[arg-type]
            season=request.season,
            episode=request.episode,
            imdb_id=imdb_id,
        )

    def _select_providers(self) -> list[ProviderProtocol]:
        """Configured default providers, else every registered provider."""
        if not self._default_providers:
            return self._providers.list_providers()

        selected: list[ProviderProtocol] = []
        for name in self._default_providers:
            provider = self._providers.get(name)
            if provider is None:
                log.warning("default_provider_unknown", provider=name)
                continue
            selected.append(provider)
        return selected

    async def _resolve_imdb_id(self, request: StreamRequest) -> str | None:
        if self._tmdb is None:
            return None
        imdb_id = await self._tmdb.resolve_imdb_id(
            _tmdb_kind(request.media_type), request.tmdb_id
        )
        if imdb_id and self._metrics is not None:
            self._metrics.record_imdb_lookup()
        return imdb_id

    async def _call_provider(
        self, provider: ProviderProtocol, criteria: FetchCriteria
    ) -> ProviderCallResult:
        """Call one provider, converting any failure into an empty result."""
        name = provider.name
        if self._metrics is not None:
            self._metrics.record_provider_call(name)
        t0 = time.perf_counter_ns()
        success = False
        streams: list[Stream] = []
        try:
            streams = list(await provider.fetch(criteria))
            success = True
        except Exception:
            log.warning("provider_fetch_error", provider=name, exc_info=True)
            streams = []
        except BaseException:
            log.warning("provider_fetch_cancelled", provider=name)
            raise
        finally:
            duration_ns = time.perf_counter_ns() - t0
            if self._metrics is not None:
                self._metrics.record_provider_result(
                    name, duration_ns, len(streams), success=success
                )

        if not success:
            return ProviderCallResult(provider=name, elapsed_ms=None, streams=[])

        log.debug("provider_fetch_done", provider=name, stream_count=len(streams))
        return ProviderCallResult(
            provider=name, elapsed_ms=duration_ns // 1_000_000, streams=streams
        )

    def _finish(
        self, streams: list[Stream], scope: str, origin_base: str
    ) -> list[Stream]:
        filtered = self._filter_fn(
            streams, scope, self._min_qualities, self._exclude_codecs
        )
        if self._relay is None:
            return filtered
        relayed = self._relay.rewrite(filtered, origin_base)
        return [s if s.headers is None else replace(s, headers=None) for s in relayed]
