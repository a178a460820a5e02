"""In-memory request metrics.

Counters live for the process lifetime only.  Sync route handlers run in
Starlette's thread pool, so every mutation goes through one lock.

``time.perf_counter_ns()`` is used for timing (monotonic, nanosecond
resolution).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass
class ProviderStats:
    """Accumulated statistics for a single provider."""

    calls: int = 0
    completed: int = 0
    failures: int = 0
    total_streams: int = 0
    total_duration_ns: int = 0

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-serializable summary."""
        avg_ms = (
            round(self.total_duration_ns / self.completed / 1_000_000, 1)
            if self.completed
            else 0.0
        )
        return {
            "calls": self.calls,
            "failures": self.failures,
            "totalStreams": self.total_streams,
            "avgDurationMs": avg_ms,
        }


@dataclass
class MetricsCollector:
    """Process-wide counters exposed on ``/api/metrics``."""

    stream_requests: int = 0
    streams_returned: int = 0
    tmdb_to_imdb_lookups: int = 0
    last_error: str | None = None
    _providers: dict[str, ProviderStats] = field(default_factory=dict)
    _start_ns: int = field(default_factory=time.perf_counter_ns)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_stream_request(self) -> None:
        with self._lock:
            self.stream_requests += 1

    def _stats(self, name: str) -> ProviderStats:
        stats = self._providers.get(name)
        if stats is None:
            stats = ProviderStats()
            self._providers[name] = stats
        return stats

    def record_provider_call(self, name: str) -> None:
        """Count a provider invocation as soon as it starts."""
        with self._lock:
            self._stats(name).calls += 1

    def record_provider_result(
        self,
        name: str,
        duration_ns: int,
        stream_count: int,
        *,
        success: bool,
    ) -> None:
        """Record how a started provider invocation ended."""
        with self._lock:
            stats = self._stats(name)
            stats.completed += 1
            stats.total_duration_ns += duration_ns
            if success:
                stats.total_streams += stream_count
            else:
                stats.failures += 1

    def record_streams_returned(self, count: int) -> None:
        with self._lock:
            self.streams_returned += count

    def record_imdb_lookup(self) -> None:
        with self._lock:
            self.tmdb_to_imdb_lookups += 1

    def record_error(self, message: str) -> None:
        with self._lock:
            self.last_error = message

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def uptime_seconds(self) -> float:
        return round((time.perf_counter_ns() - self._start_ns) / 1_000_000_000, 1)

    def provider_calls(self) -> dict[str, int]:
        with self._lock:
            return {name: s.calls for name, s in self._providers.items()}

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-serializable snapshot of all metrics."""
        with self._lock:
            return {
                "uptimeSeconds": self.uptime_seconds,
                "streamRequests": self.stream_requests,
                "providerCalls": {
                    name: s.calls for name, s in self._providers.items()
                },
                "streamsReturned": self.streams_returned,
                "tmdbToImdbLookups": self.tmdb_to_imdb_lookups,
                "lastError": self.last_error,
                "providers": {
                    name: s.snapshot() for name, s in sorted(self._providers.items())
                },
            }
