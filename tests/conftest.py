"""Shared test fixtures for the tmdbembed test suite."""

from __future__ import annotations

from dataclasses import dataclass, field
from unittest.mock import AsyncMock

import pytest

from tmdbembed.domain.entities.streams import FetchCriteria, Stream, StreamRequest
from tmdbembed.infrastructure.metrics import MetricsCollector
from tmdbembed.infrastructure.providers.registry import ProviderRegistry

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_request() -> StreamRequest:
    return StreamRequest(tmdb_id="603", media_type="movie")


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


@dataclass
class _CannedProvider:
    """Provider returning the same streams for any request."""

    name: str
    streams: list[Stream] = field(default_factory=list)
    enabled: bool = True

    async def fetch(self, criteria: FetchCriteria) -> list[Stream]:
        return list(self.streams)


def _stream(provider: str, quality: str, url: str) -> Stream:
    return Stream(
        title=f"Title - {quality} [{provider}]",
        url=url,
        provider=provider,
        quality=quality,
    )


@pytest.fixture()
def fake_registry() -> ProviderRegistry:
    """Two providers: ``a`` serves 720p ``u1``, ``b`` serves 1080p ``u2``."""
    return ProviderRegistry(
        [
            _CannedProvider("a", [_stream("a", "720p", "u1")]),
            _CannedProvider("b", [_stream("b", "1080p", "u2")]),
        ]
    )


# ---------------------------------------------------------------------------
# Mock port fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_tmdb() -> AsyncMock:
    """Mock TmdbClientPort."""
    tmdb = AsyncMock()
    tmdb.resolve_imdb_id = AsyncMock(return_value="tt0133093")
    tmdb.get_details = AsyncMock(
        return_value={"title": "The Matrix", "original_title": "The Matrix", "year": 1999}
    )
    return tmdb


@pytest.fixture()
def metrics() -> MetricsCollector:
    return MetricsCollector()
