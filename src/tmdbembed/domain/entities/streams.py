"""Domain entities for stream aggregation.

Pure value objects without framework dependencies or I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

MediaType = Literal["movie", "series"]

MEDIA_TYPES: tuple[str, ...] = ("movie", "series")


@dataclass(frozen=True)
class Subtitle:
    """External subtitle track attached to a stream."""

    url: str
    lang: str = ""  # Free-text label, e.g. "English"


@dataclass(frozen=True)
class Stream:
    """A candidate playable media link produced by a provider.

    ``headers`` is ``None`` when the URL can be fetched without extra
    transport hints.  Once a stream has been rewritten through the relay
    the headers are dropped because the relay carries them.
    """

    title: str
    url: str
    provider: str
    quality: str | None = None
    headers: dict[str, str] | None = None
    subtitles: tuple[Subtitle, ...] = ()

    @property
    def is_playable(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class FetchCriteria:
    """What a provider receives for a single fetch call."""

    tmdb_id: str
    media_type: MediaType
    season: int | None = None
    episode: int | None = None
    imdb_id: str | None = None
    filters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StreamRequest:
    """Parsed inbound stream request (catalog id + media type)."""

    tmdb_id: str
    media_type: str
    season: int | None = None
    episode: int | None = None


@dataclass(frozen=True)
class ProviderCallResult:
    """Outcome of one provider fetch inside an aggregation request.

    ``elapsed_ms`` is ``None`` when the provider raised.
    """

    provider: str
    elapsed_ms: int | None
    streams: list[Stream] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.elapsed_ms is None


@dataclass(frozen=True)
class AggregationResult:
    """Merged, filtered and (optionally) relayed streams for one request."""

    streams: list[Stream]
    provider_timings: dict[str, int | None]
    imdb_id: str | None = None
