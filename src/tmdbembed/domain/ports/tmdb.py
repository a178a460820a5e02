"""Port for TMDB API operations."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TmdbClientPort(Protocol):
    """Async interface for TMDB lookups."""

    async def resolve_imdb_id(self, media_kind: str, tmdb_id: str) -> str | None:
        """Resolve a TMDB id to an IMDb id.

        ``media_kind`` is TMDB's vocabulary: ``"movie"`` or ``"tv"``.
        Returns None if the title has no IMDb id or the lookup failed.
        """
        ...

    async def get_details(self, tmdb_id: str, media_kind: str) -> dict[str, Any] | None:
        """Return title, original title and year for a TMDB id."""
        ...
