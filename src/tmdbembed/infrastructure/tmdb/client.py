"""TMDB API client: async httpx implementation with caching."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from tmdbembed.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.themoviedb.org/3"

_MEDIA_KINDS = ("movie", "tv")


class HttpxTmdbClient:
    """Async TMDB client using httpx + CachePort.

    Implements ``TmdbClientPort`` from domain.ports.tmdb.  Lookup
    failures (bad key, unknown id, network errors) are logged and
    reported as ``None``; nothing here raises for HTTP trouble.
    """

    def __init__(
        self,
        *,
        api_key: str,
        http_client: httpx.AsyncClient,
        cache: CachePort,
        ttl_seconds: int = 86_400,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._cache = cache
        self._ttl = ttl_seconds

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _params(self, **extra: Any) -> dict[str, Any]:
        return {"api_key": self._api_key, "language": "en-US", **extra}

    async def _get(self, path: str, **extra: Any) -> dict[str, Any] | None:
        """GET request with error handling. Returns parsed JSON or None."""
        url = f"{_BASE_URL}{path}"
        try:
            resp = await self._http.get(url, params=self._params(**extra))
            if resp.status_code == 401:
                log.error("tmdb_api_key_invalid", status=401)
                return None
            if resp.status_code == 404:
                log.debug("tmdb_resource_not_found", path=path)
                return None
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError:
            log.warning("tmdb_http_error", path=path, exc_info=True)
            return None
        except httpx.HTTPError:
            log.warning("tmdb_network_error", path=path, exc_info=True)
            return None
        except ValueError:
            log.warning("tmdb_invalid_json", path=path)
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _check_kind(media_kind: str) -> None:
        if media_kind not in _MEDIA_KINDS:
            raise ValueError(f"media_kind must be 'movie' or 'tv', got {media_kind!r}")

    @staticmethod
    def _year(date: str | None) -> int | None:
        if date and len(date) >= 4 and date[:4].isdigit():
            return int(date[:4])
        return None

    # ------------------------------------------------------------------
    # Public API (TmdbClientPort)
    # ------------------------------------------------------------------

    async def resolve_imdb_id(self, media_kind: str, tmdb_id: str) -> str | None:
        """Resolve a TMDB id to its IMDb id via ``/external_ids``."""
        self._check_kind(media_kind)
        cache_key = f"tmdb:imdb:{media_kind}:{tmdb_id}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._get(f"/{media_kind}/{tmdb_id}/external_ids")
        if data is None:
            return None

        imdb_id = data.get("imdb_id")
        if not imdb_id:
            log.debug("tmdb_no_imdb_id", media_kind=media_kind, tmdb_id=tmdb_id)
            return None

        await self._cache.set(cache_key, imdb_id, ttl=self._ttl)
        return imdb_id

    async def get_details(self, tmdb_id: str, media_kind: str) -> dict[str, Any] | None:
        """Return ``{"title", "original_title", "year"}`` for a TMDB id."""
        self._check_kind(media_kind)
        cache_key = f"tmdb:details:{media_kind}:{tmdb_id}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._get(f"/{media_kind}/{tmdb_id}")
        if data is None:
            return None

        if media_kind == "movie":
            title = data.get("title") or data.get("original_title") or ""
            original = data.get("original_title") or title
            year = self._year(data.get("release_date"))
        else:
            title = data.get("name") or data.get("original_name") or ""
            original = data.get("original_name") or title
            year = self._year(data.get("first_air_date"))

        if not title:
            log.warning("tmdb_details_without_title", media_kind=media_kind, tmdb_id=tmdb_id)
            return None

        details = {"title": title, "original_title": original, "year": year}
        await self._cache.set(cache_key, details, ttl=self._ttl)
        return details
