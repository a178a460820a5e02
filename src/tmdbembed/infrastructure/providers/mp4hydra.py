"""mp4hydra.org stream provider.

Resolves the TMDB title to a site slug and asks the site's ``info2``
endpoint for a playlist:
- POST /info2?v=8 with multipart fields ``v`` and ``z`` (JSON list)
- response: ``playlist`` (items with ``src``/``quality``/``subs``) and
  ``servers`` (server name -> base URL)

Streams are only playable with a ``Referer`` header, so every stream
carries one.  Movies and series.  No authentication required.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx

from tmdbembed.domain.entities.streams import FetchCriteria, Stream, Subtitle
from tmdbembed.domain.ports.tmdb import TmdbClientPort
from tmdbembed.infrastructure.providers.httpx_base import HttpxProviderBase
from tmdbembed.infrastructure.streams.quality import provider_quality_score

# ---------------------------------------------------------------------------
# Configurable settings
# ---------------------------------------------------------------------------
_BASE_URL = "https://mp4hydra.org"
_INFO_URL = f"{_BASE_URL}/info2?v=8"
_REFERER = f"{_BASE_URL}/"

# (server name in response, label shown in stream titles)
_SERVERS: tuple[tuple[str, str], ...] = (
    ("Beta", "#1"),
    ("Beta#3", "#2"),
)

_MOBILE_UA = (
    "Mozilla/5.0 (Linux; Android 6.0; Nexus 5 Build/MRA58N) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/137.0.0.0 Mobile Safari/537.36"
)

_NON_WORD_RE = re.compile(r"[^\w\s-]")
_SPACE_RE = re.compile(r"\s+")
_DASHES_RE = re.compile(r"-+")


def generate_slug(title: str) -> str:
    """Site slug for a title.

    >>> generate_slug("The Matrix: Reloaded")
    'the-matrix-reloaded'
    """
    slug = _NON_WORD_RE.sub("", title.lower())
    slug = _SPACE_RE.sub("-", slug)
    return _DASHES_RE.sub("-", slug)


def _site_kind(media_type: str) -> str:
    return "tv" if media_type == "series" else "movie"


def _episode_label(season: int, episode: int) -> str:
    return f"S{season:02d}E{episode:02d}"


class MP4HydraProvider(HttpxProviderBase):
    """Stream provider for mp4hydra.org (JSON playlist API)."""

    name = "mp4hydra"
    _timeout = 10.0
    _user_agent = _MOBILE_UA

    def __init__(
        self,
        *,
        tmdb: TmdbClientPort | None,
        http_client: httpx.AsyncClient | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(http_client=http_client, enabled=enabled)
        self._tmdb = tmdb

    # ------------------------------------------------------------------
    # Site API
    # ------------------------------------------------------------------

    def _headers(self, kind: str, slug: str) -> dict[str, str]:
        return {
            "User-Agent": _MOBILE_UA,
            "Accept": "*/*",
            "Accept-Language": "en-GB,en-US;q=0.9,en;q=0.8",
            "Origin": _BASE_URL,
            "Referer": f"{_BASE_URL}/{kind}/{slug}",
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "same-origin",
        }

    async def _request_playlist(
        self,
        slug: str,
        kind: str,
        season: int | None,
        episode: int | None,
    ) -> dict[str, Any] | None:
        """POST the info request; returns the decoded body or None."""
        z = json.dumps([{"s": slug, "t": kind, "se": season, "ep": episode}])
        resp = await self._safe_fetch(
            _INFO_URL,
            method="POST",
            # (None, value) tuples force a multipart body without file names.
            files={"v": (None, "8"), "z": (None, z)},
            headers=self._headers(kind, slug),
            timeout=self._timeout,
            context="info",
        )
        if resp is None:
            return None
        data = self._safe_parse_json(resp, context="info")
        return data if isinstance(data, dict) else None

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _item_to_stream(
        item: dict[str, Any], base: str, label: str, title: str
    ) -> Stream:
        quality = item.get("quality") or item.get("label") or None
        subtitles = tuple(
            Subtitle(url=f"{base}{sub.get('src', '')}", lang=sub.get("label") or "")
            for sub in item.get("subs") or []
            if isinstance(sub, dict)
        )
        return Stream(
            title=f"{title} - {quality} [MP4Hydra {label}]",
            url=f"{base}{item.get('src', '')}",
            provider="mp4hydra",
            quality=quality,
            headers={"Referer": _REFERER},
            subtitles=subtitles,
        )

    def _build_streams(
        self,
        data: dict[str, Any],
        title: str,
        kind: str,
        season: int | None,
        episode: int | None,
    ) -> list[Stream]:
        playlist = [i for i in data.get("playlist") or [] if isinstance(i, dict)]
        servers = data.get("servers") or {}

        streams: list[Stream] = []
        for server_name, label in _SERVERS:
            base = servers.get(server_name)
            if not base:
                continue

            if kind == "tv" and season and episode:
                wanted = _episode_label(season, episode)
                target = next(
                    (
                        i
                        for i in playlist
                        if str(i.get("title") or "").upper() == wanted
                    ),
                    None,
                )
                if target is not None:
                    streams.append(self._item_to_stream(target, base, label, title))
            else:
                streams.extend(
                    self._item_to_stream(i, base, label, title) for i in playlist
                )
        return streams

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def _fetch_streams(self, criteria: FetchCriteria) -> list[Stream]:
        if self._tmdb is None:
            self._log.warning("mp4hydra_no_tmdb_client")
            return []

        kind = _site_kind(criteria.media_type)
        details = await self._tmdb.get_details(criteria.tmdb_id, kind)
        if not details:
            self._log.info("mp4hydra_no_details", tmdb_id=criteria.tmdb_id)
            return []

        title: str = details["title"]
        original: str = details.get("original_title") or title
        year = details.get("year")
        season, episode = criteria.season, criteria.episode

        def slug_for(name: str, with_year: bool = True) -> str:
            slug = generate_slug(name)
            if kind == "movie" and year and with_year:
                slug = f"{slug}-{year}"
            return slug

        # Primary title, then original title, then movie slug without year.
        attempts: list[str] = [slug_for(title)]
        if original != title:
            attempts.append(slug_for(original))
        if kind == "movie" and year:
            attempts.append(slug_for(title, with_year=False))

        for slug in attempts:
            data = await self._request_playlist(slug, kind, season, episode)
            if data and data.get("playlist"):
                streams = self._build_streams(data, title, kind, season, episode)
                self._log.info(
                    "mp4hydra_streams",
                    tmdb_id=criteria.tmdb_id,
                    slug=slug,
                    count=len(streams),
                )
                return streams
            self._log.debug("mp4hydra_empty_playlist", slug=slug)
        return []

    async def fetch(self, criteria: FetchCriteria) -> list[Stream]:
        """Return every stream mp4hydra serves for the title.

        Errors are logged and yield an empty list.
        """
        try:
            return await self._fetch_streams(criteria)
        except Exception:
            self._log.warning(
                "mp4hydra_fetch_failed", tmdb_id=criteria.tmdb_id, exc_info=True
            )
            return []

    async def direct_stream(self, criteria: FetchCriteria) -> str | None:
        """URL of the best stream, first one winning on equal quality."""
        streams = await self.fetch(criteria)
        if not streams:
            return None
        best = streams[0]
        for s in streams[1:]:
            if provider_quality_score(s.quality) > provider_quality_score(best.quality):
                best = s
        return best.url
