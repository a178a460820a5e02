"""Unit tests for the mp4hydra.org provider."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from tmdbembed.domain.entities.streams import FetchCriteria
from tmdbembed.infrastructure.providers.mp4hydra import (
    MP4HydraProvider,
    generate_slug,
)

_INFO_URL = "https://mp4hydra.org/info2?v=8"

# ---------------------------------------------------------------------------
# JSON fixtures
# ---------------------------------------------------------------------------

MOVIE_RESPONSE = {
    "playlist": [
        {
            "src": "/m/the-matrix-1999/720.mp4",
            "quality": "720p",
            "subs": [{"src": "/s/en.vtt", "label": "English"}],
        },
        {"src": "/m/the-matrix-1999/1080.mp4", "quality": "1080p"},
    ],
    "servers": {
        "Beta": "https://beta1.cdn.example",
        "Beta#3": "https://beta3.cdn.example",
    },
}

SERIES_RESPONSE = {
    "playlist": [
        {"src": "/tv/got/s01e01.mp4", "title": "S01E01", "quality": "720p"},
        {"src": "/tv/got/s01e02.mp4", "title": "S01E02", "quality": "1080p"},
    ],
    "servers": {"Beta": "https://beta1.cdn.example"},
}


def _tmdb(title: str, original: str | None = None, year: int | None = 1999) -> AsyncMock:
    tmdb = AsyncMock()
    tmdb.get_details = AsyncMock(
        return_value={"title": title, "original_title": original or title, "year": year}
    )
    return tmdb


def _sent_z(request: httpx.Request) -> list[dict]:
    """Decode the ``z`` multipart field of a captured info request."""
    body = request.read().decode()
    marker = 'name="z"\r\n\r\n'
    start = body.index(marker) + len(marker)
    end = body.index("\r\n--", start)
    return json.loads(body[start:end])


_MOVIE = FetchCriteria(tmdb_id="603", media_type="movie")


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------


class TestGenerateSlug:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("The Matrix", "the-matrix"),
            ("The Matrix: Reloaded", "the-matrix-reloaded"),
            ("Spider-Man  -  No Way Home", "spider-man-no-way-home"),
            ("Amélie", "amélie"),
        ],
    )
    def test_slug(self, title: str, expected: str) -> None:
        assert generate_slug(title) == expected


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


class TestFetch:
    @respx.mock
    async def test_movie_streams_per_server(self) -> None:
        route = respx.post(_INFO_URL).respond(json=MOVIE_RESPONSE)
        async with httpx.AsyncClient() as client:
            provider = MP4HydraProvider(tmdb=_tmdb("The Matrix"), http_client=client)
            streams = await provider.fetch(_MOVIE)

        assert [s.url for s in streams] == [
            "https://beta1.cdn.example/m/the-matrix-1999/720.mp4",
            "https://beta1.cdn.example/m/the-matrix-1999/1080.mp4",
            "https://beta3.cdn.example/m/the-matrix-1999/720.mp4",
            "https://beta3.cdn.example/m/the-matrix-1999/1080.mp4",
        ]
        first = streams[0]
        assert first.title == "The Matrix - 720p [MP4Hydra #1]"
        assert streams[2].title == "The Matrix - 720p [MP4Hydra #2]"
        assert first.provider == "mp4hydra"
        assert first.quality == "720p"
        assert first.headers == {"Referer": "https://mp4hydra.org/"}
        assert first.subtitles[0].url == "https://beta1.cdn.example/s/en.vtt"
        assert first.subtitles[0].lang == "English"

        request = route.calls.last.request
        assert request.headers["Origin"] == "https://mp4hydra.org"
        assert request.headers["Referer"] == "https://mp4hydra.org/movie/the-matrix-1999"
        assert _sent_z(request) == [
            {"s": "the-matrix-1999", "t": "movie", "se": None, "ep": None}
        ]

    @respx.mock
    async def test_series_picks_episode(self) -> None:
        route = respx.post(_INFO_URL).respond(json=SERIES_RESPONSE)
        criteria = FetchCriteria(tmdb_id="1399", media_type="series", season=1, episode=2)
        async with httpx.AsyncClient() as client:
            provider = MP4HydraProvider(
                tmdb=_tmdb("Game of Thrones", year=2011), http_client=client
            )
            streams = await provider.fetch(criteria)

        assert [s.url for s in streams] == ["https://beta1.cdn.example/tv/got/s01e02.mp4"]
        assert streams[0].quality == "1080p"
        # tv slugs never carry the year
        assert _sent_z(route.calls.last.request) == [
            {"s": "game-of-thrones", "t": "tv", "se": 1, "ep": 2}
        ]

    @respx.mock
    async def test_series_episode_missing(self) -> None:
        respx.post(_INFO_URL).respond(json=SERIES_RESPONSE)
        criteria = FetchCriteria(tmdb_id="1399", media_type="series", season=3, episode=9)
        async with httpx.AsyncClient() as client:
            provider = MP4HydraProvider(tmdb=_tmdb("Game of Thrones"), http_client=client)
            assert await provider.fetch(criteria) == []

    @respx.mock
    async def test_slug_fallbacks(self) -> None:
        route = respx.post(_INFO_URL).mock(
            side_effect=[
                httpx.Response(200, json={"playlist": []}),
                httpx.Response(200, json={"playlist": []}),
                httpx.Response(200, json=MOVIE_RESPONSE),
            ]
        )
        async with httpx.AsyncClient() as client:
            provider = MP4HydraProvider(
                tmdb=_tmdb("Spirited Away", original="Sen to Chihiro", year=2001),
                http_client=client,
            )
            streams = await provider.fetch(_MOVIE)

        assert len(streams) == 4
        slugs = [_sent_z(c.request)[0]["s"] for c in route.calls]
        assert slugs == ["spirited-away-2001", "sen-to-chihiro-2001", "spirited-away"]

    @respx.mock
    async def test_all_attempts_empty(self) -> None:
        route = respx.post(_INFO_URL).respond(json={"playlist": []})
        async with httpx.AsyncClient() as client:
            provider = MP4HydraProvider(tmdb=_tmdb("The Matrix"), http_client=client)
            assert await provider.fetch(_MOVIE) == []
        # same original title: title+year, then title alone
        assert route.call_count == 2

    @respx.mock
    async def test_http_error_yields_empty(self) -> None:
        respx.post(_INFO_URL).respond(503)
        async with httpx.AsyncClient() as client:
            provider = MP4HydraProvider(tmdb=_tmdb("The Matrix"), http_client=client)
            assert await provider.fetch(_MOVIE) == []

    async def test_no_details_yields_empty(self) -> None:
        tmdb = AsyncMock()
        tmdb.get_details = AsyncMock(return_value=None)
        provider = MP4HydraProvider(tmdb=tmdb)
        assert await provider.fetch(_MOVIE) == []

    async def test_tmdb_error_yields_empty(self) -> None:
        tmdb = AsyncMock()
        tmdb.get_details = AsyncMock(side_effect=RuntimeError("boom"))
        provider = MP4HydraProvider(tmdb=tmdb)
        assert await provider.fetch(_MOVIE) == []

    async def test_without_tmdb_client(self) -> None:
        assert await MP4HydraProvider(tmdb=None).fetch(_MOVIE) == []


# ---------------------------------------------------------------------------
# direct_stream / lifecycle
# ---------------------------------------------------------------------------


class TestDirectStream:
    @respx.mock
    async def test_best_quality_first_server(self) -> None:
        respx.post(_INFO_URL).respond(json=MOVIE_RESPONSE)
        async with httpx.AsyncClient() as client:
            provider = MP4HydraProvider(tmdb=_tmdb("The Matrix"), http_client=client)
            url = await provider.direct_stream(_MOVIE)
        assert url == "https://beta1.cdn.example/m/the-matrix-1999/1080.mp4"

    async def test_none_when_empty(self) -> None:
        assert await MP4HydraProvider(tmdb=None).direct_stream(_MOVIE) is None


class TestCleanup:
    async def test_shared_client_left_open(self) -> None:
        client = httpx.AsyncClient()
        provider = MP4HydraProvider(tmdb=None, http_client=client)
        await provider.cleanup()
        assert not client.is_closed
        await client.aclose()

    async def test_own_client_closed(self) -> None:
        provider = MP4HydraProvider(tmdb=None)
        client = await provider._ensure_client()
        await provider.cleanup()
        assert client.is_closed
