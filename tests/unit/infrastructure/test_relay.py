"""Tests for relay tokens, stream rewriting and HLS manifest rewriting."""

from __future__ import annotations

import httpx
import pytest
import respx

from tmdbembed.domain.entities.streams import Stream
from tmdbembed.domain.errors import InvalidRelayTokenError
from tmdbembed.infrastructure.streams.relay import (
    RELAY_PATH,
    RelayRewriter,
    is_hls,
    iter_body,
    open_upstream,
    passthrough_headers,
)

_ORIGIN = "http://gw.local:8787"


def _token_of(url: str) -> str:
    prefix = f"{_ORIGIN}{RELAY_PATH}/"
    assert url.startswith(prefix)
    return url[len(prefix) :]


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TestTokens:
    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            RelayRewriter("")

    def test_token_carries_url_and_headers(self) -> None:
        relay = RelayRewriter("s3cret")
        token = relay.encode_token("https://cdn/x.m3u8", {"Referer": "https://site/"})
        assert relay.decode_token(token) == (
            "https://cdn/x.m3u8",
            {"Referer": "https://site/"},
        )

    def test_token_is_url_safe(self) -> None:
        token = RelayRewriter("k").encode_token("https://cdn/a?b=c&d=e", {"X": "y/z+"})
        assert "/" not in token
        assert "+" not in token
        assert "=" not in token

    def test_foreign_secret_rejected(self) -> None:
        token = RelayRewriter("one").encode_token("https://cdn/x", None)
        with pytest.raises(InvalidRelayTokenError):
            RelayRewriter("two").decode_token(token)

    def test_tampered_payload_rejected(self) -> None:
        relay = RelayRewriter("k")
        body, sig = relay.encode_token("https://cdn/x", None).split(".")
        other_body = relay.encode_token("https://evil/x", None).split(".")[0]
        with pytest.raises(InvalidRelayTokenError):
            relay.decode_token(f"{other_body}.{sig}")
        assert body != other_body

    @pytest.mark.parametrize("token", ["", "no-dot", ".sig", "body.", "!!!.???"])
    def test_malformed_tokens(self, token: str) -> None:
        with pytest.raises(InvalidRelayTokenError) as exc_info:
            RelayRewriter("k").decode_token(token)
        assert exc_info.value.status_code == 400


# ---------------------------------------------------------------------------
# Stream rewriting
# ---------------------------------------------------------------------------


class TestRewrite:
    def test_streams_with_headers_are_relayed(self) -> None:
        relay = RelayRewriter("k")
        stream = Stream(
            title="M - 1080p",
            url="https://cdn/v.mp4",
            provider="mp4hydra",
            quality="1080p",
            headers={"Referer": "https://mp4hydra.org/"},
        )
        [out] = relay.rewrite([stream], _ORIGIN)
        assert out.headers is None
        assert out.title == stream.title
        assert out.quality == "1080p"
        assert relay.decode_token(_token_of(out.url)) == (
            "https://cdn/v.mp4",
            {"Referer": "https://mp4hydra.org/"},
        )

    def test_plain_streams_untouched(self) -> None:
        stream = Stream(title="t", url="https://cdn/v.mp4", provider="p")
        assert RelayRewriter("k").rewrite([stream], _ORIGIN) == [stream]

    def test_rewrite_all(self) -> None:
        relay = RelayRewriter("k", rewrite_all=True)
        stream = Stream(title="t", url="https://cdn/v.mp4", provider="p")
        [out] = relay.rewrite([stream], _ORIGIN + "/")
        assert relay.decode_token(_token_of(out.url)) == ("https://cdn/v.mp4", {})


# ---------------------------------------------------------------------------
# HLS manifests
# ---------------------------------------------------------------------------


class TestIsHls:
    def test_by_extension(self) -> None:
        assert is_hls("https://cdn/master.m3u8?x=1")

    def test_by_content_type(self) -> None:
        assert is_hls("https://cdn/playlist", "application/vnd.apple.mpegurl")
        assert is_hls("https://cdn/playlist", "audio/x-mpegURL")

    def test_mp4(self) -> None:
        assert not is_hls("https://cdn/v.mp4", "video/mp4")


class TestRewriteManifest:
    def test_relative_and_absolute_uris(self) -> None:
        relay = RelayRewriter("k")
        headers = {"Referer": "https://site/"}
        manifest = (
            "#EXTM3U\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=800000\n"
            "720/index.m3u8\n"
            "\n"
            "https://other.cdn/1080/index.m3u8\n"
        )
        out = relay.rewrite_manifest(
            manifest, "https://cdn.example.com/hls/master.m3u8", _ORIGIN, headers
        ).splitlines()

        assert out[0] == "#EXTM3U"
        assert out[1] == "#EXT-X-STREAM-INF:BANDWIDTH=800000"
        assert relay.decode_token(_token_of(out[2])) == (
            "https://cdn.example.com/hls/720/index.m3u8",
            headers,
        )
        assert out[3] == ""
        assert relay.decode_token(_token_of(out[4]))[0] == (
            "https://other.cdn/1080/index.m3u8"
        )

    def test_tag_uri_attribute(self) -> None:
        relay = RelayRewriter("k")
        line = '#EXT-X-KEY:METHOD=AES-128,URI="key.bin",IV=0x1\n'
        out = relay.rewrite_manifest(line, "https://cdn/a/b.m3u8", _ORIGIN, {})
        assert out.startswith('#EXT-X-KEY:METHOD=AES-128,URI="')
        assert out.endswith('",IV=0x1\n')
        token = out.split('URI="')[1].split('"')[0]
        assert relay.decode_token(_token_of(token))[0] == "https://cdn/a/key.bin"


# ---------------------------------------------------------------------------
# Upstream fetching
# ---------------------------------------------------------------------------


class TestOpenUpstream:
    @respx.mock
    async def test_forwards_headers_and_range(self) -> None:
        route = respx.get("https://cdn/v.mp4").respond(
            206,
            content=b"abc",
            headers={
                "content-type": "video/mp4",
                "content-range": "bytes 0-2/10",
                "x-internal": "1",
            },
        )
        async with httpx.AsyncClient() as client:
            resp = await open_upstream(
                client, "https://cdn/v.mp4", {"Referer": "r"}, range_header="bytes=0-2"
            )
            body = b"".join([chunk async for chunk in iter_body(resp)])

        sent = route.calls.last.request
        assert sent.headers["Referer"] == "r"
        assert sent.headers["Range"] == "bytes=0-2"
        assert body == b"abc"
        headers = passthrough_headers(resp)
        assert headers["content-type"] == "video/mp4"
        assert headers["content-range"] == "bytes 0-2/10"
        assert "x-internal" not in headers

    @respx.mock
    async def test_error_status_raises(self) -> None:
        respx.get("https://cdn/gone.mp4").respond(403)
        async with httpx.AsyncClient() as client:
            with pytest.raises(httpx.HTTPStatusError):
                await open_upstream(client, "https://cdn/gone.mp4", {})
