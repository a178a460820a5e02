"""Relay rewriting and upstream fetching.

Some provider URLs only play when fetched with extra request headers
(typically ``Referer``).  Players cannot send those, so the gateway can
hand out relay URLs instead: the target URL and its headers are packed
into a signed token and ``GET /proxy/stream/{token}`` fetches the target
server-side with the right headers.

HLS manifests are rewritten on the way through so that variant playlists
and segments are fetched through the relay as well.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from collections.abc import AsyncIterator, Sequence
from dataclasses import replace
from urllib.parse import urljoin

import httpx
import structlog

from tmdbembed.domain.entities.streams import Stream
from tmdbembed.domain.errors import InvalidRelayTokenError

log = structlog.get_logger(__name__)

RELAY_PATH = "/proxy/stream"
HLS_CONTENT_TYPE = "application/vnd.apple.mpegurl"

# Response headers copied from upstream for pass-through bodies.
PASSTHROUGH_HEADERS = (
    "content-type",
    "content-length",
    "content-range",
    "accept-ranges",
)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def is_hls(url: str, content_type: str = "") -> bool:
    """True when the URL or content type denotes an HLS playlist."""
    path = url.split("?", 1)[0].lower()
    return path.endswith(".m3u8") or "mpegurl" in content_type.lower()


class RelayRewriter:
    """Signs relay tokens and rewrites streams to relay URLs.

    Args:
        secret: HMAC key.  Tokens signed with another key are rejected.
        rewrite_all: Also relay streams that carry no headers.
    """

    def __init__(self, secret: str, *, rewrite_all: bool = False) -> None:
        if not secret:
            raise ValueError("relay secret must not be empty")
        self._key = secret.encode("utf-8")
        self.rewrite_all = rewrite_all

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def _sign(self, payload: bytes) -> str:
        return _b64encode(hmac.new(self._key, payload, hashlib.sha256).digest())

    def encode_token(self, url: str, headers: dict[str, str] | None = None) -> str:
        payload = json.dumps(
            {"u": url, "h": headers or {}}, separators=(",", ":"), sort_keys=True
        ).encode("utf-8")
        return f"{_b64encode(payload)}.{self._sign(payload)}"

    def decode_token(self, token: str) -> tuple[str, dict[str, str]]:
        """Verify *token* and return ``(url, headers)``.

        Raises:
            InvalidRelayTokenError: Malformed token or bad signature.
        """
        body, sep, signature = token.partition(".")
        if not sep or not body or not signature:
            raise InvalidRelayTokenError("malformed token")
        try:
            payload = _b64decode(body)
        except (binascii.Error, ValueError) as exc:
            raise InvalidRelayTokenError("malformed token") from exc

        if not hmac.compare_digest(self._sign(payload), signature):
            raise InvalidRelayTokenError("bad signature")

        try:
            data = json.loads(payload)
            url = data["u"]
            headers = data.get("h") or {}
        except (ValueError, KeyError, TypeError) as exc:
            raise InvalidRelayTokenError("malformed payload") from exc
        if not isinstance(url, str) or not isinstance(headers, dict):
            raise InvalidRelayTokenError("malformed payload")
        return url, {str(k): str(v) for k, v in headers.items()}

    def relay_url(
        self, origin_base: str, url: str, headers: dict[str, str] | None
    ) -> str:
        return f"{origin_base.rstrip('/')}{RELAY_PATH}/{self.encode_token(url, headers)}"

    # ------------------------------------------------------------------
    # Rewriting
    # ------------------------------------------------------------------

    def rewrite(self, streams: Sequence[Stream], origin_base: str) -> list[Stream]:
        """Return new streams pointing at the relay.

        Streams without headers pass through unchanged unless
        ``rewrite_all`` is set.  Rewritten streams drop their headers.
        """
        out: list[Stream] = []
        for s in streams:
            if not s.url or (not s.headers and not self.rewrite_all):
                out.append(s)
                continue
            out.append(
                replace(
                    s,
                    url=self.relay_url(origin_base, s.url, s.headers),
                    headers=None,
                )
            )
        return out

    def rewrite_manifest(
        self,
        content: str,
        manifest_url: str,
        origin_base: str,
        headers: dict[str, str],
    ) -> str:
        """Point every URI line of an HLS manifest at the relay.

        Relative URIs are resolved against *manifest_url* first.  URIs
        inside tags (``#EXT-X-KEY:URI="..."``) are rewritten too.
        """
        lines: list[str] = []
        for line in content.splitlines(keepends=True):
            stripped = line.strip()
            if not stripped:
                lines.append(line)
                continue
            if stripped.startswith("#"):
                lines.append(
                    self._rewrite_tag_uri(line, manifest_url, origin_base, headers)
                )
                continue
            target = urljoin(manifest_url, stripped)
            ending = line[len(line.rstrip("\r\n")) :]
            lines.append(self.relay_url(origin_base, target, headers) + ending)
        return "".join(lines)

    def _rewrite_tag_uri(
        self,
        line: str,
        manifest_url: str,
        origin_base: str,
        headers: dict[str, str],
    ) -> str:
        marker = 'URI="'
        start = line.find(marker)
        if start < 0:
            return line
        start += len(marker)
        end = line.find('"', start)
        if end < 0:
            return line
        target = urljoin(manifest_url, line[start:end])
        return line[:start] + self.relay_url(origin_base, target, headers) + line[end:]


# ---------------------------------------------------------------------------
# Upstream fetching
# ---------------------------------------------------------------------------


async def open_upstream(
    http_client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    *,
    range_header: str | None = None,
    timeout: float = 30.0,
) -> httpx.Response:
    """Open a streamed GET against the upstream URL.

    The caller owns the returned response and must close it.
    Raises ``httpx.HTTPStatusError`` on non-2xx responses.
    Raises ``httpx.InvalidURL`` when *url* cannot be parsed.
    """
    request_headers = dict(headers)
    if range_header:
        request_headers["Range"] = range_header

    resp = await http_client.send(
        http_client.build_request(
            "GET", url, headers=request_headers, timeout=timeout
        ),
        stream=True,
        follow_redirects=True,
    )
    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError:
        await resp.aclose()
        raise
    return resp


async def iter_body(resp: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the upstream body in chunks, closing the response at the end."""
    try:
        async for chunk in resp.aiter_bytes(chunk_size=65536):
            yield chunk
    finally:
        await resp.aclose()


def passthrough_headers(resp: httpx.Response) -> dict[str, str]:
    return {
        name: resp.headers[name] for name in PASSTHROUGH_HEADERS if name in resp.headers
    }
