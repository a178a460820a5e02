"""Relay endpoint: fetch upstream media with the headers a token carries.

Mounted only when relay mode is enabled.
"""

from __future__ import annotations

from typing import cast

import httpx
import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.responses import Response

from tmdbembed.domain.errors import InvalidRelayTokenError
from tmdbembed.infrastructure.streams.relay import (
    HLS_CONTENT_TYPE,
    is_hls,
    iter_body,
    open_upstream,
    passthrough_headers,
)
from tmdbembed.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/proxy", tags=["relay"])


def _upstream_error(status: int | None = None) -> JSONResponse:
    content: dict[str, object] = {"success": False, "error": "UPSTREAM_ERROR"}
    if status is not None:
        content["status"] = status
    return JSONResponse(status_code=502, content=content)


@router.get("/stream/{token}")
async def relay_stream(request: Request, token: str) -> Response:
    """Fetch the token's target; HLS manifests are rewritten to relay URLs."""
    state = cast(AppState, request.app.state)
    relay = state.relay
    if relay is None:
        return JSONResponse(
            status_code=404, content={"success": False, "error": "RELAY_DISABLED"}
        )

    try:
        url, headers = relay.decode_token(token)
    except InvalidRelayTokenError as exc:
        log.warning("relay_token_rejected", reason=str(exc))
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.code},
        )

    try:
        resp = await open_upstream(
            state.http_client,
            url,
            headers,
            range_header=request.headers.get("range"),
            timeout=state.config.relay.timeout_seconds,
        )
    except httpx.HTTPStatusError as exc:
        log.warning("relay_upstream_status", url=url, status=exc.response.status_code)
        return _upstream_error(exc.response.status_code)
    except (httpx.HTTPError, httpx.InvalidURL):
        log.warning("relay_upstream_error", url=url, exc_info=True)
        return _upstream_error()

    content_type = resp.headers.get("content-type", "")
    if is_hls(url, content_type):
        try:
            body = await resp.aread()
        except httpx.HTTPError:
            log.warning("relay_manifest_read_failed", url=url, exc_info=True)
            return _upstream_error()
        finally:
            await resp.aclose()

        manifest = relay.rewrite_manifest(
            body.decode("utf-8", errors="replace"),
            str(resp.url),
            str(request.base_url).rstrip("/"),
            headers,
        )
        return Response(content=manifest, media_type=HLS_CONTENT_TYPE)

    return StreamingResponse(
        iter_body(resp),
        status_code=resp.status_code,
        headers=passthrough_headers(resp),
    )
