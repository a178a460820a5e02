"""Stream endpoints (aggregate and single-provider)."""

from __future__ import annotations

from typing import Any, cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from starlette.responses import Response

from tmdbembed.application.use_cases.aggregate_streams import pick_best_stream
from tmdbembed.domain.entities.streams import Stream, StreamRequest
from tmdbembed.domain.errors import GatewayError, NoMatchingStreamError
from tmdbembed.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/streams", tags=["streams"])


def _int_or_none(raw: str | None) -> int | None:
    """Lenient int parsing for query values; junk becomes None."""
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_request(request: Request, media_type: str, tmdb_id: str) -> StreamRequest:
    return StreamRequest(
        tmdb_id=tmdb_id,
        media_type=media_type,
        season=_int_or_none(request.query_params.get("season")),
        episode=_int_or_none(request.query_params.get("episode")),
    )


def _origin_base(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _format_stream(stream: Stream) -> dict[str, Any]:
    """Convert a Stream into its JSON wire shape."""
    out: dict[str, Any] = {
        "title": stream.title,
        "url": stream.url,
        "quality": stream.quality,
        "provider": stream.provider,
    }
    if stream.headers is not None:
        out["headers"] = dict(stream.headers)
    if stream.subtitles:
        out["subtitles"] = [{"url": s.url, "lang": s.lang} for s in stream.subtitles]
    return out


def _error(exc: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.code},
    )


def _internal_error(state: AppState, exc: Exception, **context: Any) -> JSONResponse:
    log.exception("stream_request_failed", **context)
    state.metrics.record_error(str(exc))
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "INTERNAL_ERROR", "message": str(exc)},
    )


def _direct_response(
    streams: list[Stream],
    *,
    tmdb_id: str,
    redirect: bool,
    preferred: str | None,
    label: str | None,
    not_found: str,
) -> Response:
    """Single-best answer for ``?direct``.

    *label* replaces the stream's provider in the plain-text comment line.
    """
    try:
        best = pick_best_stream(streams, preferred)
    except NoMatchingStreamError:
        return PlainTextResponse(f"No stream from {preferred}", status_code=404)

    if best is None or not best.is_playable:
        return PlainTextResponse(not_found, status_code=404)

    if redirect:
        log.info("direct_redirect", provider=best.provider, quality=best.quality)
        return RedirectResponse(best.url, status_code=302)

    comment = f"# {label or best.provider} • {best.quality or 'unknown'} • {tmdb_id}\n"
    return PlainTextResponse(comment + best.url)


@router.get("/{media_type}/{tmdb_id}")
async def aggregate_streams(request: Request, media_type: str, tmdb_id: str) -> Response:
    """Streams from every selected provider, merged and filtered.

    Query: ``season``, ``episode``, ``direct`` (``redirect`` for a 302),
    ``provider`` (preferred provider for direct mode).
    """
    state = cast(AppState, request.app.state)
    direct = request.query_params.get("direct")
    preferred = request.query_params.get("provider") or None
    stream_request = _parse_request(request, media_type, tmdb_id)

    try:
        result = await state.aggregate_uc.aggregate(
            stream_request, origin_base=_origin_base(request)
        )
    except GatewayError as exc:
        return _error(exc)
    except Exception as exc:
        return _internal_error(state, exc, tmdb_id=tmdb_id, media_type=media_type)

    if direct is not None:
        return _direct_response(
            result.streams,
            tmdb_id=tmdb_id,
            redirect=direct == "redirect",
            preferred=preferred,
            label=None,
            not_found="No suitable stream found",
        )

    return JSONResponse(
        content={
            "success": True,
            "tmdbId": tmdb_id,
            "imdbId": result.imdb_id,
            "count": len(result.streams),
            "providerTimings": result.provider_timings,
            "streams": [_format_stream(s) for s in result.streams],
        }
    )


@router.get("/{provider}/{media_type}/{tmdb_id}")
async def provider_streams(
    request: Request, provider: str, media_type: str, tmdb_id: str
) -> Response:
    """Streams from one provider; 404/503 for unknown/disabled providers."""
    state = cast(AppState, request.app.state)
    direct = request.query_params.get("direct")
    stream_request = _parse_request(request, media_type, tmdb_id)

    try:
        result = await state.aggregate_uc.fetch_from_provider(
            provider, stream_request, origin_base=_origin_base(request)
        )
    except GatewayError as exc:
        return _error(exc)
    except Exception as exc:
        return _internal_error(
            state, exc, provider=provider, tmdb_id=tmdb_id, media_type=media_type
        )

    if direct is not None:
        not_found = f"No stream from {provider}"
        return _direct_response(
            result.streams,
            tmdb_id=tmdb_id,
            redirect=direct == "redirect",
            preferred=provider,
            label=provider,
            not_found=not_found,
        )

    return JSONResponse(
        content={
            "success": True,
            "provider": provider,
            "tmdbId": tmdb_id,
            "imdbId": result.imdb_id,
            "count": len(result.streams),
            "providerTimings": result.provider_timings,
            "streams": [_format_stream(s) for s in result.streams],
        }
    )
