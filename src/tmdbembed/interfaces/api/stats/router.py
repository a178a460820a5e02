"""Health, metrics and provider listing endpoints."""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tmdbembed.interfaces.app_state import AppState

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Liveness probe; returns 200 as long as the process is running."""
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content={
            "status": "ok",
            "uptimeSeconds": state.metrics.uptime_seconds,
            "providers": state.providers.list_names(),
        }
    )


@router.get("/metrics")
async def metrics(request: Request) -> JSONResponse:
    """Return in-memory runtime metrics."""
    state = cast(AppState, request.app.state)
    return JSONResponse(content=state.metrics.snapshot())


@router.get("/providers")
async def providers(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content=[
            {"name": p.name, "enabled": p.enabled}
            for p in state.providers.list_providers()
        ]
    )
