"""Login, logout and session endpoints."""

from __future__ import annotations

from typing import Any, cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tmdbembed.infrastructure.auth.credentials import authenticate
from tmdbembed.infrastructure.auth.login_governor import remaining
from tmdbembed.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SESSION_COOKIE = "session"


def client_ip(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else ""


def _session_cookie(token: str, max_age: int) -> str:
    return f"{SESSION_COOKIE}={token}; HttpOnly; SameSite=Lax; Path=/; Max-Age={max_age}"


def _locked(error: str, retry_after: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": error, "retryAfter": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


async def _read_credentials(request: Request) -> tuple[str, str]:
    try:
        body: Any = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return "", ""
    username = body.get("username")
    password = body.get("password")
    return (
        username if isinstance(username, str) else "",
        password if isinstance(password, str) else "",
    )


@router.post("/login")
async def login(request: Request) -> JSONResponse:
    """Password login guarded by the per-client attempt governor."""
    state = cast(AppState, request.app.state)
    ip = client_ip(request)

    decision = state.governor.can_attempt(ip)
    if not decision.allowed:
        log.info("login_rejected_locked", client_ip=ip, retry_after=decision.retry_after)
        return _locked("TOO_MANY_ATTEMPTS", decision.retry_after or 0)

    username, password = await _read_credentials(request)
    if not username or not password:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "MISSING_CREDENTIALS"},
        )

    auth = state.config.auth
    if not authenticate(
        username,
        password,
        expected_username=auth.username,
        expected_password=auth.password,
    ):
        entry = state.governor.record_failure(ip)
        decision = state.governor.can_attempt(ip)
        if not decision.allowed:
            return _locked("LOCKED", decision.retry_after or 0)
        log.info("login_failed", client_ip=ip, attempts=entry.count)
        return JSONResponse(
            status_code=401,
            content={
                "success": False,
                "error": "INVALID_CREDENTIALS",
                "remaining": remaining(entry),
            },
        )

    state.governor.record_success(ip)
    session = state.sessions.issue(username)
    return JSONResponse(
        content={"success": True, "username": username},
        headers={
            "Set-Cookie": _session_cookie(session.token, state.sessions.ttl_seconds)
        },
    )


@router.post("/logout")
async def logout(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    state.sessions.revoke(request.cookies.get(SESSION_COOKIE))
    return JSONResponse(
        content={"success": True},
        headers={"Set-Cookie": _session_cookie("", 0)},
    )


@router.get("/session")
async def session_info(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    session = state.sessions.get(request.cookies.get(SESSION_COOKIE))
    if session is None:
        return JSONResponse(
            status_code=401, content={"success": False, "error": "UNAUTHORIZED"}
        )
    return JSONResponse(content={"success": True, "username": session.username})
