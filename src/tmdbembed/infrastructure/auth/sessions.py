"""In-memory login sessions."""

from __future__ import annotations

import secrets
import threading
import time
from collections.abc import Callable

import structlog

from tmdbembed.domain.entities.auth import Session

log = structlog.get_logger(__name__)


class SessionStore:
    """Opaque session tokens with a fixed time-to-live.

    Sessions are lost on restart.
    """

    def __init__(
        self,
        ttl_seconds: int = 43200,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def issue(self, username: str) -> Session:
        session = Session(
            token=secrets.token_urlsafe(32),
            username=username,
            expires_at=self._clock() + self.ttl_seconds,
        )
        with self._lock:
            self._purge_expired()
            self._sessions[session.token] = session
        log.info("session_issued", username=username)
        return session

    def get(self, token: str | None) -> Session | None:
        """Return the live session for *token*, or None."""
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.expires_at <= self._clock():
                del self._sessions[token]
                return None
            return session

    def revoke(self, token: str | None) -> bool:
        if not token:
            return False
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [t for t, s in self._sessions.items() if s.expires_at <= now]
        for t in expired:
            del self._sessions[t]
