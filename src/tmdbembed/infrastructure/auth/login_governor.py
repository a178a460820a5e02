"""Sliding-window login throttling with escalating lockouts.

Each client identity gets an entry counting failed logins inside a
ten-minute window.  Past the fifth failure the client is locked out for
five minutes, doubling for every further failure up to eight times the
base duration.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import replace

import structlog

from tmdbembed.domain.entities.auth import AttemptDecision, LoginAttemptEntry

log = structlog.get_logger(__name__)

MAX_ATTEMPTS_WINDOW = 5
WINDOW_MS = 10 * 60 * 1000
BASE_LOCK_MS = 5 * 60 * 1000
MAX_LOCK_MULTIPLIER = 8

# How many recorded failures between full sweeps of stale entries.
_GC_INTERVAL = 256


def _now_ms() -> int:
    return int(time.time() * 1000)


def remaining(entry: LoginAttemptEntry) -> int:
    """Attempts left in the current window before the next lockout."""
    return max(0, MAX_ATTEMPTS_WINDOW - entry.count)


class LoginAttemptGovernor:
    """Per-client failed-login table.

    Args:
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms) -> None:
        self._clock = clock
        self._entries: dict[str, LoginAttemptEntry] = {}
        self._lock = threading.Lock()
        self._failure_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, client_id: str) -> LoginAttemptEntry | None:
        with self._lock:
            entry = self._entries.get(client_id)
            return replace(entry) if entry else None

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def can_attempt(self, client_id: str) -> AttemptDecision:
        """Check whether *client_id* may submit credentials right now."""
        with self._lock:
            entry = self._entries.get(client_id)
            if entry is None:
                return AttemptDecision(allowed=True)

            now = self._clock()
            if entry.locked_until > now:
                return AttemptDecision(
                    allowed=False,
                    retry_after=math.ceil((entry.locked_until - now) / 1000),
                )
            if now - entry.first > WINDOW_MS:
                del self._entries[client_id]
            return AttemptDecision(allowed=True)

    def record_failure(self, client_id: str) -> LoginAttemptEntry:
        """Count a failed login; lock the client once over the limit.

        Returns a copy of the updated entry.
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(client_id)
            if entry is None:
                entry = LoginAttemptEntry(count=1, first=now, last=now)
                self._entries[client_id] = entry
            elif now - entry.first > WINDOW_MS and now > entry.locked_until:
                entry.count = 1
                entry.first = now
            else:
                entry.count += 1
            entry.last = now

            if entry.count > MAX_ATTEMPTS_WINDOW:
                over = entry.count - MAX_ATTEMPTS_WINDOW
                lock_ms = BASE_LOCK_MS * min(MAX_LOCK_MULTIPLIER, 2 ** (over - 1))
                entry.locked_until = now + lock_ms
                log.warning(
                    "login_locked",
                    client_ip=client_id,
                    failures=entry.count,
                    lock_seconds=lock_ms // 1000,
                )

            self._failure_count += 1
            if self._failure_count >= _GC_INTERVAL:
                self._failure_count = 0
                self._sweep_locked(now)

            return replace(entry)

    def record_success(self, client_id: str) -> None:
        with self._lock:
            self._entries.pop(client_id, None)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Drop entries whose window expired and that are not locked."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: int) -> int:
        stale = [
            cid
            for cid, e in self._entries.items()
            if e.locked_until <= now and now - e.first > WINDOW_MS
        ]
        for cid in stale:
            del self._entries[cid]
        if stale:
            log.debug("login_governor_swept", evicted=len(stale))
        return len(stale)
