"""Domain entities for the login gate."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class LoginAttemptEntry:
    """Failed-login bookkeeping for one client identity.

    All timestamps are epoch milliseconds. ``locked_until == 0`` means
    the client is not locked.
    """

    count: int
    first: int
    last: int
    locked_until: int = 0


@dataclass(frozen=True)
class AttemptDecision:
    """Answer to "may this client try to log in right now?"."""

    allowed: bool
    retry_after: int | None = None  # seconds, only set when denied


@dataclass(frozen=True)
class Session:
    """Issued login session."""

    token: str
    username: str
    expires_at: float  # epoch seconds
