"""Tests for the login attempt governor."""

from __future__ import annotations

from tmdbembed.infrastructure.auth.login_governor import (
    BASE_LOCK_MS,
    WINDOW_MS,
    LoginAttemptGovernor,
    remaining,
)


class _Clock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def _governor() -> tuple[LoginAttemptGovernor, _Clock]:
    clock = _Clock()
    return LoginAttemptGovernor(clock=clock), clock


# ---------------------------------------------------------------------------
# can_attempt
# ---------------------------------------------------------------------------


class TestCanAttempt:
    def test_unknown_client_allowed(self) -> None:
        gov, _ = _governor()
        decision = gov.can_attempt("10.0.0.1")
        assert decision.allowed is True
        assert decision.retry_after is None

    def test_five_failures_still_allowed(self) -> None:
        gov, _ = _governor()
        for _ in range(5):
            gov.record_failure("ip")
        assert gov.can_attempt("ip").allowed is True

    def test_locked_client_gets_retry_after(self) -> None:
        gov, clock = _governor()
        for _ in range(6):
            gov.record_failure("ip")
        clock.advance(1500)
        decision = gov.can_attempt("ip")
        assert decision.allowed is False
        # 300s lock, 1.5s elapsed, rounded up
        assert decision.retry_after == 299

    def test_lock_expires(self) -> None:
        gov, clock = _governor()
        for _ in range(6):
            gov.record_failure("ip")
        clock.advance(BASE_LOCK_MS + 1)
        assert gov.can_attempt("ip").allowed is True

    def test_stale_entry_is_dropped(self) -> None:
        gov, clock = _governor()
        gov.record_failure("ip")
        clock.advance(WINDOW_MS + 1)
        assert gov.can_attempt("ip").allowed is True
        assert gov.get("ip") is None

    def test_clients_are_independent(self) -> None:
        gov, _ = _governor()
        for _ in range(6):
            gov.record_failure("a")
        assert gov.can_attempt("a").allowed is False
        assert gov.can_attempt("b").allowed is True


# ---------------------------------------------------------------------------
# record_failure
# ---------------------------------------------------------------------------


class TestRecordFailure:
    def test_first_failure_creates_entry(self) -> None:
        gov, clock = _governor()
        entry = gov.record_failure("ip")
        assert entry.count == 1
        assert entry.first == clock.now
        assert entry.locked_until == 0
        assert remaining(entry) == 4

    def test_sixth_failure_locks_for_base_duration(self) -> None:
        gov, clock = _governor()
        for _ in range(5):
            entry = gov.record_failure("ip")
        assert entry.locked_until == 0
        entry = gov.record_failure("ip")
        assert entry.count == 6
        assert entry.locked_until == clock.now + 300_000
        assert remaining(entry) == 0

    def test_lock_escalates(self) -> None:
        gov, clock = _governor()
        for _ in range(6):
            gov.record_failure("ip")
        entry = gov.record_failure("ip")
        assert entry.count == 7
        assert entry.locked_until == clock.now + 600_000

    def test_failure_after_unlock_escalates(self) -> None:
        gov, clock = _governor()
        for _ in range(6):
            gov.record_failure("ip")
        clock.advance(BASE_LOCK_MS + 1)
        assert gov.can_attempt("ip").allowed is True
        entry = gov.record_failure("ip")
        assert entry.count == 7
        assert entry.locked_until == clock.now + 2 * BASE_LOCK_MS

    def test_lock_is_capped(self) -> None:
        gov, clock = _governor()
        for _ in range(9):
            gov.record_failure("ip")
        # 9th failure: 2 ** 3 = 8x
        assert gov.get("ip").locked_until == clock.now + 8 * BASE_LOCK_MS  # type: ignore[union-attr]
        entry = gov.record_failure("ip")
        assert entry.locked_until == clock.now + 8 * BASE_LOCK_MS

    def test_window_expiry_restarts_count(self) -> None:
        gov, clock = _governor()
        for _ in range(3):
            gov.record_failure("ip")
        clock.advance(WINDOW_MS + 1)
        entry = gov.record_failure("ip")
        assert entry.count == 1
        assert entry.first == clock.now

    def test_window_does_not_reset_while_locked(self) -> None:
        gov, clock = _governor()
        for _ in range(9):
            gov.record_failure("ip")
        # 8x lock (40 min) outlasts the 10 min window
        clock.advance(WINDOW_MS + 1)
        entry = gov.record_failure("ip")
        assert entry.count == 10

    def test_returns_copy(self) -> None:
        gov, _ = _governor()
        entry = gov.record_failure("ip")
        entry.count = 99
        assert gov.get("ip").count == 1  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# record_success / sweep
# ---------------------------------------------------------------------------


class TestRecordSuccess:
    def test_clears_entry(self) -> None:
        gov, _ = _governor()
        for _ in range(3):
            gov.record_failure("ip")
        gov.record_success("ip")
        assert gov.get("ip") is None
        assert len(gov) == 0

    def test_unknown_client_is_noop(self) -> None:
        gov, _ = _governor()
        gov.record_success("nobody")
        assert len(gov) == 0


class TestSweep:
    def test_evicts_only_stale_unlocked_entries(self) -> None:
        gov, clock = _governor()
        gov.record_failure("stale")
        for _ in range(9):
            gov.record_failure("locked")
        clock.advance(WINDOW_MS + 1)
        gov.record_failure("fresh")

        assert gov.sweep() == 1
        assert gov.get("stale") is None
        assert gov.get("locked") is not None
        assert gov.get("fresh") is not None

    def test_periodic_sweep_on_failures(self) -> None:
        gov, clock = _governor()
        gov.record_failure("old")
        clock.advance(WINDOW_MS + 1)
        for i in range(255):
            gov.record_failure(f"ip-{i}")
        assert gov.get("old") is None
