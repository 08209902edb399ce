"""UTC time utilities.

Deadlines (round ends, maturities, expiries) are unix seconds; every
component receives a clock callable so tests can move time explicitly.
"""

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], int]


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def unix_now() -> int:
    """Current unix time in whole seconds."""
    return int(utc_now().timestamp())


def to_datetime(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, timezone.utc)


class FakeClock:
    """Settable clock for tests and simulations."""

    def __init__(self, now: int = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now
