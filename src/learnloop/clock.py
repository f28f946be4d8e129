"""Injectable time source.

Streak arithmetic depends on calendar days, so everything that stamps a
record takes a clock instead of calling datetime.now() directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to a settable instant (tests, backfills)."""

    def __init__(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        """Move the clock forward, e.g. ``clock.advance(days=1)``."""
        self.current = self.current + timedelta(**kwargs)
        return self.current
