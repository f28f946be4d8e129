"""Daily streak arithmetic.

A streak counts consecutive calendar days with at least one attempt. Days
are taken in the configured streak time zone, so "yesterday" means the same
thing for every learner in a deployment.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def local_day(dt: datetime, tz: ZoneInfo | timezone) -> date:
    """Calendar day of `dt` in `tz`. Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz).date()


def next_streak(
    current_streak: int,
    last_active: datetime | None,
    now: datetime,
    tz: ZoneInfo | timezone = timezone.utc,
    first_activity: bool = False,
) -> int:
    """Streak after an attempt at `now`.

    >>> from datetime import datetime, timezone
    >>> d = datetime(2026, 3, 2, 9, tzinfo=timezone.utc)
    >>> next_streak(4, d, d.replace(day=3))
    5
    """
    if first_activity or last_active is None:
        return 1
    gap = (local_day(now, tz) - local_day(last_active, tz)).days
    if gap == 1:
        return current_streak + 1
    if gap > 1:
        return 1
    # Same day (or a last-active stamp ahead of the clock).
    return current_streak
