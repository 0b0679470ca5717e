"""Rolling quota windows for OTP issuance.

All functions are pure: they look at stored timestamps and a caller-supplied
``now`` and never touch the database.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

HOUR_WINDOW = timedelta(hours=1)
DAY_WINDOW = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_window_expired(window_start: datetime | None, now: datetime, duration: timedelta) -> bool:
    """Return True if the window never started or has run its full duration."""
    if window_start is None:
        return True
    return ensure_utc(now) - ensure_utc(window_start) >= duration


def is_hour_window_expired(window_start: datetime | None, now: datetime) -> bool:
    return is_window_expired(window_start, now, HOUR_WINDOW)


def is_day_window_expired(window_start: datetime | None, now: datetime) -> bool:
    return is_window_expired(window_start, now, DAY_WINDOW)


def seconds_until(target: datetime, now: datetime) -> int:
    """Whole seconds from now until target, rounded up and never negative."""
    remaining = (ensure_utc(target) - ensure_utc(now)).total_seconds()
    return max(0, math.ceil(remaining))


def minutes_until(target: datetime, now: datetime) -> int:
    return math.ceil(seconds_until(target, now) / 60)
