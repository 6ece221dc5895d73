"""Shared utility functions."""

from __future__ import annotations

from datetime import datetime, time, timezone

MINUTES_PER_DAY = 24 * 60


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed from start to end."""
    return int((end - start).total_seconds() // 60)


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def end_minute_of_day(value: time) -> int:
    """Minute offset for an exclusive end time; midnight means end of day."""
    minute = minute_of_day(value)
    return MINUTES_PER_DAY if minute == 0 else minute
