"""
Timezone helpers.

All timestamps are handled as timezone-aware UTC. Some drivers (SQLite)
hand back naive datetimes; ``as_utc`` normalizes them before comparison.
"""

from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values, convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    """Last representable instant of ``day``, used for inclusive upper bounds."""
    return start_of_day(day) + timedelta(days=1) - timedelta(microseconds=1)
