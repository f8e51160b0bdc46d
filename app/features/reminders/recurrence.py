"""
Recurrence arithmetic for reminders.
"""

import calendar
from datetime import datetime, timedelta

from app.core.timeutil import as_utc
from app.models.reminder import RecurrencePattern


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_occurrence(current: datetime, pattern: RecurrencePattern | str) -> datetime:
    """
    Due time of the occurrence after ``current``.

    Monthly and yearly steps keep the time of day and clamp the day of
    month (Jan 31 -> Feb 28/29, Feb 29 -> Feb 28).
    """
    pattern = RecurrencePattern(pattern)
    if pattern is RecurrencePattern.DAILY:
        return current + timedelta(days=1)
    if pattern is RecurrencePattern.WEEKLY:
        return current + timedelta(weeks=1)
    if pattern is RecurrencePattern.MONTHLY:
        return add_months(current, 1)
    return add_months(current, 12)


def within_end(candidate: datetime, end: datetime | None) -> bool:
    return end is None or as_utc(candidate) <= as_utc(end)
