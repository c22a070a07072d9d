"""
Calendar arithmetic for reminder evaluation.

All values are naive UTC datetimes. Day-level helpers strip the time of day
so trial and renewal math is done on whole calendar days.
"""

import calendar
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Current time as naive UTC (the storage convention for every table)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def add_days(value: datetime, days: int) -> datetime:
    return start_of_day(value + timedelta(days=days))


def diff_in_days(target: datetime, current: datetime) -> int:
    """Whole calendar days from ``current`` to ``target`` (negative when target is past)."""
    return (start_of_day(target) - start_of_day(current)).days


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the target month's last day.

    Jan 31 + 1 month -> Feb 28 (or Feb 29 in a leap year).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, days_in_month(year, month))
    return start_of_day(value.replace(year=year, month=month, day=day))


def next_monthly_date(anchor: datetime, now: datetime) -> datetime:
    """
    First monthly anniversary of ``anchor`` that falls on or after today.

    Each step adds one month to the previous result, so a clamp carries
    forward (Jan 31 -> Feb 28 -> Mar 28).
    """
    next_date = start_of_day(anchor)
    today = start_of_day(now)
    while next_date < today:
        next_date = add_months(next_date, 1)
    return next_date
