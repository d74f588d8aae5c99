"""
Calendar arithmetic used by the engines.

Month and year steps keep the day of month and clamp it to the last day of
the target month (Jan 31 + 1 month -> Feb 28/29).  All functions are pure.
"""

import calendar
from datetime import date

MONTH_FORMAT = "%Y-%m"


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to the valid range for the given year/month."""
    return min(day, days_in_month(year, month))


def shift_month(year: int, month: int, n: int) -> tuple[int, int]:
    """Return (year, month) moved by n months, rolling the year over."""
    index = year * 12 + (month - 1) + n
    return index // 12, index % 12 + 1


def add_months(d: date, n: int) -> date:
    """Add n months to date d, clamping day to month end."""
    year, month = shift_month(d.year, d.month, n)
    return date(year, month, clamp_day_to_month(year, month, d.day))


def add_years(d: date, n: int) -> date:
    """Add n years to date d; Feb 29 becomes Feb 28 in non-leap years."""
    year = d.year + n
    return date(year, d.month, clamp_day_to_month(year, d.month, d.day))


def first_of_month(d: date) -> date:
    return d.replace(day=1)


def last_of_month(d: date) -> date:
    return d.replace(day=days_in_month(d.year, d.month))


def month_key(year: int, month: int) -> str:
    """Format a year/month pair as 'YYYY-MM'."""
    return f"{year:04d}-{month:02d}"


def days_between(start: date, end: date) -> int:
    """Signed number of days from start to end."""
    return (end - start).days
