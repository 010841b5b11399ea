"""Date helpers shared by the availability calculator and the aggregator."""

from __future__ import annotations

from calendar import monthrange
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta

from errors import InvalidRange

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def as_date(value: date | datetime) -> date:
    """Strip the time part from a datetime; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end inclusive, once each."""
    if start > end:
        raise InvalidRange(start, end)
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def get_week_start(d: date, week_start: int = 6) -> date:
    """Get the first day of the week containing d.

    week_start uses date.weekday() numbering; the default 6 starts weeks on Sunday.
    """
    days_since_start = (d.weekday() - week_start) % 7
    return d - timedelta(days=days_since_start)


def add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    """Shift a (year, month) pair by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def parse_hhmm(val: str) -> time | None:
    """Parse HH:MM to a time object, None for blank or malformed input."""
    val = val.strip()
    if not val:
        return None
    try:
        parts = val.split(":")
        return time(int(parts[0]), int(parts[1]))
    except (ValueError, IndexError):
        return None


def month_name(month: int) -> str:
    """Month name from month number (1-12)."""
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return "Unknown"
