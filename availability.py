"""Calendar availability: which days are worked and how many hours they offer.

A day is binary: it either contributes a full working day of hours or
nothing. Absence is handled later by the accounting engine.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from errors import InvalidConfiguration, InvalidRange
from models import SaturdayRule, WorkSchedule
from utils import iter_days

logger = logging.getLogger(__name__)

SATURDAY = 5


def is_working_saturday(d: date, schedule: WorkSchedule) -> bool:
    """Check whether a Saturday is worked under the schedule's Saturday rule.

    Counts whole weeks since ``reference_saturday``; the Saturday is worked
    when that count is a multiple of the rule's interval. Saturdays before
    the reference never count.
    """
    if d.weekday() != SATURDAY:
        return False
    if schedule.saturday_rule is SaturdayRule.NEVER or schedule.reference_saturday is None:
        return False

    days_since = (d - schedule.reference_saturday).days
    if days_since < 0:
        return False

    weeks_since = days_since // 7
    return weeks_since % schedule.saturday_rule.interval == 0


def is_working_day(d: date, schedule: WorkSchedule) -> bool:
    """Check whether a date counts as a full working day."""
    if d.weekday() in schedule.work_days:
        return True
    return is_working_saturday(d, schedule)


def day_available_hours(d: date, schedule: WorkSchedule, hours_per_working_day: Decimal) -> Decimal:
    """Hours a single day contributes: a full day if worked, otherwise zero."""
    if is_working_day(d, schedule):
        return hours_per_working_day
    return Decimal("0")


def _check_inputs(start: date, end: date, schedule: WorkSchedule) -> None:
    if start > end:
        raise InvalidRange(start, end)
    schedule.validate()


def working_days(start: date, end: date, schedule: WorkSchedule) -> list[date]:
    """Get list of working days in a date range (inclusive)."""
    _check_inputs(start, end, schedule)
    return [d for d in iter_days(start, end) if is_working_day(d, schedule)]


def count_working_days(start: date, end: date, schedule: WorkSchedule) -> int:
    return len(working_days(start, end, schedule))


def available_hours(
    start: date,
    end: date,
    schedule: WorkSchedule,
    hours_per_working_day: Decimal,
) -> Decimal:
    """Total available hours in a date range before any absence deduction.

    Raises:
        InvalidRange: start is after end.
        InvalidConfiguration: the schedule is inconsistent or the hours per
            working day are outside (0, 24].
    """
    if not 0 < hours_per_working_day <= 24:
        raise InvalidConfiguration("Hours per working day must be between 0 and 24")
    days = count_working_days(start, end, schedule)
    total = Decimal(days) * hours_per_working_day

    logger.debug(
        "Available hours %s..%s: %sh (%d working days x %sh)",
        start, end, total, days, hours_per_working_day,
    )
    return total
