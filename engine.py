"""Time and efficiency accounting.

Turns a job ledger plus formula and schedule settings into sold hours,
available hours, utilization and efficiency. Every function here is pure:
jobs are read, never written, and nothing touches storage.

    sold hours   = total AWs x AW minutes / 60
    efficiency   = round(sold / available x 100)     (may exceed 100)
    utilization  = min(sold / target x 100, 100)
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from availability import available_hours, count_working_days
from models import (
    MINUTES_PER_HOUR,
    AbsenceAdjustment,
    DeductionTarget,
    EfficiencyBand,
    FormulaConfig,
    Job,
    MonthlyStats,
    PeriodStats,
    WorkSchedule,
)
from utils import as_date, month_bounds

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")


# --- Ledger slicing ---


def jobs_in_range(jobs: Iterable[Job], start: date, end: date) -> list[Job]:
    """Jobs created on any day from start to end inclusive."""
    return [job for job in jobs if start <= job.job_date <= end]


def jobs_in_month(jobs: Iterable[Job], year: int, month: int) -> list[Job]:
    return [
        job for job in jobs
        if job.date_created.year == year and job.date_created.month == month
    ]


def available_months(jobs: Iterable[Job]) -> list[tuple[int, int, int]]:
    """(year, month, job count) for every month that has jobs, newest first."""
    counts = Counter((job.date_created.year, job.date_created.month) for job in jobs)
    return [(year, month, count) for (year, month), count in sorted(counts.items(), reverse=True)]


# --- Figures ---


def sold_hours(total_aws: int, aw_to_minutes: Decimal) -> Decimal:
    """Hours represented by a number of AWs, unrounded."""
    return Decimal(total_aws) * aw_to_minutes / MINUTES_PER_HOUR


def efficiency_percentage(sold: Decimal, available: Decimal) -> int:
    """Sold over available hours as a whole percentage, 0 when nothing is available."""
    if available <= 0:
        return 0
    ratio = sold / available * HUNDRED
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def utilization_percentage(sold: Decimal, target: Decimal) -> Decimal:
    """Sold over target hours as a percentage clamped to 0-100."""
    if target <= 0:
        return ZERO
    ratio = sold / target * HUNDRED
    return min(max(ratio, ZERO), HUNDRED).quantize(CENTS)


def classify_efficiency(efficiency: int, formula: FormulaConfig) -> EfficiencyBand:
    """Place an efficiency figure into the green/yellow/red band."""
    if efficiency >= formula.efficiency_green_threshold:
        return EfficiencyBand.GREEN
    if efficiency >= formula.efficiency_yellow_threshold:
        return EfficiencyBand.YELLOW
    return EfficiencyBand.RED


def resolve_absence_hours(absence: AbsenceAdjustment | None, year: int, month: int) -> Decimal:
    """Absence hours that apply to the given month (zero when out of scope)."""
    if absence is None:
        return ZERO
    return absence.active_hours(year, month)


def _deduct(total: Decimal, hours: Decimal) -> Decimal:
    return max(total - hours, ZERO)


# --- Stats ---


def compute_range_stats(
    jobs: Iterable[Job],
    start: date,
    end: date,
    formula: FormulaConfig,
    schedule: WorkSchedule,
    absence_hours: Decimal = ZERO,
) -> PeriodStats:
    """Stats for an arbitrary inclusive date range.

    absence_hours is subtracted from the available hours as-is; callers
    decide whether an adjustment applies to the range.
    """
    formula.validate()
    raw_available = available_hours(start, end, schedule, formula.hours_per_working_day)
    range_jobs = jobs_in_range(jobs, start, end)

    total_aws = sum(job.aw_value for job in range_jobs)
    sold = sold_hours(total_aws, formula.aw_to_minutes)
    available = _deduct(raw_available, absence_hours)
    efficiency = efficiency_percentage(sold, available)

    return PeriodStats(
        total_jobs=len(range_jobs),
        total_aws=total_aws,
        total_sold_hours=sold.quantize(CENTS),
        working_days=count_working_days(start, end, schedule),
        absence_hours=absence_hours,
        total_available_hours=available,
        efficiency_percentage=efficiency,
        efficiency_band=classify_efficiency(efficiency, formula),
    )


def _month_stats(
    jobs: Iterable[Job],
    year: int,
    month: int,
    as_of: date,
    availability_end: date | None,
    formula: FormulaConfig,
    schedule: WorkSchedule,
    target_hours: Decimal,
    absence: AbsenceAdjustment | None,
) -> MonthlyStats:
    formula.validate()
    schedule.validate()

    first_day, _ = month_bounds(year, month)
    month_jobs = jobs_in_month(jobs, year, month)

    total_aws = sum(job.aw_value for job in month_jobs)
    total_minutes = Decimal(total_aws) * formula.aw_to_minutes
    sold = total_minutes / MINUTES_PER_HOUR

    if availability_end is None:
        raw_available = ZERO
        days = 0
    else:
        raw_available = available_hours(first_day, availability_end, schedule, formula.hours_per_working_day)
        days = count_working_days(first_day, availability_end, schedule)

    absence_hours = resolve_absence_hours(absence, year, month)
    available = raw_available
    target = target_hours
    if absence_hours and absence is not None:
        if absence.deduction_target is DeductionTarget.TOTAL_AVAILABLE_HOURS:
            available = _deduct(raw_available, absence_hours)
        else:
            target = _deduct(target_hours, absence_hours)

    efficiency = efficiency_percentage(sold, available)
    band = classify_efficiency(efficiency, formula)

    logger.debug(
        "Stats %d-%02d as of %s: %d jobs, %d AWs, %.2fh sold / %sh available (%s absence) = %d%% %s",
        year, month, as_of, len(month_jobs), total_aws, sold, available, absence_hours,
        efficiency, band.value,
    )

    return MonthlyStats(
        year=year,
        month=month,
        as_of=as_of,
        total_jobs=len(month_jobs),
        total_aws=total_aws,
        total_minutes=total_minutes,
        total_sold_hours=sold.quantize(CENTS),
        working_days=days,
        raw_available_hours=raw_available,
        absence_hours=absence_hours,
        total_available_hours=available,
        target_hours=target,
        remaining_target_hours=_deduct(target, sold).quantize(CENTS),
        expected_aws=(formula.target_aws_per_hour * available).quantize(CENTS),
        average_aws_per_hour=(Decimal(total_aws) / sold).quantize(CENTS) if sold else ZERO,
        utilization_percentage=utilization_percentage(sold, target),
        efficiency_percentage=efficiency,
        efficiency_band=band,
    )


def compute_stats(
    jobs: Iterable[Job],
    as_of: date | datetime,
    formula: FormulaConfig,
    schedule: WorkSchedule,
    target_hours: Decimal,
    absence: AbsenceAdjustment | None = None,
) -> MonthlyStats:
    """Month-to-date stats for the calendar month containing as_of.

    Jobs anywhere in that month count; availability runs from the 1st up to
    and including as_of. An absence adjustment applies only when it is
    scoped to that month, and reduces either the available hours or the
    target, never both.

    Raises:
        InvalidConfiguration: formula or schedule violates an invariant.
    """
    as_of = as_date(as_of)
    _, last_day = month_bounds(as_of.year, as_of.month)
    return _month_stats(
        jobs, as_of.year, as_of.month, as_of, min(as_of, last_day),
        formula, schedule, target_hours, absence,
    )


def compute_month_stats(
    jobs: Iterable[Job],
    year: int,
    month: int,
    formula: FormulaConfig,
    schedule: WorkSchedule,
    target_hours: Decimal,
    absence: AbsenceAdjustment | None = None,
    today: date | None = None,
) -> MonthlyStats:
    """Stats for any month relative to today.

    The current month is measured to today, past months in full, and future
    months have no available hours yet.
    """
    today = today or date.today()
    first_day, last_day = month_bounds(year, month)

    if first_day > today:
        logger.debug("Month %d-%02d is in the future, no available hours", year, month)
        return _month_stats(
            jobs, year, month, first_day, None,
            formula, schedule, target_hours, absence,
        )

    as_of = min(today, last_day)
    return _month_stats(
        jobs, year, month, as_of, as_of,
        formula, schedule, target_hours, absence,
    )
