"""Slice the job ledger into calendar buckets for the efficiency views."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal

from engine import (
    classify_efficiency,
    compute_month_stats,
    compute_range_stats,
    efficiency_percentage,
    jobs_in_month,
    jobs_in_range,
    sold_hours,
)
from models import AbsenceAdjustment, Bucket, FormulaConfig, Granularity, Job, PeriodStats, WorkSchedule
from utils import as_date, get_week_start, iter_days, month_bounds

logger = logging.getLogger(__name__)

GRANULARITIES = ("day", "week", "month", "year")


def _range_bucket(
    granularity: Granularity,
    jobs: list[Job],
    start: date,
    end: date,
    formula: FormulaConfig,
    schedule: WorkSchedule,
) -> Bucket:
    # No absence below month level
    stats = compute_range_stats(jobs, start, end, formula, schedule)
    return Bucket(
        granularity=granularity,
        range_start=start,
        range_end=end,
        stats=stats,
        jobs=jobs_in_range(jobs, start, end),
    )


def _month_bucket(
    jobs: list[Job],
    year: int,
    month: int,
    formula: FormulaConfig,
    schedule: WorkSchedule,
    absence: AbsenceAdjustment | None,
    today: date,
) -> Bucket:
    first_day, last_day = month_bounds(year, month)
    stats = compute_month_stats(
        jobs, year, month, formula, schedule,
        target_hours=Decimal("0"), absence=absence, today=today,
    )
    return Bucket(
        granularity="month",
        range_start=first_day,
        range_end=last_day,
        stats=stats.to_period_stats(),
        jobs=jobs_in_month(jobs, year, month),
    )


def aggregate(
    jobs: list[Job],
    granularity: Granularity,
    anchor: date | datetime,
    formula: FormulaConfig,
    schedule: WorkSchedule,
    absence: AbsenceAdjustment | None = None,
    week_start: int = 6,
    today: date | None = None,
) -> list[Bucket]:
    """Build the buckets for one calendar view around anchor.

    - ``day``: the single day containing anchor.
    - ``week``: the seven days from the week-start day on or before anchor.
    - ``month``: one bucket per day of anchor's month in order, followed by
      the month total.
    - ``year``: twelve month buckets for anchor's year.

    Day and week buckets report raw availability. Month-level buckets are
    measured month-to-date relative to today and deduct the absence
    adjustment when it is scoped to that month.

    Raises:
        ValueError: unknown granularity.
        InvalidConfiguration: formula or schedule violates an invariant.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity {granularity!r}")

    formula.validate()
    schedule.validate()
    anchor = as_date(anchor)
    today = today or date.today()

    if granularity == "day":
        buckets = [_range_bucket("day", jobs, anchor, anchor, formula, schedule)]

    elif granularity == "week":
        start = get_week_start(anchor, week_start)
        buckets = [_range_bucket("week", jobs, start, start + timedelta(days=6), formula, schedule)]

    elif granularity == "month":
        first_day, last_day = month_bounds(anchor.year, anchor.month)
        month_jobs = jobs_in_month(jobs, anchor.year, anchor.month)
        buckets = [
            _range_bucket("day", month_jobs, d, d, formula, schedule)
            for d in iter_days(first_day, last_day)
        ]
        buckets.append(
            _month_bucket(jobs, anchor.year, anchor.month, formula, schedule, absence, today)
        )

    else:
        buckets = [
            _month_bucket(jobs, anchor.year, month, formula, schedule, absence, today)
            for month in range(1, 13)
        ]

    logger.debug("Aggregated %d %s bucket(s) around %s", len(buckets), granularity, anchor)
    return buckets


def total_stats(buckets: list[Bucket], formula: FormulaConfig) -> PeriodStats:
    """Combine non-overlapping buckets into one set of figures.

    Efficiency is recomputed from the summed AWs and available hours rather
    than averaged across buckets.
    """
    total_aws = sum(b.stats.total_aws for b in buckets)
    sold = sold_hours(total_aws, formula.aw_to_minutes)
    available = sum((b.stats.total_available_hours for b in buckets), Decimal("0"))
    efficiency = efficiency_percentage(sold, available)
    return PeriodStats(
        total_jobs=sum(b.stats.total_jobs for b in buckets),
        total_aws=total_aws,
        total_sold_hours=sold.quantize(Decimal("0.01")),
        working_days=sum(b.stats.working_days for b in buckets),
        absence_hours=sum((b.stats.absence_hours for b in buckets), Decimal("0")),
        total_available_hours=available,
        efficiency_percentage=efficiency,
        efficiency_band=classify_efficiency(efficiency, formula),
    )
