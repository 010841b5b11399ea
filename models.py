from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Literal

from errors import InvalidConfiguration

MINUTES_PER_HOUR = Decimal("60")

Granularity = Literal["day", "week", "month", "year"]


class SaturdayRule(IntEnum):
    """How often Saturdays are worked, counted from a reference Saturday."""

    NEVER = 0
    EVERY_WEEK = 1
    EVERY_2 = 2
    EVERY_3 = 3
    EVERY_4 = 4
    EVERY_5 = 5
    EVERY_6 = 6

    @property
    def interval(self) -> int:
        """Number of weeks between working Saturdays (0 for never)."""
        return int(self)

    @property
    def label(self) -> str:
        if self is SaturdayRule.NEVER:
            return "Never"
        if self is SaturdayRule.EVERY_WEEK:
            return "Every Saturday"
        return f"Every {self.interval} weeks"


class DeductionTarget(str, Enum):
    """Which figure an absence adjustment reduces."""

    MONTHLY_TARGET_HOURS = "monthly_target_hours"
    TOTAL_AVAILABLE_HOURS = "total_available_hours"

    @property
    def label(self) -> str:
        if self is DeductionTarget.MONTHLY_TARGET_HOURS:
            return "Monthly target hours"
        return "Total available hours"


class EfficiencyBand(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"

    @property
    def color(self) -> str:
        return _BAND_COLORS[self]

    @property
    def label(self) -> str:
        return _BAND_LABELS[self]


_BAND_COLORS = {
    EfficiencyBand.GREEN: "#4CAF50",
    EfficiencyBand.YELLOW: "#FFC107",
    EfficiencyBand.RED: "#F44336",
}

_BAND_LABELS = {
    EfficiencyBand.GREEN: "Excellent",
    EfficiencyBand.YELLOW: "Average",
    EfficiencyBand.RED: "Needs Improvement",
}


def _new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Job:
    """A completed work order.

    Jobs are immutable: an edit produces a new Job through
    ``dataclasses.replace``, which carries ``id`` and ``date_created`` over.
    """

    wip_number: str
    vehicle_registration: str
    aw_value: int
    date_created: datetime = field(default_factory=datetime.now)
    notes: str | None = None
    id: str = field(default_factory=_new_job_id)

    def __post_init__(self):
        if self.aw_value < 0:
            raise ValueError(f"AW value cannot be negative (got {self.aw_value})")

    @property
    def job_date(self) -> date:
        return self.date_created.date()

    def time_in_minutes(self, aw_to_minutes: Decimal = Decimal("5")) -> Decimal:
        """Minutes of work represented by this job's AWs."""
        return Decimal(self.aw_value) * aw_to_minutes

    def sold_hours(self, aw_to_minutes: Decimal = Decimal("5")) -> Decimal:
        """Sold hours as decimal, rounded to the nearest hundredth."""
        hours = self.time_in_minutes(aw_to_minutes) / MINUTES_PER_HOUR
        return hours.quantize(Decimal("0.01"))


@dataclass(frozen=True)
class FormulaConfig:
    aw_to_minutes: Decimal = Decimal("5")
    hours_per_working_day: Decimal = Decimal("8.5")
    target_aws_per_hour: Decimal = Decimal("12")
    efficiency_green_threshold: int = 65
    efficiency_yellow_threshold: int = 31

    def validate(self) -> None:
        """Raise InvalidConfiguration if any formula value is out of range."""
        if self.aw_to_minutes <= 0:
            raise InvalidConfiguration("AW to minutes must be a positive number")
        if not 0 < self.hours_per_working_day <= 24:
            raise InvalidConfiguration("Hours per working day must be between 0 and 24")
        if self.target_aws_per_hour <= 0:
            raise InvalidConfiguration("Target AWs per hour must be a positive number")
        if not 0 <= self.efficiency_green_threshold <= 100:
            raise InvalidConfiguration("Green threshold must be between 0 and 100")
        if not 0 <= self.efficiency_yellow_threshold <= 100:
            raise InvalidConfiguration("Yellow threshold must be between 0 and 100")
        if self.efficiency_yellow_threshold >= self.efficiency_green_threshold:
            raise InvalidConfiguration("Yellow threshold must be less than green threshold")


@dataclass(frozen=True)
class WorkSchedule:
    """Which days are worked and the shape of a working day.

    ``work_days`` uses ``date.weekday()`` numbering (Mon=0 ... Sun=6).
    Saturdays not listed there are governed by ``saturday_rule``.
    """

    work_days: frozenset[int] = frozenset({0, 1, 2, 3, 4})
    work_start: time = time(8, 0)
    work_end: time = time(17, 0)
    lunch_start: time = time(12, 0)
    lunch_end: time = time(12, 30)
    saturday_rule: SaturdayRule = SaturdayRule.NEVER
    reference_saturday: date | None = None

    def validate(self) -> None:
        """Raise InvalidConfiguration if the schedule is inconsistent."""
        if any(not 0 <= d <= 6 for d in self.work_days):
            raise InvalidConfiguration("Work days must be weekday numbers 0-6")
        if self.work_start >= self.work_end:
            raise InvalidConfiguration("Work start must be before work end")
        if self.lunch_start > self.lunch_end:
            raise InvalidConfiguration("Lunch start must not be after lunch end")
        if self.lunch_start < self.work_start or self.lunch_end > self.work_end:
            raise InvalidConfiguration("Lunch must fall inside working hours")
        if self.saturday_rule is not SaturdayRule.NEVER:
            if self.reference_saturday is None:
                raise InvalidConfiguration("A reference Saturday is required for the Saturday rule")
            if self.reference_saturday.weekday() != 5:
                raise InvalidConfiguration(
                    f"Reference Saturday {self.reference_saturday} is not a Saturday"
                )


@dataclass(frozen=True)
class AbsenceAdjustment:
    """Absence hours scoped to one calendar month."""

    hours: Decimal = Decimal("0")
    applies_to_month: int | None = None
    applies_to_year: int | None = None
    deduction_target: DeductionTarget = DeductionTarget.TOTAL_AVAILABLE_HOURS
    bank_holidays_logged: bool = False

    def is_active(self, year: int, month: int) -> bool:
        return (self.applies_to_year, self.applies_to_month) == (year, month)

    def active_hours(self, year: int, month: int) -> Decimal:
        """Hours to deduct in the given month; zero outside the scoped month."""
        if not self.is_active(year, month):
            return Decimal("0")
        return self.hours


@dataclass(frozen=True)
class Settings:
    """Everything the core reads from the settings store."""

    formula: FormulaConfig = field(default_factory=FormulaConfig)
    schedule: WorkSchedule = field(default_factory=WorkSchedule)
    target_hours: Decimal = Decimal("180")
    absence: AbsenceAdjustment = field(default_factory=AbsenceAdjustment)
    last_checked_month: int | None = None
    last_checked_year: int | None = None
    week_start: int = 6  # Sunday


@dataclass
class MonthlyStats:
    year: int
    month: int
    as_of: date
    total_jobs: int = 0
    total_aws: int = 0
    total_minutes: Decimal = Decimal("0")
    total_sold_hours: Decimal = Decimal("0")
    working_days: int = 0
    raw_available_hours: Decimal = Decimal("0")
    absence_hours: Decimal = Decimal("0")
    total_available_hours: Decimal = Decimal("0")
    target_hours: Decimal = Decimal("0")
    remaining_target_hours: Decimal = Decimal("0")
    expected_aws: Decimal = Decimal("0")
    average_aws_per_hour: Decimal = Decimal("0")
    utilization_percentage: Decimal = Decimal("0")
    efficiency_percentage: int = 0
    efficiency_band: EfficiencyBand = EfficiencyBand.RED

    def to_period_stats(self) -> PeriodStats:
        return PeriodStats(
            total_jobs=self.total_jobs,
            total_aws=self.total_aws,
            total_sold_hours=self.total_sold_hours,
            working_days=self.working_days,
            absence_hours=self.raw_available_hours - self.total_available_hours,
            total_available_hours=self.total_available_hours,
            efficiency_percentage=self.efficiency_percentage,
            efficiency_band=self.efficiency_band,
        )


@dataclass
class PeriodStats:
    total_jobs: int = 0
    total_aws: int = 0
    total_sold_hours: Decimal = Decimal("0")
    working_days: int = 0
    absence_hours: Decimal = Decimal("0")
    total_available_hours: Decimal = Decimal("0")
    efficiency_percentage: int = 0
    efficiency_band: EfficiencyBand = EfficiencyBand.RED


@dataclass
class Bucket:
    """One calendar slice of the job ledger and its figures."""

    granularity: Granularity
    range_start: date
    range_end: date
    stats: PeriodStats
    jobs: list[Job] = field(default_factory=list)

    def contains(self, d: date) -> bool:
        return self.range_start <= d <= self.range_end
