"""Tests for engine.py - sold hours, availability and efficiency."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from engine import (
    available_months,
    classify_efficiency,
    compute_month_stats,
    compute_range_stats,
    compute_stats,
    efficiency_percentage,
    jobs_in_month,
    jobs_in_range,
    sold_hours,
    utilization_percentage,
)
from errors import InvalidConfiguration, InvalidRange
from models import (
    AbsenceAdjustment,
    DeductionTarget,
    EfficiencyBand,
    FormulaConfig,
    Job,
    WorkSchedule,
)


class TestLedgerSlicing:
    """Tests for jobs_in_month, jobs_in_range and available_months."""

    def test_month_boundaries(self, make_job):
        """Test the first and last calendar days are included, neighbours are not."""
        jobs = [
            make_job(date(2025, 2, 28), 5, hour=23),
            make_job(date(2025, 3, 1), 7, hour=0),
            make_job(date(2025, 3, 31), 11, hour=23),
            make_job(date(2025, 4, 1), 13, hour=0),
        ]
        march = jobs_in_month(jobs, 2025, 3)
        assert sum(j.aw_value for j in march) == 18

    def test_range_inclusive(self, make_job):
        """Test both range ends are included."""
        jobs = [make_job(date(2025, 3, d), 1) for d in (2, 3, 4, 5)]
        assert len(jobs_in_range(jobs, date(2025, 3, 3), date(2025, 3, 4))) == 2

    def test_available_months_newest_first(self, make_job):
        """Test months are listed newest first with counts."""
        jobs = [
            make_job(date(2025, 1, 10), 1),
            make_job(date(2025, 3, 10), 1),
            make_job(date(2025, 3, 11), 1),
            make_job(date(2024, 12, 1), 1),
        ]
        assert available_months(jobs) == [(2025, 3, 2), (2025, 1, 1), (2024, 12, 1)]

    def test_available_months_empty(self):
        assert available_months([]) == []


class TestFigures:
    """Tests for the individual formulas."""

    def test_sold_hours(self):
        """Test AWs to hours."""
        assert sold_hours(12, Decimal("5")) == Decimal("1")
        assert sold_hours(0, Decimal("5")) == Decimal("0")

    def test_efficiency_unclamped(self):
        """Test efficiency may exceed 100."""
        assert efficiency_percentage(Decimal("20"), Decimal("10")) == 200

    def test_efficiency_zero_available(self):
        """Test zero available hours gives zero efficiency, not an error."""
        assert efficiency_percentage(Decimal("5"), Decimal("0")) == 0

    def test_efficiency_rounds_half_up(self):
        """Test 0.5 rounds up."""
        assert efficiency_percentage(Decimal("1"), Decimal("8")) == 13  # 12.5

    def test_utilization_clamped(self):
        """Test utilization caps at 100."""
        assert utilization_percentage(Decimal("200"), Decimal("180")) == Decimal("100.00")

    def test_utilization(self):
        """Test utilization against the target."""
        assert utilization_percentage(Decimal("90"), Decimal("180")) == Decimal("50.00")

    def test_utilization_zero_target(self):
        assert utilization_percentage(Decimal("10"), Decimal("0")) == Decimal("0")

    @pytest.mark.parametrize("efficiency,band", [
        (65, EfficiencyBand.GREEN),
        (64, EfficiencyBand.YELLOW),
        (31, EfficiencyBand.YELLOW),
        (30, EfficiencyBand.RED),
        (150, EfficiencyBand.GREEN),
        (0, EfficiencyBand.RED),
    ])
    def test_classification(self, efficiency, band):
        """Test band boundaries at the default thresholds."""
        formula = FormulaConfig(efficiency_green_threshold=65, efficiency_yellow_threshold=31)
        assert classify_efficiency(efficiency, formula) is band


class TestComputeStats:
    """Tests for compute_stats (month to date)."""

    def test_boundary_scenario(self, formula, weekday_schedule, make_job):
        """Test 1000 AWs over 20 working days is 83.33h of 170h, 49%."""
        jobs = [make_job(date(2025, 2, 3), 500), make_job(date(2025, 2, 20), 500)]
        stats = compute_stats(jobs, date(2025, 2, 28), formula, weekday_schedule, Decimal("180"))

        assert stats.total_aws == 1000
        assert stats.total_sold_hours == Decimal("83.33")
        assert stats.working_days == 20
        assert stats.total_available_hours == Decimal("170")
        assert stats.efficiency_percentage == 49
        assert stats.efficiency_band is EfficiencyBand.YELLOW

    def test_totals_match_month_jobs(self, formula, weekday_schedule, make_job):
        """Test total AWs sum exactly the jobs created in the month."""
        jobs = [
            make_job(date(2025, 2, 28), 40, hour=23),
            make_job(date(2025, 3, 1), 7, hour=0),
            make_job(date(2025, 3, 31), 11, hour=23),
            make_job(date(2025, 4, 1), 13, hour=0),
        ]
        stats = compute_stats(jobs, date(2025, 3, 31), formula, weekday_schedule, Decimal("180"))
        assert stats.total_aws == 18
        assert stats.total_jobs == 2

    def test_month_to_date(self, formula, weekday_schedule, make_job):
        """Test availability stops at as_of but jobs later in the month still count."""
        jobs = [make_job(date(2025, 3, 3), 12), make_job(date(2025, 3, 20), 12)]
        stats = compute_stats(jobs, date(2025, 3, 7), formula, weekday_schedule, Decimal("180"))
        assert stats.working_days == 5
        assert stats.total_available_hours == Decimal("42.5")
        assert stats.total_aws == 24

    def test_accepts_datetime(self, formula, weekday_schedule):
        """Test as_of may be a datetime."""
        stats = compute_stats([], datetime(2025, 3, 7, 15, 0), formula, weekday_schedule, Decimal("180"))
        assert stats.as_of == date(2025, 3, 7)

    def test_empty_ledger(self, formula, weekday_schedule):
        """Test no jobs gives zero figures, not an error."""
        stats = compute_stats([], date(2025, 3, 31), formula, weekday_schedule, Decimal("180"))
        assert stats.total_jobs == 0
        assert stats.total_sold_hours == Decimal("0")
        assert stats.efficiency_percentage == 0
        assert stats.utilization_percentage == Decimal("0")
        assert stats.remaining_target_hours == Decimal("180")
        assert stats.average_aws_per_hour == Decimal("0")

    def test_auxiliary_figures(self, formula, weekday_schedule, make_job):
        """Test minutes, expected AWs and remaining target."""
        jobs = [make_job(date(2025, 3, 3), 120)]
        stats = compute_stats(jobs, date(2025, 3, 3), formula, weekday_schedule, Decimal("180"))
        assert stats.total_minutes == Decimal("600")
        assert stats.total_sold_hours == Decimal("10.00")
        assert stats.expected_aws == Decimal("102.00")  # 12 x 8.5
        assert stats.remaining_target_hours == Decimal("170.00")
        assert stats.average_aws_per_hour == Decimal("12.00")
        assert stats.efficiency_percentage == 118

    def test_absence_reduces_available(self, formula, weekday_schedule, make_job):
        """Test 17h of absence removes exactly 17h of availability."""
        jobs = [make_job(date(2025, 3, 3), 600)]
        without = compute_stats(jobs, date(2025, 3, 31), formula, weekday_schedule, Decimal("180"))
        absence = AbsenceAdjustment(
            hours=Decimal("17"),
            applies_to_month=3,
            applies_to_year=2025,
            deduction_target=DeductionTarget.TOTAL_AVAILABLE_HOURS,
        )
        stats = compute_stats(jobs, date(2025, 3, 31), formula, weekday_schedule, Decimal("180"), absence)

        assert without.total_available_hours - stats.total_available_hours == Decimal("17")
        assert stats.raw_available_hours == without.total_available_hours
        assert stats.target_hours == Decimal("180")
        assert stats.efficiency_percentage > without.efficiency_percentage

    def test_absence_out_of_scope(self, formula, weekday_schedule):
        """Test an adjustment scoped to last month has no effect."""
        absence = AbsenceAdjustment(hours=Decimal("17"), applies_to_month=2, applies_to_year=2025)
        stats = compute_stats([], date(2025, 3, 31), formula, weekday_schedule, Decimal("180"), absence)
        assert stats.total_available_hours == Decimal("178.5")
        assert stats.absence_hours == Decimal("0")

    def test_absence_reduces_target(self, formula, weekday_schedule, make_job):
        """Test a target deduction leaves available hours alone."""
        jobs = [make_job(date(2025, 3, 3), 1080)]  # 90h
        absence = AbsenceAdjustment(
            hours=Decimal("30"),
            applies_to_month=3,
            applies_to_year=2025,
            deduction_target=DeductionTarget.MONTHLY_TARGET_HOURS,
        )
        stats = compute_stats(jobs, date(2025, 3, 31), formula, weekday_schedule, Decimal("180"), absence)
        assert stats.total_available_hours == Decimal("178.5")
        assert stats.target_hours == Decimal("150")
        assert stats.utilization_percentage == Decimal("60.00")

    def test_absence_never_negative(self, formula, weekday_schedule):
        """Test absence larger than availability floors at zero."""
        absence = AbsenceAdjustment(hours=Decimal("500"), applies_to_month=3, applies_to_year=2025)
        stats = compute_stats([], date(2025, 3, 31), formula, weekday_schedule, Decimal("180"), absence)
        assert stats.total_available_hours == Decimal("0")
        assert stats.efficiency_percentage == 0

    def test_invalid_formula(self, weekday_schedule):
        """Test configuration errors propagate."""
        formula = FormulaConfig(efficiency_green_threshold=30, efficiency_yellow_threshold=40)
        with pytest.raises(InvalidConfiguration):
            compute_stats([], date(2025, 3, 31), formula, weekday_schedule, Decimal("180"))


class TestComputeMonthStats:
    """Tests for compute_month_stats relative to today."""

    def test_past_month_full(self, formula, weekday_schedule):
        """Test a past month is measured to its last day."""
        stats = compute_month_stats([], 2025, 2, formula, weekday_schedule, Decimal("180"), today=date(2025, 3, 10))
        assert stats.as_of == date(2025, 2, 28)
        assert stats.total_available_hours == Decimal("170")

    def test_current_month_to_today(self, formula, weekday_schedule):
        """Test the current month stops at today."""
        stats = compute_month_stats([], 2025, 3, formula, weekday_schedule, Decimal("180"), today=date(2025, 3, 7))
        assert stats.working_days == 5

    def test_future_month_zero(self, formula, weekday_schedule):
        """Test a future month has no available hours yet."""
        stats = compute_month_stats([], 2025, 5, formula, weekday_schedule, Decimal("180"), today=date(2025, 3, 7))
        assert stats.total_available_hours == Decimal("0")
        assert stats.working_days == 0


class TestComputeRangeStats:
    """Tests for compute_range_stats."""

    def test_week(self, formula, weekday_schedule, make_job):
        """Test a Sunday-to-Saturday week has five working days."""
        jobs = [make_job(date(2025, 3, 3), 51), make_job(date(2025, 3, 4), 51)]
        stats = compute_range_stats(jobs, date(2025, 3, 2), date(2025, 3, 8), formula, weekday_schedule)
        assert stats.working_days == 5
        assert stats.total_available_hours == Decimal("42.5")
        assert stats.total_sold_hours == Decimal("8.50")
        assert stats.efficiency_percentage == 20
        assert stats.efficiency_band is EfficiencyBand.RED

    def test_non_working_day_with_jobs(self, formula, weekday_schedule, make_job):
        """Test work on a day off counts as sold with zero efficiency."""
        jobs = [make_job(date(2025, 3, 9), 24)]
        stats = compute_range_stats(jobs, date(2025, 3, 9), date(2025, 3, 9), formula, weekday_schedule)
        assert stats.total_sold_hours == Decimal("2.00")
        assert stats.total_available_hours == Decimal("0")
        assert stats.efficiency_percentage == 0

    def test_start_after_end(self, formula, weekday_schedule):
        """Test InvalidRange propagates."""
        with pytest.raises(InvalidRange):
            compute_range_stats([], date(2025, 3, 9), date(2025, 3, 8), formula, weekday_schedule)

    def test_does_not_mutate_jobs(self, formula, weekday_schedule, sample_job):
        """Test the ledger is read, not changed."""
        jobs: list[Job] = [sample_job]
        compute_range_stats(jobs, date(2025, 3, 1), date(2025, 3, 31), formula, weekday_schedule)
        assert jobs == [sample_job]


def test_two_hundred_percent(make_job):
    """Test 20 sold hours against 10 available is 200%."""
    schedule = WorkSchedule()
    formula = FormulaConfig(hours_per_working_day=Decimal("10"))
    jobs = [make_job(date(2025, 3, 3), 240)]
    stats = compute_range_stats(jobs, date(2025, 3, 3), date(2025, 3, 3), formula, schedule)
    assert stats.total_sold_hours == Decimal("20.00")
    assert stats.efficiency_percentage == 200
