"""Tests for monthly_reset.py - clearing absence at the start of a month."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

from engine import compute_stats
from models import AbsenceAdjustment, Settings
from monthly_reset import (
    absence_status,
    check_and_reset_if_new_month,
    current_month_absence_hours,
    force_reset,
)


def settings_with_absence(hours: str, month: int = 3, year: int = 2025) -> Settings:
    return Settings(
        absence=AbsenceAdjustment(hours=Decimal(hours), applies_to_month=month, applies_to_year=year),
        last_checked_month=month,
        last_checked_year=year,
    )


class TestCheckAndReset:
    """Tests for check_and_reset_if_new_month."""

    def test_same_month_no_reset(self):
        """Test nothing changes within the checked month."""
        settings = settings_with_absence("17")
        result = check_and_reset_if_new_month(settings, today=date(2025, 3, 20))

        assert not result.was_reset
        assert not result.needs_save
        assert result.settings is settings
        assert result.settings.absence.hours == Decimal("17")

    def test_new_month_resets(self):
        """Test rolling into April clears March's absence."""
        settings = settings_with_absence("17")
        result = check_and_reset_if_new_month(settings, today=date(2025, 4, 1))

        assert result.was_reset
        assert result.needs_save
        assert result.previous_month == 3
        assert result.previous_year == 2025
        assert result.previous_absence_hours == Decimal("17")
        assert result.current_month == 4
        assert result.current_year == 2025
        assert result.settings.absence.hours == Decimal("0")
        assert result.settings.absence.applies_to_month == 4
        assert result.settings.absence.applies_to_year == 2025
        assert result.settings.last_checked_month == 4
        assert "April 2025" in result.message

    def test_idempotent(self):
        """Test a second check in the same month does nothing."""
        first = check_and_reset_if_new_month(settings_with_absence("17"), today=date(2025, 4, 1))
        logged = replace(first.settings, absence=replace(first.settings.absence, hours=Decimal("8.5")))
        second = check_and_reset_if_new_month(logged, today=date(2025, 4, 1))

        assert first.was_reset
        assert not second.was_reset
        assert second.settings.absence.hours == Decimal("8.5")

    def test_year_rollover(self):
        """Test December to January is a reset."""
        settings = settings_with_absence("8.5", month=12, year=2024)
        result = check_and_reset_if_new_month(settings, today=date(2025, 1, 2))
        assert result.was_reset
        assert result.previous_year == 2024
        assert result.settings.absence.applies_to_year == 2025

    def test_same_month_different_year(self):
        """Test March 2026 after March 2025 is a reset."""
        result = check_and_reset_if_new_month(settings_with_absence("4"), today=date(2026, 3, 10))
        assert result.was_reset

    def test_skipped_months(self):
        """Test a gap of several months resets once."""
        result = check_and_reset_if_new_month(settings_with_absence("4"), today=date(2025, 7, 10))
        assert result.was_reset
        assert result.previous_month == 3

    def test_first_run_initialises(self):
        """Test unset markers are recorded without reporting a reset."""
        settings = Settings(absence=AbsenceAdjustment(hours=Decimal("5")))
        result = check_and_reset_if_new_month(settings, today=date(2025, 3, 2))

        assert not result.was_reset
        assert result.initialized
        assert result.needs_save
        assert result.settings.last_checked_month == 3
        assert result.settings.last_checked_year == 2025
        assert result.settings.absence.hours == Decimal("0")

    def test_does_not_mutate_input(self):
        """Test the original settings object is untouched."""
        settings = settings_with_absence("17")
        check_and_reset_if_new_month(settings, today=date(2025, 4, 1))
        assert settings.absence.hours == Decimal("17")
        assert settings.last_checked_month == 3

    def test_reset_removes_absence_effect(self):
        """Test absence stops reducing availability once the month rolls over."""
        settings = settings_with_absence("17")
        march = compute_stats(
            [], date(2025, 3, 31), settings.formula, settings.schedule,
            settings.target_hours, settings.absence,
        )
        assert march.total_available_hours == Decimal("161.5")

        reset = check_and_reset_if_new_month(settings, today=date(2025, 4, 30)).settings
        april = compute_stats(
            [], date(2025, 4, 30), reset.formula, reset.schedule,
            reset.target_hours, reset.absence,
        )
        april_raw = compute_stats([], date(2025, 4, 30), reset.formula, reset.schedule, reset.target_hours)
        assert april.total_available_hours == april_raw.total_available_hours


class TestHelpers:
    """Tests for the absence status helpers."""

    def test_current_month_hours(self):
        settings = settings_with_absence("12.5")
        assert current_month_absence_hours(settings, today=date(2025, 3, 15)) == Decimal("12.5")

    def test_current_month_hours_stale(self):
        """Test last month's hours read as zero before any reset runs."""
        settings = settings_with_absence("12.5")
        assert current_month_absence_hours(settings, today=date(2025, 4, 1)) == Decimal("0")

    def test_force_reset(self):
        """Test a forced reset clears the current month."""
        settings = force_reset(settings_with_absence("12.5"), today=date(2025, 3, 15))
        assert settings.absence.hours == Decimal("0")
        assert settings.absence.applies_to_month == 3
        assert settings.last_checked_month == 3

    def test_absence_status(self):
        status = absence_status(settings_with_absence("8.5"), today=date(2025, 3, 15))
        assert status.is_current_month
        assert status.absence_hours == Decimal("8.5")
        assert status.month_name == "March"
        assert status.tracked_month == 3

    def test_absence_status_stale(self):
        status = absence_status(settings_with_absence("8.5"), today=date(2025, 4, 15))
        assert not status.is_current_month
        assert status.month_name == "April"
