"""Monthly absence reset.

When the calendar moves into a new month the absence adjustment is zeroed
and re-scoped to the new month, exactly once. The check is cheap and
idempotent, so callers run it whenever the dashboard is shown; the first
call in a month performs the reset and every later call sees the recorded
month and does nothing.

Nothing here writes to storage. Each function returns updated settings and
the caller saves them. Two callers racing on the same stale settings could
both reset, so callers must run the check from a single place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from models import Settings
from utils import month_name

logger = logging.getLogger(__name__)


@dataclass
class ResetResult:
    was_reset: bool
    message: str
    current_month: int
    current_year: int
    settings: Settings
    previous_month: int | None = None
    previous_year: int | None = None
    previous_absence_hours: Decimal = Decimal("0")
    initialized: bool = False

    @property
    def needs_save(self) -> bool:
        """Whether settings changed and should be written back."""
        return self.was_reset or self.initialized


@dataclass
class AbsenceStatus:
    current_month: int
    current_year: int
    tracked_month: int | None
    tracked_year: int | None
    absence_hours: Decimal
    is_current_month: bool
    month_name: str


def _zeroed_for(settings: Settings, today: date) -> Settings:
    return replace(
        settings,
        absence=replace(
            settings.absence,
            hours=Decimal("0"),
            applies_to_month=today.month,
            applies_to_year=today.year,
            bank_holidays_logged=False,
        ),
        last_checked_month=today.month,
        last_checked_year=today.year,
    )


def check_and_reset_if_new_month(settings: Settings, today: date | None = None) -> ResetResult:
    """Zero the absence adjustment if a new month has begun since the last check."""
    today = today or date.today()
    current_month, current_year = today.month, today.year

    if settings.last_checked_month is None or settings.last_checked_year is None:
        logger.info("Initialising absence tracking for %s %d", month_name(current_month), current_year)
        return ResetResult(
            was_reset=False,
            message="Absence tracking initialized",
            current_month=current_month,
            current_year=current_year,
            settings=_zeroed_for(settings, today),
            initialized=True,
        )

    previous = (settings.last_checked_month, settings.last_checked_year)
    if previous == (current_month, current_year):
        logger.debug("Same month (%s %d), no reset needed", month_name(current_month), current_year)
        return ResetResult(
            was_reset=False,
            message="No reset needed - same month",
            current_month=current_month,
            current_year=current_year,
            settings=settings,
        )

    previous_month, previous_year = previous
    logger.info(
        "New month detected: %s %d -> %s %d, clearing %sh absence",
        month_name(previous_month), previous_year,
        month_name(current_month), current_year,
        settings.absence.hours,
    )
    return ResetResult(
        was_reset=True,
        message=f"Absence records reset for new month: {month_name(current_month)} {current_year}",
        current_month=current_month,
        current_year=current_year,
        settings=_zeroed_for(settings, today),
        previous_month=previous_month,
        previous_year=previous_year,
        previous_absence_hours=settings.absence.hours,
    )


def current_month_absence_hours(settings: Settings, today: date | None = None) -> Decimal:
    """Absence hours for the current month, zero if the stored ones are stale."""
    today = today or date.today()
    return settings.absence.active_hours(today.year, today.month)


def force_reset(settings: Settings, today: date | None = None) -> Settings:
    """Clear absence for the current month regardless of the last check."""
    today = today or date.today()
    logger.info("Forced absence reset for %s %d", month_name(today.month), today.year)
    return _zeroed_for(settings, today)


def absence_status(settings: Settings, today: date | None = None) -> AbsenceStatus:
    today = today or date.today()
    absence = settings.absence
    return AbsenceStatus(
        current_month=today.month,
        current_year=today.year,
        tracked_month=absence.applies_to_month,
        tracked_year=absence.applies_to_year,
        absence_hours=absence.hours,
        is_current_month=absence.is_active(today.year, today.month),
        month_name=month_name(today.month),
    )
