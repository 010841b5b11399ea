"""Absence logging and bank holiday suggestions.

One day of absence is worth ``formula.hours_per_working_day``, the same
figure each working day contributes to available hours, so a logged day
off removes exactly what that day added.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Literal

from availability import is_working_day
from models import DeductionTarget, FormulaConfig, Settings, WorkSchedule
from utils import month_bounds

logger = logging.getLogger(__name__)

AbsenceKind = Literal["full", "half"]


class BankHolidaysAlreadyLogged(ValueError):
    """This month's bank holidays have already been added to absence."""


def full_day_hours(formula: FormulaConfig) -> Decimal:
    """Hours lost to a full day's absence: one working day's available hours."""
    return formula.hours_per_working_day


def half_day_hours(formula: FormulaConfig) -> Decimal:
    return (formula.hours_per_working_day / 2).quantize(Decimal("0.01"))


def absence_hours_for(formula: FormulaConfig, kind: AbsenceKind, days: int = 1) -> Decimal:
    """Hours for a number of full or half days off."""
    if days < 1:
        raise ValueError(f"Absent days must be at least 1 (got {days})")
    if kind == "full":
        per_day = full_day_hours(formula)
    elif kind == "half":
        per_day = half_day_hours(formula)
    else:
        raise ValueError(f"Unknown absence kind {kind!r}")
    return per_day * days


def log_absence_hours(
    settings: Settings,
    hours: Decimal,
    today: date | None = None,
    deduction_target: DeductionTarget | None = None,
    bank_holidays: bool = False,
) -> Settings:
    """Add absence hours to the current month's adjustment.

    A stored adjustment scoped to another month is treated as zero, so
    logging never carries stale hours into the new month. A month holds a
    single adjustment: choosing a deduction target applies it to all of
    that month's hours.
    """
    if hours < 0:
        raise ValueError("Absence hours cannot be negative")
    today = today or date.today()
    active = settings.absence.is_active(today.year, today.month)
    current = settings.absence.hours if active else Decimal("0")
    absence = replace(
        settings.absence,
        hours=current + hours,
        applies_to_month=today.month,
        applies_to_year=today.year,
        deduction_target=deduction_target or settings.absence.deduction_target,
        bank_holidays_logged=bank_holidays or (active and settings.absence.bank_holidays_logged),
    )
    logger.info(
        "Logged %sh absence for %d-%02d against %s (now %sh)",
        hours, today.year, today.month, absence.deduction_target.value, absence.hours,
    )
    return replace(settings, absence=absence)


def log_absence(
    settings: Settings,
    kind: AbsenceKind,
    today: date | None = None,
    days: int = 1,
    deduction_target: DeductionTarget | None = None,
) -> Settings:
    """Log full or half days of absence against the current month."""
    hours = absence_hours_for(settings.formula, kind, days)
    return log_absence_hours(settings, hours, today, deduction_target)


def get_uk_holidays(year: int) -> dict[date, str]:
    """Get England bank holidays for a given year."""
    import holidays
    uk_holidays = holidays.UK(years=year, subdiv='ENG')  # type: ignore[attr-defined]
    return {d: name for d, name in uk_holidays.items()}


def bank_holidays_in_month(year: int, month: int, schedule: WorkSchedule) -> dict[date, str]:
    """Bank holidays in a month that fall on a working day."""
    start, end = month_bounds(year, month)
    return {
        d: name for d, name in sorted(get_uk_holidays(year).items())
        if start <= d <= end and is_working_day(d, schedule)
    }


def bank_holiday_hours(year: int, month: int, schedule: WorkSchedule, hours_per_day: Decimal) -> Decimal:
    """Absence hours a month's working-day bank holidays would account for."""
    return Decimal(len(bank_holidays_in_month(year, month, schedule))) * hours_per_day


def bank_holidays_logged(settings: Settings, today: date | None = None) -> bool:
    today = today or date.today()
    absence = settings.absence
    return absence.is_active(today.year, today.month) and absence.bank_holidays_logged


def log_bank_holidays(
    settings: Settings,
    today: date | None = None,
    deduction_target: DeductionTarget | None = None,
) -> Settings:
    """Add this month's working-day bank holidays to absence, once per month.

    Raises:
        BankHolidaysAlreadyLogged: they were already added this month.
    """
    today = today or date.today()
    if bank_holidays_logged(settings, today):
        raise BankHolidaysAlreadyLogged(
            f"Bank holidays already logged for {today.strftime('%B %Y')}"
        )
    hours = bank_holiday_hours(
        today.year, today.month, settings.schedule, settings.formula.hours_per_working_day
    )
    return log_absence_hours(settings, hours, today, deduction_target, bank_holidays=True)
