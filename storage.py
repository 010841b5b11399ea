from __future__ import annotations

import json
import logging
import os
import sqlite3
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path

from models import (
    AbsenceAdjustment,
    DeductionTarget,
    FormulaConfig,
    Job,
    SaturdayRule,
    Settings,
    WorkSchedule,
)
from utils import month_bounds

logger = logging.getLogger(__name__)


def _get_db_path() -> Path:
    """Get database path from environment variable or default location."""
    if env_path := os.environ.get("TECHTIME_DB"):
        return Path(env_path)
    return Path(__file__).parent / "data" / "techtime.db"


DB_PATH = _get_db_path()


def get_connection() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create tables if they don't exist."""
    conn = get_connection()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS jobs (
            id TEXT PRIMARY KEY,
            wip_number TEXT NOT NULL,
            vehicle_registration TEXT NOT NULL,
            aw_value INTEGER NOT NULL,
            date_created TEXT NOT NULL,
            notes TEXT
        );

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_jobs_date ON jobs(date_created);
        CREATE INDEX IF NOT EXISTS idx_jobs_wip ON jobs(wip_number);
    """)
    conn.commit()
    conn.close()


# --- Job Functions ---


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        wip_number=row["wip_number"],
        vehicle_registration=row["vehicle_registration"],
        aw_value=row["aw_value"],
        date_created=datetime.fromisoformat(row["date_created"]),
        notes=row["notes"],
    )


def save_job(job: Job) -> None:
    """Insert or update a job."""
    conn = get_connection()
    conn.execute("""
        INSERT OR REPLACE INTO jobs
        (id, wip_number, vehicle_registration, aw_value, date_created, notes)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (
        job.id,
        job.wip_number,
        job.vehicle_registration,
        job.aw_value,
        job.date_created.isoformat(),
        job.notes,
    ))
    conn.commit()
    conn.close()


def save_jobs(jobs: list[Job]) -> None:
    """Insert or update several jobs in one transaction."""
    conn = get_connection()
    conn.executemany("""
        INSERT OR REPLACE INTO jobs
        (id, wip_number, vehicle_registration, aw_value, date_created, notes)
        VALUES (?, ?, ?, ?, ?, ?)
    """, [
        (j.id, j.wip_number, j.vehicle_registration, j.aw_value, j.date_created.isoformat(), j.notes)
        for j in jobs
    ])
    conn.commit()
    conn.close()


def get_job(job_id: str) -> Job | None:
    """Get a single job by ID."""
    conn = get_connection()
    row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
    conn.close()
    return _row_to_job(row) if row else None


def get_jobs() -> list[Job]:
    """Get every job, oldest first."""
    conn = get_connection()
    rows = conn.execute("SELECT * FROM jobs ORDER BY date_created").fetchall()
    conn.close()
    return [_row_to_job(row) for row in rows]


def get_jobs_range(start: date, end: date) -> list[Job]:
    """Get jobs created between two dates (inclusive)."""
    conn = get_connection()
    # date_created holds full timestamps; compare on the date part only
    rows = conn.execute(
        "SELECT * FROM jobs WHERE date(date_created) >= ? AND date(date_created) <= ? ORDER BY date_created",
        (start.isoformat(), end.isoformat())
    ).fetchall()
    conn.close()
    return [_row_to_job(row) for row in rows]


def get_month_jobs(year: int, month: int) -> list[Job]:
    """Get all jobs for a calendar month."""
    start, end = month_bounds(year, month)
    return get_jobs_range(start, end)


def search_jobs(query: str) -> list[Job]:
    """Search jobs by WIP number or registration."""
    conn = get_connection()
    pattern = f"%{query}%"
    rows = conn.execute(
        """
        SELECT * FROM jobs
        WHERE wip_number LIKE ? OR vehicle_registration LIKE ?
        ORDER BY date_created DESC
        """,
        (pattern, pattern),
    ).fetchall()
    conn.close()
    return [_row_to_job(row) for row in rows]


def delete_job(job_id: str) -> bool:
    """Delete a job. Returns False if no job had that ID."""
    conn = get_connection()
    cursor = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
    conn.commit()
    conn.close()
    return cursor.rowcount > 0


# --- Settings Functions ---


def _format_time(t: time) -> str:
    return t.strftime("%H:%M")


def _parse_time(val: str) -> time:
    parts = val.split(":")
    return time(int(parts[0]), int(parts[1]))


def _optional_int(val: str) -> int | None:
    return int(val) if val else None


def _settings_to_rows(settings: Settings) -> list[tuple[str, str]]:
    formula = settings.formula
    schedule = settings.schedule
    absence = settings.absence
    return [
        ("aw_to_minutes", str(formula.aw_to_minutes)),
        ("hours_per_working_day", str(formula.hours_per_working_day)),
        ("target_aws_per_hour", str(formula.target_aws_per_hour)),
        ("efficiency_green_threshold", str(formula.efficiency_green_threshold)),
        ("efficiency_yellow_threshold", str(formula.efficiency_yellow_threshold)),
        ("work_days", json.dumps(sorted(schedule.work_days))),
        ("work_start", _format_time(schedule.work_start)),
        ("work_end", _format_time(schedule.work_end)),
        ("lunch_start", _format_time(schedule.lunch_start)),
        ("lunch_end", _format_time(schedule.lunch_end)),
        ("saturday_rule", str(int(schedule.saturday_rule))),
        ("reference_saturday", schedule.reference_saturday.isoformat() if schedule.reference_saturday else ""),
        ("target_hours", str(settings.target_hours)),
        ("absence_hours", str(absence.hours)),
        ("absence_month", str(absence.applies_to_month or "")),
        ("absence_year", str(absence.applies_to_year or "")),
        ("absence_deduction_target", absence.deduction_target.value),
        ("absence_bank_holidays_logged", "1" if absence.bank_holidays_logged else "0"),
        ("last_checked_month", str(settings.last_checked_month or "")),
        ("last_checked_year", str(settings.last_checked_year or "")),
        ("week_start", str(settings.week_start)),
    ]


def get_settings() -> Settings:
    """Load settings from database, falling back to defaults for missing keys."""
    conn = get_connection()
    rows = conn.execute("SELECT key, value FROM settings").fetchall()
    conn.close()

    values = {row["key"]: row["value"] for row in rows}
    defaults = Settings()

    formula = FormulaConfig(
        aw_to_minutes=Decimal(values.get("aw_to_minutes", defaults.formula.aw_to_minutes)),
        hours_per_working_day=Decimal(values.get("hours_per_working_day", defaults.formula.hours_per_working_day)),
        target_aws_per_hour=Decimal(values.get("target_aws_per_hour", defaults.formula.target_aws_per_hour)),
        efficiency_green_threshold=int(values.get("efficiency_green_threshold", defaults.formula.efficiency_green_threshold)),
        efficiency_yellow_threshold=int(values.get("efficiency_yellow_threshold", defaults.formula.efficiency_yellow_threshold)),
    )

    schedule = defaults.schedule
    if "work_days" in values:
        schedule = WorkSchedule(
            work_days=frozenset(json.loads(values["work_days"])),
            work_start=_parse_time(values["work_start"]),
            work_end=_parse_time(values["work_end"]),
            lunch_start=_parse_time(values["lunch_start"]),
            lunch_end=_parse_time(values["lunch_end"]),
            saturday_rule=SaturdayRule(int(values.get("saturday_rule", 0))),
            reference_saturday=date.fromisoformat(values["reference_saturday"]) if values.get("reference_saturday") else None,
        )

    absence = AbsenceAdjustment(
        hours=Decimal(values.get("absence_hours", "0")),
        applies_to_month=_optional_int(values.get("absence_month", "")),
        applies_to_year=_optional_int(values.get("absence_year", "")),
        deduction_target=DeductionTarget(
            values.get("absence_deduction_target", DeductionTarget.TOTAL_AVAILABLE_HOURS.value)
        ),
        bank_holidays_logged=values.get("absence_bank_holidays_logged", "0") == "1",
    )

    return Settings(
        formula=formula,
        schedule=schedule,
        target_hours=Decimal(values.get("target_hours", defaults.target_hours)),
        absence=absence,
        last_checked_month=_optional_int(values.get("last_checked_month", "")),
        last_checked_year=_optional_int(values.get("last_checked_year", "")),
        week_start=int(values.get("week_start", defaults.week_start)),
    )


def save_settings(settings: Settings) -> None:
    """Save settings to database."""
    conn = get_connection()
    conn.executemany(
        "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
        _settings_to_rows(settings),
    )
    conn.commit()
    conn.close()
    logger.debug("Settings saved")
