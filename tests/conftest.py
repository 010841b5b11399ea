"""Shared fixtures for tests."""

from __future__ import annotations

import os
import sqlite3
import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

# Set up test database before importing storage
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.environ["TECHTIME_DB"] = _test_db_path


@pytest.fixture(scope="session", autouse=True)
def setup_test_db() -> Generator[Path, None, None]:
    """Set up a test database for the entire test session."""
    import storage

    # Reinitialise storage module with test db path
    storage.DB_PATH = Path(_test_db_path)
    storage.init_db()

    yield Path(_test_db_path)

    # Cleanup
    os.close(_test_db_fd)
    os.unlink(_test_db_path)


@pytest.fixture
def db_connection(setup_test_db: Path) -> Generator[sqlite3.Connection, None, None]:
    """Provide a database connection for tests."""
    import storage

    conn = storage.get_connection()
    yield conn
    conn.close()


@pytest.fixture
def clean_db(setup_test_db: Path) -> Generator[None, None, None]:
    """Clean database tables before each test."""
    import storage

    conn = storage.get_connection()
    conn.execute("DELETE FROM jobs")
    conn.execute("DELETE FROM settings")
    conn.commit()
    conn.close()

    yield


@pytest.fixture
def make_job():
    """Factory for jobs logged at a given hour on a given day."""
    from models import Job

    def _make(day: date, aws: int, wip: str = "10001", reg: str = "AB12CDE", hour: int = 10):
        return Job(
            wip_number=wip,
            vehicle_registration=reg,
            aw_value=aws,
            date_created=datetime(day.year, day.month, day.day, hour, 0),
        )

    return _make


@pytest.fixture
def sample_job():
    """Create a sample Job for testing."""
    from models import Job

    return Job(
        wip_number="40123",
        vehicle_registration="AB12CDE",
        aw_value=12,
        date_created=datetime(2025, 3, 4, 9, 15),
        notes="Brake pads front",
        id="job-1",
    )


@pytest.fixture
def formula():
    """Default formula: 5 minutes per AW, 8.5 hours per day."""
    from models import FormulaConfig

    return FormulaConfig()


@pytest.fixture
def weekday_schedule():
    """Monday to Friday, no Saturdays."""
    from models import WorkSchedule

    return WorkSchedule()


@pytest.fixture
def sample_settings(formula, weekday_schedule):
    """Settings with an 180 hour target and no absence."""
    from models import Settings

    return Settings(
        formula=formula,
        schedule=weekday_schedule,
        target_hours=Decimal("180"),
        last_checked_month=3,
        last_checked_year=2025,
    )
