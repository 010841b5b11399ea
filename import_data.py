#!/usr/bin/env python3
"""Import jobs from a Tech Records JSON export."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import storage
from models import Job

logger = logging.getLogger(__name__)

MAX_JOBS_LIMIT = 1000


class JobImportError(ValueError):
    """The file could not be read as a Tech Records export."""


@dataclass
class ImportResult:
    imported: int = 0
    skipped_duplicates: int = 0
    errors: int = 0


def normalise_registration(val) -> str:
    """Upper-case a registration and strip all whitespace."""
    return "".join(str(val).split()).upper()


def parse_aws(val) -> int:
    """Parse an AW count, treating blanks and junk as zero."""
    try:
        return int(str(val or "0").strip())
    except ValueError:
        return 0


def parse_job_datetime(val: str | None) -> datetime:
    """Parse an ISO timestamp like '2025-03-04T09:15:00.000Z'.

    Timezone-aware values are converted to naive local time; missing or
    unreadable values fall back to now.
    """
    if not val:
        return datetime.now()
    try:
        parsed = datetime.fromisoformat(str(val).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Invalid job date %r, using current time", val)
        return datetime.now()
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_job(record: dict) -> Job | None:
    """Convert one export record to a Job, or None if required fields are missing."""
    wip_number = str(record.get("wipNumber") or "").strip()
    vehicle_reg = normalise_registration(record.get("vehicleReg") or "")
    if not wip_number or not vehicle_reg:
        return None

    description = str(record.get("description") or "").strip()
    return Job(
        wip_number=wip_number,
        vehicle_registration=vehicle_reg,
        aw_value=max(parse_aws(record.get("aws")), 0),
        date_created=parse_job_datetime(record.get("jobDateTime")),
        notes=description or None,
    )


def load_records(json_path: Path) -> list[dict]:
    """Read the export's job records, capped at MAX_JOBS_LIMIT."""
    try:
        with open(json_path) as f:
            data = json.load(f)
    except OSError as e:
        raise JobImportError(f"Unable to read {json_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise JobImportError("Invalid JSON format") from e

    if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
        raise JobImportError('Invalid Tech Records JSON format. Expected structure: { "jobs": [...] }')

    records = data["jobs"]
    if not records:
        raise JobImportError("No jobs found in JSON file")
    if len(records) > MAX_JOBS_LIMIT:
        logger.warning("File contains %d jobs, limiting to %d", len(records), MAX_JOBS_LIMIT)
    return records[:MAX_JOBS_LIMIT]


def import_jobs(records: list[dict]) -> ImportResult:
    """Save parsed records, skipping invalid ones and existing duplicates.

    A duplicate has the same WIP number and timestamp as a stored job.
    """
    result = ImportResult()
    seen = {(job.wip_number, job.date_created) for job in storage.get_jobs()}
    new_jobs = []

    for i, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            logger.warning("Skipping job %d: not an object", i)
            result.errors += 1
            continue
        job = parse_job(record)
        if job is None:
            logger.warning("Skipping job %d: missing WIP number or registration", i)
            result.errors += 1
            continue
        key = (job.wip_number, job.date_created)
        if key in seen:
            logger.info("Skipping duplicate WIP %s", job.wip_number)
            result.skipped_duplicates += 1
            continue
        seen.add(key)
        new_jobs.append(job)

    storage.save_jobs(new_jobs)
    result.imported = len(new_jobs)
    logger.info(
        "Imported %d jobs (%d duplicates, %d errors)",
        result.imported, result.skipped_duplicates, result.errors,
    )
    return result


def import_from_json(json_path: Path) -> ImportResult:
    """Import all jobs from a Tech Records JSON export."""
    records = load_records(json_path)
    storage.init_db()
    return import_jobs(records)


if __name__ == "__main__":
    json_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent / "tech_records.json"
    result = import_from_json(json_path)
    print(f"Imported {result.imported} jobs")
    print(f"Skipped {result.skipped_duplicates} duplicates, {result.errors} invalid")
