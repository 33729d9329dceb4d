"""Catalog ingestion pipeline: parse, validate, then one transactional bulk insert.

Reusable from both the protected upload endpoint and the command-line import.
A file with any invalid row is rejected as a whole; nothing is written.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..config import settings
from ..parsers import ParseError, parse_file
from ..validators import validate_all_rows

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of a catalog import."""
    success: bool
    message: str
    stats: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    error: str | None = None


class IngestError(Exception):
    """Raised when the database import step fails."""
    pass


def _to_course(row: Mapping[str, str], department_id: int) -> models.Course:
    """Convert a validated CSV row into a Course."""
    return models.Course(
        id=row["course_id"],
        name=row["course_name"],
        department_id=department_id,
        level=row["level"],
        delivery_mode=row["delivery_mode"],
        credits=int(row["credits"]),
        duration_weeks=int(row["duration_weeks"]),
        rating=float(row["rating"]),
        tuition_fee=float(row["tuition_fee_inr"]),
        year_offered=int(row["year_offered"]),
    )


async def _persist(
    session: AsyncSession,
    rows: Sequence[Mapping[str, str]],
    department_names: list[str],
) -> dict[str, int]:
    """Create missing departments and insert new courses, then commit.

    Course ids already in the catalog, or repeated earlier in the file,
    are skipped.
    """
    try:
        logger.info("Checking existing departments")
        result = await session.execute(
            select(models.Department).where(models.Department.name.in_(department_names))
        )
        existing_departments = list(result.scalars().all())
        existing_names = {d.name for d in existing_departments}

        new_departments = [models.Department(name=n) for n in department_names if n not in existing_names]
        if new_departments:
            logger.info(f"Creating {len(new_departments)} new departments")
            session.add_all(new_departments)
            await session.flush()

        department_map = {d.name: d.id for d in [*existing_departments, *new_departments]}

        result = await session.execute(
            select(models.Course.id).where(models.Course.id.in_([row["course_id"] for row in rows]))
        )
        seen_ids = set(result.scalars().all())

        courses = []
        for row in rows:
            if row["course_id"] in seen_ids:
                continue
            seen_ids.add(row["course_id"])
            courses.append(_to_course(row, department_map[row["department"]]))

        logger.info(f"Inserting {len(courses)} courses")
        session.add_all(courses)
        await session.flush()
        await session.commit()

    except SQLAlchemyError as e:
        raise IngestError(f"Database import failed: {e}") from e

    return {
        "courses_imported": len(courses),
        "courses_skipped": len(rows) - len(courses),
        "departments_created": len(new_departments),
        "departments_found": len(existing_departments),
    }


async def import_courses(
    session: AsyncSession,
    file_obj: BinaryIO,
    filename: str,
) -> ImportResult:
    """Import a CSV or Excel course catalog.

    Steps:
    1. Parse the file
    2. Validate every row
    3. Collect unique departments
    4. Insert departments and courses in one transaction

    Args:
        session: Database session
        file_obj: Binary file object
        filename: Original filename (selects the parser)

    Returns:
        ImportResult with stats, validation errors, or the failure reason
    """
    logger.info(f"Parsing catalog file {filename}")
    try:
        rows = parse_file(file_obj, filename)
    except ParseError as e:
        logger.error(f"Import failed: {e}")
        return ImportResult(success=False, message="Import failed", error=str(e))
    logger.info(f"Parsed {len(rows)} rows")

    report = validate_all_rows(rows)
    if report.errors:
        logger.warning(f"Found {report.error_count} invalid rows")
        return ImportResult(
            success=False,
            message="Validation failed",
            errors=report.errors,
            stats={
                "total_rows": report.total_rows,
                "valid_rows": report.valid_count,
                "invalid_rows": report.error_count,
            },
        )
    logger.info(f"All {report.valid_count} rows are valid")

    department_names = list(dict.fromkeys(row["department"] for row in report.valid_rows))
    logger.info(f"Found {len(department_names)} unique departments")

    timeout = settings.ingest.transaction_timeout
    try:
        stats = await asyncio.wait_for(
            _persist(session, report.valid_rows, department_names),
            timeout=timeout,
        )
    except IngestError as e:
        await session.rollback()
        logger.error(f"Import failed: {e}")
        return ImportResult(success=False, message="Import failed", error=str(e))
    except asyncio.TimeoutError:
        await session.rollback()
        logger.error(f"Import timed out after {timeout}s")
        return ImportResult(success=False, message="Import failed", error=f"Import timed out after {timeout}s")
    except Exception:
        await session.rollback()
        raise

    logger.info("Import completed successfully")
    return ImportResult(
        success=True,
        message="CSV imported successfully",
        stats={"total_rows": len(rows), **stats},
    )


async def import_courses_from_path(session: AsyncSession, path: str | Path) -> ImportResult:
    """Import a catalog file from disk."""
    path = Path(path)
    try:
        file_obj = path.open("rb")
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        return ImportResult(success=False, message="Import failed", error=f"Cannot read {path}: {e}")

    with file_obj:
        return await import_courses(session, file_obj, path.name)


def result_payload(result: ImportResult) -> dict[str, Any]:
    """JSON-ready view of an import result, omitting empty fields."""
    payload: dict[str, Any] = {"success": result.success, "message": result.message}
    if result.stats:
        payload["stats"] = result.stats
    if result.errors:
        payload["errors"] = result.errors
    if result.error:
        payload["error"] = result.error
    return payload
