"""Tests for the catalog ingestion pipeline."""
import asyncio
from io import BytesIO

import pytest
from sqlalchemy import func, select

from catalog import models
from catalog.config import settings
from catalog.pipelines import ingest
from catalog.pipelines.ingest import (
    ImportResult,
    IngestError,
    import_courses,
    import_courses_from_path,
    result_payload,
)
from tests.helpers import csv_bytes

CS301 = "CS301,Operating Systems,Computer Science,UG,offline,4,16,4.3,65000,2024"
EC101 = "EC101,Microeconomics,Economics,UG,online,3,12,4.1,35000,2023"
EC501 = "EC501,Econometrics,Economics,PG,hybrid,4,14,4.4,85000,2024"


async def count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


class TestImportCourses:
    """Test CSV import into the catalog."""

    @pytest.mark.asyncio
    async def test_import_into_empty_catalog(self, session):
        result = await import_courses(session, BytesIO(csv_bytes(CS301, EC101, EC501)), "courses.csv")

        assert result.success is True
        assert result.message == "CSV imported successfully"
        assert result.stats == {
            "total_rows": 3,
            "courses_imported": 3,
            "courses_skipped": 0,
            "departments_created": 2,
            "departments_found": 0,
        }
        assert await count(session, models.Course) == 3
        assert await count(session, models.Department) == 2

        course = await session.get(models.Course, "EC501")
        assert course.credits == 4
        assert course.rating == pytest.approx(4.4)
        assert course.tuition_fee == 85000
        assert course.year_offered == 2024

    @pytest.mark.asyncio
    async def test_reuses_departments_and_skips_known_ids(self, session, seeded):
        """Existing ids and repeats within the file are skipped."""
        existing = "CS101,Intro to Programming,Computer Science,UG,online,4,12,4.5,45000,2024"
        result = await import_courses(session, BytesIO(csv_bytes(existing, CS301, CS301)), "courses.csv")

        assert result.success is True
        assert result.stats["courses_imported"] == 1
        assert result.stats["courses_skipped"] == 2
        assert result.stats["departments_created"] == 0
        assert result.stats["departments_found"] == 1
        assert await count(session, models.Course) == 7

    @pytest.mark.asyncio
    async def test_invalid_row_rejects_whole_file(self, session):
        bad = "CS302,Compilers,Computer Science,UG2,online,4,16,4.3,65000,2024"
        result = await import_courses(session, BytesIO(csv_bytes(CS301, bad)), "courses.csv")

        assert result.success is False
        assert result.message == "Validation failed"
        assert result.errors == ["Row 3: level must be 'UG' or 'PG', got 'UG2'"]
        assert result.stats == {"total_rows": 2, "valid_rows": 1, "invalid_rows": 1}
        assert await count(session, models.Course) == 0
        assert await count(session, models.Department) == 0

    @pytest.mark.asyncio
    async def test_parse_failure(self, session):
        result = await import_courses(session, BytesIO(b"course_id\nCS101\n"), "courses.csv")

        assert result.success is False
        assert result.message == "Import failed"
        assert result.error.startswith("Missing required columns:")

    @pytest.mark.asyncio
    async def test_database_failure_rolls_back(self, session, monkeypatch):
        async def failing_persist(*args, **kwargs):
            raise IngestError("Database import failed: disk full")

        monkeypatch.setattr(ingest, "_persist", failing_persist)
        result = await import_courses(session, BytesIO(csv_bytes(CS301)), "courses.csv")

        assert result.success is False
        assert result.message == "Import failed"
        assert result.error == "Database import failed: disk full"

    @pytest.mark.asyncio
    async def test_timeout(self, session, monkeypatch):
        async def slow_persist(*args, **kwargs):
            await asyncio.sleep(1)

        monkeypatch.setattr(ingest, "_persist", slow_persist)
        monkeypatch.setattr(settings.ingest, "transaction_timeout", 0.01)
        result = await import_courses(session, BytesIO(csv_bytes(CS301)), "courses.csv")

        assert result.success is False
        assert result.error == "Import timed out after 0.01s"


class TestImportFromPath:
    """Test importing a file from disk."""

    @pytest.mark.asyncio
    async def test_import_file(self, session, tmp_path):
        path = tmp_path / "courses.csv"
        path.write_bytes(csv_bytes(EC101))

        result = await import_courses_from_path(session, path)
        assert result.success is True
        assert result.stats["courses_imported"] == 1

    @pytest.mark.asyncio
    async def test_missing_file(self, session, tmp_path):
        result = await import_courses_from_path(session, tmp_path / "missing.csv")
        assert result.success is False
        assert result.error.startswith("Cannot read")


class TestResultPayload:
    """Test the JSON view of an import result."""

    def test_omits_empty_fields(self):
        payload = result_payload(ImportResult(success=True, message="CSV imported successfully", stats={"total_rows": 1}))
        assert payload == {"success": True, "message": "CSV imported successfully", "stats": {"total_rows": 1}}

    def test_failure(self):
        payload = result_payload(ImportResult(success=False, message="Import failed", error="boom"))
        assert payload == {"success": False, "message": "Import failed", "error": "boom"}
