"""Row validation for catalog imports.

Each CSV row is checked independently; messages carry the 1-based file row
number so they can be shown to whoever prepared the file.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

from .models import CourseLevel, DeliveryMode

MAX_COURSE_ID_LENGTH = 20
MIN_YEAR = 2000
MAX_YEAR = 2030

# Row 1 of the file is the header
FIRST_DATA_ROW = 2


@dataclass
class RowValidation:
    """Result of validating a single row."""
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    """Result of validating a whole file."""
    valid_rows: list[dict[str, str]]
    errors: list[str]
    total_rows: int
    valid_count: int
    error_count: int


# ASCII decimal notation only
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
NUMBER_PATTERN = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


def _as_int(value: str | None) -> int | None:
    if value is None:
        return None
    text = str(value).strip()
    return int(text) if INTEGER_PATTERN.fullmatch(text) else None


def _as_float(value: str | None) -> float | None:
    if value is None:
        return None
    text = str(value).strip()
    return float(text) if NUMBER_PATTERN.fullmatch(text) else None


def _blank(value: str | None) -> bool:
    return value is None or str(value).strip() == ""


def validate_course_row(row: Mapping[str, str], row_number: int) -> RowValidation:
    """Validate a single course row.

    Args:
        row: Parsed CSV row (all values are strings)
        row_number: Row number in the source file, for error messages

    Returns:
        RowValidation with every problem found in the row
    """
    errors: list[str] = []
    prefix = f"Row {row_number}:"

    course_id = row.get("course_id")
    if _blank(course_id):
        errors.append(f"{prefix} course_id is required")
    elif len(course_id) > MAX_COURSE_ID_LENGTH:
        errors.append(f"{prefix} course_id must be max {MAX_COURSE_ID_LENGTH} characters")

    if _blank(row.get("course_name")):
        errors.append(f"{prefix} course_name is required")

    if _blank(row.get("department")):
        errors.append(f"{prefix} department is required")

    level = row.get("level")
    if level not in {lv.value for lv in CourseLevel}:
        errors.append(f"{prefix} level must be 'UG' or 'PG', got '{level if level is not None else ''}'")

    if row.get("delivery_mode") not in {m.value for m in DeliveryMode}:
        errors.append(f"{prefix} delivery_mode must be 'online', 'offline', or 'hybrid'")

    credits = _as_int(row.get("credits"))
    if credits is None or credits <= 0:
        errors.append(f"{prefix} credits must be a positive integer")

    duration = _as_int(row.get("duration_weeks"))
    if duration is None or duration <= 0:
        errors.append(f"{prefix} duration_weeks must be a positive integer")

    rating = _as_float(row.get("rating"))
    if rating is None or rating < 0 or rating > 5:
        errors.append(f"{prefix} rating must be between 0 and 5")

    fee = _as_float(row.get("tuition_fee_inr"))
    if fee is None or fee < 0:
        errors.append(f"{prefix} tuition_fee_inr must be a positive number")

    year = _as_int(row.get("year_offered"))
    if year is None or year < MIN_YEAR or year > MAX_YEAR:
        errors.append(f"{prefix} year_offered must be between {MIN_YEAR} and {MAX_YEAR}")

    return RowValidation(valid=not errors, errors=errors)


def validate_all_rows(rows: list[Mapping[str, str]]) -> ValidationReport:
    """Validate every row, separating valid rows from error messages."""
    valid_rows = []
    all_errors: list[str] = []

    for index, row in enumerate(rows):
        result = validate_course_row(row, index + FIRST_DATA_ROW)
        if result.valid:
            valid_rows.append(dict(row))
        else:
            all_errors.extend(result.errors)

    return ValidationReport(
        valid_rows=valid_rows,
        errors=all_errors,
        total_rows=len(rows),
        valid_count=len(valid_rows),
        error_count=len(rows) - len(valid_rows),
    )
