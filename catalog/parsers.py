"""Catalog file parsing utilities.

Supports CSV and Excel course catalogs. Every cell is kept as a trimmed
string; typing is left to validation.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import BinaryIO

import pandas as pd

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS: tuple[str, ...] = (
    "course_id",
    "course_name",
    "department",
    "level",
    "delivery_mode",
    "credits",
    "duration_weeks",
    "rating",
    "tuition_fee_inr",
    "year_offered",
)


class FileType(str, Enum):
    """Supported file types."""
    CSV = "csv"
    EXCEL = "excel"
    UNKNOWN = "unknown"


class ParseError(Exception):
    """Raised when catalog parsing fails."""
    pass


def detect_file_type(filename: str, content: bytes | None = None) -> FileType:
    """Detect file type from filename or content.

    Args:
        filename: Original filename
        content: Optional file content for magic number detection

    Returns:
        Detected FileType
    """
    filename_lower = filename.lower()

    if filename_lower.endswith('.csv'):
        return FileType.CSV
    elif filename_lower.endswith(('.xlsx', '.xlsm')):
        return FileType.EXCEL

    # Magic number detection if content provided
    if content and content.startswith(b'PK\x03\x04'):  # ZIP/Office
        return FileType.EXCEL

    return FileType.UNKNOWN


def _to_records(df: pd.DataFrame) -> list[dict[str, str]]:
    """Trim headers and cells, drop rows with no content, check columns."""
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ParseError(f"Missing required columns: {', '.join(missing)}")

    df = df.fillna("").astype(str)
    df = df.apply(lambda col: col.str.strip())
    df = df[(df != "").any(axis=1)]

    if df.empty:
        raise ParseError("File contains no course rows")

    return df.to_dict('records')


def parse_csv(file_obj: BinaryIO, filename: str) -> list[dict[str, str]]:
    """Parse CSV file into structured records.

    Args:
        file_obj: Binary file object
        filename: Original filename

    Returns:
        List of dictionaries (one per row), all values as strings

    Raises:
        ParseError: If CSV parsing fails
    """
    try:
        df = pd.read_csv(
            file_obj,
            encoding='utf-8-sig',
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )

        if df.empty:
            raise ParseError("CSV file is empty")

        logger.info(f"Parsed CSV {filename} with {len(df)} rows and {len(df.columns)} columns")
        return _to_records(df)

    except ParseError:
        raise
    except pd.errors.EmptyDataError as e:
        raise ParseError("CSV file is empty") from e
    except Exception as e:
        logger.error(f"CSV parsing failed: {e}")
        raise ParseError(f"CSV parsing failed: {e}") from e


def parse_excel(file_obj: BinaryIO, filename: str, sheet_name: str | int = 0) -> list[dict[str, str]]:
    """Parse Excel file into structured records.

    Args:
        file_obj: Binary file object
        filename: Original filename
        sheet_name: Sheet name or index (default: first sheet)

    Returns:
        List of dictionaries (one per row), all values as strings

    Raises:
        ParseError: If Excel parsing fails
    """
    try:
        df = pd.read_excel(file_obj, sheet_name=sheet_name, engine='openpyxl', dtype=str)

        if df.empty:
            raise ParseError("Excel sheet is empty")

        logger.info(f"Parsed Excel {filename} with {len(df)} rows and {len(df.columns)} columns")
        return _to_records(df)

    except ParseError:
        raise
    except Exception as e:
        logger.error(f"Excel parsing failed: {e}")
        raise ParseError(f"Excel parsing failed: {e}") from e


def parse_file(file_obj: BinaryIO, filename: str) -> list[dict[str, str]]:
    """Parse uploaded catalog file based on type.

    Raises:
        ParseError: If file type unsupported or parsing fails
    """
    file_type = detect_file_type(filename)

    if file_type == FileType.CSV:
        return parse_csv(file_obj, filename)
    elif file_type == FileType.EXCEL:
        return parse_excel(file_obj, filename)
    else:
        raise ParseError(f"Unsupported file type: {filename}")
