"""Test data helpers."""

API_TOKEN = "test-token"

CSV_HEADER = (
    "course_id,course_name,department,level,delivery_mode,credits,"
    "duration_weeks,rating,tuition_fee_inr,year_offered"
)


def csv_bytes(*rows: str, header: str = CSV_HEADER) -> bytes:
    """Build a catalog CSV from data lines."""
    return "\n".join([header, *rows]).encode("utf-8")
