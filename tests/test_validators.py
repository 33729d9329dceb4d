"""Tests for catalog row validation."""
import pytest

from catalog.validators import validate_all_rows, validate_course_row


class TestValidateCourseRow:
    """Test single-row validation."""

    def test_valid_row(self, valid_row):
        """A complete, well-formed row passes."""
        result = validate_course_row(valid_row, 1)
        assert result.valid is True
        assert result.errors == []

    def test_missing_course_id(self, valid_row):
        """Blank course_id is reported with the row number."""
        valid_row["course_id"] = ""
        result = validate_course_row(valid_row, 2)
        assert result.valid is False
        assert "Row 2: course_id is required" in result.errors

    def test_course_id_too_long(self, valid_row):
        """course_id is limited to 20 characters."""
        valid_row["course_id"] = "X" * 21
        result = validate_course_row(valid_row, 2)
        assert "Row 2: course_id must be max 20 characters" in result.errors

    def test_invalid_level_quotes_value(self, valid_row):
        """The level message includes the received value."""
        valid_row["level"] = "INVALID"
        result = validate_course_row(valid_row, 3)
        assert result.valid is False
        assert "Row 3: level must be 'UG' or 'PG', got 'INVALID'" in result.errors

    def test_lowercase_level_rejected(self, valid_row):
        """Level values are case-sensitive."""
        valid_row["level"] = "ug"
        result = validate_course_row(valid_row, 3)
        assert "Row 3: level must be 'UG' or 'PG', got 'ug'" in result.errors

    def test_invalid_delivery_mode(self, valid_row):
        valid_row["delivery_mode"] = "invalid_mode"
        result = validate_course_row(valid_row, 4)
        assert "Row 4: delivery_mode must be 'online', 'offline', or 'hybrid'" in result.errors

    @pytest.mark.parametrize("credits", ["invalid", "0", "-2", "4.5", ""])
    def test_invalid_credits(self, valid_row, credits):
        """Credits must be a positive whole number."""
        valid_row["credits"] = credits
        result = validate_course_row(valid_row, 5)
        assert "Row 5: credits must be a positive integer" in result.errors

    def test_invalid_duration(self, valid_row):
        valid_row["duration_weeks"] = "0"
        result = validate_course_row(valid_row, 5)
        assert "Row 5: duration_weeks must be a positive integer" in result.errors

    @pytest.mark.parametrize("rating", ["6.0", "-0.1", "abc", "nan"])
    def test_invalid_rating(self, valid_row, rating):
        """Rating must be a number between 0 and 5."""
        valid_row["rating"] = rating
        result = validate_course_row(valid_row, 6)
        assert "Row 6: rating must be between 0 and 5" in result.errors

    @pytest.mark.parametrize("rating", ["0", "5", "3.75"])
    def test_rating_bounds_inclusive(self, valid_row, rating):
        valid_row["rating"] = rating
        assert validate_course_row(valid_row, 6).valid is True

    @pytest.mark.parametrize("year", ["1999", "2031", "twenty"])
    def test_invalid_year(self, valid_row, year):
        valid_row["year_offered"] = year
        result = validate_course_row(valid_row, 7)
        assert "Row 7: year_offered must be between 2000 and 2030" in result.errors

    def test_negative_tuition_fee(self, valid_row):
        valid_row["tuition_fee_inr"] = "-1000"
        result = validate_course_row(valid_row, 8)
        assert "Row 8: tuition_fee_inr must be a positive number" in result.errors

    def test_zero_tuition_fee_allowed(self, valid_row):
        """Free courses are valid."""
        valid_row["tuition_fee_inr"] = "0"
        assert validate_course_row(valid_row, 8).valid is True

    def test_collects_every_error(self):
        """All problems in a row are reported, not just the first."""
        result = validate_course_row({}, 9)
        assert result.valid is False
        assert len(result.errors) == 10
        assert all(e.startswith("Row 9: ") for e in result.errors)


class TestValidateAllRows:
    """Test whole-file validation."""

    def test_all_valid(self, valid_row):
        second = {**valid_row, "course_id": "CS102"}
        report = validate_all_rows([valid_row, second])
        assert report.valid_count == 2
        assert report.error_count == 0
        assert report.errors == []
        assert report.total_rows == 2

    def test_row_numbers_start_after_header(self, valid_row):
        """The first data row is row 2 of the file."""
        bad = {**valid_row, "course_id": ""}
        report = validate_all_rows([valid_row, bad])
        assert report.valid_count == 1
        assert report.error_count == 1
        assert report.errors == ["Row 3: course_id is required"]
        assert report.valid_rows == [valid_row]


class TestNumberFormats:
    """Test which spellings count as numbers."""

    @pytest.mark.parametrize("credits", ["1_000", "٤", "４", "+", "0x4", "4e1"])
    def test_non_decimal_credits_rejected(self, valid_row, credits):
        valid_row["credits"] = credits
        result = validate_course_row(valid_row, 2)
        assert "Row 2: credits must be a positive integer" in result.errors

    @pytest.mark.parametrize("fee", ["45_000", "٤٥٠٠٠", "inf", "1e3", "45,000"])
    def test_non_decimal_fee_rejected(self, valid_row, fee):
        valid_row["tuition_fee_inr"] = fee
        result = validate_course_row(valid_row, 2)
        assert "Row 2: tuition_fee_inr must be a positive number" in result.errors

    @pytest.mark.parametrize("rating", ["4", "4.", ".5", "+4.5", " 4.5 "])
    def test_decimal_rating_accepted(self, valid_row, rating):
        valid_row["rating"] = rating
        assert validate_course_row(valid_row, 2).valid is True

    def test_signed_integer_is_still_checked_for_range(self, valid_row):
        valid_row["duration_weeks"] = "-3"
        result = validate_course_row(valid_row, 2)
        assert "Row 2: duration_weeks must be a positive integer" in result.errors
