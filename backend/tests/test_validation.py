from datetime import date

import pytest

from backend.app.errors import InvalidArgument
from backend.app.validation import (
    normalize_status_filter,
    parse_optional_date,
    parse_optional_int,
    parse_positive_id,
)


@pytest.mark.parametrize("raw", [None, "", "   ", "All", "all", "ALL"])
def test_status_all_or_blank_means_no_filter(raw):
    assert normalize_status_filter(raw) is None


def test_status_is_trimmed_and_forwarded():
    assert normalize_status_filter(" Voided ") == "Voided"


def test_optional_int_ignores_garbage():
    assert parse_optional_int("12") == 12
    assert parse_optional_int(" 7 ") == 7
    assert parse_optional_int("abc") is None
    assert parse_optional_int(None) is None


def test_optional_date_blank_and_valid():
    assert parse_optional_date("") is None
    assert parse_optional_date(None) is None
    assert parse_optional_date("2025-03-01") == date(2025, 3, 1)
    assert parse_optional_date("2025-03-01T10:00:00") == date(2025, 3, 1)


def test_optional_date_rejects_malformed():
    with pytest.raises(InvalidArgument) as ei:
        parse_optional_date("01/03/2025", "startDate")
    assert ei.value.status_code == 400
    assert ei.value.message == "Invalid startDate: expected YYYY-MM-DD"


@pytest.mark.parametrize("raw", ["0", "-3", "x", None])
def test_positive_id_rejects_non_positive(raw):
    with pytest.raises(InvalidArgument) as ei:
        parse_positive_id(raw, "Valid invoice ID required")
    assert ei.value.message == "Valid invoice ID required"


def test_positive_id_accepts_digits():
    assert parse_positive_id("15", "bad") == 15


@pytest.mark.parametrize("raw", ["2024-01-01garbage", "2024-01-01 nope", "2024-01-0", "2024-01-01T25:00"])
def test_optional_date_rejects_trailing_text(raw):
    with pytest.raises(InvalidArgument) as ei:
        parse_optional_date(raw, "endDate")
    assert ei.value.message == "Invalid endDate: expected YYYY-MM-DD"


def test_optional_date_accepts_timestamps():
    assert parse_optional_date("2025-03-01 23:59:59") == date(2025, 3, 1)
    assert parse_optional_date("2025-03-01T10:00:00Z") == date(2025, 3, 1)


def test_optional_int_outside_integer_column_range_is_ignored():
    assert parse_optional_int("2147483647") == 2147483647
    assert parse_optional_int("2147483648") is None
    assert parse_optional_int("-99999999999999999999") is None


def test_positive_id_rejects_values_beyond_integer_columns():
    with pytest.raises(InvalidArgument) as ei:
        parse_positive_id("99999999999999999999", "Valid invoice ID required")
    assert ei.value.message == "Valid invoice ID required"
