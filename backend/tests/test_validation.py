"""
Request input coercion and timestamp helpers.

Verifies:
- Integer fields reject bools, floats, decimals and scientific notation
- Amounts are bounded
- Optional text fields must be strings within their column length
- Date filters accept offsets and bare dates; a bare end date covers the whole day
"""

from datetime import datetime, timezone

import pytest

from pharmapos.errors import InvalidRequestError
from pharmapos.time_utils import parse_iso_datetime, to_utc_z
from pharmapos.validation import (
    MAX_AMOUNT_CENTS,
    coerce_amount_cents,
    coerce_int,
    coerce_optional_str,
    coerce_positive_int,
    parse_date_arg,
    require_fields,
)


class TestIntegerCoercion:

    @pytest.mark.parametrize("value,expected", [(5, 5), ("12", 12), (" 7 ", 7), ("-3", -3)])
    def test_accepts_plain_integers(self, value, expected):
        assert coerce_int(value, "quantity") == expected

    @pytest.mark.parametrize("value", [True, 2.0, "2.5", "1e3", "", "abc", None])
    def test_rejects_non_integers(self, value):
        with pytest.raises(InvalidRequestError):
            coerce_int(value, "quantity")

    @pytest.mark.parametrize("value", [0, -1, "0"])
    def test_positive_rejects_zero_and_negative(self, value):
        with pytest.raises(InvalidRequestError):
            coerce_positive_int(value, "quantity")

    def test_amount_upper_bound(self):
        assert coerce_amount_cents(MAX_AMOUNT_CENTS, "amount_cents") == MAX_AMOUNT_CENTS
        with pytest.raises(InvalidRequestError):
            coerce_amount_cents(MAX_AMOUNT_CENTS + 1, "amount_cents")

    @pytest.mark.parametrize("value,expected", [(None, None), ("  ", None), ("  Amina ", "Amina")])
    def test_optional_str_normalises(self, value, expected):
        assert coerce_optional_str(value, "customer_name", 255) == expected

    @pytest.mark.parametrize("value", [5, 1.5, True, {"a": 1}, ["x"], "x" * 33])
    def test_optional_str_rejects_non_strings_and_long_values(self, value):
        with pytest.raises(InvalidRequestError):
            coerce_optional_str(value, "customer_phone", 32)

    def test_require_fields_lists_missing(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            require_fields({"sale_id": 1, "reason": ""}, "sale_id", "reason", "quantity")
        assert exc_info.value.details == {"missing": ["reason", "quantity"]}


class TestTimestamps:

    def test_offset_is_folded_into_utc(self):
        assert parse_iso_datetime("2026-10-18T12:00:00+02:00") == datetime(2026, 10, 18, 10, 0)
        assert parse_iso_datetime("2026-10-18T12:00:00Z") == datetime(2026, 10, 18, 12, 0)

    def test_blank_is_none(self):
        assert parse_iso_datetime(None) is None
        assert parse_iso_datetime("   ") is None

    def test_bare_date_bounds(self):
        assert parse_iso_datetime("2026-10-18") == datetime(2026, 10, 18, 0, 0)
        end = parse_iso_datetime("2026-10-18", end_of_day=True)
        assert end.date() == datetime(2026, 10, 18).date()
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_bad_date_arg_is_invalid_request(self):
        with pytest.raises(InvalidRequestError):
            parse_date_arg("yesterday", "start_date")

    def test_to_utc_z(self):
        assert to_utc_z(datetime(2026, 10, 18, 9, 30, 15, 999)) == "2026-10-18T09:30:15Z"
        aware = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
        assert to_utc_z(aware) == "2026-10-18T09:30:00Z"
        assert to_utc_z(None) is None
