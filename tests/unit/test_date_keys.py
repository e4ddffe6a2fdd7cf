"""
Unit tests for Berlin calendar-day keys.
"""
from datetime import datetime, timezone

import pytest

from packages.shared.utils.date_keys import (
    DateKeyError,
    add_berlin_days,
    berlin_date_key_from_utc,
    berlin_time_label_from_utc,
    diff_berlin_days,
    is_in_range,
    iter_date_keys,
    parse_date_key,
    parse_utc_timestamp,
)


class TestBerlinConversion:
    def test_utc_noon_same_day(self):
        assert berlin_date_key_from_utc("2026-02-26T12:00:00Z") == "2026-02-26"

    def test_late_utc_in_winter_is_next_berlin_day(self):
        assert berlin_date_key_from_utc("2026-02-26T23:30:00Z") == "2026-02-27"

    def test_late_utc_in_summer_is_next_berlin_day(self):
        # CEST is UTC+2
        assert berlin_date_key_from_utc("2026-07-10T22:30:00Z") == "2026-07-11"
        assert berlin_date_key_from_utc("2026-07-10T21:59:00Z") == "2026-07-10"

    def test_datetime_input(self):
        dt = datetime(2026, 2, 26, 10, 0, tzinfo=timezone.utc)
        assert berlin_date_key_from_utc(dt) == "2026-02-26"

    def test_naive_string_treated_as_utc(self):
        assert berlin_date_key_from_utc("2026-02-26T23:30:00") == "2026-02-27"

    def test_offset_string(self):
        assert berlin_date_key_from_utc("2026-02-27T00:30:00+01:00") == "2026-02-27"

    def test_invalid_timestamp_raises(self):
        with pytest.raises(DateKeyError):
            berlin_date_key_from_utc("invalid")

    def test_time_label_winter(self):
        assert berlin_time_label_from_utc("2026-02-26T10:00:00Z") == "11:00"

    def test_time_label_summer(self):
        assert berlin_time_label_from_utc("2026-07-10T10:05:00Z") == "12:05"

    def test_time_label_invalid_raises(self):
        with pytest.raises(DateKeyError):
            berlin_time_label_from_utc("not a time")

    def test_date_key_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_utc_timestamp("")


class TestDayArithmetic:
    def test_add_days(self):
        assert add_berlin_days("2026-02-26", 1) == "2026-02-27"
        assert add_berlin_days("2026-02-26", 7) == "2026-03-05"
        assert add_berlin_days("2026-02-26", -1) == "2026-02-25"

    def test_month_and_year_boundaries(self):
        assert add_berlin_days("2026-01-31", 1) == "2026-02-01"
        assert add_berlin_days("2026-03-01", -1) == "2026-02-28"
        assert add_berlin_days("2026-12-31", 1) == "2027-01-01"

    def test_leap_day(self):
        assert add_berlin_days("2024-02-28", 1) == "2024-02-29"
        assert add_berlin_days("2024-02-29", 1) == "2024-03-01"

    def test_century_rules(self):
        assert add_berlin_days("1900-02-28", 1) == "1900-03-01"
        assert add_berlin_days("2000-02-28", 1) == "2000-02-29"

    def test_diff_sign(self):
        assert diff_berlin_days("2026-02-26", "2026-02-28") == 2
        assert diff_berlin_days("2026-02-28", "2026-02-26") == -2
        assert diff_berlin_days("2026-02-26", "2026-02-26") == 0

    def test_diff_across_dst_changes(self):
        assert diff_berlin_days("2026-03-28", "2026-03-29") == 1
        assert diff_berlin_days("2026-03-29", "2026-03-30") == 1
        assert diff_berlin_days("2026-10-24", "2026-10-25") == 1
        assert diff_berlin_days("2026-10-25", "2026-10-26") == 1

    def test_add_across_dst_changes(self):
        assert add_berlin_days("2026-03-28", 1) == "2026-03-29"
        assert add_berlin_days("2026-03-29", 1) == "2026-03-30"
        assert add_berlin_days("2026-10-24", 1) == "2026-10-25"
        assert add_berlin_days("2026-10-25", 1) == "2026-10-26"
        assert add_berlin_days("2026-03-30", -1) == "2026-03-29"
        assert add_berlin_days("2026-03-29", -1) == "2026-03-28"
        assert add_berlin_days("2026-10-26", -1) == "2026-10-25"
        assert add_berlin_days("2026-10-25", -1) == "2026-10-24"

    def test_diff_full_year(self):
        assert diff_berlin_days("2026-01-01", "2026-12-31") == 364
        assert diff_berlin_days("2024-01-01", "2024-12-31") == 365

    def test_add_then_diff(self):
        for n in (-400, -29, 0, 1, 59, 366):
            assert diff_berlin_days("2026-02-26", add_berlin_days("2026-02-26", n)) == n


class TestRangeAndValidation:
    def test_in_range_inclusive(self):
        assert is_in_range("2026-02-15", "2026-02-01", "2026-02-28")
        assert is_in_range("2026-02-01", "2026-02-01", "2026-02-28")
        assert is_in_range("2026-02-28", "2026-02-01", "2026-02-28")
        assert not is_in_range("2026-03-01", "2026-02-01", "2026-02-28")
        assert not is_in_range("2026-01-31", "2026-02-01", "2026-02-28")

    def test_impossible_day_rejected(self):
        with pytest.raises(DateKeyError):
            add_berlin_days("2026-02-30", 0)
        with pytest.raises(DateKeyError):
            parse_date_key("2025-02-29")

    def test_bad_format_rejected(self):
        for bad in (
            "2026-2-26", "26.02.2026", "2026-13-01", "",
            "2026-02-26\n", "\uff12\uff10\uff12\uff16-\uff10\uff12-\uff12\uff16", "2026-02-2\u0666",
        ):
            with pytest.raises(DateKeyError):
                parse_date_key(bad)

    def test_range_check_validates_keys(self):
        with pytest.raises(DateKeyError):
            is_in_range("2026-02-31", "2026-02-01", "2026-03-31")

    def test_iter_date_keys(self):
        assert list(iter_date_keys("2024-02-27", "2024-03-01")) == [
            "2024-02-27", "2024-02-28", "2024-02-29", "2024-03-01",
        ]
        assert list(iter_date_keys("2026-03-02", "2026-03-01")) == []
