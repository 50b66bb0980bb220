"""
Tests for wall-clock and calendar parsing.
"""

from datetime import date, datetime

import pytest

from focus.time_truth.timeparse import (
    Resolved,
    add_minutes,
    format_12h,
    format_hhmm,
    parse_date,
    parse_time_components,
)


class TestParseTimeComponents:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("09:00", (9, 0)),
            ("9:05", (9, 5)),
            ("14:30:00", (14, 30)),
            ("23:59:59.123456", (23, 59)),
            (" 07:45 ", (7, 45)),
            ("00:00", (0, 0)),
        ],
    )
    def test_accepts_store_formats(self, raw, expected):
        """HH:MM, HH:MM:SS and fractional seconds all parse; seconds are dropped."""
        assert parse_time_components(raw) == expected

    @pytest.mark.parametrize(
        "raw", [None, "", "noon", "24:00", "12:60", "12:30:61", "1230", "12:3", "-1:00"]
    )
    def test_rejects_malformed(self, raw):
        """Out-of-range or malformed values return None instead of raising."""
        assert parse_time_components(raw) is None


class TestParseDate:
    def test_iso_string(self):
        assert parse_date("2025-06-02") == date(2025, 6, 2)

    def test_timestamp_keeps_day(self):
        assert parse_date("2025-06-02T10:00:00+00:00") == date(2025, 6, 2)

    def test_passthrough(self):
        assert parse_date(date(2025, 6, 2)) == date(2025, 6, 2)
        assert parse_date(datetime(2025, 6, 2, 23, 59)) == date(2025, 6, 2)

    @pytest.mark.parametrize("raw", [None, "", "06/02/2025", "2025-13-01"])
    def test_invalid(self, raw):
        assert parse_date(raw) is None


class TestArithmetic:
    def test_add_minutes_same_day(self):
        assert add_minutes(14, 30, 90) == (16, 0)

    def test_add_minutes_wraps_midnight(self):
        """23:15 + 120 min wraps to 01:15."""
        assert add_minutes(23, 15, 120) == (1, 15)

    def test_format(self):
        assert format_hhmm(9, 5) == "09:05"
        assert format_12h(0, 0) == "12:00 AM"
        assert format_12h(9, 5) == "9:05 AM"
        assert format_12h(12, 30) == "12:30 PM"
        assert format_12h(23, 15) == "11:15 PM"


class TestResolved:
    def test_specified_vs_defaulted(self):
        """A defaulted 09:00 is distinguishable from a specified 09:00."""
        specified = Resolved((9, 0))
        defaulted = Resolved.default((9, 0))
        assert specified.value == defaulted.value
        assert not specified.defaulted
        assert defaulted.defaulted
        assert specified != defaulted
