"""Tests for shared date/time helpers."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from booking_engine.utils import (
    as_utc,
    format_date_for_api,
    format_wall_time,
    parse_api_date,
    parse_wall_time,
)


class TestApiDates:
    def test_parse_leap_day(self):
        assert parse_api_date("2024-02-29") == date(2024, 2, 29)

    def test_parse_strips_whitespace(self):
        assert parse_api_date(" 2025-12-25 ") == date(2025, 12, 25)

    @pytest.mark.parametrize("bad", ["2025-12-25T00:00:00Z", "25.12.2025", "2025-2-5", ""])
    def test_rejects_other_formats(self, bad):
        with pytest.raises(ValueError):
            parse_api_date(bad)

    def test_invalid_calendar_date(self):
        with pytest.raises(ValueError):
            parse_api_date("2025-02-30")

    def test_format_round_trip(self):
        assert parse_api_date(format_date_for_api(date(2025, 1, 5))) == date(2025, 1, 5)

    def test_late_evening_datetime_keeps_its_own_day(self):
        late = datetime(2025, 12, 24, 23, 30, tzinfo=timezone(timedelta(hours=1)))
        assert format_date_for_api(late) == "2025-12-24"


class TestWallTime:
    def test_parse(self):
        assert parse_wall_time("19:00") == time(19, 0)

    def test_seconds_dropped(self):
        assert parse_wall_time("23:30:59") == time(23, 30)

    def test_format(self):
        assert format_wall_time(time(7, 5)) == "07:05"

    @pytest.mark.parametrize("bad", ["7pm", "25:00", "1900"])
    def test_rejects_garbage(self, bad):
        with pytest.raises(ValueError):
            parse_wall_time(bad)


class TestAsUtc:
    def test_naive_is_treated_as_utc(self):
        assert as_utc(datetime(2025, 12, 1, 9, 0)) == datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc)

    def test_offset_converted(self):
        berlin = datetime(2025, 12, 1, 10, 0, tzinfo=timezone(timedelta(hours=1)))
        converted = as_utc(berlin)
        assert converted.tzinfo == timezone.utc
        assert converted.hour == 9
