"""Tests for the month grid builder and month date helpers."""

from datetime import date

import pytest

from booking_engine.schemas.availability_schema import AvailabilityStatus
from booking_engine.scheduling.grid import (
    build_month_grid,
    grid_dates,
    month_bounds,
    month_dates,
    range_dates,
    shift_month,
    sunday_index,
    week_dates,
    weekday_dates,
    weekend_dates,
    weeks,
)
from tests.conftest import make_day


class TestGridShape:
    @pytest.mark.parametrize("year", [2023, 2024, 2025, 2026])
    def test_every_month_is_whole_weeks(self, year):
        for month in range(1, 13):
            cells = build_month_grid(year, month, today=date(year, 1, 1))
            assert len(cells) % 7 == 0
            assert 28 <= len(cells) <= 42

    def test_february_2015_fits_in_four_weeks(self):
        # Starts on a Sunday, 28 days.
        assert len(build_month_grid(2015, 2, today=date(2015, 1, 1))) == 28

    def test_six_week_month(self):
        # August 2026 starts on a Saturday and has 31 days.
        assert len(build_month_grid(2026, 8, today=date(2026, 1, 1))) == 42

    def test_leap_february_has_29_days(self):
        cells = build_month_grid(2024, 2, today=date(2024, 1, 1))
        assert sum(c.is_current_month for c in cells) == 29

    def test_starts_on_sunday_and_ends_on_saturday(self):
        cells = build_month_grid(2025, 12, today=date(2025, 1, 1))
        assert sunday_index(cells[0].date) == 0
        assert sunday_index(cells[-1].date) == 6

    def test_leading_padding_is_previous_month_ascending(self):
        # December 2025 starts on a Monday: one leading day, Nov 30.
        cells = build_month_grid(2025, 12, today=date(2025, 1, 1))
        assert cells[0].date == date(2025, 11, 30)
        assert not cells[0].is_current_month
        assert cells[1].date == date(2025, 12, 1)

    def test_trailing_padding_is_next_month(self):
        # December 2025 ends on a Wednesday: Jan 1-3 of 2026 follow.
        cells = build_month_grid(2025, 12, today=date(2025, 1, 1))
        assert [c.date for c in cells[-3:]] == [date(2026, 1, 1), date(2026, 1, 2), date(2026, 1, 3)]
        assert not any(c.is_current_month for c in cells[-3:])

    def test_dates_are_consecutive(self):
        dates = grid_dates(2024, 3)
        assert all((b - a).days == 1 for a, b in zip(dates, dates[1:]))

    def test_weeks_split_into_rows_of_seven(self):
        rows = weeks(build_month_grid(2024, 2, today=date(2024, 1, 1)))
        assert all(len(r) == 7 for r in rows)

    def test_month_out_of_range(self):
        with pytest.raises(ValueError, match="month"):
            build_month_grid(2024, 13)
        with pytest.raises(ValueError, match="month"):
            month_bounds(2024, 0)


class TestGridAnnotation:
    def test_days_without_record_are_available(self):
        cells = build_month_grid(2025, 12, today=date(2025, 12, 1))
        assert all(c.status == AvailabilityStatus.AVAILABLE for c in cells)
        assert not any(c.has_time_slots for c in cells)

    def test_records_join_by_exact_date(self):
        availability = [
            make_day(date(2025, 12, 24), AvailabilityStatus.BLOCKED, notes="Family"),
            make_day(date(2025, 12, 31), AvailabilityStatus.OPEN_GIG,
                     time_slots=[{"start": "20:00", "end": "23:00"}]),
        ]
        cells = {c.date: c for c in build_month_grid(2025, 12, availability, today=date(2025, 12, 1))}
        assert cells[date(2025, 12, 24)].status == AvailabilityStatus.BLOCKED
        assert cells[date(2025, 12, 24)].notes == "Family"
        assert cells[date(2025, 12, 31)].status == AvailabilityStatus.OPEN_GIG
        assert cells[date(2025, 12, 31)].has_time_slots
        assert cells[date(2025, 12, 30)].status == AvailabilityStatus.AVAILABLE

    def test_padding_cells_pick_up_records_too(self):
        availability = [make_day(date(2025, 11, 30), AvailabilityStatus.BOOKED, booking_id="b-9")]
        cells = build_month_grid(2025, 12, availability, today=date(2025, 11, 1))
        assert cells[0].status == AvailabilityStatus.BOOKED
        assert cells[0].booking_id == "b-9"

    def test_past_today_selected_highlighted(self):
        cells = {
            c.date: c
            for c in build_month_grid(
                2025, 12,
                selected_date=date(2025, 12, 20),
                highlighted_dates=[date(2025, 12, 24), date(2025, 12, 31)],
                today=date(2025, 12, 10),
            )
        }
        assert cells[date(2025, 12, 9)].is_past
        assert not cells[date(2025, 12, 10)].is_past
        assert cells[date(2025, 12, 10)].is_today
        assert cells[date(2025, 12, 20)].is_selected
        assert sum(c.is_selected for c in cells.values()) == 1
        assert cells[date(2025, 12, 24)].is_highlighted
        assert not cells[date(2025, 12, 25)].is_highlighted

    def test_same_inputs_same_grid(self):
        availability = [make_day(date(2024, 2, 14), AvailabilityStatus.BLOCKED)]
        first = build_month_grid(2024, 2, availability, today=date(2024, 2, 1))
        second = build_month_grid(2024, 2, availability, today=date(2024, 2, 1))
        assert first == second

    def test_date_str_is_api_format(self):
        cells = build_month_grid(2024, 2, today=date(2024, 1, 1))
        in_month = [c for c in cells if c.is_current_month]
        assert in_month[0].date_str == "2024-02-01"
        assert in_month[-1].date_str == "2024-02-29"


class TestMonthHelpers:
    def test_month_bounds(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(2025, 12) == (date(2025, 12, 1), date(2025, 12, 31))

    @pytest.mark.parametrize("year,month,delta,expected", [
        (2025, 12, 1, (2026, 1)),
        (2025, 1, -1, (2024, 12)),
        (2025, 6, 0, (2025, 6)),
        (2025, 3, 14, (2026, 5)),
    ])
    def test_shift_month(self, year, month, delta, expected):
        assert shift_month(year, month, delta) == expected

    def test_month_dates(self):
        days = month_dates(2024, 2)
        assert len(days) == 29
        assert days[0] == date(2024, 2, 1)

    def test_weekends_and_weekdays_partition_the_month(self):
        weekends = weekend_dates(2025, 12)
        weekdays = weekday_dates(2025, 12)
        assert len(weekends) + len(weekdays) == 31
        assert all(d.weekday() in (5, 6) for d in weekends)
        assert date(2025, 12, 6) in weekends
        assert date(2025, 12, 25) in weekdays

    def test_week_dates_are_monday_first(self):
        week = week_dates(date(2025, 12, 25))
        assert week[0] == date(2025, 12, 22)
        assert week[-1] == date(2025, 12, 28)
        assert len(week) == 7

    def test_range_dates_inclusive_across_year_end(self):
        days = range_dates(date(2025, 12, 30), date(2026, 1, 2))
        assert days == [date(2025, 12, 30), date(2025, 12, 31), date(2026, 1, 1), date(2026, 1, 2)]
        assert range_dates(date(2025, 12, 5), date(2025, 12, 5)) == [date(2025, 12, 5)]
        assert range_dates(date(2025, 12, 6), date(2025, 12, 5)) == []
