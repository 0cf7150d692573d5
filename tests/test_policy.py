"""Tests for calendar cell selection and day-click handling."""

from datetime import date

import pytest

from booking_engine.schemas.availability_schema import AvailabilityStatus, ProviderAvailabilitySettings
from booking_engine.scheduling.grid import CalendarCell, build_month_grid
from booking_engine.scheduling.policy import (
    ActorRole,
    AvailabilityToggled,
    CalendarMode,
    DateSelected,
    can_select,
    handle_day_click,
    is_within_booking_window,
    next_toggle_status,
)

TODAY = date(2025, 12, 10)


def cell(
    day: date = date(2025, 12, 20),
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE,
    is_current_month: bool = True,
) -> CalendarCell:
    return CalendarCell(
        date=day,
        status=status,
        has_time_slots=False,
        is_current_month=is_current_month,
        is_past=day < TODAY,
        is_today=day == TODAY,
        is_selected=False,
        is_highlighted=False,
    )


class TestViewMode:
    @pytest.mark.parametrize("status,expected", [
        (AvailabilityStatus.AVAILABLE, True),
        (AvailabilityStatus.OPEN_GIG, True),
        (AvailabilityStatus.BOOKED, False),
        (AvailabilityStatus.PENDING, False),
        (AvailabilityStatus.BLOCKED, False),
    ])
    def test_only_open_days_selectable(self, status, expected):
        assert can_select(cell(status=status), ActorRole.CUSTOMER, CalendarMode.VIEW, True) is expected

    def test_outside_month_never_selectable(self):
        c = cell(is_current_month=False)
        assert not can_select(c, ActorRole.CUSTOMER, CalendarMode.VIEW, True)
        assert not can_select(c, ActorRole.PROVIDER, CalendarMode.EDIT, True)

    def test_past_days_blocked_when_disabled(self):
        past = cell(day=date(2025, 12, 5))
        assert not can_select(past, ActorRole.CUSTOMER, CalendarMode.VIEW, True)
        assert can_select(past, ActorRole.CUSTOMER, CalendarMode.VIEW, False)

    def test_today_is_selectable(self):
        assert can_select(cell(day=TODAY), ActorRole.CUSTOMER, CalendarMode.VIEW, True)

    def test_click_emits_date_selected(self):
        event = handle_day_click(cell(), ActorRole.CUSTOMER, CalendarMode.VIEW, True)
        assert event == DateSelected(date=date(2025, 12, 20))

    def test_click_on_booked_day_is_ignored(self):
        c = cell(status=AvailabilityStatus.BOOKED)
        assert handle_day_click(c, ActorRole.CUSTOMER, CalendarMode.VIEW, True) is None


class TestEditMode:
    @pytest.mark.parametrize("status", list(AvailabilityStatus))
    def test_provider_may_select_any_status(self, status):
        assert can_select(cell(status=status), ActorRole.PROVIDER, CalendarMode.EDIT, True)

    def test_customer_cannot_edit(self):
        assert not can_select(cell(), ActorRole.CUSTOMER, CalendarMode.EDIT, True)

    def test_click_emits_toggle_with_previous_status(self):
        c = cell(status=AvailabilityStatus.BLOCKED)
        event = handle_day_click(c, ActorRole.PROVIDER, CalendarMode.EDIT, True)
        assert event == AvailabilityToggled(date=c.date, previous_status=AvailabilityStatus.BLOCKED)

    def test_past_day_not_editable(self):
        past = cell(day=date(2025, 12, 1))
        assert handle_day_click(past, ActorRole.PROVIDER, CalendarMode.EDIT, True) is None


class TestToggleCycle:
    def test_cycle(self):
        assert next_toggle_status(AvailabilityStatus.AVAILABLE) == AvailabilityStatus.BLOCKED
        assert next_toggle_status(AvailabilityStatus.BLOCKED) == AvailabilityStatus.OPEN_GIG
        assert next_toggle_status(AvailabilityStatus.OPEN_GIG) == AvailabilityStatus.AVAILABLE

    @pytest.mark.parametrize("status", [AvailabilityStatus.BOOKED, AvailabilityStatus.PENDING])
    def test_booking_statuses_stay_put(self, status):
        assert next_toggle_status(status) == status


class TestWithGrid:
    def test_selectable_cells_of_a_real_grid(self):
        cells = build_month_grid(2025, 12, today=TODAY)
        selectable = [c for c in cells if can_select(c, ActorRole.CUSTOMER, CalendarMode.VIEW, True)]
        # Dec 10 through Dec 31.
        assert len(selectable) == 22
        assert selectable[0].date == TODAY


def window(**overrides) -> ProviderAvailabilitySettings:
    return ProviderAvailabilitySettings(provider_id="artist-1", **overrides)


class TestBookingWindow:
    def test_no_window_allows_any_date(self):
        assert is_within_booking_window(date(2030, 1, 1), TODAY, None)

    @pytest.mark.parametrize("day,expected", [
        (date(2025, 12, 10), False),
        (date(2025, 12, 11), False),
        (date(2025, 12, 12), True),
    ])
    def test_minimum_notice(self, day, expected):
        assert is_within_booking_window(day, TODAY, window(minimum_notice_hours=48)) is expected

    def test_same_day_waives_notice(self):
        assert is_within_booking_window(TODAY, TODAY, window(allow_same_day=True))

    def test_advance_limit_inclusive(self):
        w = window(advance_booking_days=14, minimum_notice_hours=0)
        assert is_within_booking_window(date(2025, 12, 24), TODAY, w)
        assert not is_within_booking_window(date(2025, 12, 25), TODAY, w)

    def test_view_mode_respects_window(self):
        short_notice = cell(day=date(2025, 12, 11))
        w = window(minimum_notice_hours=48)
        assert not can_select(short_notice, ActorRole.CUSTOMER, CalendarMode.VIEW, True, w, TODAY)
        assert handle_day_click(short_notice, ActorRole.CUSTOMER, CalendarMode.VIEW, True, w, TODAY) is None

    def test_edit_mode_ignores_window(self):
        short_notice = cell(day=date(2025, 12, 11))
        assert can_select(
            short_notice, ActorRole.PROVIDER, CalendarMode.EDIT, True, window(minimum_notice_hours=48), TODAY
        )

    def test_window_on_a_real_grid(self):
        w = window(advance_booking_days=14, minimum_notice_hours=0)
        cells = build_month_grid(2025, 12, today=TODAY)
        selectable = [
            c for c in cells if can_select(c, ActorRole.CUSTOMER, CalendarMode.VIEW, True, w, TODAY)
        ]
        # Dec 10 through Dec 24.
        assert [c.date.day for c in selectable] == list(range(10, 25))
