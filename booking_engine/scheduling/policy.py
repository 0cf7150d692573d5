"""
Selectability rules for calendar cells.

Customers browsing a provider's calendar may only pick open days; the
provider editing their own calendar may pick any day of the shown month.
Clicking a selectable cell produces an event for the caller: a date
selection (seeds a new booking request) or an availability toggle.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Union

from booking_engine.config import settings
from booking_engine.scheduling.grid import CalendarCell
from booking_engine.schemas.availability_schema import (
    BOOKABLE_STATUSES,
    AvailabilityStatus,
    ProviderAvailabilitySettings,
)

logger = logging.getLogger(__name__)


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"


class CalendarMode(str, Enum):
    VIEW = "view"
    EDIT = "edit"


@dataclass(frozen=True)
class DateSelected:
    """View-mode click: the requester picked a date for a new request."""

    date: date


@dataclass(frozen=True)
class AvailabilityToggled:
    """Edit-mode click: the provider wants to change this day's status."""

    date: date
    previous_status: AvailabilityStatus


CalendarEvent = Union[DateSelected, AvailabilityToggled]

# Default edit-mode cycle. Booked and pending days change through bookings.
_TOGGLE_CYCLE: dict[AvailabilityStatus, AvailabilityStatus] = {
    AvailabilityStatus.AVAILABLE: AvailabilityStatus.BLOCKED,
    AvailabilityStatus.BLOCKED: AvailabilityStatus.OPEN_GIG,
    AvailabilityStatus.OPEN_GIG: AvailabilityStatus.AVAILABLE,
}


def is_within_booking_window(
    day: date, today: date, window: Optional[ProviderAvailabilitySettings]
) -> bool:
    """Whether a request for ``day`` made on ``today`` fits the provider's window.

    Notice is counted from the start of ``today``. No window means any date.
    """
    if window is None:
        return True
    notice_ends = datetime.combine(today, time(0, 0)) + timedelta(hours=window.minimum_notice_hours)
    if datetime.combine(day, time(0, 0)) < notice_ends and not window.allow_same_day:
        return False
    return day <= today + timedelta(days=window.advance_booking_days)


def can_select(
    cell: CalendarCell,
    role: ActorRole,
    mode: CalendarMode,
    disable_past_dates: Optional[bool] = None,
    window: Optional[ProviderAvailabilitySettings] = None,
    today: Optional[date] = None,
) -> bool:
    """Whether ``role`` may click ``cell`` in ``mode``.

    In view mode the day must also fall inside the provider's booking
    ``window``, judged from ``today`` (defaults to the local date).
    """
    if disable_past_dates is None:
        disable_past_dates = settings.booking.disable_past_dates

    if not cell.is_current_month:
        return False
    if disable_past_dates and cell.is_past and not cell.is_today:
        return False

    if mode == CalendarMode.EDIT:
        return role == ActorRole.PROVIDER
    if cell.status not in BOOKABLE_STATUSES:
        return False
    return is_within_booking_window(cell.date, today or date.today(), window)


def handle_day_click(
    cell: CalendarCell,
    role: ActorRole,
    mode: CalendarMode,
    disable_past_dates: Optional[bool] = None,
    window: Optional[ProviderAvailabilitySettings] = None,
    today: Optional[date] = None,
) -> Optional[CalendarEvent]:
    """Translate a click into a calendar event, or None if not selectable."""
    if not can_select(cell, role, mode, disable_past_dates, window, today):
        logger.debug("Ignored click on %s (%s/%s)", cell.date_str, role.value, mode.value)
        return None
    if mode == CalendarMode.VIEW:
        return DateSelected(date=cell.date)
    return AvailabilityToggled(date=cell.date, previous_status=cell.status)


def next_toggle_status(status: AvailabilityStatus) -> AvailabilityStatus:
    """Default next status for an edit-mode toggle; booked/pending stay put."""
    return _TOGGLE_CYCLE.get(status, status)
