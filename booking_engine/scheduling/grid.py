"""
Month grid builder for the availability calendar.

Turns (year, month, stored availability) into a Sunday-first grid of full
weeks. Leading days come from the previous month and trailing days from
the next, so the grid always holds 28 to 42 cells and its length is a
multiple of 7.

Usage:
    cells = build_month_grid(2024, 2, availability, today=date(2024, 2, 10))
    assert sum(c.is_current_month for c in cells) == 29
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from booking_engine.schemas.availability_schema import AvailabilityDay, AvailabilityStatus
from booking_engine.utils import format_date_for_api

DAYS_PER_WEEK = 7

# calendar.SUNDAY == 6; the grid's first column is Sunday.
_SUNDAY_FIRST = calendar.Calendar(firstweekday=calendar.SUNDAY)


@dataclass(frozen=True)
class CalendarCell:
    """One day of the display grid with its computed flags."""

    date: date
    status: AvailabilityStatus
    has_time_slots: bool
    is_current_month: bool
    is_past: bool
    is_today: bool
    is_selected: bool
    is_highlighted: bool
    notes: Optional[str] = None
    booking_id: Optional[str] = None

    @property
    def date_str(self) -> str:
        return format_date_for_api(self.date)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return the first and last calendar date of a month."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    _, days_in_month = calendar.monthrange(year, month)
    return date(year, month, 1), date(year, month, days_in_month)


def sunday_index(day: date) -> int:
    """Weekday index with Sunday = 0 ... Saturday = 6."""
    return (day.weekday() + 1) % DAYS_PER_WEEK


def grid_dates(year: int, month: int) -> list[date]:
    """Dates shown for a month, padded to whole Sunday-to-Saturday weeks."""
    first, last = month_bounds(year, month)
    leading = [first - timedelta(days=n) for n in range(sunday_index(first), 0, -1)]
    in_month = [first + timedelta(days=n) for n in range((last - first).days + 1)]
    trailing = [last + timedelta(days=n) for n in range(1, DAYS_PER_WEEK - sunday_index(last))]
    return leading + in_month + trailing


def build_month_grid(
    year: int,
    month: int,
    availability: Iterable[AvailabilityDay] = (),
    selected_date: Optional[date] = None,
    highlighted_dates: Iterable[date] = (),
    today: Optional[date] = None,
) -> list[CalendarCell]:
    """
    Build the display grid for a month.

    Args:
        year: Calendar year.
        month: Month number, 1-12.
        availability: Stored records; matched to cells by exact date.
            Days without a record are ``available`` with no time slots.
        selected_date: Date currently chosen by the caller, if any.
        highlighted_dates: Dates the caller wants emphasised.
        today: Reference date for ``is_past``/``is_today``. Defaults to the
            local date; pass it explicitly to keep the result reproducible.

    Returns:
        Cells in display order, always a whole number of weeks.
    """
    today = today or date.today()
    by_date = {day.date: day for day in availability}
    highlighted = set(highlighted_dates)

    cells: list[CalendarCell] = []
    for day in grid_dates(year, month):
        record = by_date.get(day)
        cells.append(CalendarCell(
            date=day,
            status=record.status if record else AvailabilityStatus.AVAILABLE,
            has_time_slots=record.has_time_slots if record else False,
            is_current_month=day.month == month and day.year == year,
            is_past=day < today,
            is_today=day == today,
            is_selected=selected_date is not None and day == selected_date,
            is_highlighted=day in highlighted,
            notes=record.notes if record else None,
            booking_id=record.booking_id if record else None,
        ))
    return cells


def weeks(cells: list[CalendarCell]) -> list[list[CalendarCell]]:
    """Split a grid into rows of seven cells."""
    return [cells[i:i + DAYS_PER_WEEK] for i in range(0, len(cells), DAYS_PER_WEEK)]


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Navigate ``delta`` months forward (or back, if negative)."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


# ---------------------------------------------------------------------- #
# Date sets for bulk provider edits
# ---------------------------------------------------------------------- #

def month_dates(year: int, month: int) -> list[date]:
    return [d for d in _SUNDAY_FIRST.itermonthdates(year, month) if d.month == month]


def weekend_dates(year: int, month: int) -> list[date]:
    return [d for d in month_dates(year, month) if d.weekday() >= 5]


def weekday_dates(year: int, month: int) -> list[date]:
    return [d for d in month_dates(year, month) if d.weekday() < 5]


def week_dates(day: date) -> list[date]:
    """The Monday-to-Sunday week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return [monday + timedelta(days=n) for n in range(DAYS_PER_WEEK)]


def range_dates(start: date, end: date) -> list[date]:
    """Every date from ``start`` to ``end``, both inclusive."""
    return [start + timedelta(days=n) for n in range((end - start).days + 1)]
