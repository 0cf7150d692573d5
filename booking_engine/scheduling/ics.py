"""iCalendar (.ics) export of bookings and booked/blocked days."""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Iterable, Optional

from booking_engine.config import settings
from booking_engine.schemas.availability_schema import AvailabilityDay, AvailabilityStatus
from booking_engine.schemas.booking_schema import Booking, BookingStatus
from booking_engine.utils import utcnow

PRODID = "-//Bloghead//Calendar//DE"
UID_DOMAIN = "bloghead.de"

DEFAULT_EVENT_START = time(18, 0)
DEFAULT_EVENT_END = time(23, 0)


@dataclass
class CalendarEntry:
    """A single VEVENT."""

    uid: str
    title: str
    start: datetime
    end: datetime
    status: str = "CONFIRMED"
    description: Optional[str] = None
    location: Optional[str] = None


def escape_ics(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _format_local(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%S")


def booking_entry(booking: Booking) -> CalendarEntry:
    start = datetime.combine(booking.event_date, booking.event_time_start or DEFAULT_EVENT_START)
    end = datetime.combine(booking.event_date, booking.event_time_end or DEFAULT_EVENT_END)
    location = ", ".join(p for p in (booking.location_name, booking.location_address) if p)
    return CalendarEntry(
        uid=booking.id,
        title=f"Booking {booking.booking_number} ({booking.event_type.value})",
        start=start,
        end=end,
        status="CANCELLED" if booking.status == BookingStatus.CANCELLED else "CONFIRMED",
        location=location or None,
    )


def availability_entry(day: AvailabilityDay) -> CalendarEntry:
    blocked = day.status == AvailabilityStatus.BLOCKED
    return CalendarEntry(
        uid=f"availability-{day.provider_id}-{day.date.isoformat()}",
        title="Blocked" if blocked else "Booked",
        start=datetime.combine(day.date, time(0, 0)),
        end=datetime.combine(day.date, time(23, 59, 59)),
        status="CANCELLED" if blocked else "CONFIRMED",
        description=day.notes,
    )


def generate_ics(
    entries: Iterable[CalendarEntry],
    calendar_name: str = "Bloghead",
    timezone_id: Optional[str] = None,
    stamp: Optional[datetime] = None,
) -> str:
    """Render entries as an RFC 5545 calendar with CRLF line endings."""
    tzid = timezone_id or settings.booking.ics_timezone
    dtstamp = (stamp or utcnow()).strftime("%Y%m%dT%H%M%SZ")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_ics(calendar_name)}",
        f"X-WR-TIMEZONE:{tzid}",
    ]
    for entry in entries:
        lines += [
            "BEGIN:VEVENT",
            f"UID:{entry.uid}@{UID_DOMAIN}",
            f"DTSTAMP:{dtstamp}",
            f"DTSTART;TZID={tzid}:{_format_local(entry.start)}",
            f"DTEND;TZID={tzid}:{_format_local(entry.end)}",
            f"SUMMARY:{escape_ics(entry.title)}",
            f"STATUS:{entry.status}",
        ]
        if entry.description:
            lines.append(f"DESCRIPTION:{escape_ics(entry.description)}")
        if entry.location:
            lines.append(f"LOCATION:{escape_ics(entry.location)}")
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)


def export_calendar(
    bookings: Iterable[Booking],
    availability: Iterable[AvailabilityDay],
    calendar_name: str = "Bloghead",
) -> str:
    """Bookings plus booked/blocked availability days as one .ics document."""
    entries = [booking_entry(b) for b in bookings]
    entries += [
        availability_entry(d)
        for d in availability
        if d.status in (AvailabilityStatus.BOOKED, AvailabilityStatus.BLOCKED)
    ]
    return generate_ics(entries, calendar_name)
