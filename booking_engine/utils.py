"""Shared date/time helpers for the API boundary.

Dates cross every collaborator boundary as plain ``YYYY-MM-DD`` strings and
wall-clock times as ``HH:MM``; no timezone offsets are ever attached to a
calendar date.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Union

API_TIME_FORMAT = "%H:%M"

_API_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_API_TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


def parse_api_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a date.

    Examples:
        >>> parse_api_date("2024-02-29")
        datetime.date(2024, 2, 29)
    """
    value = value.strip()
    if not _API_DATE_RE.match(value):
        raise ValueError(f"Expected YYYY-MM-DD, got {value!r}")
    return date.fromisoformat(value)


def format_date_for_api(value: Union[date, datetime]) -> str:
    """Format a date as ``YYYY-MM-DD``.

    A datetime is reduced to its own calendar date; it is never shifted to
    UTC first, which is what produces off-by-one days near midnight.

    Examples:
        >>> format_date_for_api(date(2025, 12, 25))
        '2025-12-25'
    """
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def parse_wall_time(value: str) -> time:
    """Parse ``HH:MM`` (seconds tolerated and dropped) into a time."""
    value = value.strip()
    if not _API_TIME_RE.match(value):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    return datetime.strptime(value[:5], API_TIME_FORMAT).time()


def format_wall_time(value: time) -> str:
    return value.strftime(API_TIME_FORMAT)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; SQLite hands them back without tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
