"""
Availability store: one record per (provider, date).

Provider edits go through ``set_day``/``set_bulk``/``delete_day``. Booking
transitions go through ``claim_day`` and ``release_day``, which are single
conditional UPDATEs so two accepts for the same date cannot both win.
"""

import logging
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from booking_engine.errors import ConflictError, NotFoundError
from booking_engine.schemas.availability_schema import (
    BOOKABLE_STATUSES,
    AvailabilityDay,
    AvailabilityStatus,
    AvailabilityUpdate,
    CalendarStats,
    ProviderAvailabilitySettings,
)
from booking_engine.scheduling.grid import month_bounds
from booking_engine.store.models import AvailabilityDayRow, ProviderSettingsRow

logger = logging.getLogger(__name__)

_BOOKABLE = [s.value for s in BOOKABLE_STATUSES]


def _day_query(db: Session, provider_id: str, day: date):
    return db.query(AvailabilityDayRow).filter(
        AvailabilityDayRow.provider_id == provider_id,
        AvailabilityDayRow.date == day,
    )


def get_day(db: Session, provider_id: str, day: date) -> Optional[AvailabilityDay]:
    """Stored record for the date, or None (meaning ``available``)."""
    row = _day_query(db, provider_id, day).first()
    return AvailabilityDay.model_validate(row) if row else None


def _stored_status(db: Session, provider_id: str, day: date) -> Optional[str]:
    return (
        db.query(AvailabilityDayRow.status)
        .filter(AvailabilityDayRow.provider_id == provider_id, AvailabilityDayRow.date == day)
        .scalar()
    )


def effective_status(db: Session, provider_id: str, day: date) -> AvailabilityStatus:
    status = _stored_status(db, provider_id, day)
    return AvailabilityStatus(status) if status else AvailabilityStatus.AVAILABLE


def list_range(db: Session, provider_id: str, start: date, end: date) -> list[AvailabilityDay]:
    """Stored records with start <= date <= end, ordered by date."""
    rows = (
        db.query(AvailabilityDayRow)
        .filter(
            AvailabilityDayRow.provider_id == provider_id,
            AvailabilityDayRow.date >= start,
            AvailabilityDayRow.date <= end,
        )
        .order_by(AvailabilityDayRow.date.asc())
        .all()
    )
    return [AvailabilityDay.model_validate(r) for r in rows]


def list_month(db: Session, provider_id: str, year: int, month: int) -> list[AvailabilityDay]:
    first, last = month_bounds(year, month)
    return list_range(db, provider_id, first, last)


def _ensure_not_linked(row: Optional[AvailabilityDayRow]) -> None:
    if row is not None and row.booking_id:
        raise ConflictError(
            f"{row.date.isoformat()} is held by booking {row.booking_id}; "
            "cancel the booking to change it"
        )


def _apply_update(
    db: Session, provider_id: str, update: AvailabilityUpdate, now: datetime
) -> AvailabilityDayRow:
    row = _day_query(db, provider_id, update.date).first()
    _ensure_not_linked(row)
    slots = [slot.to_api() for slot in update.time_slots] or None
    if row is None:
        row = AvailabilityDayRow(provider_id=provider_id, date=update.date, created_at=now)
        db.add(row)
    else:
        row.updated_at = now
    row.status = update.status.value
    row.time_slots = slots
    row.notes = update.notes
    row.visibility = update.visibility.value
    row.previous_status = None
    return row


def set_day(db: Session, provider_id: str, update: AvailabilityUpdate, now: datetime) -> AvailabilityDay:
    """Upsert one day. Days linked to a booking cannot be edited."""
    row = _apply_update(db, provider_id, update, now)
    db.flush()
    logger.info("Availability %s %s -> %s", provider_id, update.date, update.status.value)
    return AvailabilityDay.model_validate(row)


def set_bulk(
    db: Session,
    provider_id: str,
    dates: Iterable[date],
    status: AvailabilityStatus,
    now: datetime,
    notes: Optional[str] = None,
) -> list[AvailabilityDay]:
    """Apply one status to many dates (block weekends, open a week, ...).

    All-or-nothing: a single linked day fails the whole batch.
    """
    rows = [
        _apply_update(db, provider_id, AvailabilityUpdate(date=d, status=status, notes=notes), now)
        for d in sorted(set(dates))
    ]
    db.flush()
    logger.info("Availability bulk %s: %d days -> %s", provider_id, len(rows), status.value)
    return [AvailabilityDay.model_validate(r) for r in rows]


def delete_day(db: Session, provider_id: str, day: date) -> None:
    row = _day_query(db, provider_id, day).first()
    if row is None:
        raise NotFoundError(f"No availability record for {provider_id} on {day.isoformat()}")
    _ensure_not_linked(row)
    db.delete(row)
    db.flush()


def claim_day(db: Session, provider_id: str, day: date, booking_id: str, now: datetime) -> None:
    """Mark the day booked for ``booking_id``, or raise ConflictError.

    The status check and the write are one statement. The prior status is
    kept in ``previous_status`` so a cancellation can put it back.
    """
    claimed = (
        _day_query(db, provider_id, day)
        .filter(AvailabilityDayRow.status.in_(_BOOKABLE))
        .update(
            {
                AvailabilityDayRow.previous_status: AvailabilityDayRow.status,
                AvailabilityDayRow.status: AvailabilityStatus.BOOKED.value,
                AvailabilityDayRow.booking_id: booking_id,
                AvailabilityDayRow.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if claimed:
        return

    current = _stored_status(db, provider_id, day)
    if current is not None:
        raise ConflictError(
            f"{day.isoformat()} is no longer available for {provider_id} (status: {current})"
        )

    # No row yet: the unique (provider_id, date) constraint arbitrates.
    try:
        with db.begin_nested():
            db.add(AvailabilityDayRow(
                provider_id=provider_id,
                date=day,
                status=AvailabilityStatus.BOOKED.value,
                booking_id=booking_id,
                previous_status=AvailabilityStatus.AVAILABLE.value,
                created_at=now,
            ))
    except IntegrityError:
        raise ConflictError(
            f"{day.isoformat()} was claimed concurrently for {provider_id}"
        ) from None


def release_day(db: Session, provider_id: str, day: date, booking_id: str, now: datetime) -> bool:
    """Undo ``claim_day`` if the day is still linked to ``booking_id``.

    Returns False when the provider already re-edited the day.
    """
    released = (
        _day_query(db, provider_id, day)
        .filter(AvailabilityDayRow.booking_id == booking_id)
        .update(
            {
                AvailabilityDayRow.status: func.coalesce(
                    AvailabilityDayRow.previous_status, AvailabilityStatus.AVAILABLE.value
                ),
                AvailabilityDayRow.booking_id: None,
                AvailabilityDayRow.previous_status: None,
                AvailabilityDayRow.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if not released:
        logger.warning("Availability %s %s no longer linked to %s", provider_id, day, booking_id)
    return bool(released)


# --- Provider settings ---

def get_settings(db: Session, provider_id: str) -> Optional[ProviderAvailabilitySettings]:
    row = db.get(ProviderSettingsRow, provider_id)
    return ProviderAvailabilitySettings.model_validate(row) if row else None


def save_settings(
    db: Session, window: ProviderAvailabilitySettings, now: datetime
) -> ProviderAvailabilitySettings:
    """Upsert the provider's booking window."""
    row = db.get(ProviderSettingsRow, window.provider_id)
    if row is None:
        row = ProviderSettingsRow(provider_id=window.provider_id, created_at=now)
        db.add(row)
    else:
        row.updated_at = now
    row.advance_booking_days = window.advance_booking_days
    row.minimum_notice_hours = window.minimum_notice_hours
    row.allow_same_day = window.allow_same_day
    row.auto_decline_conflicts = window.auto_decline_conflicts
    db.flush()
    logger.info("Booking window %s: %d days ahead, %dh notice", window.provider_id,
                window.advance_booking_days, window.minimum_notice_hours)
    return ProviderAvailabilitySettings.model_validate(row)


def calendar_stats(db: Session, provider_id: str, year: int, month: int, today: date) -> CalendarStats:
    """Count stored statuses in the month; booked days on/after today are upcoming."""
    first, last = month_bounds(year, month)
    rows = (
        db.query(AvailabilityDayRow.status, AvailabilityDayRow.date)
        .filter(
            AvailabilityDayRow.provider_id == provider_id,
            AvailabilityDayRow.date >= first,
            AvailabilityDayRow.date <= last,
        )
        .all()
    )
    stats = CalendarStats()
    field_for = {
        AvailabilityStatus.AVAILABLE.value: "available_days",
        AvailabilityStatus.BOOKED.value: "booked_days",
        AvailabilityStatus.PENDING.value: "pending_days",
        AvailabilityStatus.BLOCKED.value: "blocked_days",
        AvailabilityStatus.OPEN_GIG.value: "open_gig_days",
    }
    for status, day in rows:
        name = field_for[status]
        setattr(stats, name, getattr(stats, name) + 1)
        if status == AvailabilityStatus.BOOKED.value and day >= today:
            stats.upcoming_bookings += 1
    return stats
