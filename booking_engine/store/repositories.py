"""
Request, booking and status-history persistence.

Status writes are compare-and-swap: the UPDATE only matches while the row
still holds the status the caller read, so a concurrent transition that
committed first makes the loser fail with ConflictError.
"""

import logging
import random
import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from booking_engine.errors import ConflictError, NotFoundError
from booking_engine.schemas.booking_schema import BookingRequestStatus, StatusHistoryEntry
from booking_engine.store.models import BookingRequestRow, BookingRow, StatusHistoryRow

logger = logging.getLogger(__name__)

ENTITY_REQUEST = "request"
ENTITY_BOOKING = "booking"
ENTITY_PAYOUT = "payout"


def new_id() -> str:
    return uuid.uuid4().hex


def booking_number(year: int) -> str:
    """``BH-<year>-<6 digits>``, zero padded."""
    return f"BH-{year:04d}-{random.randint(0, 999999):06d}"


# --- Requests ---

def get_request_row(db: Session, request_id: str) -> BookingRequestRow:
    row = db.get(BookingRequestRow, request_id)
    if row is None:
        raise NotFoundError(f"Booking request {request_id} not found")
    return row


def list_request_rows(
    db: Session,
    provider_id: Optional[str] = None,
    requester_id: Optional[str] = None,
    status: Optional[BookingRequestStatus] = None,
) -> list[BookingRequestRow]:
    q = db.query(BookingRequestRow)
    if provider_id is not None:
        q = q.filter(BookingRequestRow.provider_id == provider_id)
    if requester_id is not None:
        q = q.filter(BookingRequestRow.requester_id == requester_id)
    if status is not None:
        q = q.filter(BookingRequestRow.status == status.value)
    return q.order_by(BookingRequestRow.created_at.desc()).all()


def due_request_ids(db: Session, now: datetime) -> list[str]:
    """Pending requests whose deadline has passed."""
    rows = (
        db.query(BookingRequestRow.id)
        .filter(
            BookingRequestRow.status == BookingRequestStatus.PENDING.value,
            BookingRequestRow.expires_at.isnot(None),
            BookingRequestRow.expires_at < now,
        )
        .order_by(BookingRequestRow.expires_at.asc())
        .all()
    )
    return [r.id for r in rows]


def open_request_ids_for_date(
    db: Session, provider_id: str, day: date, exclude_id: Optional[str] = None
) -> list[str]:
    """Pending or negotiating requests to ``provider_id`` for ``day``."""
    q = db.query(BookingRequestRow.id).filter(
        BookingRequestRow.provider_id == provider_id,
        BookingRequestRow.event_date == day,
        BookingRequestRow.status.in_(
            [BookingRequestStatus.PENDING.value, BookingRequestStatus.NEGOTIATING.value]
        ),
    )
    if exclude_id is not None:
        q = q.filter(BookingRequestRow.id != exclude_id)
    return [r.id for r in q.order_by(BookingRequestRow.created_at.asc()).all()]


def swap_request_status(
    db: Session,
    request_id: str,
    expected: str,
    new: str,
    values: Optional[dict[str, Any]] = None,
) -> None:
    """Set ``status = new`` (plus ``values``) only if it is still ``expected``."""
    changes = {getattr(BookingRequestRow, k): v for k, v in (values or {}).items()}
    changes[BookingRequestRow.status] = new
    n = (
        db.query(BookingRequestRow)
        .filter(BookingRequestRow.id == request_id, BookingRequestRow.status == expected)
        .update(changes, synchronize_session=False)
    )
    if n == 0:
        raise ConflictError(
            f"Booking request {request_id} changed concurrently (expected '{expected}')"
        )


# --- Bookings ---

def get_booking_row(db: Session, booking_id: str) -> BookingRow:
    row = db.get(BookingRow, booking_id)
    if row is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return row


def get_booking_row_by_number(db: Session, number: str) -> BookingRow:
    row = db.query(BookingRow).filter(BookingRow.booking_number == number).first()
    if row is None:
        raise NotFoundError(f"Booking {number} not found")
    return row


def list_booking_rows(
    db: Session,
    user_id: Optional[str] = None,
    provider_id: Optional[str] = None,
    client_id: Optional[str] = None,
    status: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[BookingRow]:
    q = db.query(BookingRow)
    if user_id is not None:
        q = q.filter(or_(BookingRow.provider_id == user_id, BookingRow.client_id == user_id))
    if provider_id is not None:
        q = q.filter(BookingRow.provider_id == provider_id)
    if client_id is not None:
        q = q.filter(BookingRow.client_id == client_id)
    if status is not None:
        q = q.filter(BookingRow.status == status)
    if start is not None:
        q = q.filter(BookingRow.event_date >= start)
    if end is not None:
        q = q.filter(BookingRow.event_date <= end)
    return q.order_by(BookingRow.event_date.asc()).all()


def insert_booking(db: Session, fields: dict[str, Any], year: int, attempts: int) -> BookingRow:
    """Insert a booking, drawing a fresh booking number on each collision."""
    for attempt in range(1, attempts + 1):
        row = BookingRow(booking_number=booking_number(year), **fields)
        try:
            with db.begin_nested():
                db.add(row)
            return row
        except IntegrityError:
            logger.warning("Booking number %s taken (attempt %d/%d)",
                           row.booking_number, attempt, attempts)
    raise ConflictError(f"Could not allocate a unique booking number after {attempts} attempts")


def swap_booking_status(
    db: Session,
    booking_id: str,
    expected: str,
    new: str,
    values: Optional[dict[str, Any]] = None,
) -> None:
    changes = {getattr(BookingRow, k): v for k, v in (values or {}).items()}
    changes[BookingRow.status] = new
    n = (
        db.query(BookingRow)
        .filter(BookingRow.id == booking_id, BookingRow.status == expected)
        .update(changes, synchronize_session=False)
    )
    if n == 0:
        raise ConflictError(f"Booking {booking_id} changed concurrently (expected '{expected}')")


# --- Status history ---

def record_status_change(
    db: Session,
    entity_type: str,
    entity_id: str,
    previous_status: Optional[str],
    new_status: str,
    changed_by: Optional[str],
    now: datetime,
    reason: Optional[str] = None,
) -> None:
    db.add(StatusHistoryRow(
        entity_type=entity_type,
        entity_id=entity_id,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=changed_by,
        change_reason=reason,
        created_at=now,
    ))


def list_status_history(db: Session, entity_type: str, entity_id: str) -> list[StatusHistoryEntry]:
    rows = (
        db.query(StatusHistoryRow)
        .filter(StatusHistoryRow.entity_type == entity_type, StatusHistoryRow.entity_id == entity_id)
        .order_by(StatusHistoryRow.id.asc())
        .all()
    )
    return [StatusHistoryEntry.model_validate(r) for r in rows]
