"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from booking_engine.schemas.availability_schema import AvailabilityDay, AvailabilityStatus
from booking_engine.schemas.booking_schema import Booking, BookingStatus
from booking_engine.services.booking_service import BookingService
from booking_engine.services.notifications import RecordingNotificationSink
from booking_engine.store.database import init_db, make_engine, make_session_factory

PROVIDER = "artist-1"
REQUESTER = "fan-1"
OTHER_REQUESTER = "fan-2"

EVENT_DATE = date(2025, 12, 25)


class FixedClock:
    """Settable clock injected into the service."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", echo=False)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def service(session_factory, sink, clock):
    return BookingService(session_factory, notifier=sink, clock=clock)


def request_payload(
    event_date: date = EVENT_DATE,
    requester_id: str = REQUESTER,
    provider_id: str = PROVIDER,
    budget: Optional[str] = "1500.00",
    **overrides,
) -> dict:
    """Helper to build a create-request payload with sensible defaults."""
    payload = {
        "provider_id": provider_id,
        "requester_id": requester_id,
        "event_date": event_date.isoformat(),
        "event_time_start": "19:00",
        "event_time_end": "23:30",
        "event_type": "wedding",
        "location_name": "Zeche Zollverein",
        "location_address": "Gelsenkirchener Str. 181, Essen",
        "proposed_budget": budget,
        "message": "Would love to have you play our wedding.",
    }
    payload.update(overrides)
    return payload


def make_day(
    day: date,
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE,
    time_slots: Optional[list[dict]] = None,
    notes: Optional[str] = None,
    booking_id: Optional[str] = None,
) -> AvailabilityDay:
    """Helper to create an in-memory AvailabilityDay."""
    return AvailabilityDay(
        provider_id=PROVIDER,
        date=day,
        status=status,
        time_slots=time_slots or [],
        notes=notes,
        booking_id=booking_id,
    )


def make_booking(**overrides) -> Booking:
    """Helper to create a Booking without going through the service."""
    fields = {
        "id": "b-1",
        "booking_number": "BH-2025-000123",
        "request_id": "r-1",
        "provider_id": PROVIDER,
        "client_id": REQUESTER,
        "event_date": EVENT_DATE,
        "total_price": Decimal("1500.00"),
        "status": BookingStatus.CONFIRMED,
        "created_at": datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Booking(**fields)
