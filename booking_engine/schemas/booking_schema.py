"""Booking request and booking data models."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from booking_engine.utils import as_utc, parse_wall_time


def _utc_or_none(v: Optional[datetime]) -> Optional[datetime]:
    return as_utc(v) if v is not None else None


class EventType(str, Enum):
    WEDDING = "wedding"
    CORPORATE = "corporate"
    PRIVATE_PARTY = "private_party"
    CLUB = "club"
    FESTIVAL = "festival"
    BIRTHDAY = "birthday"
    CONCERT = "concert"
    GALA = "gala"
    OTHER = "other"


class BookingRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    NEGOTIATING = "negotiating"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"
    REFUNDED = "refunded"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CreateBookingRequestInput(BaseModel):
    """Validated proposal submitted by a requester."""

    provider_id: str = Field(min_length=1)
    requester_id: str = Field(min_length=1)
    event_date: date
    event_time_start: Optional[time] = None
    event_time_end: Optional[time] = None
    event_type: EventType = EventType.OTHER
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    proposed_budget: Optional[Decimal] = Field(default=None, ge=0)
    message: str = ""
    expires_at: Optional[datetime] = None

    @field_validator("event_time_start", "event_time_end", mode="before")
    @classmethod
    def parse_wall_clock(cls, v):
        if isinstance(v, str):
            return parse_wall_time(v) if v.strip() else None
        return v

    @model_validator(mode="after")
    def check_participants_and_times(self) -> "CreateBookingRequestInput":
        if self.provider_id == self.requester_id:
            raise ValueError("a provider cannot send a booking request to themselves")
        if (
            self.event_time_start is not None
            and self.event_time_end is not None
            and self.event_time_end <= self.event_time_start
        ):
            raise ValueError("event_time_end must be after event_time_start")
        return self


class BookingRequest(BaseModel):
    """A proposal from a requester to a provider for one event date."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    provider_id: str
    requester_id: str
    event_date: date
    event_time_start: Optional[time] = None
    event_time_end: Optional[time] = None
    event_type: EventType = EventType.OTHER
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    proposed_budget: Optional[Decimal] = None
    message: str = ""
    status: BookingRequestStatus = BookingRequestStatus.PENDING
    rejection_reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    counter_offer_amount: Optional[Decimal] = None
    counter_offer_by: Optional[str] = None
    counter_offer_message: Optional[str] = None
    booking_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator(
        "expires_at", "responded_at", "cancelled_at", "created_at", "updated_at"
    )
    @classmethod
    def normalize_to_utc(cls, v):
        return _utc_or_none(v)


class Booking(BaseModel):
    """A confirmed engagement, created only by accepting a request."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_number: str
    request_id: str
    provider_id: str
    client_id: str

    event_date: date
    event_time_start: Optional[time] = None
    event_time_end: Optional[time] = None
    event_type: EventType = EventType.OTHER
    location_name: Optional[str] = None
    location_address: Optional[str] = None

    total_price: Decimal
    deposit_amount: Optional[Decimal] = None
    deposit_due_date: Optional[date] = None
    deposit_paid_at: Optional[datetime] = None
    final_payment_amount: Optional[Decimal] = None
    final_payment_due_date: Optional[date] = None
    final_payment_paid_at: Optional[datetime] = None
    platform_fee_percentage: Optional[Decimal] = None
    platform_fee_amount: Optional[Decimal] = None
    provider_payout_amount: Optional[Decimal] = None
    payout_status: PayoutStatus = PayoutStatus.PENDING
    payout_scheduled_date: Optional[date] = None
    payout_completed_at: Optional[datetime] = None

    contract_url: Optional[str] = None
    contract_signed_provider: bool = False
    contract_signed_provider_at: Optional[datetime] = None
    contract_signed_client: bool = False
    contract_signed_client_at: Optional[datetime] = None

    status: BookingStatus = BookingStatus.CONFIRMED
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancellation_fee_percentage: Optional[Decimal] = None

    provider_calendar_event_id: Optional[str] = None
    client_calendar_event_id: Optional[str] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator(
        "deposit_paid_at", "final_payment_paid_at", "payout_completed_at",
        "contract_signed_provider_at", "contract_signed_client_at",
        "cancelled_at", "created_at", "updated_at",
    )
    @classmethod
    def normalize_to_utc(cls, v):
        return _utc_or_none(v)


class PaymentTerms(BaseModel):
    """Amounts and due dates supplied by the payment collaborator."""

    total_price: Decimal = Field(ge=0)
    deposit_amount: Optional[Decimal] = Field(default=None, ge=0)
    deposit_due_date: Optional[date] = None
    final_payment_amount: Optional[Decimal] = Field(default=None, ge=0)
    final_payment_due_date: Optional[date] = None
    platform_fee_percentage: Optional[Decimal] = None
    platform_fee_amount: Optional[Decimal] = None
    provider_payout_amount: Optional[Decimal] = None

    @model_validator(mode="after")
    def milestones_within_total(self) -> "PaymentTerms":
        scheduled = (self.deposit_amount or Decimal("0")) + (
            self.final_payment_amount or Decimal("0")
        )
        if scheduled > self.total_price:
            raise ValueError(
                f"deposit + final payment ({scheduled}) exceeds total price ({self.total_price})"
            )
        return self


class StatusHistoryEntry(BaseModel):
    """One recorded status change of a request or booking."""

    model_config = ConfigDict(from_attributes=True)

    entity_type: str
    entity_id: str
    previous_status: Optional[str] = None
    new_status: str
    changed_by: Optional[str] = None
    change_reason: Optional[str] = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def normalize_to_utc(cls, v):
        return _utc_or_none(v)


class RequestStats(BaseModel):
    """Dashboard counters for a provider's incoming and outgoing requests."""

    pending: int = 0
    total_incoming: int = 0
    accepted: int = 0
    outgoing: int = 0
    response_rate: int = 0


class BookingStats(BaseModel):
    """Dashboard counters for one user's bookings (either side)."""

    upcoming: int = 0
    completed: int = 0
    this_month: int = 0
    total_revenue: Decimal = Decimal("0")
