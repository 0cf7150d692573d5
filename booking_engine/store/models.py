"""ORM tables for the availability and booking store."""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)

from booking_engine.store.database import Base

MONEY = Numeric(12, 2)


class AvailabilityDayRow(Base):
    """One row per (provider_id, date). No row means the day is available."""

    __tablename__ = "availability_days"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="available")
    time_slots = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    booking_id = Column(String(64), nullable=True)  # weak link, lookup only
    visibility = Column(String(24), nullable=False, default="visible")
    previous_status = Column(String(16), nullable=True)  # restored when the booking is cancelled
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("provider_id", "date", name="uq_availability_provider_date"),)


class BookingRequestRow(Base):
    __tablename__ = "booking_requests"

    id = Column(String(64), primary_key=True)
    provider_id = Column(String(64), nullable=False, index=True)
    requester_id = Column(String(64), nullable=False, index=True)
    event_date = Column(Date, nullable=False)
    event_time_start = Column(Time, nullable=True)
    event_time_end = Column(Time, nullable=True)
    event_type = Column(String(24), nullable=False, default="other")
    location_name = Column(String(256), nullable=True)
    location_address = Column(String(512), nullable=True)
    proposed_budget = Column(MONEY, nullable=True)
    message = Column(Text, nullable=False, default="")
    status = Column(String(16), nullable=False, default="pending", index=True)
    rejection_reason = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    counter_offer_amount = Column(MONEY, nullable=True)
    counter_offer_by = Column(String(64), nullable=True)
    counter_offer_message = Column(Text, nullable=True)
    booking_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)
    booking_number = Column(String(20), nullable=False, unique=True)
    request_id = Column(String(64), nullable=False, unique=True)  # one booking per request
    provider_id = Column(String(64), nullable=False, index=True)
    client_id = Column(String(64), nullable=False, index=True)

    event_date = Column(Date, nullable=False, index=True)
    event_time_start = Column(Time, nullable=True)
    event_time_end = Column(Time, nullable=True)
    event_type = Column(String(24), nullable=False, default="other")
    location_name = Column(String(256), nullable=True)
    location_address = Column(String(512), nullable=True)

    total_price = Column(MONEY, nullable=False)
    deposit_amount = Column(MONEY, nullable=True)
    deposit_due_date = Column(Date, nullable=True)
    deposit_paid_at = Column(DateTime(timezone=True), nullable=True)
    final_payment_amount = Column(MONEY, nullable=True)
    final_payment_due_date = Column(Date, nullable=True)
    final_payment_paid_at = Column(DateTime(timezone=True), nullable=True)
    platform_fee_percentage = Column(Numeric(5, 2), nullable=True)
    platform_fee_amount = Column(MONEY, nullable=True)
    provider_payout_amount = Column(MONEY, nullable=True)
    payout_status = Column(String(16), nullable=False, default="pending")
    payout_scheduled_date = Column(Date, nullable=True)
    payout_completed_at = Column(DateTime(timezone=True), nullable=True)

    contract_url = Column(String(1024), nullable=True)
    contract_signed_provider = Column(Boolean, nullable=False, default=False)
    contract_signed_provider_at = Column(DateTime(timezone=True), nullable=True)
    contract_signed_client = Column(Boolean, nullable=False, default=False)
    contract_signed_client_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(16), nullable=False, default="confirmed", index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(64), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_fee_percentage = Column(Numeric(5, 2), nullable=True)

    provider_calendar_event_id = Column(String(256), nullable=True)
    client_calendar_event_id = Column(String(256), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class StatusHistoryRow(Base):
    """Append-only log of request and booking status changes."""

    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(16), nullable=False)  # "request" | "booking" | "payout"
    entity_id = Column(String(64), nullable=False, index=True)
    previous_status = Column(String(16), nullable=True)
    new_status = Column(String(16), nullable=False)
    changed_by = Column(String(64), nullable=True)
    change_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class ProviderSettingsRow(Base):
    """Booking window per provider. No row means no window applies."""

    __tablename__ = "provider_settings"

    provider_id = Column(String(64), primary_key=True)
    advance_booking_days = Column(Integer, nullable=False, default=365)
    minimum_notice_hours = Column(Integer, nullable=False, default=48)
    allow_same_day = Column(Boolean, nullable=False, default=False)
    auto_decline_conflicts = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
