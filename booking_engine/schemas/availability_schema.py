"""Availability data models: per-provider, per-date calendar records."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from booking_engine.utils import format_wall_time, parse_wall_time


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    PENDING = "pending"
    BLOCKED = "blocked"
    OPEN_GIG = "open_gig"


class AvailabilityVisibility(str, Enum):
    VISIBLE = "visible"
    VISIBLE_WITH_NAME = "visible_with_name"
    HIDDEN = "hidden"


# Statuses a requester may propose a booking on, and that accept may claim.
BOOKABLE_STATUSES: frozenset[AvailabilityStatus] = frozenset(
    {AvailabilityStatus.AVAILABLE, AvailabilityStatus.OPEN_GIG}
)


class TimeSlot(BaseModel):
    """A wall-clock window within a day (HH:MM on the wire)."""

    start: time
    end: time

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_wall_clock(cls, v):
        if isinstance(v, str):
            return parse_wall_time(v)
        return v

    @model_validator(mode="after")
    def end_after_start(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError(f"time slot end {self.end} must be after start {self.start}")
        return self

    def to_api(self) -> dict[str, str]:
        return {"start": format_wall_time(self.start), "end": format_wall_time(self.end)}


class AvailabilityDay(BaseModel):
    """Stored availability record. Absence of a record means ``available``."""

    model_config = ConfigDict(from_attributes=True)

    provider_id: str
    date: date
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    time_slots: list[TimeSlot] = Field(default_factory=list)
    notes: Optional[str] = None
    booking_id: Optional[str] = None
    visibility: AvailabilityVisibility = AvailabilityVisibility.VISIBLE
    previous_status: Optional[AvailabilityStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("time_slots", mode="before")
    @classmethod
    def none_means_no_slots(cls, v):
        return v or []

    @field_validator("time_slots")
    @classmethod
    def slots_in_order(cls, v: list[TimeSlot]) -> list[TimeSlot]:
        for earlier, later in zip(v, v[1:]):
            if later.start < earlier.end:
                raise ValueError("time slots must be ordered and non-overlapping")
        return v

    @property
    def has_time_slots(self) -> bool:
        return bool(self.time_slots)


class AvailabilityUpdate(BaseModel):
    """Provider edit for a single date (edit mode)."""

    date: date
    status: AvailabilityStatus
    time_slots: list[TimeSlot] = Field(default_factory=list)
    notes: Optional[str] = None
    visibility: AvailabilityVisibility = AvailabilityVisibility.VISIBLE


class CalendarStats(BaseModel):
    """Per-month counts of stored statuses for the provider dashboard."""

    available_days: int = 0
    booked_days: int = 0
    pending_days: int = 0
    blocked_days: int = 0
    open_gig_days: int = 0
    upcoming_bookings: int = 0


class ProviderAvailabilitySettings(BaseModel):
    """How far ahead and how short-notice a provider takes requests.

    A provider with no stored settings takes requests for any date from
    today on. ``allow_same_day`` waives the minimum notice.
    """

    model_config = ConfigDict(from_attributes=True)

    provider_id: str
    advance_booking_days: int = Field(default=365, ge=0)
    minimum_notice_hours: int = Field(default=48, ge=0)
    allow_same_day: bool = False
    auto_decline_conflicts: bool = True
    updated_at: Optional[datetime] = None
