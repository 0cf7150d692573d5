"""
Sub-states derived on demand from a booking's stored fields.

Contract, payment-milestone and payout status are never stored as their
own enums; storing them would let the displayed status drift from the
fields it summarises.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from booking_engine.schemas.booking_schema import Booking, PayoutStatus
from booking_engine.utils import as_utc

EXPIRING_SOON_DAYS = 2


class ContractState(str, Enum):
    NONE = "none"
    AWAITING_BOTH = "awaiting_both"
    AWAITING_ONE = "awaiting_one"
    FULLY_EXECUTED = "fully_executed"


class ContractParty(str, Enum):
    PROVIDER = "provider"
    CLIENT = "client"


@dataclass(frozen=True)
class ContractStatus:
    state: ContractState
    pending_party: Optional[ContractParty] = None


class MilestoneKind(str, Enum):
    DEPOSIT = "deposit"
    FINAL = "final"


@dataclass(frozen=True)
class PaymentMilestone:
    kind: MilestoneKind
    amount: Decimal
    due_date: Optional[date]
    paid_at: Optional[datetime]
    is_paid: bool
    is_overdue: bool
    days_until_due: Optional[int]


class DerivedPayoutStatus(str, Enum):
    NOT_SET = "not_set"
    PENDING = "pending"
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ExpirationStatus:
    is_expired: bool
    is_expiring_soon: bool
    days_left: Optional[int]


def contract_status(booking: Booking) -> ContractStatus:
    if not booking.contract_url:
        return ContractStatus(ContractState.NONE)
    provider, client = booking.contract_signed_provider, booking.contract_signed_client
    if provider and client:
        return ContractStatus(ContractState.FULLY_EXECUTED)
    if provider:
        return ContractStatus(ContractState.AWAITING_ONE, ContractParty.CLIENT)
    if client:
        return ContractStatus(ContractState.AWAITING_ONE, ContractParty.PROVIDER)
    return ContractStatus(ContractState.AWAITING_BOTH)


def _milestone(
    kind: MilestoneKind,
    amount: Optional[Decimal],
    due_date: Optional[date],
    paid_at: Optional[datetime],
    today: date,
) -> Optional[PaymentMilestone]:
    if amount is None:
        return None
    is_paid = paid_at is not None
    return PaymentMilestone(
        kind=kind,
        amount=amount,
        due_date=due_date,
        paid_at=paid_at,
        is_paid=is_paid,
        is_overdue=not is_paid and due_date is not None and due_date < today,
        days_until_due=None if is_paid or due_date is None else (due_date - today).days,
    )


def payment_milestones(booking: Booking, today: date) -> list[PaymentMilestone]:
    """Zero, one or two milestones, in payment order."""
    milestones = [
        _milestone(MilestoneKind.DEPOSIT, booking.deposit_amount,
                   booking.deposit_due_date, booking.deposit_paid_at, today),
        _milestone(MilestoneKind.FINAL, booking.final_payment_amount,
                   booking.final_payment_due_date, booking.final_payment_paid_at, today),
    ]
    return [m for m in milestones if m is not None]


def payout_status(booking: Booking) -> DerivedPayoutStatus:
    """Priority: completed > failed > processing > scheduled > pending > not_set."""
    if booking.payout_completed_at is not None or booking.payout_status == PayoutStatus.COMPLETED:
        return DerivedPayoutStatus.COMPLETED
    if booking.payout_status == PayoutStatus.FAILED:
        return DerivedPayoutStatus.FAILED
    if booking.payout_status == PayoutStatus.PROCESSING:
        return DerivedPayoutStatus.PROCESSING
    if booking.payout_scheduled_date is not None:
        return DerivedPayoutStatus.SCHEDULED
    if booking.provider_payout_amount is not None:
        return DerivedPayoutStatus.PENDING
    return DerivedPayoutStatus.NOT_SET


def expiration_status(expires_at: Optional[datetime], now: datetime) -> ExpirationStatus:
    """How close a pending request is to its response deadline."""
    if expires_at is None:
        return ExpirationStatus(is_expired=False, is_expiring_soon=False, days_left=None)
    remaining = (as_utc(expires_at) - as_utc(now)).total_seconds()
    if remaining <= 0:
        return ExpirationStatus(is_expired=True, is_expiring_soon=False, days_left=0)
    days_left = math.ceil(remaining / 86400)
    return ExpirationStatus(
        is_expired=False,
        is_expiring_soon=days_left <= EXPIRING_SOON_DAYS,
        days_left=days_left,
    )
