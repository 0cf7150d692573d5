"""Tests for derived contract, milestone, payout and expiration status."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from booking_engine.lifecycle.derived import (
    ContractParty,
    ContractState,
    DerivedPayoutStatus,
    MilestoneKind,
    contract_status,
    expiration_status,
    payment_milestones,
    payout_status,
)
from booking_engine.schemas.booking_schema import PayoutStatus
from tests.conftest import make_booking

NOW = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)


class TestContractStatus:
    def test_no_contract(self):
        assert contract_status(make_booking()).state == ContractState.NONE

    def test_awaiting_both(self):
        status = contract_status(make_booking(contract_url="https://x/c.pdf"))
        assert status.state == ContractState.AWAITING_BOTH
        assert status.pending_party is None

    def test_provider_signed_waits_for_client(self):
        status = contract_status(make_booking(contract_url="https://x/c.pdf", contract_signed_provider=True))
        assert status.state == ContractState.AWAITING_ONE
        assert status.pending_party == ContractParty.CLIENT

    def test_client_signed_waits_for_provider(self):
        status = contract_status(make_booking(contract_url="https://x/c.pdf", contract_signed_client=True))
        assert status.pending_party == ContractParty.PROVIDER

    def test_fully_executed(self):
        status = contract_status(make_booking(
            contract_url="https://x/c.pdf", contract_signed_provider=True, contract_signed_client=True,
        ))
        assert status.state == ContractState.FULLY_EXECUTED


class TestPaymentMilestones:
    def test_none_without_amounts(self):
        assert payment_milestones(make_booking(), date(2025, 12, 1)) == []

    def test_deposit_overdue_final_upcoming(self):
        booking = make_booking(
            deposit_amount=Decimal("450.00"), deposit_due_date=date(2025, 12, 5),
            final_payment_amount=Decimal("1050.00"), final_payment_due_date=date(2025, 12, 11),
        )
        deposit, final = payment_milestones(booking, date(2025, 12, 8))
        assert deposit.kind == MilestoneKind.DEPOSIT
        assert deposit.is_overdue
        assert deposit.days_until_due == -3
        assert final.kind == MilestoneKind.FINAL
        assert not final.is_overdue
        assert final.days_until_due == 3

    def test_paid_milestone_is_never_overdue(self):
        booking = make_booking(
            deposit_amount=Decimal("450.00"), deposit_due_date=date(2025, 12, 5),
            deposit_paid_at=NOW,
        )
        (deposit,) = payment_milestones(booking, date(2025, 12, 20))
        assert deposit.is_paid
        assert not deposit.is_overdue
        assert deposit.days_until_due is None

    def test_due_today_is_not_overdue(self):
        booking = make_booking(final_payment_amount=Decimal("1500.00"),
                               final_payment_due_date=date(2025, 12, 11))
        (final,) = payment_milestones(booking, date(2025, 12, 11))
        assert not final.is_overdue
        assert final.days_until_due == 0


class TestPayoutStatus:
    @pytest.mark.parametrize("fields,expected", [
        ({}, DerivedPayoutStatus.NOT_SET),
        ({"provider_payout_amount": Decimal("1350")}, DerivedPayoutStatus.PENDING),
        ({"provider_payout_amount": Decimal("1350"), "payout_scheduled_date": date(2025, 12, 30)},
         DerivedPayoutStatus.SCHEDULED),
        ({"payout_status": PayoutStatus.PROCESSING, "payout_scheduled_date": date(2025, 12, 30)},
         DerivedPayoutStatus.PROCESSING),
        ({"payout_status": PayoutStatus.FAILED, "payout_scheduled_date": date(2025, 12, 30)},
         DerivedPayoutStatus.FAILED),
        ({"payout_status": PayoutStatus.FAILED, "payout_completed_at": NOW},
         DerivedPayoutStatus.COMPLETED),
        ({"payout_status": PayoutStatus.COMPLETED}, DerivedPayoutStatus.COMPLETED),
    ])
    def test_priority(self, fields, expected):
        assert payout_status(make_booking(**fields)) == expected


class TestExpirationStatus:
    def test_no_deadline(self):
        status = expiration_status(None, NOW)
        assert not status.is_expired
        assert status.days_left is None

    def test_expired(self):
        status = expiration_status(NOW - timedelta(minutes=1), NOW)
        assert status.is_expired
        assert status.days_left == 0

    def test_expiring_soon_rounds_up(self):
        status = expiration_status(NOW + timedelta(hours=30), NOW)
        assert status.days_left == 2
        assert status.is_expiring_soon

    def test_not_yet_expiring(self):
        status = expiration_status(NOW + timedelta(hours=72), NOW)
        assert status.days_left == 3
        assert not status.is_expiring_soon

    def test_naive_deadline_treated_as_utc(self):
        status = expiration_status(datetime(2025, 12, 1, 13, 0), NOW)
        assert not status.is_expired
        assert status.days_left == 1
