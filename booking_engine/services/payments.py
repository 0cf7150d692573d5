"""
Payment collaborator.

The engine never computes money on its own; it asks the collaborator for
terms when a request is accepted and tells it when a payout has to be
reversed. ``StandardPaymentTerms`` is the default marketplace policy:
platform fee off the top, a deposit shortly after acceptance and the
remainder before the event.
"""

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol

from booking_engine.config import PaymentConfig, settings
from booking_engine.schemas.booking_schema import Booking, BookingRequest, PaymentTerms

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """``amount * percentage / 100`` rounded half-up to cents."""
    return (amount * percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


class PaymentCollaborator(Protocol):
    def quote(self, request: BookingRequest, total_price: Decimal, accepted_on: date) -> PaymentTerms: ...

    def reverse_payout(self, booking: Booking) -> None: ...


class StandardPaymentTerms:
    """Fee, deposit and final-payment schedule from ``PaymentConfig``."""

    def __init__(self, config: Optional[PaymentConfig] = None) -> None:
        self._config = config or settings.payments

    def quote(self, request: BookingRequest, total_price: Decimal, accepted_on: date) -> PaymentTerms:
        cfg = self._config
        total = total_price.quantize(CENT, rounding=ROUND_HALF_UP)
        fee = percentage_of(total, cfg.platform_fee_percentage)

        deposit: Optional[Decimal] = percentage_of(total, cfg.deposit_percentage)
        deposit_due: Optional[date] = min(
            accepted_on + timedelta(days=cfg.deposit_due_days), request.event_date
        )
        if not deposit:
            deposit, deposit_due = None, None

        final = total - (deposit or Decimal("0"))
        final_due = max(
            request.event_date - timedelta(days=cfg.final_payment_days_before_event), accepted_on
        )
        # The deposit never falls due after the final payment.
        if deposit_due is not None:
            deposit_due = min(deposit_due, final_due)

        return PaymentTerms(
            total_price=total,
            deposit_amount=deposit,
            deposit_due_date=deposit_due,
            final_payment_amount=final,
            final_payment_due_date=final_due,
            platform_fee_percentage=cfg.platform_fee_percentage,
            platform_fee_amount=fee,
            provider_payout_amount=total - fee,
        )

    def reverse_payout(self, booking: Booking) -> None:
        logger.info(
            "Payout reversal requested for %s (%s)",
            booking.booking_number, booking.provider_payout_amount,
        )
