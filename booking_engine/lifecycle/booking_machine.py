"""
Booking lifecycle.

A booking is created ``confirmed`` when its request is accepted, runs
``in_progress`` on the event day and ends ``completed``. ``cancelled``,
``disputed`` and ``refunded`` are side exits. Contract, payment and payout
progress are derived from the booking's own fields (see ``derived``), not
tracked here.
"""

from enum import Enum

from booking_engine.lifecycle.transitions import Actor, StatusMachine, Transition
from booking_engine.schemas.booking_schema import BookingStatus


class BookingTrigger(str, Enum):
    """Events that move a booking."""
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    DISPUTE = "dispute"
    REFUND = "refund"


_RUNNERS = frozenset({Actor.PROVIDER, Actor.OPERATOR, Actor.SYSTEM})
_PARTIES = frozenset({Actor.PROVIDER, Actor.REQUESTER, Actor.OPERATOR})
_OPERATOR = frozenset({Actor.OPERATOR, Actor.SYSTEM})


class BookingStateMachine(StatusMachine[BookingStatus, BookingTrigger]):
    """Status machine for a confirmed booking."""

    ENTITY = "booking"

    TERMINAL_STATES = frozenset({
        BookingStatus.CANCELLED,
        BookingStatus.REFUNDED,
    })

    TRANSITIONS = [
        # --- Main path ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS,
                   BookingTrigger.START, _RUNNERS),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
                   BookingTrigger.COMPLETE, _RUNNERS),

        # --- Cancellation ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
                   BookingTrigger.CANCEL, _PARTIES),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED,
                   BookingTrigger.CANCEL, _PARTIES),

        # --- Disputes ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.DISPUTED,
                   BookingTrigger.DISPUTE, _PARTIES),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.DISPUTED,
                   BookingTrigger.DISPUTE, _PARTIES),
        Transition(BookingStatus.COMPLETED, BookingStatus.DISPUTED,
                   BookingTrigger.DISPUTE, _PARTIES),

        # --- Refunds ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.REFUNDED,
                   BookingTrigger.REFUND, _OPERATOR),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.REFUNDED,
                   BookingTrigger.REFUND, _OPERATOR),
        Transition(BookingStatus.DISPUTED, BookingStatus.REFUNDED,
                   BookingTrigger.REFUND, _OPERATOR),
    ]
