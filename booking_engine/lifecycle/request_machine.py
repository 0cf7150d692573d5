"""
Booking request lifecycle.

A request starts ``pending`` and ends ``accepted``, ``rejected``,
``cancelled`` or ``expired``. The only loop is negotiation: a counter-offer
moves it to ``negotiating`` and acknowledging that offer brings it back to
``pending``.
"""

from enum import Enum

from booking_engine.lifecycle.transitions import Actor, StatusMachine, Transition
from booking_engine.schemas.booking_schema import BookingRequestStatus


class RequestTrigger(str, Enum):
    """Events that move a booking request."""
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"
    EXPIRE = "expire"
    COUNTER_OFFER = "counter_offer"
    ACKNOWLEDGE = "acknowledge"


_PROVIDER = frozenset({Actor.PROVIDER})
_REQUESTER = frozenset({Actor.REQUESTER})
_PARTICIPANTS = frozenset({Actor.PROVIDER, Actor.REQUESTER})
_SYSTEM = frozenset({Actor.SYSTEM})


class BookingRequestStateMachine(StatusMachine[BookingRequestStatus, RequestTrigger]):
    """Status machine for a single booking request."""

    ENTITY = "booking request"

    TERMINAL_STATES = frozenset({
        BookingRequestStatus.ACCEPTED,
        BookingRequestStatus.REJECTED,
        BookingRequestStatus.CANCELLED,
        BookingRequestStatus.EXPIRED,
    })

    TRANSITIONS = [
        # --- Provider response ---
        Transition(BookingRequestStatus.PENDING, BookingRequestStatus.ACCEPTED,
                   RequestTrigger.ACCEPT, _PROVIDER),
        Transition(BookingRequestStatus.PENDING, BookingRequestStatus.REJECTED,
                   RequestTrigger.REJECT, _PROVIDER),

        # --- Requester withdraws ---
        Transition(BookingRequestStatus.PENDING, BookingRequestStatus.CANCELLED,
                   RequestTrigger.CANCEL, _REQUESTER),

        # --- Deadline ---
        Transition(BookingRequestStatus.PENDING, BookingRequestStatus.EXPIRED,
                   RequestTrigger.EXPIRE, _SYSTEM),

        # --- Negotiation loop ---
        Transition(BookingRequestStatus.PENDING, BookingRequestStatus.NEGOTIATING,
                   RequestTrigger.COUNTER_OFFER, _PARTICIPANTS),
        Transition(BookingRequestStatus.NEGOTIATING, BookingRequestStatus.PENDING,
                   RequestTrigger.ACKNOWLEDGE, _PARTICIPANTS),
        Transition(BookingRequestStatus.NEGOTIATING, BookingRequestStatus.ACCEPTED,
                   RequestTrigger.ACCEPT, _PROVIDER),
        Transition(BookingRequestStatus.NEGOTIATING, BookingRequestStatus.REJECTED,
                   RequestTrigger.REJECT, _PROVIDER),
        Transition(BookingRequestStatus.NEGOTIATING, BookingRequestStatus.CANCELLED,
                   RequestTrigger.CANCEL, _REQUESTER),
    ]
