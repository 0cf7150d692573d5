from booking_engine.lifecycle.booking_machine import BookingStateMachine, BookingTrigger
from booking_engine.lifecycle.request_machine import BookingRequestStateMachine, RequestTrigger
from booking_engine.lifecycle.transitions import Actor

__all__ = [
    "Actor",
    "BookingRequestStateMachine",
    "RequestTrigger",
    "BookingStateMachine",
    "BookingTrigger",
]
