"""Error taxonomy raised synchronously by every transition and store call.

None of these are retried or swallowed inside the engine; callers decide
how to present them.
"""


class BookingEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(BookingEngineError):
    """Malformed input: missing field, past date, inverted time range."""


class ConflictError(BookingEngineError):
    """Transition against an invalid or already-claimed state.

    The caller should re-fetch current state and show it to the user.
    """


class NotFoundError(BookingEngineError):
    """Referenced request, booking or availability day does not exist."""


class AuthorizationError(BookingEngineError):
    """Actor attempted a transition reserved for another role."""
