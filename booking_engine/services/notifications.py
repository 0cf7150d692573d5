"""
Notification hooks.

The engine calls ``notify`` once per affected user after a transition has
committed. Delivery (push, email, in-app) belongs to the sink.
"""

import logging
from enum import Enum
from typing import Any, Protocol

from booking_engine.logging_context import get_trace_logger

logger = get_trace_logger(__name__)


class NotificationKind(str, Enum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_REQUEST_CANCELLED = "booking_request_cancelled"
    BOOKING_REQUEST_EXPIRED = "booking_request_expired"
    BOOKING_NEGOTIATION = "booking_negotiation"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_DECLINED = "booking_declined"
    BOOKING_STARTED = "booking_started"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_DISPUTED = "booking_disputed"
    BOOKING_REFUNDED = "booking_refunded"
    CONTRACT_SIGNED = "contract_signed"
    PAYMENT_RECEIVED = "payment_received"
    PAYOUT_SCHEDULED = "payout_scheduled"
    PAYOUT_SENT = "payout_sent"
    PAYOUT_FAILED = "payout_failed"


class NotificationSink(Protocol):
    def notify(self, user_id: str, kind: NotificationKind, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Default sink: writes every notification to the log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def notify(self, user_id: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        logger.log(self._level, "notify %s: %s %s", user_id, kind.value, payload)


class RecordingNotificationSink:
    """Keeps notifications in memory; used by the demo and tests."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, NotificationKind, dict[str, Any]]] = []

    def notify(self, user_id: str, kind: NotificationKind, payload: dict[str, Any]) -> None:
        self.sent.append((user_id, kind, payload))

    def kinds_for(self, user_id: str) -> list[NotificationKind]:
        return [kind for uid, kind, _ in self.sent if uid == user_id]

    def clear(self) -> None:
        self.sent.clear()
