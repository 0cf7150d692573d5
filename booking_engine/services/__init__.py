from booking_engine.services.booking_service import BookingService, validate_input
from booking_engine.services.notifications import (
    LoggingNotificationSink,
    NotificationKind,
    NotificationSink,
    RecordingNotificationSink,
)
from booking_engine.services.payments import PaymentCollaborator, StandardPaymentTerms

__all__ = [
    "BookingService",
    "validate_input",
    "NotificationKind",
    "NotificationSink",
    "LoggingNotificationSink",
    "RecordingNotificationSink",
    "PaymentCollaborator",
    "StandardPaymentTerms",
]
