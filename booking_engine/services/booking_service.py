"""
Booking service: the transactional entry point for every request and
booking transition.

Each public method runs in one database transaction. The status machine
decides whether the move is legal, the repositories apply it as a
compare-and-swap, availability is claimed or released in the same
transaction, and a status-history row is written alongside. Notifications
go out only after the commit.

Usage:
    service = BookingService(make_session_factory(engine))
    request = service.create_request({...})
    booking = service.accept_request(request.id, provider_id)
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from booking_engine.config import BookingConfig, settings
from booking_engine.errors import AuthorizationError, ConflictError, ValidationError
from booking_engine.lifecycle.booking_machine import BookingStateMachine, BookingTrigger
from booking_engine.lifecycle.request_machine import BookingRequestStateMachine, RequestTrigger
from booking_engine.lifecycle.transitions import Actor
from booking_engine.logging_context import get_trace_logger
from booking_engine.scheduling.grid import range_dates
from booking_engine.scheduling.policy import is_within_booking_window
from booking_engine.schemas.availability_schema import (
    BOOKABLE_STATUSES,
    AvailabilityDay,
    AvailabilityStatus,
    AvailabilityUpdate,
    CalendarStats,
    ProviderAvailabilitySettings,
)
from booking_engine.schemas.booking_schema import (
    Booking,
    BookingRequest,
    BookingRequestStatus,
    BookingStats,
    BookingStatus,
    CreateBookingRequestInput,
    PaymentTerms,
    PayoutStatus,
    RequestStats,
    StatusHistoryEntry,
)
from booking_engine.services.notifications import (
    LoggingNotificationSink,
    NotificationKind,
    NotificationSink,
)
from booking_engine.services.payments import PaymentCollaborator, StandardPaymentTerms
from booking_engine.store import availability_store, repositories
from booking_engine.store.models import BookingRequestRow, BookingRow
from booking_engine.store.repositories import ENTITY_BOOKING, ENTITY_PAYOUT, ENTITY_REQUEST
from booking_engine.utils import as_utc, utcnow

logger = get_trace_logger(__name__)

M = TypeVar("M", bound=BaseModel)

Outbox = list[tuple[str, NotificationKind, dict[str, Any]]]

# Payout states that move money toward the provider.
_PAYOUT_ADVANCING = {PayoutStatus.SCHEDULED, PayoutStatus.PROCESSING, PayoutStatus.COMPLETED}


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "input"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def validate_input(model: type[M], data: Any) -> M:
    """Parse ``data`` into ``model``, raising the engine's ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(_describe(exc)) from exc


class BookingService:
    """Request and booking transitions over a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: sessionmaker,
        notifier: Optional[NotificationSink] = None,
        payments: Optional[PaymentCollaborator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        config: Optional[BookingConfig] = None,
    ) -> None:
        self._sessions = session_factory
        self._notifier = notifier or LoggingNotificationSink()
        self._payments = payments or StandardPaymentTerms()
        self._clock = clock or utcnow
        self._config = config or settings.booking

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def _dispatch(self, outbox: Outbox) -> None:
        for user_id, kind, payload in outbox:
            self._notifier.notify(user_id, kind, payload)

    @staticmethod
    def _request_actor(row: BookingRequestRow, user_id: str) -> Actor:
        if user_id == row.provider_id:
            return Actor.PROVIDER
        if user_id == row.requester_id:
            return Actor.REQUESTER
        raise AuthorizationError(f"{user_id} is not a participant in request {row.id}")

    @staticmethod
    def _booking_actor(row: BookingRow, user_id: Optional[str]) -> Actor:
        if user_id is None:
            return Actor.SYSTEM
        if user_id == row.provider_id:
            return Actor.PROVIDER
        if user_id == row.client_id:
            return Actor.REQUESTER
        raise AuthorizationError(f"{user_id} is not a participant in booking {row.id}")

    def _move_request(
        self,
        db: Session,
        row: BookingRequestRow,
        trigger: RequestTrigger,
        actor: Actor,
        changed_by: Optional[str],
        now: datetime,
        values: dict[str, Any],
        reason: Optional[str] = None,
    ) -> BookingRequest:
        previous = row.status
        machine = BookingRequestStateMachine(BookingRequestStatus(previous))
        new = machine.transition(trigger, actor)
        repositories.swap_request_status(db, row.id, previous, new.value, {**values, "updated_at": now})
        repositories.record_status_change(
            db, ENTITY_REQUEST, row.id, previous, new.value, changed_by, now, reason
        )
        db.refresh(row)
        logger.info("Request %s: %s -> %s (%s)", row.id, previous, new.value, trigger.value)
        return BookingRequest.model_validate(row)

    def _move_booking(
        self,
        db: Session,
        row: BookingRow,
        trigger: BookingTrigger,
        actor: Actor,
        changed_by: Optional[str],
        now: datetime,
        values: Optional[dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        previous = row.status
        machine = BookingStateMachine(BookingStatus(previous))
        new = machine.transition(trigger, actor)
        repositories.swap_booking_status(
            db, row.id, previous, new.value, {**(values or {}), "updated_at": now}
        )
        repositories.record_status_change(
            db, ENTITY_BOOKING, row.id, previous, new.value, changed_by, now, reason
        )
        db.refresh(row)
        logger.info("Booking %s: %s -> %s (%s)", row.booking_number, previous, new.value, trigger.value)
        return Booking.model_validate(row)

    def _default_expiry(self, now: datetime, event_date: date) -> datetime:
        end_of_event_day = datetime.combine(event_date + timedelta(days=1), time(0, 0), tzinfo=timezone.utc)
        return min(now + timedelta(hours=self._config.request_expiry_hours), end_of_event_day)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(self, data: Any) -> BookingRequest:
        """Submit a proposal for one event date.

        Raises:
            ValidationError: Bad input, the event date is in the past, or it
                falls outside the provider's booking window.
            ConflictError: The provider's day is not open for requests.
        """
        payload = validate_input(CreateBookingRequestInput, data)
        now = self._now()
        if payload.event_date < now.date():
            raise ValidationError(f"event_date {payload.event_date.isoformat()} is in the past")
        expires_at = (
            as_utc(payload.expires_at) if payload.expires_at
            else self._default_expiry(now, payload.event_date)
        )
        if expires_at <= now:
            raise ValidationError("expires_at must be in the future")

        with self._sessions.begin() as db:
            window = availability_store.get_settings(db, payload.provider_id)
            if not is_within_booking_window(payload.event_date, now.date(), window):
                raise ValidationError(
                    f"{payload.event_date.isoformat()} is outside the booking window of {payload.provider_id}"
                )
            status = availability_store.effective_status(db, payload.provider_id, payload.event_date)
            if status not in BOOKABLE_STATUSES:
                raise ConflictError(
                    f"{payload.event_date.isoformat()} is {status.value} for {payload.provider_id}"
                )
            row = BookingRequestRow(
                id=repositories.new_id(),
                provider_id=payload.provider_id,
                requester_id=payload.requester_id,
                event_date=payload.event_date,
                event_time_start=payload.event_time_start,
                event_time_end=payload.event_time_end,
                event_type=payload.event_type.value,
                location_name=payload.location_name,
                location_address=payload.location_address,
                proposed_budget=payload.proposed_budget,
                message=payload.message,
                status=BookingRequestStatus.PENDING.value,
                expires_at=expires_at,
                created_at=now,
            )
            db.add(row)
            repositories.record_status_change(
                db, ENTITY_REQUEST, row.id, None, row.status, payload.requester_id, now
            )
            db.flush()
            request = BookingRequest.model_validate(row)

        logger.info("Request %s created for %s on %s", request.id, request.provider_id, request.event_date)
        self._dispatch([(request.provider_id, NotificationKind.BOOKING_REQUEST, {
            "request_id": request.id,
            "requester_id": request.requester_id,
            "event_date": request.event_date.isoformat(),
        })])
        return request

    def accept_request(
        self, request_id: str, provider_id: str, total_price: Optional[Decimal] = None
    ) -> Booking:
        """Accept a request: create the booking and claim the day, atomically.

        ``total_price`` defaults to the agreed amount on the request (the
        open counter-offer while negotiating, else the proposed budget).
        When the provider's settings ask for it, the other open requests for
        the same day are declined in the same transaction.
        """
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_request_row(db, request_id)
            actor = self._request_actor(row, provider_id)
            BookingRequestStateMachine(BookingRequestStatus(row.status)).resolve(
                RequestTrigger.ACCEPT, actor
            )
            if (
                row.status == BookingRequestStatus.PENDING.value
                and row.expires_at is not None
                and now > as_utc(row.expires_at)
            ):
                raise ConflictError(f"Booking request {request_id} passed its deadline and is expiring")
            if (
                row.status == BookingRequestStatus.NEGOTIATING.value
                and row.counter_offer_by == provider_id
            ):
                raise ConflictError(
                    f"Booking request {request_id} waits for the requester to acknowledge the counter-offer"
                )

            price = total_price
            if price is None and row.status == BookingRequestStatus.NEGOTIATING.value:
                price = row.counter_offer_amount
            if price is None:
                price = row.proposed_budget
            if price is None:
                raise ValidationError("total_price is required when the request has no budget")
            price = Decimal(price)
            if price < 0:
                raise ValidationError("total_price must be >= 0")

            try:
                terms = validate_input(
                    PaymentTerms,
                    self._payments.quote(BookingRequest.model_validate(row), price, now.date()),
                )
            except PydanticValidationError as exc:
                raise ValidationError(_describe(exc)) from exc

            booking_id = repositories.new_id()
            request = self._move_request(
                db, row, RequestTrigger.ACCEPT, actor, provider_id, now,
                {"responded_at": now, "booking_id": booking_id},
            )
            availability_store.claim_day(db, row.provider_id, row.event_date, booking_id, now)
            booking_row = repositories.insert_booking(
                db,
                {
                    "id": booking_id,
                    "request_id": row.id,
                    "provider_id": row.provider_id,
                    "client_id": row.requester_id,
                    "event_date": row.event_date,
                    "event_time_start": row.event_time_start,
                    "event_time_end": row.event_time_end,
                    "event_type": row.event_type,
                    "location_name": row.location_name,
                    "location_address": row.location_address,
                    **terms.model_dump(),
                    "payout_status": PayoutStatus.PENDING.value,
                    "contract_signed_provider": False,
                    "contract_signed_client": False,
                    "status": BookingStatus.CONFIRMED.value,
                    "created_at": now,
                },
                year=now.year,
                attempts=self._config.booking_number_attempts,
            )
            repositories.record_status_change(
                db, ENTITY_BOOKING, booking_id, None, BookingStatus.CONFIRMED.value, provider_id, now
            )
            booking = Booking.model_validate(booking_row)
            window = availability_store.get_settings(db, row.provider_id)
            declined = (
                self._decline_conflicts(db, row, provider_id, now)
                if window is not None and window.auto_decline_conflicts else []
            )

        logger.info("Booking %s confirmed from request %s", booking.booking_number, request.id)
        payload = {"request_id": request.id, "booking_id": booking.id,
                   "booking_number": booking.booking_number,
                   "event_date": booking.event_date.isoformat()}
        self._dispatch([
            (booking.client_id, NotificationKind.BOOKING_CONFIRMED, payload),
            (booking.provider_id, NotificationKind.BOOKING_CONFIRMED, payload),
        ] + [
            (r.requester_id, NotificationKind.BOOKING_DECLINED, {"request_id": r.id, "reason": r.rejection_reason})
            for r in declined
        ])
        return booking

    def _decline_conflicts(
        self, db: Session, accepted: BookingRequestRow, provider_id: str, now: datetime
    ) -> list[BookingRequest]:
        """Reject the other open requests for a day that was just booked."""
        reason = f"{accepted.event_date.isoformat()} is no longer available"
        declined: list[BookingRequest] = []
        for other_id in repositories.open_request_ids_for_date(
            db, accepted.provider_id, accepted.event_date, exclude_id=accepted.id
        ):
            other = repositories.get_request_row(db, other_id)
            try:
                declined.append(self._move_request(
                    db, other, RequestTrigger.REJECT, Actor.PROVIDER, provider_id, now,
                    {"responded_at": now, "rejection_reason": reason}, reason=reason,
                ))
            except ConflictError:
                logger.info("Request %s moved before it could be declined", other_id)
        if declined:
            logger.info("Declined %d conflicting request(s) for %s", len(declined), accepted.event_date)
        return declined

    def reject_request(self, request_id: str, provider_id: str, reason: str) -> BookingRequest:
        """Decline a request. ``reason`` is always stored, even when empty."""
        if reason is None:
            raise ValidationError("rejection reason must be set (an empty string is allowed)")
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_request_row(db, request_id)
            actor = self._request_actor(row, provider_id)
            request = self._move_request(
                db, row, RequestTrigger.REJECT, actor, provider_id, now,
                {"responded_at": now, "rejection_reason": reason}, reason=reason,
            )
        self._dispatch([(request.requester_id, NotificationKind.BOOKING_DECLINED, {
            "request_id": request.id, "reason": reason,
        })])
        return request

    def cancel_request(
        self, request_id: str, requester_id: str, reason: Optional[str] = None
    ) -> BookingRequest:
        """Withdraw one's own request."""
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_request_row(db, request_id)
            actor = self._request_actor(row, requester_id)
            request = self._move_request(
                db, row, RequestTrigger.CANCEL, actor, requester_id, now,
                {"cancelled_at": now, "cancelled_by": requester_id, "cancellation_reason": reason},
                reason=reason,
            )
        self._dispatch([(request.provider_id, NotificationKind.BOOKING_REQUEST_CANCELLED, {
            "request_id": request.id, "reason": reason,
        })])
        return request

    def propose_counter_offer(
        self, request_id: str, user_id: str, amount: Decimal, message: Optional[str] = None
    ) -> BookingRequest:
        """Either participant proposes a different price; the request waits in ``negotiating``."""
        amount = Decimal(amount)
        if amount < 0:
            raise ValidationError("counter-offer amount must be >= 0")
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_request_row(db, request_id)
            actor = self._request_actor(row, user_id)
            request = self._move_request(
                db, row, RequestTrigger.COUNTER_OFFER, actor, user_id, now,
                {
                    "responded_at": now,
                    "counter_offer_amount": amount,
                    "counter_offer_by": user_id,
                    "counter_offer_message": message,
                },
                reason=message,
            )
        other = request.requester_id if actor == Actor.PROVIDER else request.provider_id
        self._dispatch([(other, NotificationKind.BOOKING_NEGOTIATION, {
            "request_id": request.id, "amount": str(amount), "message": message,
        })])
        return request

    def acknowledge_counter_offer(self, request_id: str, user_id: str) -> BookingRequest:
        """The other participant takes the counter-offer; it becomes the proposed budget.

        The request is pending again with a fresh response deadline.
        """
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_request_row(db, request_id)
            actor = self._request_actor(row, user_id)
            if row.status == BookingRequestStatus.NEGOTIATING.value and row.counter_offer_by == user_id:
                raise AuthorizationError("a counter-offer must be acknowledged by the other participant")
            request = self._move_request(
                db, row, RequestTrigger.ACKNOWLEDGE, actor, user_id, now,
                {
                    "responded_at": now,
                    "proposed_budget": row.counter_offer_amount,
                    "expires_at": self._default_expiry(now, row.event_date),
                },
            )
        self._dispatch([(request.counter_offer_by, NotificationKind.BOOKING_NEGOTIATION, {
            "request_id": request.id, "acknowledged_by": user_id,
            "amount": str(request.proposed_budget),
        })])
        return request

    def expire_request(self, request_id: str) -> BookingRequest:
        """Expire one pending request whose deadline has passed.

        Raises:
            ConflictError: Already terminal, negotiating, or not yet due.
        """
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_request_row(db, request_id)
            BookingRequestStateMachine(BookingRequestStatus(row.status)).resolve(
                RequestTrigger.EXPIRE, Actor.SYSTEM
            )
            if row.expires_at is None or now <= as_utc(row.expires_at):
                raise ConflictError(f"Booking request {request_id} is not due to expire yet")
            request = self._move_request(
                db, row, RequestTrigger.EXPIRE, Actor.SYSTEM, None, now, {"responded_at": now}
            )
        self._dispatch(self._expiry_notices([request]))
        return request

    def expire_due_requests(self, now: Optional[datetime] = None) -> list[BookingRequest]:
        """Sweep every pending request past its deadline. Returns those expired.

        A request that another transaction moved first is skipped.
        """
        now = as_utc(now) if now is not None else self._now()
        expired: list[BookingRequest] = []
        with self._sessions.begin() as db:
            for request_id in repositories.due_request_ids(db, now):
                row = repositories.get_request_row(db, request_id)
                try:
                    expired.append(self._move_request(
                        db, row, RequestTrigger.EXPIRE, Actor.SYSTEM, None, now, {"responded_at": now}
                    ))
                except ConflictError:
                    logger.info("Request %s moved before it could expire", request_id)
        if expired:
            logger.info("Expired %d booking requests", len(expired))
        self._dispatch(self._expiry_notices(expired))
        return expired

    @staticmethod
    def _expiry_notices(requests: Iterable[BookingRequest]) -> Outbox:
        outbox: Outbox = []
        for r in requests:
            payload = {"request_id": r.id, "event_date": r.event_date.isoformat()}
            outbox.append((r.requester_id, NotificationKind.BOOKING_REQUEST_EXPIRED, payload))
            outbox.append((r.provider_id, NotificationKind.BOOKING_REQUEST_EXPIRED, payload))
        return outbox

    def get_request(self, request_id: str) -> BookingRequest:
        with self._sessions() as db:
            return BookingRequest.model_validate(repositories.get_request_row(db, request_id))

    def list_requests(
        self, user_id: str, direction: str = "incoming", status: Optional[BookingRequestStatus] = None
    ) -> list[BookingRequest]:
        """``incoming``: requests to the user as provider. ``outgoing``: requests they sent."""
        if direction not in ("incoming", "outgoing"):
            raise ValidationError(f"direction must be 'incoming' or 'outgoing', got {direction!r}")
        with self._sessions() as db:
            if direction == "incoming":
                rows = repositories.list_request_rows(db, provider_id=user_id, status=status)
            else:
                rows = repositories.list_request_rows(db, requester_id=user_id, status=status)
            return [BookingRequest.model_validate(r) for r in rows]

    def request_stats(self, user_id: str) -> RequestStats:
        """Incoming/outgoing counts; response rate is accepted / incoming, in percent."""
        with self._sessions() as db:
            incoming = dict(
                db.query(BookingRequestRow.status, func.count(BookingRequestRow.id))
                .filter(BookingRequestRow.provider_id == user_id)
                .group_by(BookingRequestRow.status)
                .all()
            )
            outgoing = (
                db.query(func.count(BookingRequestRow.id))
                .filter(BookingRequestRow.requester_id == user_id)
                .scalar()
            )
        total = sum(incoming.values())
        accepted = incoming.get(BookingRequestStatus.ACCEPTED.value, 0)
        return RequestStats(
            pending=incoming.get(BookingRequestStatus.PENDING.value, 0),
            total_incoming=total,
            accepted=accepted,
            outgoing=outgoing or 0,
            response_rate=round(accepted * 100 / total) if total else 0,
        )

    # ------------------------------------------------------------------
    # Booking status
    # ------------------------------------------------------------------

    def start_booking(self, booking_id: str, user_id: Optional[str] = None) -> Booking:
        """Event day has begun. ``user_id=None`` means the scheduler."""
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            booking = self._move_booking(
                db, row, BookingTrigger.START, self._booking_actor(row, user_id), user_id, now
            )
        self._dispatch(self._party_notices(booking, NotificationKind.BOOKING_STARTED))
        return booking

    def complete_booking(self, booking_id: str, user_id: Optional[str] = None) -> Booking:
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            booking = self._move_booking(
                db, row, BookingTrigger.COMPLETE, self._booking_actor(row, user_id), user_id, now
            )
        self._dispatch(self._party_notices(booking, NotificationKind.BOOKING_COMPLETED))
        return booking

    def cancel_booking(
        self,
        booking_id: str,
        cancelled_by: str,
        reason: str,
        fee_percentage: Optional[Decimal] = None,
    ) -> Booking:
        """Cancel a confirmed or running booking and give the day back.

        The availability day returns to the status it held before the
        booking claimed it, if it is still linked to this booking.
        """
        if not cancelled_by:
            raise ValidationError("cancelled_by is required")
        if reason is None:
            raise ValidationError("cancellation reason is required")
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            booking = self._move_booking(
                db, row, BookingTrigger.CANCEL, self._booking_actor(row, cancelled_by), cancelled_by, now,
                {
                    "cancelled_at": now,
                    "cancelled_by": cancelled_by,
                    "cancellation_reason": reason,
                    "cancellation_fee_percentage": fee_percentage,
                },
                reason=reason,
            )
            availability_store.release_day(db, booking.provider_id, booking.event_date, booking.id, now)
        self._dispatch(self._party_notices(
            booking, NotificationKind.BOOKING_CANCELLED, {"reason": reason, "cancelled_by": cancelled_by}
        ))
        return booking

    def dispute_booking(self, booking_id: str, user_id: str, reason: str) -> Booking:
        """Open a dispute. Payout cannot advance past ``pending`` until resolved."""
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            booking = self._move_booking(
                db, row, BookingTrigger.DISPUTE, self._booking_actor(row, user_id), user_id, now,
                reason=reason,
            )
        self._dispatch(self._party_notices(booking, NotificationKind.BOOKING_DISPUTED, {"reason": reason}))
        return booking

    def refund_booking(self, booking_id: str, reason: str, operator_id: str = "operator") -> Booking:
        """Operator refund: the provider payout is zeroed and reversed by the payment collaborator.

        A day still held by the booking is given back, as on cancellation.
        """
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            before = Booking.model_validate(row)
            payout_done = before.payout_status == PayoutStatus.COMPLETED
            booking = self._move_booking(
                db, row, BookingTrigger.REFUND, Actor.OPERATOR, operator_id, now,
                {
                    "provider_payout_amount": Decimal("0"),
                    "payout_status": (PayoutStatus.COMPLETED if payout_done else PayoutStatus.FAILED).value,
                    "payout_scheduled_date": None,
                },
                reason=reason,
            )
            availability_store.release_day(db, booking.provider_id, booking.event_date, booking.id, now)
            self._payments.reverse_payout(before)
        self._dispatch(self._party_notices(booking, NotificationKind.BOOKING_REFUNDED, {"reason": reason}))
        return booking

    @staticmethod
    def _party_notices(
        booking: Booking, kind: NotificationKind, extra: Optional[dict[str, Any]] = None
    ) -> Outbox:
        payload = {"booking_id": booking.id, "booking_number": booking.booking_number, **(extra or {})}
        return [(booking.client_id, kind, payload), (booking.provider_id, kind, payload)]

    # ------------------------------------------------------------------
    # Contract, payments, payout
    # ------------------------------------------------------------------

    def _update_booking(
        self, db: Session, row: BookingRow, values: dict[str, Any], now: datetime
    ) -> Booking:
        """Non-status write, still guarded by the status we validated against."""
        repositories.swap_booking_status(db, row.id, row.status, row.status, {**values, "updated_at": now})
        db.refresh(row)
        return Booking.model_validate(row)

    @staticmethod
    def _ensure_open(row: BookingRow, action: str) -> None:
        if row.status in (BookingStatus.CANCELLED.value, BookingStatus.REFUNDED.value):
            raise ConflictError(f"Cannot {action} on a {row.status} booking")

    def attach_contract(self, booking_id: str, contract_url: str) -> Booking:
        if not contract_url:
            raise ValidationError("contract_url is required")
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            self._ensure_open(row, "attach a contract")
            if row.contract_signed_provider or row.contract_signed_client:
                raise ConflictError("Contract already has signatures; it cannot be replaced")
            return self._update_booking(db, row, {"contract_url": contract_url}, now)

    def sign_contract(self, booking_id: str, user_id: str) -> Booking:
        """Record one party's signature."""
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            actor = self._booking_actor(row, user_id)
            self._ensure_open(row, "sign a contract")
            if not row.contract_url:
                raise ValidationError(f"Booking {row.booking_number} has no contract to sign")
            party = "provider" if actor == Actor.PROVIDER else "client"
            if getattr(row, f"contract_signed_{party}"):
                raise ConflictError(f"The {party} has already signed booking {row.booking_number}")
            booking = self._update_booking(db, row, {
                f"contract_signed_{party}": True,
                f"contract_signed_{party}_at": now,
            }, now)
        other = booking.client_id if actor == Actor.PROVIDER else booking.provider_id
        self._dispatch([(other, NotificationKind.CONTRACT_SIGNED, {
            "booking_id": booking.id, "signed_by": user_id,
        })])
        return booking

    def _record_payment(self, booking_id: str, milestone: str) -> Booking:
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            self._ensure_open(row, f"record a {milestone} payment")
            amount_field = "deposit_amount" if milestone == "deposit" else "final_payment_amount"
            paid_field = "deposit_paid_at" if milestone == "deposit" else "final_payment_paid_at"
            if getattr(row, amount_field) is None:
                raise ValidationError(f"Booking {row.booking_number} has no {milestone} payment")
            if getattr(row, paid_field) is not None:
                raise ConflictError(f"{milestone} payment for {row.booking_number} is already recorded")
            booking = self._update_booking(db, row, {paid_field: now}, now)
        self._dispatch([(booking.provider_id, NotificationKind.PAYMENT_RECEIVED, {
            "booking_id": booking.id, "milestone": milestone,
            "amount": str(getattr(booking, amount_field)),
        })])
        return booking

    def record_deposit_payment(self, booking_id: str) -> Booking:
        return self._record_payment(booking_id, "deposit")

    def record_final_payment(self, booking_id: str) -> Booking:
        return self._record_payment(booking_id, "final")

    def _move_payout(
        self,
        booking_id: str,
        target: PayoutStatus,
        allowed_from: set[PayoutStatus],
        values: dict[str, Any],
        kind: Optional[NotificationKind],
        changed_by: Optional[str],
    ) -> Booking:
        now = self._now()
        with self._sessions.begin() as db:
            row = repositories.get_booking_row(db, booking_id)
            self._ensure_open(row, "change the payout")
            if row.status == BookingStatus.DISPUTED.value and target in _PAYOUT_ADVANCING:
                raise ConflictError(f"Payout for {row.booking_number} is frozen while disputed")
            current = PayoutStatus(row.payout_status)
            if current not in allowed_from:
                raise ConflictError(
                    f"Payout for {row.booking_number} is '{current.value}'; cannot move to '{target.value}'"
                )
            booking = self._update_booking(db, row, {**values, "payout_status": target.value}, now)
            repositories.record_status_change(
                db, ENTITY_PAYOUT, row.id, current.value, target.value, changed_by, now
            )
        if kind is not None:
            self._dispatch([(booking.provider_id, kind, {
                "booking_id": booking.id,
                "amount": str(booking.provider_payout_amount),
                "scheduled_date": booking.payout_scheduled_date.isoformat()
                if booking.payout_scheduled_date else None,
            })])
        return booking

    def schedule_payout(self, booking_id: str, payout_date: date, changed_by: Optional[str] = None) -> Booking:
        return self._move_payout(
            booking_id, PayoutStatus.SCHEDULED, {PayoutStatus.PENDING, PayoutStatus.FAILED},
            {"payout_scheduled_date": payout_date}, NotificationKind.PAYOUT_SCHEDULED, changed_by,
        )

    def mark_payout_processing(self, booking_id: str, changed_by: Optional[str] = None) -> Booking:
        return self._move_payout(
            booking_id, PayoutStatus.PROCESSING, {PayoutStatus.SCHEDULED}, {}, None, changed_by,
        )

    def mark_payout_completed(self, booking_id: str, changed_by: Optional[str] = None) -> Booking:
        return self._move_payout(
            booking_id, PayoutStatus.COMPLETED, {PayoutStatus.SCHEDULED, PayoutStatus.PROCESSING},
            {"payout_completed_at": self._now()}, NotificationKind.PAYOUT_SENT, changed_by,
        )

    def mark_payout_failed(self, booking_id: str, changed_by: Optional[str] = None) -> Booking:
        return self._move_payout(
            booking_id, PayoutStatus.FAILED, {PayoutStatus.SCHEDULED, PayoutStatus.PROCESSING},
            {"payout_scheduled_date": None}, NotificationKind.PAYOUT_FAILED, changed_by,
        )

    # ------------------------------------------------------------------
    # Booking reads
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        with self._sessions() as db:
            return Booking.model_validate(repositories.get_booking_row(db, booking_id))

    def get_booking_by_number(self, booking_number: str) -> Booking:
        with self._sessions() as db:
            return Booking.model_validate(repositories.get_booking_row_by_number(db, booking_number))

    def list_bookings(self, user_id: str, when: str = "upcoming") -> list[Booking]:
        """``upcoming``: today or later and not cancelled. ``past``: before today."""
        today = self._now().date()
        with self._sessions() as db:
            if when == "upcoming":
                rows = [
                    r for r in repositories.list_booking_rows(db, user_id=user_id, start=today)
                    if r.status != BookingStatus.CANCELLED.value
                ]
            elif when == "past":
                rows = repositories.list_booking_rows(db, user_id=user_id, end=today - timedelta(days=1))
                rows.reverse()
            else:
                raise ValidationError(f"when must be 'upcoming' or 'past', got {when!r}")
            return [Booking.model_validate(r) for r in rows]

    def booking_stats(self, user_id: str) -> BookingStats:
        today = self._now().date()
        month_start = today.replace(day=1)
        with self._sessions() as db:
            rows = repositories.list_booking_rows(db, user_id=user_id)
        stats = BookingStats()
        for r in rows:
            if r.event_date >= today and r.status != BookingStatus.CANCELLED.value:
                stats.upcoming += 1
            if r.status == BookingStatus.COMPLETED.value and r.provider_id == user_id:
                stats.completed += 1
                stats.total_revenue += Decimal(r.total_price)
            if month_start <= r.event_date <= today:
                stats.this_month += 1
        return stats

    def status_history(self, entity_type: str, entity_id: str) -> list[StatusHistoryEntry]:
        with self._sessions() as db:
            return repositories.list_status_history(db, entity_type, entity_id)

    # ------------------------------------------------------------------
    # Availability (provider edit mode)
    # ------------------------------------------------------------------

    def get_availability(self, provider_id: str, year: int, month: int) -> list[AvailabilityDay]:
        with self._sessions() as db:
            return availability_store.list_month(db, provider_id, year, month)

    def set_availability(self, provider_id: str, data: Any) -> AvailabilityDay:
        update = validate_input(AvailabilityUpdate, data)
        now = self._now()
        with self._sessions.begin() as db:
            return availability_store.set_day(db, provider_id, update, now)

    def set_availability_bulk(
        self,
        provider_id: str,
        dates: Iterable[date],
        status: AvailabilityStatus,
        notes: Optional[str] = None,
    ) -> list[AvailabilityDay]:
        now = self._now()
        with self._sessions.begin() as db:
            return availability_store.set_bulk(db, provider_id, dates, status, now, notes)

    def block_date_range(
        self, provider_id: str, start: date, end: date, notes: Optional[str] = None
    ) -> list[AvailabilityDay]:
        """Block every day from ``start`` to ``end`` inclusive (holidays, tours)."""
        if start > end:
            raise ValidationError(f"start {start.isoformat()} is after end {end.isoformat()}")
        return self.set_availability_bulk(
            provider_id, range_dates(start, end), AvailabilityStatus.BLOCKED, notes
        )

    def clear_availability(self, provider_id: str, day: date) -> None:
        with self._sessions.begin() as db:
            availability_store.delete_day(db, provider_id, day)

    def calendar_stats(self, provider_id: str, year: int, month: int) -> CalendarStats:
        with self._sessions() as db:
            return availability_store.calendar_stats(db, provider_id, year, month, self._now().date())

    def get_provider_settings(self, provider_id: str) -> ProviderAvailabilitySettings:
        """Stored booking window, or the defaults a new window would start from."""
        with self._sessions() as db:
            window = availability_store.get_settings(db, provider_id)
        return window or ProviderAvailabilitySettings(provider_id=provider_id)

    def update_provider_settings(self, provider_id: str, data: Any) -> ProviderAvailabilitySettings:
        """Merge ``data`` over the current window and store it."""
        now = self._now()
        with self._sessions.begin() as db:
            current = availability_store.get_settings(db, provider_id) or ProviderAvailabilitySettings(
                provider_id=provider_id
            )
            window = validate_input(ProviderAvailabilitySettings, {
                **current.model_dump(exclude={"updated_at"}),
                **dict(data),
                "provider_id": provider_id,
            })
            return availability_store.save_settings(db, window, now)
