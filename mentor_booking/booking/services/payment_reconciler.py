"""
Payment reconciliation: bridges the gateway's order lifecycle to session state.

Both confirmation paths (the checkout callback and the webhook) are safe to
arrive more than once and in either order. A Payment is unique per gateway
transaction and per session, and a session only ever moves RESERVED ->
CONFIRMED, so the later arrival always finds settled state.
"""
import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import BookingConfig, get_booking_config
from mentor_booking.core.database import utcnow
from mentor_booking.core.exceptions import (
    AuthorizationError,
    IntegrityCheckError,
    InvalidStateError,
    PaymentExistsError,
    ReservationExpiredError,
    ValidationError,
)
from mentor_booking.core.logging_utils import error_tracker, log_business_event
from mentor_booking.booking.crud import payments as payments_crud
from mentor_booking.booking.crud import sessions as sessions_crud
from mentor_booking.booking.crud import users as users_crud
from mentor_booking.booking.models import (
    MentoringSession,
    Payment,
    PaymentStatus,
    SessionStatus,
    User,
)
from mentor_booking.booking.schemas.payments import (
    ConfirmPaymentResponse,
    OrderResponse,
    PaymentListResponse,
    PaymentRecordRead,
)
from mentor_booking.booking.schemas.results import WebhookAck
from mentor_booking.booking.services.expiry_reaper import ExpiryReaper
from mentor_booking.booking.services.payment_gateway import RazorpayGateway

logger = logging.getLogger(__name__)

EVENT_AUTHORIZED = "payment.authorized"
EVENT_CAPTURED = "payment.captured"
EVENT_FAILED = "payment.failed"

# How far along a payment is; a webhook never moves a payment backwards
_PROGRESS = {
    PaymentStatus.failed: 0,
    PaymentStatus.pending: 1,
    PaymentStatus.completed: 2,
    PaymentStatus.refunded: 3,
}


class PaymentReconciler:
    def __init__(
        self,
        session: AsyncSession,
        gateway: RazorpayGateway,
        config: Optional[BookingConfig] = None,
        clock: Callable = utcnow,
    ):
        self.session = session
        self.gateway = gateway
        self.config = config or get_booking_config()
        self.clock = clock
        self.reaper = ExpiryReaper(session, clock)

    async def _load_reserved_session(self, session_id: int, user_id: int) -> MentoringSession:
        record = await sessions_crud.get_session_by_id(self.session, session_id)
        if not record:
            # Reaped by the sweep: the hold lapsed before payment
            raise ReservationExpiredError(session_id)
        if record.mentee_id != user_id:
            raise AuthorizationError("You are not authorized to pay for this session")
        if record.status != SessionStatus.reserved:
            raise InvalidStateError(session_id, record.status.value, SessionStatus.reserved.value)
        if record.reservation_expires is not None and record.reservation_expires <= self.clock():
            raise ReservationExpiredError(session_id)
        return record

    async def create_order(self, session_id: int, user_id: int) -> OrderResponse:
        """Mint a gateway order for the mentee's reserved session"""
        await self.reaper.sweep()
        record = await self._load_reserved_session(session_id, user_id)

        existing = await payments_crud.get_payment_by_session(self.session, session_id)
        if existing and existing.status != PaymentStatus.failed:
            raise PaymentExistsError(session_id)

        mentor = await users_crud.get_user_by_id(self.session, record.mentor_id)
        order = await self.gateway.create_order(
            record.price, self.config.currency, str(record.id)
        )

        return OrderResponse(
            order=order,
            amount=float(record.price),
            currency=self.config.currency,
            mentor_name=mentor.name if mentor else "Mentor",
            reservation_expires_at=record.reservation_expires,
        )

    async def confirm_from_client_callback(
        self,
        session_id: int,
        payment_id: str,
        order_id: str,
        signature: str,
        user_id: int,
    ) -> ConfirmPaymentResponse:
        """
        Checkout success callback.

        A session already confirmed by the webhook is rejected with
        InvalidStateError rather than processed twice.
        """
        await self.reaper.sweep()

        if not self.gateway.verify_payment(order_id, payment_id, signature):
            error_tracker.track_error(
                "PAYMENT_SIGNATURE_INVALID",
                "Checkout callback signature mismatch",
                {"session_id": session_id, "order_id": order_id},
            )
            raise IntegrityCheckError("Payment verification failed")

        record = await self._load_reserved_session(session_id, user_id)

        payment = await payments_crud.get_payment_by_transaction(self.session, payment_id)
        if payment is not None and payment.session_id != record.id:
            raise PaymentExistsError(session_id)

        try:
            if payment is None:
                payment = await self._attach_payment(
                    record,
                    transaction_id=payment_id,
                    status=PaymentStatus.completed,
                    amount=record.price,
                    order_id=order_id,
                )
            else:
                # An authorized webhook got here first
                payment.status = PaymentStatus.completed
                payment.payment_date = self.clock()
            self._confirm(record)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Concurrent payment recorded for session {session_id}")
            raise PaymentExistsError(session_id)

        self._log_confirmed(record, payment, source="client_callback")
        return ConfirmPaymentResponse(
            payment_id=payment.id, session_id=record.id, status=payment.status.value
        )

    async def confirm_from_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Apply a gateway webhook delivery.

        Raises:
            ValidationError: missing signature, unreadable payload or missing receipt
            IntegrityCheckError: signature mismatch
            ConfigurationError: webhook secret not configured
        """
        if not signature:
            raise ValidationError("Missing signature")

        if not self.gateway.verify_webhook_signature(raw_body, signature):
            error_tracker.track_error(
                "WEBHOOK_SIGNATURE_INVALID", "Webhook signature mismatch", {"size": len(raw_body)}
            )
            raise IntegrityCheckError("Invalid signature")

        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Webhook payload is not valid JSON")
        if not isinstance(payload, dict):
            raise ValidationError("Webhook payload must be a JSON object")

        event = payload.get("event")
        entity = _payment_entity(payload)
        if event not in (EVENT_AUTHORIZED, EVENT_CAPTURED, EVENT_FAILED):
            logger.info(f"Ignoring webhook event {event}")
            return WebhookAck(event=event)
        if not entity or not entity.get("id"):
            raise ValidationError("Payment entity missing from webhook payload")

        await self.reaper.sweep()

        transaction_id = str(entity["id"])
        existing = await payments_crud.get_payment_by_transaction(self.session, transaction_id)

        if event == EVENT_FAILED:
            return await self._apply_failure(existing, entity, event)

        target = PaymentStatus.completed if event == EVENT_CAPTURED else PaymentStatus.pending
        if existing is not None:
            return await self._advance_existing(existing, target, event)

        receipt = _receipt_of(entity)
        if receipt is None:
            raise ValidationError("Session ID not found")
        try:
            session_id = int(receipt)
        except (TypeError, ValueError):
            raise ValidationError(f"Receipt '{receipt}' is not a session id")

        record = await sessions_crud.get_session_by_id(self.session, session_id)
        if record is None:
            logger.error(
                f"Payment {transaction_id} arrived for missing session {session_id}",
                extra={"transaction_id": transaction_id, "session_id": session_id},
            )
            error_tracker.track_error(
                "ORPHANED_PAYMENT",
                f"Payment {transaction_id} for a reaped or unknown session",
                {"session_id": session_id, "transaction_id": transaction_id, "event": event},
            )
            return WebhookAck(event=event, orphaned=True)

        held = await payments_crud.get_payment_by_session(self.session, record.id)
        if held is not None and held.status != PaymentStatus.failed:
            error_tracker.track_error(
                "DUPLICATE_SESSION_PAYMENT",
                f"Session {record.id} already has payment {held.transaction_id}",
                {"session_id": record.id, "transaction_id": transaction_id},
            )
            return WebhookAck(event=event, duplicate=True)

        try:
            payment = await self._attach_payment(
                record,
                transaction_id=transaction_id,
                status=target,
                amount=_major_units(entity.get("amount"), record.price),
                order_id=entity.get("order_id"),
                currency=entity.get("currency"),
            )
            confirmed = target == PaymentStatus.completed and record.status == SessionStatus.reserved
            if confirmed:
                self._confirm(record)
            await self.session.commit()
        except IntegrityError:
            # The other confirmation path won the insert
            await self.session.rollback()
            logger.info(f"Payment {transaction_id} already recorded concurrently")
            return WebhookAck(event=event, duplicate=True)

        log_business_event(
            "payment_recorded",
            "payment",
            payment.id,
            {"session_id": record.id, "status": target.value, "source": "webhook"},
        )
        if confirmed:
            self._log_confirmed(record, payment, source="webhook")
        return WebhookAck(event=event)

    async def _apply_failure(self, existing: Optional[Payment], entity: Dict[str, Any], event: str):
        if existing is None:
            logger.info(f"Payment failed for order {entity.get('order_id')}, nothing recorded")
            return WebhookAck(event=event)
        if existing.status in (PaymentStatus.completed, PaymentStatus.refunded):
            logger.warning(f"Ignoring failure for settled payment {existing.transaction_id}")
            return WebhookAck(event=event, duplicate=True)
        if existing.status == PaymentStatus.failed:
            return WebhookAck(event=event, duplicate=True)

        existing.status = PaymentStatus.failed
        await self.session.commit()
        log_business_event(
            "payment_failed",
            "payment",
            existing.id,
            {"session_id": existing.session_id, "order_id": entity.get("order_id")},
        )
        return WebhookAck(event=event)

    async def _advance_existing(self, existing: Payment, target: PaymentStatus, event: str):
        if _PROGRESS[existing.status] >= _PROGRESS[target]:
            logger.info(f"Payment {existing.transaction_id} already processed, skipping")
            return WebhookAck(event=event, duplicate=True)

        existing.status = target
        existing.payment_date = self.clock()

        record = None
        if target == PaymentStatus.completed and existing.session_id is not None:
            record = await sessions_crud.get_session_by_id(self.session, existing.session_id)
            if record is not None and record.status == SessionStatus.reserved:
                self._confirm(record)
            else:
                record = None
        await self.session.commit()

        log_business_event(
            "payment_recorded",
            "payment",
            existing.id,
            {"session_id": existing.session_id, "status": target.value, "source": "webhook"},
        )
        if record is not None:
            self._log_confirmed(record, existing, source="webhook")
        return WebhookAck(event=event)

    async def _attach_payment(
        self,
        record: MentoringSession,
        transaction_id: str,
        status: PaymentStatus,
        amount,
        order_id: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Payment:
        """
        Create the session's payment, or reuse its FAILED one so the session
        still has at most one payment row.
        """
        payment = await payments_crud.get_payment_by_session(self.session, record.id)
        if payment is None:
            payment = Payment(session_id=record.id)
            self.session.add(payment)
        elif payment.status != PaymentStatus.failed:
            raise PaymentExistsError(record.id)

        payment.user_id = record.mentee_id
        payment.recipient_id = record.mentor_id
        payment.amount = amount
        payment.currency = (currency or self.config.currency).upper()
        payment.payment_method = "razorpay"
        payment.status = status
        payment.transaction_id = transaction_id
        payment.order_id = order_id
        payment.payment_date = self.clock()
        await self.session.flush()
        return payment

    @staticmethod
    def _confirm(record: MentoringSession):
        record.status = SessionStatus.confirmed
        record.reservation_expires = None

    @staticmethod
    def _log_confirmed(record: MentoringSession, payment: Payment, source: str):
        log_business_event(
            "session_confirmed",
            "session",
            record.id,
            {
                "payment_id": payment.id,
                "transaction_id": payment.transaction_id,
                "source": source,
            },
        )

    async def list_payments_for_user(self, user: User) -> PaymentListResponse:
        items = await payments_crud.list_payments_for_user(self.session, user)
        return PaymentListResponse(
            payments=[PaymentRecordRead.model_validate(item) for item in items],
            total=len(items),
        )


def _payment_entity(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # Razorpay nests under "payload"; older relays send "payment" at the top level
    container = payload.get("payload") if isinstance(payload.get("payload"), dict) else payload
    payment = container.get("payment")
    if not isinstance(payment, dict):
        return None
    entity = payment.get("entity")
    return entity if isinstance(entity, dict) else None


def _receipt_of(entity: Dict[str, Any]) -> Optional[str]:
    notes = entity.get("notes") or {}
    if isinstance(notes, dict) and notes.get("receipt"):
        return notes["receipt"]
    return entity.get("receipt")


def _major_units(amount, fallback) -> Decimal:
    if amount is None:
        return Decimal(str(fallback))
    return (Decimal(str(amount)) / 100).quantize(Decimal("0.01"))
