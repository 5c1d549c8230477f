"""Card payment handshake, reconciliation and webhook settlement.

Settlement is a conditional status update on the payment row. Only the
writer that moves it to completed credits the driver, so any number of
reconciles and webhook deliveries credit the wallet exactly once.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from ridehail.accounts.models import Role
from ridehail.accounts.tokens import Principal
from ridehail.core.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    GuardViolationError,
    NotFoundError,
)
from ridehail.core.retry import RetryConfig, with_retry_sync
from ridehail.db.repositories import DriverRepository, PaymentRepository, RideRepository
from ridehail.db.transaction import transaction
from ridehail.messaging.models import NotificationType
from ridehail.messaging.notifications import notify
from ridehail.payment import Payment
from ridehail.pubsub import EventBuffer, EventPublisher
from ridehail.ride import PaymentMethod, PaymentStatus
from ridehail.ride_logging import log_context
from ridehail.settings import PaymentSettings

from .processor import PaymentIntent, PaymentProcessor, verify_webhook_signature

logger = logging.getLogger(__name__)

EVENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_FAILED = "payment_intent.payment_failed"


class IntentHandle(BaseModel):
    """What the client needs to confirm a card payment with the processor."""

    payment_id: str
    ride_id: str
    intent_id: str
    client_secret: str | None
    amount: float
    currency: str


class WebhookOutcome(BaseModel):
    received: bool = True
    event_type: str
    handled: bool


class PaymentService:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        processor: PaymentProcessor,
        publisher: EventPublisher,
        settings: PaymentSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._processor = processor
        self._publisher = publisher
        self.settings = settings or PaymentSettings()
        self._sleep = sleep

    def create_intent(self, principal: Principal, ride_id: str) -> IntentHandle:
        """Open (or reopen) the processor intent for a completed card ride."""
        payment = self._payable(principal, ride_id)

        if payment.processor_intent_id:
            intent = self._processor.retrieve_intent(payment.processor_intent_id)
        else:
            intent = self._processor.create_intent(
                amount=payment.amount_minor_units,
                currency=payment.currency,
                metadata={
                    "ride_id": payment.ride_id,
                    "payment_id": payment.payment_id,
                    "payer_id": payment.payer_id,
                },
                idempotency_key=payment.payment_id,
            )

        with self._session_factory() as session, transaction(session):
            payments = PaymentRepository(session)
            if not payment.processor_intent_id:
                payments.attach_intent(payment.payment_id, intent.id)
            if payment.status == PaymentStatus.FAILED and payments.transition_status(
                payment.payment_id, PaymentStatus.FAILED, PaymentStatus.PENDING
            ):
                RideRepository(session).set_payment_status(ride_id, PaymentStatus.PENDING)

        logger.info(f"Payment intent {intent.id} ready for payment {payment.payment_id}")
        return IntentHandle(
            payment_id=payment.payment_id,
            ride_id=payment.ride_id,
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=payment.amount,
            currency=payment.currency,
        )

    def reconcile(self, principal: Principal, intent_id: str) -> Payment:
        """Re-fetch the intent after client confirmation and settle if it succeeded."""
        with self._session_factory() as session:
            payment = PaymentRepository(session).get_by_intent(intent_id)
        if payment is None:
            raise NotFoundError("Payment not found", {"intent_id": intent_id})
        if payment.payer_id != principal.account_id:
            raise AuthorizationError("You can only confirm your own payments")
        if payment.status == PaymentStatus.COMPLETED:
            return payment

        retry = RetryConfig(
            max_attempts=self.settings.reconcile_max_attempts,
            base_delay=self.settings.reconcile_base_delay,
        )
        intent = with_retry_sync(
            lambda: self._processor.retrieve_intent(intent_id),
            config=retry,
            operation_name=f"reconcile {intent_id}",
            sleep=self._sleep,
        )

        if intent.failed:
            decline = intent.last_payment_error or {}
            raise ExternalServiceError(
                "Payment processor reported the payment as failed",
                {"processor_status": intent.status, "reason": decline.get("message")},
            )
        if not intent.succeeded:
            raise GuardViolationError(
                "Payment has not succeeded yet", {"processor_status": intent.status}
            )
        _check_matches(payment, intent)

        self._settle(payment.payment_id)
        return self._get(payment.payment_id)

    def handle_webhook(self, payload: bytes, signature_header: str | None) -> WebhookOutcome:
        """Verify, then apply a processor event. Unknown events are acknowledged and ignored."""
        event = verify_webhook_signature(
            payload,
            signature_header,
            self.settings.webhook_secret,
            tolerance_seconds=self.settings.webhook_tolerance_seconds,
        )
        if event.type not in (EVENT_SUCCEEDED, EVENT_FAILED):
            logger.info(f"Ignoring webhook event {event.type}")
            return WebhookOutcome(event_type=event.type, handled=False)

        intent = PaymentIntent.model_validate(event.object)
        payment = self._find_for_intent(intent)
        if payment is None:
            logger.warning(f"Webhook {event.id} names unknown intent {intent.id}")
            return WebhookOutcome(event_type=event.type, handled=False)

        with log_context(payment_id=payment.payment_id, ride_id=payment.ride_id):
            if event.type == EVENT_SUCCEEDED:
                try:
                    _check_matches(payment, intent)
                except ExternalServiceError as e:
                    logger.error(f"Webhook {event.id} rejected: {e.message}")
                    return WebhookOutcome(event_type=event.type, handled=False)
                handled = self._settle(payment.payment_id)
            else:
                handled = self._fail(payment.payment_id)

        return WebhookOutcome(event_type=event.type, handled=handled)

    def history(self, principal: Principal) -> list[Payment]:
        with self._session_factory() as session:
            return PaymentRepository(session).list_for_account(principal.account_id)

    def get_for_ride(self, principal: Principal, ride_id: str) -> Payment:
        with self._session_factory() as session:
            payment = PaymentRepository(session).get_by_ride(ride_id)
        if payment is None:
            raise NotFoundError("Payment not found", {"ride_id": ride_id})
        if principal.account_id not in (payment.payer_id, payment.payee_id):
            raise AuthorizationError("You are not part of this payment")
        return payment

    def _payable(self, principal: Principal, ride_id: str) -> Payment:
        if principal.role != Role.PASSENGER:
            raise AuthorizationError("Passenger role required")
        with self._session_factory() as session:
            payment = PaymentRepository(session).get_by_ride(ride_id)
        if payment is None:
            raise NotFoundError("Ride has no payment yet", {"ride_id": ride_id})
        if payment.payer_id != principal.account_id:
            raise AuthorizationError("You can only pay for your own rides")
        if payment.method != PaymentMethod.CARD:
            raise GuardViolationError("Cash payments do not go through the processor")
        if payment.status == PaymentStatus.COMPLETED:
            raise GuardViolationError("Payment is already completed")
        return payment

    def _find_for_intent(self, intent: PaymentIntent) -> Payment | None:
        with self._session_factory() as session:
            payments = PaymentRepository(session)
            payment = payments.get_by_intent(intent.id)
            if payment is None and intent.metadata.get("payment_id"):
                payment = payments.get(intent.metadata["payment_id"])
            return payment

    def _settle(self, payment_id: str) -> bool:
        """Complete the payment and credit the driver. False if it was already settled."""
        events = EventBuffer(self._publisher)
        with self._session_factory() as session, transaction(session):
            payments = PaymentRepository(session)
            payment = _require(payments, payment_id)
            moved = payments.transition_status(
                payment_id, PaymentStatus.PENDING, PaymentStatus.COMPLETED
            ) or payments.transition_status(
                payment_id, PaymentStatus.FAILED, PaymentStatus.COMPLETED
            )
            if not moved:
                logger.info(f"Payment {payment_id} already settled, nothing to credit")
                return False

            DriverRepository(session).credit_wallet(payment.payee_id, payment.amount)
            RideRepository(session).set_payment_status(payment.ride_id, PaymentStatus.COMPLETED)
            notify(
                session,
                events,
                payment.payee_id,
                NotificationType.PAYMENT_RECEIVED,
                f"Card payment of {payment.amount:.2f} {payment.currency.upper()} received",
                ride_id=payment.ride_id,
            )

        events.publish_all()
        logger.info(f"Payment {payment_id} settled, credited {payment.amount:.2f} to driver")
        return True

    def _fail(self, payment_id: str) -> bool:
        with self._session_factory() as session, transaction(session):
            payments = PaymentRepository(session)
            payment = _require(payments, payment_id)
            if not payments.transition_status(
                payment_id, PaymentStatus.PENDING, PaymentStatus.FAILED
            ):
                return False
            RideRepository(session).set_payment_status(payment.ride_id, PaymentStatus.FAILED)

        logger.warning(f"Payment {payment_id} failed at the processor")
        return True

    def _get(self, payment_id: str) -> Payment:
        with self._session_factory() as session:
            return _require(PaymentRepository(session), payment_id)


def _require(payments: PaymentRepository, payment_id: str) -> Payment:
    payment = payments.get(payment_id)
    if payment is None:
        raise NotFoundError("Payment not found", {"payment_id": payment_id})
    return payment


def _check_matches(payment: Payment, intent: PaymentIntent) -> None:
    details: dict[str, Any] = {
        "expected_amount": payment.amount_minor_units,
        "intent_amount": intent.amount,
    }
    if intent.amount != payment.amount_minor_units or intent.currency != payment.currency:
        raise ExternalServiceError("Processor intent does not match the payment", details)
