from typing import Annotated

from fastapi import APIRouter, Header, Request

from ridehail.api.dependencies import PassengerDep, PaymentsDep, PrincipalDep
from ridehail.api.models.payments import ConfirmPaymentRequest, CreateIntentRequest
from ridehail.payment import Payment
from ridehail.payments import IntentHandle, WebhookOutcome

router = APIRouter()


@router.post("/intent", response_model=IntentHandle)
def create_intent(
    body: CreateIntentRequest, principal: PassengerDep, payments: PaymentsDep
) -> IntentHandle:
    """Open the processor intent for a completed card ride."""
    return payments.create_intent(principal, body.ride_id)


@router.post("/confirm", response_model=Payment)
def confirm_payment(
    body: ConfirmPaymentRequest, principal: PassengerDep, payments: PaymentsDep
) -> Payment:
    return payments.reconcile(principal, body.payment_intent_id)


@router.get("/history", response_model=list[Payment])
def payment_history(principal: PrincipalDep, payments: PaymentsDep) -> list[Payment]:
    return payments.history(principal)


@router.get("/rides/{ride_id}", response_model=Payment)
def payment_for_ride(ride_id: str, principal: PrincipalDep, payments: PaymentsDep) -> Payment:
    return payments.get_for_ride(principal, ride_id)


@router.post("/webhook", response_model=WebhookOutcome)
async def webhook(
    request: Request,
    payments: PaymentsDep,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> WebhookOutcome:
    """Processor callback. Authenticated by signature, not by bearer token."""
    payload = await request.body()
    return payments.handle_webhook(payload, stripe_signature)
