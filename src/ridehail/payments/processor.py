"""Payment processor adapter: Stripe PaymentIntents over REST, plus webhook verification."""

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field

from ridehail.core.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    NotFoundError,
    ProcessorUnavailableError,
    ValidationError,
)
from ridehail.settings import PaymentSettings

logger = logging.getLogger(__name__)

SIGNATURE_SCHEME = "v1"


class PaymentIntent(BaseModel):
    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    last_payment_error: dict[str, Any] | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def failed(self) -> bool:
        """Canceled, or sent back for a new payment method after a declined attempt."""
        if self.status == "canceled":
            return True
        return self.status == "requires_payment_method" and self.last_payment_error is not None


class WebhookEvent(BaseModel):
    id: str
    type: str
    data: dict[str, Any]

    @property
    def object(self) -> dict[str, Any]:
        obj: dict[str, Any] = self.data.get("object", {})
        return obj


class WebhookSignatureError(ValidationError):
    """Webhook payload failed signature verification. Never retried."""

    pass


class PaymentProcessor(Protocol):
    def create_intent(
        self, amount: int, currency: str, metadata: dict[str, str], idempotency_key: str
    ) -> PaymentIntent: ...

    def retrieve_intent(self, intent_id: str) -> PaymentIntent: ...


class StripeClient:
    """Minimal synchronous client for the PaymentIntents API."""

    def __init__(self, settings: PaymentSettings, client: httpx.Client | None = None):
        self.settings = settings
        self._client = client or httpx.Client(
            base_url=settings.base_url, timeout=settings.timeout
        )

    def create_intent(
        self, amount: int, currency: str, metadata: dict[str, str], idempotency_key: str
    ) -> PaymentIntent:
        """Create an intent for ``amount`` minor units. Retries with the same key are safe."""
        form = {
            "amount": str(amount),
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
            "description": "Ride payment",
        }
        form.update({f"metadata[{key}]": value for key, value in metadata.items()})
        data = self._request(
            "POST",
            "/v1/payment_intents",
            data=form,
            headers={"Idempotency-Key": idempotency_key},
        )
        return PaymentIntent.model_validate(data)

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        data = self._request("GET", f"/v1/payment_intents/{intent_id}")
        return PaymentIntent.model_validate(data)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if not self.settings.api_key:
            raise ConfigurationError("STRIPE_API_KEY is not configured")

        headers = {"Authorization": f"Bearer {self.settings.api_key}", **kwargs.pop("headers", {})}
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ProcessorUnavailableError(
                f"Payment processor timed out after {self.settings.timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise ProcessorUnavailableError(f"Payment processor unreachable: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise ProcessorUnavailableError(
                f"Payment processor error: {response.status_code}",
                {"status_code": response.status_code},
            )
        if response.status_code == 404:
            raise NotFoundError("Payment intent not found at processor")
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"Payment processor rejected request: {_error_message(response)}",
                {"status_code": response.status_code},
            )

        data: dict[str, Any] = response.json()
        return data


def _error_message(response: httpx.Response) -> str:
    try:
        return str(response.json()["error"]["message"])
    except (ValueError, KeyError, TypeError):
        return response.text[:200]


def compute_signature(timestamp: int, payload: bytes, secret: str) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> WebhookEvent:
    """Check a ``t=<ts>,v1=<hex>`` signature header, then parse the event.

    The payload is not parsed until the signature matches.
    """
    if not secret:
        raise ConfigurationError("STRIPE_WEBHOOK_SECRET is not configured")
    if not header:
        raise WebhookSignatureError("Missing signature header")

    timestamp: int | None = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as e:
                raise WebhookSignatureError("Malformed signature timestamp") from e
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)

    if timestamp is None or not signatures:
        raise WebhookSignatureError("Malformed signature header")

    expected = compute_signature(timestamp, payload, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError("Signature does not match payload")

    current = time.time() if now is None else now
    if tolerance_seconds > 0 and abs(current - timestamp) > tolerance_seconds:
        raise WebhookSignatureError(
            "Signature timestamp outside tolerance", {"tolerance_seconds": tolerance_seconds}
        )

    try:
        return WebhookEvent.model_validate(json.loads(payload))
    except ValueError as e:
        raise ValidationError("Webhook payload is not a valid event") from e
