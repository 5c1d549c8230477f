"""Payment processor integration and settlement."""

from .processor import (
    PaymentIntent,
    PaymentProcessor,
    StripeClient,
    WebhookEvent,
    WebhookSignatureError,
    compute_signature,
    verify_webhook_signature,
)
from .settlement import IntentHandle, PaymentService, WebhookOutcome

__all__ = [
    "IntentHandle",
    "PaymentIntent",
    "PaymentProcessor",
    "PaymentService",
    "StripeClient",
    "WebhookEvent",
    "WebhookOutcome",
    "WebhookSignatureError",
    "compute_signature",
    "verify_webhook_signature",
]
