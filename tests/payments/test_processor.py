"""Tests for the Stripe REST client and webhook signature verification."""

import time
from urllib.parse import parse_qs

import httpx
import pytest
import respx
from httpx import Response

from ridehail.core.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    NotFoundError,
    ProcessorUnavailableError,
    ValidationError,
)
from ridehail.payments import (
    StripeClient,
    WebhookSignatureError,
    compute_signature,
    verify_webhook_signature,
)
from ridehail.settings import PaymentSettings
from tests.factories import signed_webhook

BASE_URL = "https://stripe.test"
SECRET = "whsec_unit"


@pytest.fixture
def stripe_client() -> StripeClient:
    return StripeClient(PaymentSettings(api_key="sk_test_123", base_url=BASE_URL))


@pytest.fixture
def intent_json() -> dict:
    return {
        "id": "pi_123",
        "object": "payment_intent",
        "status": "requires_payment_method",
        "amount": 603,
        "currency": "myr",
        "client_secret": "pi_123_secret_abc",
        "metadata": {"ride_id": "ride-1", "payment_id": "pay-1"},
    }


@pytest.mark.unit
class TestStripeClient:
    def test_create_intent_sends_form_and_idempotency_key(self, stripe_client, intent_json):
        with respx.mock(base_url=BASE_URL) as mock:
            route = mock.post("/v1/payment_intents").mock(
                return_value=Response(200, json=intent_json)
            )

            intent = stripe_client.create_intent(
                amount=603,
                currency="myr",
                metadata={"ride_id": "ride-1", "payment_id": "pay-1"},
                idempotency_key="pay-1",
            )

        assert route.called
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer sk_test_123"
        assert request.headers["Idempotency-Key"] == "pay-1"
        form = parse_qs(request.content.decode())
        assert form["amount"] == ["603"]
        assert form["currency"] == ["myr"]
        assert form["metadata[ride_id]"] == ["ride-1"]
        assert intent.id == "pi_123"
        assert intent.client_secret == "pi_123_secret_abc"
        assert not intent.succeeded

    def test_retrieve_intent(self, stripe_client, intent_json):
        intent_json["status"] = "succeeded"
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/v1/payment_intents/pi_123").mock(return_value=Response(200, json=intent_json))
            intent = stripe_client.retrieve_intent("pi_123")

        assert intent.succeeded
        assert intent.metadata["payment_id"] == "pay-1"

    @pytest.mark.parametrize("status_code", [500, 502, 503, 429])
    def test_server_errors_are_retryable(self, stripe_client, status_code):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/v1/payment_intents/pi_123").mock(return_value=Response(status_code))
            with pytest.raises(ProcessorUnavailableError) as exc_info:
                stripe_client.retrieve_intent("pi_123")

        assert exc_info.value.details["status_code"] == status_code

    def test_missing_intent(self, stripe_client):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/v1/payment_intents/pi_404").mock(return_value=Response(404))
            with pytest.raises(NotFoundError):
                stripe_client.retrieve_intent("pi_404")

    def test_rejected_request_is_not_retryable(self, stripe_client):
        body = {"error": {"message": "Amount must be at least 2.00 myr"}}
        with respx.mock(base_url=BASE_URL) as mock:
            mock.post("/v1/payment_intents").mock(return_value=Response(400, json=body))
            with pytest.raises(ExternalServiceError, match="at least 2.00") as exc_info:
                stripe_client.create_intent(100, "myr", {}, "pay-1")

        assert not isinstance(exc_info.value, ProcessorUnavailableError)

    def test_timeout(self, stripe_client):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/v1/payment_intents/pi_123").mock(
                side_effect=httpx.ReadTimeout("read timed out")
            )
            with pytest.raises(ProcessorUnavailableError, match="timed out"):
                stripe_client.retrieve_intent("pi_123")

    def test_connection_refused(self, stripe_client):
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/v1/payment_intents/pi_123").mock(
                side_effect=httpx.ConnectError("connection refused")
            )
            with pytest.raises(ProcessorUnavailableError, match="unreachable"):
                stripe_client.retrieve_intent("pi_123")

    def test_missing_api_key_never_calls_out(self):
        client = StripeClient(PaymentSettings(api_key="", base_url=BASE_URL))
        with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
            route = mock.get("/v1/payment_intents/pi_123")
            with pytest.raises(ConfigurationError):
                client.retrieve_intent("pi_123")

        assert not route.called


@pytest.mark.unit
class TestWebhookSignature:
    def test_valid_signature(self):
        payload, header = signed_webhook(
            "payment_intent.succeeded", {"id": "pi_1"}, secret=SECRET, event_id="evt_9"
        )

        event = verify_webhook_signature(payload, header, SECRET)

        assert event.id == "evt_9"
        assert event.type == "payment_intent.succeeded"
        assert event.object == {"id": "pi_1"}

    def test_tampered_payload(self):
        payload, header = signed_webhook("payment_intent.succeeded", {"amount": 603}, secret=SECRET)
        tampered = payload.replace(b"603", b"1")
        with pytest.raises(WebhookSignatureError, match="does not match"):
            verify_webhook_signature(tampered, header, SECRET)

    def test_wrong_secret(self):
        payload, header = signed_webhook("payment_intent.succeeded", {}, secret="whsec_other")
        with pytest.raises(WebhookSignatureError):
            verify_webhook_signature(payload, header, SECRET)

    def test_stale_timestamp(self):
        sent_at = int(time.time()) - 3600
        payload, header = signed_webhook("x", {}, secret=SECRET, timestamp=sent_at)
        with pytest.raises(WebhookSignatureError, match="tolerance"):
            verify_webhook_signature(payload, header, SECRET, tolerance_seconds=300)

    def test_zero_tolerance_accepts_old_events(self):
        payload, header = signed_webhook("x", {}, secret=SECRET, timestamp=1_000_000)
        assert verify_webhook_signature(payload, header, SECRET, tolerance_seconds=0).type == "x"

    def test_any_matching_v1_signature_is_accepted(self):
        payload = b'{"id": "evt_1", "type": "x", "data": {}}'
        ts = int(time.time())
        header = f"t={ts},v1=deadbeef,v1={compute_signature(ts, payload, SECRET)}"
        assert verify_webhook_signature(payload, header, SECRET).id == "evt_1"

    @pytest.mark.parametrize("header", [None, "", "garbage", "t=abc,v1=00", "t=123"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(WebhookSignatureError):
            verify_webhook_signature(b"{}", header, SECRET)

    def test_unconfigured_secret(self):
        payload, header = signed_webhook("x", {}, secret=SECRET)
        with pytest.raises(ConfigurationError):
            verify_webhook_signature(payload, header, "")

    def test_signed_but_not_an_event(self):
        payload = b"not json"
        ts = int(time.time())
        header = f"t={ts},v1={compute_signature(ts, payload, SECRET)}"
        with pytest.raises(ValidationError) as exc_info:
            verify_webhook_signature(payload, header, SECRET)

        assert not isinstance(exc_info.value, WebhookSignatureError)
