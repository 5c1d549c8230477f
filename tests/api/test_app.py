"""HTTP tests for the ride-hailing API."""

import pytest

from ridehail.pubsub import CHANNEL_RIDE_UPDATES
from tests.factories import DROPOFF, PASSWORD, PICKUP, register_over_http, signed_webhook

RIDE_BODY = {
    "pickup": PICKUP.model_dump(),
    "dropoff": DROPOFF.model_dump(),
    "payment_method": "cash",
}


def _go_online(client, headers, lat=3.1400, lng=101.6875):
    assert client.put("/drivers/availability", json={"available": True}, headers=headers).status_code == 200
    assert (
        client.put("/drivers/location", json={"latitude": lat, "longitude": lng}, headers=headers)
        .status_code
        == 200
    )


def _book(client, headers, **overrides):
    response = client.post("/passengers/rides", json={**RIDE_BODY, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _drive_to_completion(client, headers, ride_id):
    assert client.post(f"/drivers/rides/{ride_id}/accept", headers=headers).status_code == 200
    response = client.put(
        f"/drivers/rides/{ride_id}/pickup-status",
        json={"pickup_status": "successful"},
        headers=headers,
    )
    assert response.json()["status"] == "in-progress"
    response = client.post(f"/drivers/rides/{ride_id}/complete", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.unit
class TestAuthEndpoints:
    def test_register_returns_token_and_account(self, client):
        response = client.post(
            "/auth/register",
            json={
                "username": "siti",
                "password": PASSWORD,
                "first_name": "Siti",
                "last_name": "Aminah",
                "phone_number": "+60123456789",
                "email": "Siti@Example.com",
                "role": "passenger",
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["role"] == "passenger"
        assert body["token"]
        assert body["account"]["email"] == "siti@example.com"
        assert body["account"]["roles"] == ["passenger"]
        assert "password" not in str(body)

    def test_login_by_phone_and_me(self, client, passenger_headers):
        response = client.post("/auth/login", json={"identifier": "0123456789", "password": PASSWORD})
        assert response.status_code == 200
        token = response.json()["token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["username"] == "pat"

    def test_wrong_password(self, client, passenger_headers):
        response = client.post("/auth/login", json={"identifier": "pat", "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"
        assert response.headers["www-authenticate"] == "Bearer"

    def test_duplicate_registration(self, client, passenger_headers):
        response = client.post(
            "/auth/register",
            json={
                "username": "pat",
                "password": PASSWORD,
                "first_name": "Pat",
                "last_name": "Lee",
                "phone_number": "0199999999",
                "role": "passenger",
            },
        )
        assert response.status_code == 400
        assert response.json()["details"]["fields"] == ["username"]

    def test_invalid_body_is_422(self, client):
        response = client.post("/auth/register", json={"username": "x"})
        assert response.status_code == 422

    def test_link_driver_role(self, client, passenger_headers):
        response = client.post(
            "/auth/roles",
            json={
                "role": "driver",
                "vehicle": {
                    "vehicle_model": "Perodua Bezza",
                    "vehicle_color": "Red",
                    "plate_number": "bkl 77",
                },
            },
            headers=passenger_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["role"] == "driver"
        assert body["account"]["roles"] == ["passenger", "driver"]
        assert body["account"]["driver"]["plate_number"] == "BKL 77"

        login = client.post(
            "/auth/login", json={"identifier": "pat", "password": PASSWORD, "role": "driver"}
        )
        assert login.json()["role"] == "driver"

    def test_change_password(self, client, passenger_headers):
        response = client.post(
            "/auth/password",
            json={"current_password": PASSWORD, "new_password": "a-brand-new-secret"},
            headers=passenger_headers,
        )
        assert response.status_code == 204

        old = client.post("/auth/login", json={"identifier": "pat", "password": PASSWORD})
        new = client.post("/auth/login", json={"identifier": "pat", "password": "a-brand-new-secret"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_verify_phone(self, client, passenger_headers):
        response = client.post(
            "/auth/verify-phone", json={"verification_code": "123456"}, headers=passenger_headers
        )
        assert response.json()["phone_verified"] is True

    def test_login_is_rate_limited(self, client, monkeypatch):
        monkeypatch.setenv("AUTH_LOGIN_RATE_LIMIT", "2/minute")
        body = {"identifier": "nobody", "password": "whatever"}

        statuses = [client.post("/auth/login", json=body).status_code for _ in range(3)]

        assert statuses == [401, 401, 429]
        limited = client.post("/auth/login", json=body)
        assert limited.json()["error"] == "rate_limited"
        assert limited.headers["retry-after"] == "60"


@pytest.mark.unit
class TestAccessControl:
    def test_missing_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_passenger_cannot_use_driver_routes(self, client, passenger_headers):
        response = client.get("/drivers/wallet", headers=passenger_headers)
        assert response.status_code == 403
        assert response.json() == {
            "error": "authorization_error",
            "detail": "Driver role required",
        }

    def test_driver_cannot_book(self, client, driver_headers):
        response = client.post("/passengers/rides", json=RIDE_BODY, headers=driver_headers)
        assert response.status_code == 403


@pytest.mark.unit
class TestMiddleware:
    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert "frame-ancestors 'none'" in response.headers["content-security-policy"]
        assert "cache-control" not in response.headers

    def test_authenticated_responses_not_cached(self, client, passenger_headers):
        response = client.get("/auth/me", headers=passenger_headers)
        assert response.headers["cache-control"] == "no-store"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "trace-abc-123"})
        assert response.headers["x-request-id"] == "trace-abc-123"

    def test_request_id_minted(self, client):
        assert client.get("/health").headers["x-request-id"]

    def test_health_without_redis(self, client):
        body = client.get("/health").json()
        assert body["database"]["status"] in ("healthy", "degraded")
        assert body["redis"]["status"] == "degraded"
        assert body["status"] == "degraded"


@pytest.mark.integration
class TestRideOverHttp:
    def test_cash_ride_flow(self, client, publisher, passenger_headers, driver_headers):
        _go_online(client, driver_headers)

        estimate = client.post(
            "/passengers/estimate",
            json={"pickup": RIDE_BODY["pickup"], "dropoff": RIDE_BODY["dropoff"]},
            headers=passenger_headers,
        ).json()
        assert estimate["estimate"]["fare"] == pytest.approx(6.03, abs=0.01)
        assert estimate["estimate"]["estimated_duration_min"] == 7
        assert estimate["available_drivers"] == 1

        ride = _book(client, passenger_headers)
        assert ride["status"] == "pending"

        nearby = client.get("/drivers/rides/nearby", headers=driver_headers).json()
        assert [n["ride"]["ride_id"] for n in nearby] == [ride["ride_id"]]

        completion = _drive_to_completion(client, driver_headers, ride["ride_id"])
        assert completion["ride"]["status"] == "completed"
        assert completion["payment"]["status"] == "completed"

        rating = client.post(
            f"/passengers/rides/{ride['ride_id']}/rating",
            json={"driving_skills": 5, "friendliness": 4, "car_cleanliness": 5, "punctuality": 5},
            headers=passenger_headers,
        )
        assert rating.status_code == 201
        assert rating.json()["overall_score"] == pytest.approx(4.75)

        wallet = client.get("/drivers/wallet", headers=driver_headers).json()
        assert wallet == {
            "wallet_balance": 0.0,
            "total_earnings": pytest.approx(ride["fare"]),
            "completed_ride_count": 1,
            "currency": "myr",
        }
        me = client.get("/auth/me", headers=driver_headers).json()
        assert me["driver"]["rating"] == 4.8

        history = client.get("/passengers/rides", headers=passenger_headers).json()
        assert [r["status"] for r in history] == ["completed"]
        statuses = [m["status"] for m in publisher.on(CHANNEL_RIDE_UPDATES)]
        assert statuses == ["pending", "accepted", "in-progress", "completed"]

    def test_second_active_ride_conflicts(self, client, passenger_headers):
        first = _book(client, passenger_headers)

        response = client.post("/passengers/rides", json=RIDE_BODY, headers=passenger_headers)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "guard_violation"
        assert body["details"]["ride_id"] == first["ride_id"]

    def test_same_pickup_and_dropoff_rejected(self, client, passenger_headers):
        response = client.post(
            "/passengers/rides",
            json={**RIDE_BODY, "dropoff": RIDE_BODY["pickup"]},
            headers=passenger_headers,
        )
        assert response.status_code == 422

    def test_active_ride_and_cancel(self, client, passenger_headers):
        assert client.get("/passengers/rides/active", headers=passenger_headers).json() is None
        ride = _book(client, passenger_headers)
        active = client.get("/passengers/rides/active", headers=passenger_headers).json()
        assert active["ride_id"] == ride["ride_id"]

        cancelled = client.post(f"/passengers/rides/{ride['ride_id']}/cancel", headers=passenger_headers)
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["cancelled_by"] == "passenger"

    def test_unknown_ride(self, client, passenger_headers):
        response = client.get("/passengers/rides/does-not-exist", headers=passenger_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_second_driver_gets_conflict(self, client, passenger_headers, driver_headers):
        other_driver = register_over_http(
            client, "dex", "0145556666", role="driver", plate="JQK 4321"
        )
        ride = _book(client, passenger_headers)

        first = client.post(f"/drivers/rides/{ride['ride_id']}/accept", headers=driver_headers)
        second = client.post(f"/drivers/rides/{ride['ride_id']}/accept", headers=other_driver)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["detail"] == "Ride is no longer available"

    def test_chat_and_notifications(self, client, passenger_headers, driver_headers):
        ride = _book(client, passenger_headers)
        client.post(f"/drivers/rides/{ride['ride_id']}/accept", headers=driver_headers)

        sent = client.post(
            "/messages",
            json={"ride_id": ride["ride_id"], "body": "Blue gate, near the lobby"},
            headers=passenger_headers,
        )
        assert sent.status_code == 201

        thread = client.get(f"/messages/rides/{ride['ride_id']}", headers=driver_headers).json()
        assert [m["body"] for m in thread] == ["Blue gate, near the lobby"]
        read = client.put(f"/messages/{thread[0]['message_id']}/read", headers=driver_headers)
        assert read.json()["is_read"] is True

        inbox = client.get("/messages/notifications", headers=passenger_headers).json()
        assert inbox[0]["type"] == "ride_accepted"
        marked = client.put(
            f"/messages/notifications/{inbox[0]['notification_id']}/read",
            headers=passenger_headers,
        )
        assert marked.json()["is_read"] is True

    def test_passenger_profile_endpoints(self, client, passenger_headers):
        contacts = client.put(
            "/passengers/emergency-contacts",
            json=[{"name": "Mum", "phone_number": "0177777777", "relationship": "mother"}],
            headers=passenger_headers,
        )
        assert contacts.json()["passenger"]["emergency_contacts"][0]["name"] == "Mum"

        card = {
            "processor_method_id": "pm_card_visa",
            "brand": "visa",
            "last4": "4242",
            "exp_month": 12,
            "exp_year": 2030,
        }
        added = client.post("/passengers/payment-methods", json=card, headers=passenger_headers)
        assert added.status_code == 201
        again = client.post("/passengers/payment-methods", json=card, headers=passenger_headers)
        assert again.status_code == 409


@pytest.mark.integration
class TestCardPaymentOverHttp:
    @pytest.fixture
    def completed_card_ride(self, client, passenger_headers, driver_headers):
        ride = _book(client, passenger_headers, payment_method="card")
        completion = _drive_to_completion(client, driver_headers, ride["ride_id"])
        assert completion["payment"]["status"] == "pending"
        return ride

    def test_intent_then_confirm(
        self, client, processor, passenger_headers, driver_headers, completed_card_ride
    ):
        ride_id = completed_card_ride["ride_id"]
        handle = client.post(
            "/payments/intent", json={"ride_id": ride_id}, headers=passenger_headers
        ).json()
        assert handle["client_secret"]

        processor.set_status(handle["intent_id"], "succeeded")
        confirmed = client.post(
            "/payments/confirm",
            json={"payment_intent_id": handle["intent_id"]},
            headers=passenger_headers,
        )

        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "completed"
        wallet = client.get("/drivers/wallet", headers=driver_headers).json()
        assert wallet["wallet_balance"] == pytest.approx(completed_card_ride["fare"])

    def test_confirm_before_payment_succeeds(
        self, client, passenger_headers, completed_card_ride
    ):
        handle = client.post(
            "/payments/intent",
            json={"ride_id": completed_card_ride["ride_id"]},
            headers=passenger_headers,
        ).json()
        response = client.post(
            "/payments/confirm",
            json={"payment_intent_id": handle["intent_id"]},
            headers=passenger_headers,
        )
        assert response.status_code == 409

    def test_canceled_payment_is_502(
        self, client, processor, passenger_headers, completed_card_ride
    ):
        handle = client.post(
            "/payments/intent",
            json={"ride_id": completed_card_ride["ride_id"]},
            headers=passenger_headers,
        ).json()
        processor.set_status(handle["intent_id"], "canceled")

        response = client.post(
            "/payments/confirm",
            json={"payment_intent_id": handle["intent_id"]},
            headers=passenger_headers,
        )

        assert response.status_code == 502
        assert response.json()["error"] == "external_service_error"

    def test_processor_outage_is_503(
        self, client, processor, passenger_headers, completed_card_ride
    ):
        handle = client.post(
            "/payments/intent",
            json={"ride_id": completed_card_ride["ride_id"]},
            headers=passenger_headers,
        ).json()
        client.app.state.payments.settings.reconcile_base_delay = 0.0
        processor.unavailable_for = 10

        response = client.post(
            "/payments/confirm",
            json={"payment_intent_id": handle["intent_id"]},
            headers=passenger_headers,
        )

        assert response.status_code == 503
        assert response.json()["error"] == "processor_unavailable"

    def test_webhook_settles_once(
        self, client, processor, passenger_headers, driver_headers, completed_card_ride
    ):
        handle = client.post(
            "/payments/intent",
            json={"ride_id": completed_card_ride["ride_id"]},
            headers=passenger_headers,
        ).json()
        intent = processor.set_status(handle["intent_id"], "succeeded")
        payload, signature = signed_webhook("payment_intent.succeeded", intent.model_dump())

        for expected in (True, False):
            response = client.post(
                "/payments/webhook", content=payload, headers={"Stripe-Signature": signature}
            )
            assert response.status_code == 200
            assert response.json()["handled"] is expected

        history = client.get("/payments/history", headers=driver_headers).json()
        assert [p["status"] for p in history] == ["completed"]

    def test_webhook_bad_signature(self, client):
        payload, _ = signed_webhook("payment_intent.succeeded", {"id": "pi_x"})
        response = client.post(
            "/payments/webhook", content=payload, headers={"Stripe-Signature": "t=1,v1=bad"}
        )
        assert response.status_code == 400

    def test_webhook_missing_signature(self, client):
        payload, _ = signed_webhook("payment_intent.succeeded", {"id": "pi_x"})
        assert client.post("/payments/webhook", content=payload).status_code == 400
