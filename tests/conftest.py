import os

# Secrets have no usable defaults (services must fail without them).
# Provide test values so Settings() and TokenService can be constructed in tests.
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-that-is-at-least-32-bytes")
os.environ.setdefault("STRIPE_API_KEY", "sk_test_ridehail")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_ridehail")
os.environ.setdefault("REDIS_ENABLED", "false")

from collections.abc import Callable
from typing import Any

import pytest

from ridehail.accounts import AccountService, Principal, TokenService
from ridehail.db import init_database
from ridehail.matching import MatchingService
from ridehail.messaging import MessagingService
from ridehail.payments import PaymentService
from ridehail.ratings import RatingAggregator
from ridehail.rides import RideLifecycle
from ridehail.settings import AuthSettings, PaymentSettings
from tests.factories import (
    FakeProcessor,
    RecordingPublisher,
    register_driver,
    register_passenger,
)


@pytest.fixture
def temp_sqlite_db(tmp_path):
    """Temporary SQLite database for persistence tests."""
    return tmp_path / "test_ridehail.db"


@pytest.fixture
def session_factory(temp_sqlite_db):
    return init_database(str(temp_sqlite_db))


@pytest.fixture
def publisher() -> RecordingPublisher:
    """Publisher that keeps every message instead of sending it."""
    return RecordingPublisher()


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(AuthSettings())


@pytest.fixture
def accounts(session_factory, tokens) -> AccountService:
    return AccountService(session_factory, tokens)


@pytest.fixture
def lifecycle(session_factory, publisher) -> RideLifecycle:
    return RideLifecycle(session_factory, publisher)


@pytest.fixture
def matching(session_factory, publisher) -> MatchingService:
    return MatchingService(session_factory, publisher)


@pytest.fixture
def ratings(session_factory, publisher) -> RatingAggregator:
    return RatingAggregator(session_factory, publisher)


@pytest.fixture
def messaging(session_factory, publisher) -> MessagingService:
    return MessagingService(session_factory, publisher)


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by retry loops, recorded instead of slept."""
    return []


@pytest.fixture
def payments(session_factory, processor, publisher, sleeps) -> PaymentService:
    settings = PaymentSettings(reconcile_max_attempts=3, reconcile_base_delay=0.5)
    return PaymentService(
        session_factory, processor, publisher, settings=settings, sleep=sleeps.append
    )


@pytest.fixture
def passenger(accounts) -> Principal:
    return register_passenger(accounts, "alice")


@pytest.fixture
def other_passenger(accounts) -> Principal:
    return register_passenger(accounts, "bob", phone_number="0129876543")


@pytest.fixture
def driver(accounts) -> Principal:
    return register_driver(accounts, "dan", phone_number="0131112222", plate="WXY 1234")


@pytest.fixture
def second_driver(accounts) -> Principal:
    return register_driver(accounts, "dina", phone_number="0143334444", plate="VAB 5678")


@pytest.fixture
def online_driver(matching, driver) -> Principal:
    """Driver who is available and parked a short walk from the default pickup."""
    matching.set_availability(driver, True)
    matching.update_location(driver, 3.1400, 101.6875)
    return driver


@pytest.fixture
def make_ride(lifecycle) -> Callable[..., Any]:
    """Book a ride for a passenger with the default KL pickup and dropoff."""
    from tests.factories import ride_request

    def _make(principal: Principal, **kwargs: Any):
        return lifecycle.request(principal, ride_request(**kwargs))

    return _make
