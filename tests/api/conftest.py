import pytest
from fastapi.testclient import TestClient

from ridehail.api import create_app
from ridehail.api.rate_limit import limiter, ws_limiter
from ridehail.settings import Settings
from tests.factories import register_over_http


@pytest.fixture
def app(session_factory, publisher, processor):
    """App wired to the test database, a recording publisher and the fake processor."""
    limiter.reset()
    ws_limiter.reset()
    return create_app(session_factory, publisher, processor, settings=Settings())


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def passenger_headers(client) -> dict[str, str]:
    return register_over_http(client, "pat", "0123456789")


@pytest.fixture
def driver_headers(client) -> dict[str, str]:
    return register_over_http(client, "dev", "0131112222", role="driver", plate="WQA 1010")
