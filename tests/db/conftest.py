import pytest

from ridehail.db.repositories import AccountRepository
from ridehail.db.transaction import transaction

ACCOUNT_IDS = ("p1", "p2", "d1", "d2")


@pytest.fixture(autouse=True)
def account_rows(session_factory) -> tuple[str, ...]:
    """Bare account rows so repository tests satisfy foreign keys."""
    with session_factory() as session, transaction(session):
        accounts = AccountRepository(session)
        for n, account_id in enumerate(ACCOUNT_IDS):
            accounts.create(
                account_id=account_id,
                username=f"user_{account_id}",
                phone_number=f"01200000{n:02d}",
                first_name="Test",
                last_name=account_id.upper(),
                password_hash="not-a-real-hash",
            )
    return ACCOUNT_IDS
