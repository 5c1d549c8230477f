"""Unit-of-work boundaries for ride, payment and rating writes."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit when the block finishes, roll back and re-raise on any exception.

    A lifecycle step writes the ride row, the payment and its notifications
    inside one of these, so a failed compare-and-set leaves none of them behind.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


@contextmanager
def savepoint(session: Session) -> Iterator[Session]:
    """Nested transaction; an exception undoes only the writes made inside it.

    The seed command wraps each generated account in one so a username or
    plate collision skips that account and keeps the rest of the batch.
    """
    nested = session.begin_nested()
    try:
        yield session
        nested.commit()
    except Exception:
        nested.rollback()
        raise
