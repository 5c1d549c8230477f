"""Per-request logging fields (ride, driver, payment ids) carried in a ContextVar."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_fields: ContextVar[dict[str, Any] | None] = ContextVar("ridehail_log_fields", default=None)


class LogContext:
    """Read and replace the fields attached to records logged from this context."""

    @staticmethod
    def set(**kwargs: Any) -> None:
        _fields.set({**LogContext.get(), **kwargs})

    @staticmethod
    def get() -> dict[str, Any]:
        return dict(_fields.get() or {})

    @staticmethod
    def clear() -> None:
        _fields.set(None)


class ContextFilter(logging.Filter):
    """Copies context fields onto each record unless the record already has them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in LogContext.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Add fields for the duration of the block; the enclosing fields come back on exit."""
    token = _fields.set({**LogContext.get(), **kwargs})
    try:
        yield
    finally:
        _fields.reset(token)


@contextmanager
def log_ride_context(ride_id: str, **kwargs: Any) -> Iterator[None]:
    with log_context(ride_id=ride_id, **kwargs):
        yield
