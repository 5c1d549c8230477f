"""Correlation context for request tracing."""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

current_correlation_id: ContextVar[str | None] = ContextVar(
    "correlation_id", default=None
)


class CorrelationFilter(logging.Filter):
    """Logging filter that adds the current correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = current_correlation_id.get() or "-"
        return True


@contextmanager
def with_correlation(correlation_id: str | None = None) -> Iterator[str]:
    """Context manager to set correlation ID for a block of code.

    Usage:
        with with_correlation(request_id):
            logger.info("Accepting ride")  # Will include correlation_id in log
    """
    correlation_id = correlation_id or uuid.uuid4().hex
    token = current_correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        current_correlation_id.reset(token)


def get_current_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return current_correlation_id.get()
