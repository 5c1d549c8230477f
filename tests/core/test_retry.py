"""Tests for retry utilities."""

from unittest.mock import MagicMock

import pytest

from ridehail.core.exceptions import (
    ExternalServiceError,
    ProcessorUnavailableError,
    ValidationError,
)
from ridehail.core.retry import RetryConfig, with_retry_sync


@pytest.mark.unit
class TestRetryConfig:
    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.5
        assert config.multiplier == 2.0
        assert config.max_delay == 30.0
        assert config.retryable_exceptions == (ProcessorUnavailableError,)


@pytest.mark.unit
class TestWithRetrySync:
    def test_returns_first_success(self):
        operation = MagicMock(return_value="ok")
        sleeps: list[float] = []

        assert with_retry_sync(operation, sleep=sleeps.append) == "ok"
        assert operation.call_count == 1
        assert sleeps == []

    def test_retries_with_exponential_backoff(self):
        """Two outages then success: waits 0.5s then 1.0s."""
        operation = MagicMock(
            side_effect=[
                ProcessorUnavailableError("down"),
                ProcessorUnavailableError("down"),
                "ok",
            ]
        )
        sleeps: list[float] = []

        assert with_retry_sync(operation, sleep=sleeps.append) == "ok"
        assert operation.call_count == 3
        assert sleeps == [0.5, 1.0]

    def test_raises_after_max_attempts(self):
        operation = MagicMock(side_effect=ProcessorUnavailableError("down"))
        sleeps: list[float] = []

        with pytest.raises(ProcessorUnavailableError):
            with_retry_sync(operation, config=RetryConfig(max_attempts=4), sleep=sleeps.append)

        assert operation.call_count == 4
        assert len(sleeps) == 3

    def test_delay_is_capped(self):
        operation = MagicMock(side_effect=[ProcessorUnavailableError("down")] * 3 + ["ok"])
        sleeps: list[float] = []
        config = RetryConfig(max_attempts=4, base_delay=10.0, multiplier=10.0, max_delay=15.0)

        with_retry_sync(operation, config=config, sleep=sleeps.append)

        assert sleeps == [10.0, 15.0, 15.0]

    def test_non_retryable_errors_propagate_immediately(self):
        """A 4xx rejection from the processor is not an outage."""
        operation = MagicMock(side_effect=ExternalServiceError("rejected"))
        sleeps: list[float] = []

        with pytest.raises(ExternalServiceError):
            with_retry_sync(operation, sleep=sleeps.append)

        assert operation.call_count == 1
        assert sleeps == []

    def test_custom_retryable_exceptions(self):
        operation = MagicMock(side_effect=[ValidationError("flaky"), "ok"])
        config = RetryConfig(retryable_exceptions=(ValidationError,), base_delay=0.0)

        assert with_retry_sync(operation, config=config, sleep=lambda _: None) == "ok"
