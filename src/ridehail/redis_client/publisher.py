import json
import logging
from typing import Any

import redis
from opentelemetry import trace
from redis.exceptions import RedisError

from ridehail.core.correlation import get_current_correlation_id
from ridehail.pubsub.channels import ALL_CHANNELS
from ridehail.settings import RedisSettings

logger = logging.getLogger(__name__)


_tracer = trace.get_tracer(__name__)


class RedisPublisher:
    """Synchronous Redis publisher for realtime ride events.

    Publishing is best-effort: a Redis outage is logged and swallowed so a
    committed ride write never fails because fan-out did.
    """

    def __init__(self, settings: RedisSettings, client: redis.Redis | None = None):
        self.settings = settings
        self._client = client or redis.Redis(
            host=settings.host,
            port=settings.port,
            db=settings.db,
            password=settings.password,
            decode_responses=True,
        )

    def publish_sync(self, channel: str, message: dict[str, Any]) -> None:
        """Synchronous publish method."""
        if channel not in ALL_CHANNELS:
            raise ValueError(
                f"Channel '{channel}' is not a valid channel. Valid channels: {ALL_CHANNELS}"
            )

        with _tracer.start_as_current_span("redis.publish") as span:
            span.set_attribute("db.system", "redis")
            span.set_attribute("db.redis.channel", channel)

            correlation_id = get_current_correlation_id()
            if correlation_id:
                span.set_attribute("correlation_id", correlation_id)

            try:
                self._client.publish(channel, json.dumps(message, default=str))
            except RedisError as e:
                span.record_exception(e)
                logger.error(f"Failed to publish to channel {channel}: {e}")

    def close(self) -> None:
        self._client.close()
