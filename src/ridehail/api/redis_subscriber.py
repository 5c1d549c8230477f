"""Redis pub/sub subscriber for WebSocket delivery."""

import asyncio
import contextlib
import json
import logging
from typing import Any

import redis.asyncio as redis

from ridehail.pubsub import (
    ALL_CHANNELS,
    CHANNEL_DRIVER_LOCATIONS,
    CHANNEL_NOTIFICATIONS,
    CHANNEL_RIDE_MESSAGES,
    CHANNEL_RIDE_UPDATES,
)

from .websocket import ConnectionManager

logger = logging.getLogger(__name__)

# Map Redis channels to WebSocket message types
CHANNEL_TO_MESSAGE_TYPE = {
    CHANNEL_RIDE_UPDATES: "ride_update",
    CHANNEL_DRIVER_LOCATIONS: "driver_location",
    CHANNEL_RIDE_MESSAGES: "ride_message",
    CHANNEL_NOTIFICATIONS: "notification",
}


class RedisSubscriber:
    """Subscribes to Redis pub/sub and forwards each message to its recipients."""

    def __init__(self, redis_client: Any, connection_manager: ConnectionManager):
        self.redis_client = redis_client
        self.connection_manager = connection_manager
        self.channels = list(ALL_CHANNELS)
        self.task: asyncio.Task[None] | None = None
        self.reconnect_delay = 5
        self._subscribed = asyncio.Event()

    async def start(self) -> None:
        """Start the subscriber and wait for the subscription to be established."""
        self.task = asyncio.create_task(self._subscribe_and_deliver())
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=10.0)
            logger.info("Redis subscriber ready - subscribed to all channels")
        except TimeoutError:
            logger.warning("Redis subscription timeout - proceeding anyway")

    async def stop(self) -> None:
        if self.task:
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task

    async def handle_message(self, channel: str | bytes, raw: str | bytes) -> int:
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")

        message_type = CHANNEL_TO_MESSAGE_TYPE.get(channel)
        if not message_type:
            return 0

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from Redis: {raw!r}")
            return 0

        return await self.connection_manager.deliver(message_type, payload)

    async def _subscribe_and_deliver(self) -> None:
        while True:
            try:
                pubsub = self.redis_client.pubsub()
                await pubsub.subscribe(*self.channels)
                self._subscribed.set()
                logger.info(f"Subscribed to Redis channels: {self.channels}")

                async for message in pubsub.listen():
                    if message["type"] == "message":
                        try:
                            await self.handle_message(message["channel"], message["data"])
                        except Exception as e:
                            logger.warning(f"Error delivering message: {e}")

            except redis.ConnectionError:
                logger.error(f"Redis disconnected, reconnecting in {self.reconnect_delay}s...")
                await asyncio.sleep(self.reconnect_delay)
            except asyncio.CancelledError:
                break
