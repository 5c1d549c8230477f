"""Pub/sub channel definitions and message schemas for realtime delivery.

Every message names its ``recipients``: the account ids the WebSocket relay
may forward it to.
"""

import logging
from typing import Any, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Channel names
CHANNEL_RIDE_UPDATES = "ride-updates"
CHANNEL_DRIVER_LOCATIONS = "driver-locations"
CHANNEL_RIDE_MESSAGES = "ride-messages"
CHANNEL_NOTIFICATIONS = "notifications"

ALL_CHANNELS = [
    CHANNEL_RIDE_UPDATES,
    CHANNEL_DRIVER_LOCATIONS,
    CHANNEL_RIDE_MESSAGES,
    CHANNEL_NOTIFICATIONS,
]


class RideUpdateMessage(BaseModel):
    """Ride status change with enough context to redraw a ride card."""

    event_type: str
    ride_id: str
    status: str
    passenger_id: str
    driver_id: str | None
    pickup: tuple[float, float]
    dropoff: tuple[float, float]
    fare: float
    recipients: list[str]
    timestamp: str


class DriverLocationMessage(BaseModel):
    driver_id: str
    location: tuple[float, float]
    ride_id: str | None
    recipients: list[str]
    timestamp: str


class RideMessageEvent(BaseModel):
    message_id: str
    ride_id: str
    sender_id: str
    receiver_id: str
    body: str
    recipients: list[str]
    timestamp: str


class NotificationMessage(BaseModel):
    notification_id: str
    type: str
    ride_id: str | None
    message: str
    recipients: list[str]
    timestamp: str


class EventPublisher(Protocol):
    """Anything that can fan a message out on a named channel."""

    def publish_sync(self, channel: str, message: dict[str, Any]) -> None: ...


class NullPublisher:
    """Publisher used when Redis is disabled. Drops every message."""

    def publish_sync(self, channel: str, message: dict[str, Any]) -> None:
        logger.debug(f"Realtime disabled, dropping message on {channel}")
