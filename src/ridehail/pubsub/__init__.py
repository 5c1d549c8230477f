"""Realtime channel definitions and publisher contract."""

from .channels import (
    ALL_CHANNELS,
    CHANNEL_DRIVER_LOCATIONS,
    CHANNEL_NOTIFICATIONS,
    CHANNEL_RIDE_MESSAGES,
    CHANNEL_RIDE_UPDATES,
    DriverLocationMessage,
    EventPublisher,
    NotificationMessage,
    NullPublisher,
    RideMessageEvent,
    RideUpdateMessage,
)
from .outbox import EventBuffer

__all__ = [
    "ALL_CHANNELS",
    "CHANNEL_DRIVER_LOCATIONS",
    "CHANNEL_NOTIFICATIONS",
    "CHANNEL_RIDE_MESSAGES",
    "CHANNEL_RIDE_UPDATES",
    "DriverLocationMessage",
    "EventBuffer",
    "EventPublisher",
    "NotificationMessage",
    "NullPublisher",
    "RideMessageEvent",
    "RideUpdateMessage",
]
