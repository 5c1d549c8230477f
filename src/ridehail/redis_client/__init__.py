"""Redis client integration for realtime fan-out."""

from .publisher import RedisPublisher

__all__ = ["RedisPublisher"]
