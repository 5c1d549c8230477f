"""
Ride-Hailing Backend - Entry Point

Wires the database, realtime publisher and payment processor into the
FastAPI app and serves it with uvicorn.
"""

import logging
import os

import uvicorn
from redis.asyncio import Redis

from ridehail.api.app import create_app
from ridehail.db import init_database
from ridehail.payments import StripeClient
from ridehail.pubsub import EventPublisher, NullPublisher
from ridehail.redis_client import RedisPublisher
from ridehail.ride_logging import setup_logging
from ridehail.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_publisher(settings: Settings) -> EventPublisher:
    """Redis publisher when enabled, otherwise a publisher that only logs."""
    if not settings.redis.enabled:
        logger.info("Redis disabled, realtime events will not be delivered")
        return NullPublisher()
    return RedisPublisher(settings.redis)


def create_async_redis_client(settings: Settings) -> "Redis[str] | None":
    """Create async Redis client for WebSocket delivery."""
    if not settings.redis.enabled:
        return None
    return Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
        password=settings.redis.password or None,
        decode_responses=True,
    )


def main() -> None:
    """Main entry point - initializes and runs the API service."""
    settings = get_settings()

    setup_logging(
        level=settings.logging.level,
        json_output=settings.logging.format == "json",
        environment=settings.logging.environment,
    )

    logger.info("Starting ride-hailing service...")

    session_factory = init_database(settings.database.url, echo=settings.database.echo)
    publisher = create_publisher(settings)
    processor = StripeClient(settings.payment)
    if not settings.payment.api_key:
        logger.warning("STRIPE_API_KEY not set, card payment endpoints will fail")

    app = create_app(
        session_factory=session_factory,
        publisher=publisher,
        processor=processor,
        settings=settings,
        redis_client=create_async_redis_client(settings),
    )

    port = int(os.environ.get("PORT", "8000"))
    logger.info(f"Starting ride-hailing service on port {port}")
    try:
        uvicorn.run(
            app,
            host="0.0.0.0",
            port=port,
            log_level="info",
        )
    finally:
        processor.close()
        if isinstance(publisher, RedisPublisher):
            publisher.close()
        logger.info("Ride-hailing service stopped")


if __name__ == "__main__":
    main()
