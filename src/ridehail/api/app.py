"""FastAPI application factory for the ride-hailing API."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from ridehail.accounts import AccountService, TokenService
from ridehail.api.errors import ridehail_error_handler
from ridehail.api.middleware import CorrelationIdMiddleware, SecurityHeadersMiddleware
from ridehail.api.models.health import HealthResponse, HealthStatus, ServiceHealth
from ridehail.api.rate_limit import limiter, rate_limit_exceeded_handler
from ridehail.api.redis_subscriber import RedisSubscriber
from ridehail.api.routes import auth, drivers, messages, passengers, payments
from ridehail.api.websocket import manager as connection_manager
from ridehail.api.websocket import router as websocket_router
from ridehail.core.exceptions import RideHailError
from ridehail.fare import FareCalculator
from ridehail.matching import MatchingService
from ridehail.messaging import MessagingService
from ridehail.payments import PaymentProcessor, PaymentService
from ridehail.pubsub import EventPublisher
from ridehail.ratings import RatingAggregator
from ridehail.rides import RideLifecycle
from ridehail.settings import Settings, get_settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


def create_app(
    session_factory: sessionmaker[Session],
    publisher: EventPublisher,
    processor: PaymentProcessor,
    settings: Settings | None = None,
    redis_client: Redis[str] | None = None,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        session_factory: SQLAlchemy session factory bound to the ride database
        publisher: Realtime publisher used after each committed write
        processor: Card payment processor client
        settings: Application settings (loaded from the environment when omitted)
        redis_client: Async Redis client for WebSocket delivery (optional)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        """Manage application startup and shutdown."""
        subscriber = None
        if redis_client is not None:
            subscriber = RedisSubscriber(redis_client, connection_manager)
            app.state.subscriber = subscriber
            await subscriber.start()
        yield
        if subscriber is not None:
            await subscriber.stop()

    app = FastAPI(
        title="Ride-Hailing API",
        version="1.0.0",
        description="Passenger and driver API for booking, matching and paying for rides",
        lifespan=lifespan,
    )

    # Auto-instrument FastAPI (generates traces for all HTTP requests)
    FastAPIInstrumentor.instrument_app(app)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RideHailError, ridehail_error_handler)  # type: ignore[arg-type]

    # Set services immediately (not in lifespan) so they're available for testing
    tokens = TokenService(settings.auth)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.redis_client = redis_client
    app.state.connection_manager = connection_manager
    app.state.tokens = tokens
    app.state.accounts = AccountService(session_factory, tokens)
    app.state.lifecycle = RideLifecycle(
        session_factory,
        publisher,
        fare_calculator=FareCalculator(settings.fare),
        matching_settings=settings.matching,
    )
    app.state.matching = MatchingService(session_factory, publisher, settings.matching)
    app.state.ratings = RatingAggregator(session_factory, publisher)
    app.state.payments = PaymentService(session_factory, processor, publisher, settings.payment)
    app.state.messaging = MessagingService(session_factory, publisher)

    origins = settings.cors.origins.split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(passengers.router, prefix="/passengers", tags=["passengers"])
    app.include_router(drivers.router, prefix="/drivers", tags=["drivers"])
    app.include_router(payments.router, prefix="/payments", tags=["payments"])
    app.include_router(messages.router, prefix="/messages", tags=["messages"])
    app.include_router(websocket_router)

    def _determine_status(
        latency_ms: float | None, threshold_degraded: float = 100
    ) -> HealthStatus:
        if latency_ms is None:
            return "unhealthy"
        return "healthy" if latency_ms < threshold_degraded else "degraded"

    def check_database() -> ServiceHealth:
        try:
            start = time.perf_counter()
            with session_factory() as session:
                session.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000
            return ServiceHealth(
                status=_determine_status(latency_ms),
                latency_ms=round(latency_ms, 2),
                message="Connected",
            )
        except Exception as e:
            return ServiceHealth(status="unhealthy", message=f"Query failed: {str(e)[:50]}")

    async def check_redis() -> ServiceHealth:
        if redis_client is None:
            return ServiceHealth(status="degraded", message="Realtime delivery disabled")
        try:
            start = time.perf_counter()
            await redis_client.ping()
            latency_ms = (time.perf_counter() - start) * 1000
            return ServiceHealth(
                status=_determine_status(latency_ms),
                latency_ms=round(latency_ms, 2),
                message="Connected",
            )
        except Exception as e:
            return ServiceHealth(status="unhealthy", message=f"Connection failed: {str(e)[:50]}")

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint for monitoring (unauthenticated for infrastructure)."""
        database_health = await asyncio.to_thread(check_database)
        redis_health = await check_redis()

        overall: HealthStatus
        if database_health.status == "unhealthy":
            overall = "unhealthy"
        elif database_health.status == "healthy" and redis_health.status == "healthy":
            overall = "healthy"
        else:
            overall = "degraded"

        return HealthResponse(
            status=overall,
            database=database_health,
            redis=redis_health,
            timestamp=datetime.now(UTC).isoformat(),
        )

    return app
