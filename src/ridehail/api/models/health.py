from typing import Literal

from pydantic import BaseModel

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class ServiceHealth(BaseModel):
    """One dependency's check result; ``message`` carries the error when it fails."""

    status: HealthStatus
    latency_ms: float | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    """Overall status is degraded when Redis is down, unhealthy when the database is."""

    status: HealthStatus
    database: ServiceHealth
    redis: ServiceHealth
    timestamp: str
