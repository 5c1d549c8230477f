"""Ride state machine and models."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from ridehail.core.exceptions import GuardViolationError


class RideStatus(str, Enum):
    """Ride lifecycle states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def to_event_type(self) -> str:
        """Convert state to realtime event type (e.g., 'ride.accepted')."""
        return f"ride.{self.value}"


class PickupStatus(str, Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})
ACTIVE_DRIVER_STATUSES = frozenset({RideStatus.ACCEPTED, RideStatus.IN_PROGRESS})

# accepted -> pending is the driver "reject" edge that returns a ride to the pool.
VALID_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.PENDING: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.PENDING, RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}


def ensure_transition(current: RideStatus, new: RideStatus) -> None:
    """Raise GuardViolationError unless current -> new is a lifecycle edge."""
    if current in TERMINAL_STATUSES:
        raise GuardViolationError(
            f"Cannot transition from terminal state {current.value}",
            {"from": current.value, "to": new.value},
        )
    if new not in VALID_TRANSITIONS[current]:
        raise GuardViolationError(
            f"Invalid transition from {current.value} to {new.value}",
            {"from": current.value, "to": new.value},
        )


class Place(BaseModel):
    address: str = Field(min_length=1)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    @property
    def point(self) -> tuple[float, float]:
        return (self.lat, self.lng)


class Ride(BaseModel):
    """Ride record as seen by the lifecycle and the API."""

    ride_id: str
    passenger_id: str
    driver_id: str | None = None
    pickup: Place
    dropoff: Place
    distance_km: float
    fare: float
    estimated_duration_min: int
    status: RideStatus = Field(default=RideStatus.PENDING)
    pickup_status: PickupStatus = Field(default=PickupStatus.PENDING)
    payment_method: PaymentMethod
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    cancelled_by: Literal["passenger", "driver"] | None = None
    version: int = 0
    requested_at: datetime | None = None
    accepted_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    def is_party(self, account_id: str) -> bool:
        return account_id in (self.passenger_id, self.driver_id)


class RideRequest(BaseModel):
    """Booking request checked at the boundary before the lifecycle sees it."""

    pickup: Place
    dropoff: Place
    payment_method: PaymentMethod

    @model_validator(mode="after")
    def distinct_endpoints(self) -> "RideRequest":
        if self.pickup.point == self.dropoff.point:
            raise ValueError("Pickup and dropoff must be different places")
        return self
