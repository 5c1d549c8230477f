from pydantic import BaseModel, Field

from ridehail.fare import FareEstimate
from ridehail.ride import Place, PickupStatus, Ride


class EstimateRequest(BaseModel):
    pickup: Place
    dropoff: Place


class EstimateResponse(BaseModel):
    """Fare quote plus the driver availability signal for the pickup point."""

    estimate: FareEstimate
    available_drivers: int
    nearest_driver_km: float | None


class NearbyRideResponse(BaseModel):
    ride: Ride
    distance_km: float


class AvailabilityRequest(BaseModel):
    available: bool


class AvailabilityResponse(BaseModel):
    available: bool


class LocationRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class LocationResponse(BaseModel):
    active_ride_id: str | None


class PickupStatusRequest(BaseModel):
    pickup_status: PickupStatus


class WalletResponse(BaseModel):
    wallet_balance: float
    total_earnings: float
    completed_ride_count: int
    currency: str
