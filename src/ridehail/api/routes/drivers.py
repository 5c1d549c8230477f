from fastapi import APIRouter, status

from ridehail.accounts.models import AccountView, UpdateVehicleRequest
from ridehail.api.dependencies import (
    AccountsDep,
    DriverDep,
    LifecycleDep,
    MatchingDep,
    RatingsDep,
)
from ridehail.api.models.rides import (
    AvailabilityRequest,
    AvailabilityResponse,
    LocationRequest,
    LocationResponse,
    NearbyRideResponse,
    PickupStatusRequest,
    WalletResponse,
)
from ridehail.core.exceptions import NotFoundError
from ridehail.rating import PassengerRatingScores, Rating
from ridehail.ride import Ride
from ridehail.rides import RideCompletion

router = APIRouter()


@router.put("/profile/vehicle", response_model=AccountView)
def update_vehicle(
    body: UpdateVehicleRequest, principal: DriverDep, accounts: AccountsDep
) -> AccountView:
    return accounts.update_vehicle(principal.account_id, body)


@router.put("/availability", response_model=AvailabilityResponse)
def set_availability(
    body: AvailabilityRequest, principal: DriverDep, matching: MatchingDep
) -> AvailabilityResponse:
    return AvailabilityResponse(available=matching.set_availability(principal, body.available))


@router.put("/location", response_model=LocationResponse)
def update_location(
    body: LocationRequest, principal: DriverDep, matching: MatchingDep
) -> LocationResponse:
    ride_id = matching.update_location(principal, body.latitude, body.longitude)
    return LocationResponse(active_ride_id=ride_id)


@router.get("/rides/nearby", response_model=list[NearbyRideResponse])
def nearby_rides(principal: DriverDep, matching: MatchingDep) -> list[NearbyRideResponse]:
    """Pending rides within the matching radius, nearest first."""
    return [
        NearbyRideResponse(ride=n.ride, distance_km=n.distance_km)
        for n in matching.nearby_rides(principal)
    ]


@router.get("/rides", response_model=list[Ride])
def ride_history(principal: DriverDep, lifecycle: LifecycleDep) -> list[Ride]:
    return lifecycle.history(principal)


@router.get("/rides/active", response_model=Ride | None)
def active_ride(principal: DriverDep, lifecycle: LifecycleDep) -> Ride | None:
    return lifecycle.active(principal)


@router.get("/rides/{ride_id}", response_model=Ride)
def get_ride(ride_id: str, principal: DriverDep, lifecycle: LifecycleDep) -> Ride:
    return lifecycle.get(principal, ride_id)


@router.post("/rides/{ride_id}/accept", response_model=Ride)
def accept_ride(ride_id: str, principal: DriverDep, lifecycle: LifecycleDep) -> Ride:
    return lifecycle.accept(principal, ride_id)


@router.post("/rides/{ride_id}/reject", response_model=Ride)
def reject_ride(ride_id: str, principal: DriverDep, lifecycle: LifecycleDep) -> Ride:
    return lifecycle.reject(principal, ride_id)


@router.put("/rides/{ride_id}/pickup-status", response_model=Ride)
def update_pickup_status(
    ride_id: str, body: PickupStatusRequest, principal: DriverDep, lifecycle: LifecycleDep
) -> Ride:
    return lifecycle.update_pickup(principal, ride_id, body.pickup_status)


@router.post("/rides/{ride_id}/complete", response_model=RideCompletion)
def complete_ride(ride_id: str, principal: DriverDep, lifecycle: LifecycleDep) -> RideCompletion:
    return lifecycle.complete(principal, ride_id)


@router.post(
    "/rides/{ride_id}/rating", response_model=Rating, status_code=status.HTTP_201_CREATED
)
def rate_passenger(
    ride_id: str, body: PassengerRatingScores, principal: DriverDep, ratings: RatingsDep
) -> Rating:
    return ratings.rate_passenger(principal, ride_id, body)


@router.get("/wallet", response_model=WalletResponse)
def wallet(principal: DriverDep, accounts: AccountsDep, lifecycle: LifecycleDep) -> WalletResponse:
    driver = accounts.get_account(principal.account_id).driver
    if driver is None:
        raise NotFoundError("Driver profile not found")
    return WalletResponse(
        wallet_balance=driver.wallet_balance,
        total_earnings=driver.total_earnings,
        completed_ride_count=driver.completed_ride_count,
        currency=lifecycle.fare_calculator.currency,
    )
