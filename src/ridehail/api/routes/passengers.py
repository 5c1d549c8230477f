from fastapi import APIRouter, status

from ridehail.accounts.models import (
    AccountView,
    EmergencyContact,
    StoredPaymentMethod,
    UpdateProfileRequest,
)
from ridehail.api.dependencies import (
    AccountsDep,
    LifecycleDep,
    MatchingDep,
    PassengerDep,
    RatingsDep,
)
from ridehail.api.models.rides import EstimateRequest, EstimateResponse
from ridehail.rating import DriverRatingScores, Rating
from ridehail.ride import Ride, RideRequest

router = APIRouter()


@router.put("/profile", response_model=AccountView)
def update_profile(
    body: UpdateProfileRequest, principal: PassengerDep, accounts: AccountsDep
) -> AccountView:
    return accounts.update_profile(principal.account_id, body)


@router.put("/emergency-contacts", response_model=AccountView)
def set_emergency_contacts(
    body: list[EmergencyContact], principal: PassengerDep, accounts: AccountsDep
) -> AccountView:
    return accounts.set_emergency_contacts(principal.account_id, body)


@router.post("/payment-methods", response_model=AccountView, status_code=status.HTTP_201_CREATED)
def add_payment_method(
    body: StoredPaymentMethod, principal: PassengerDep, accounts: AccountsDep
) -> AccountView:
    return accounts.add_payment_method(principal.account_id, body)


@router.post("/estimate", response_model=EstimateResponse)
def estimate(
    body: EstimateRequest,
    principal: PassengerDep,
    lifecycle: LifecycleDep,
    matching: MatchingDep,
) -> EstimateResponse:
    """Quote the fare and report how many drivers are available near the pickup."""
    quote = lifecycle.fare_calculator.estimate(body.pickup.point, body.dropoff.point)
    availability = matching.driver_availability(body.pickup.lat, body.pickup.lng)
    return EstimateResponse(
        estimate=quote,
        available_drivers=availability.available_drivers,
        nearest_driver_km=availability.nearest_driver_km,
    )


@router.post("/rides", response_model=Ride, status_code=status.HTTP_201_CREATED)
def book_ride(body: RideRequest, principal: PassengerDep, lifecycle: LifecycleDep) -> Ride:
    return lifecycle.request(principal, body)


@router.get("/rides", response_model=list[Ride])
def ride_history(principal: PassengerDep, lifecycle: LifecycleDep) -> list[Ride]:
    return lifecycle.history(principal)


@router.get("/rides/active", response_model=Ride | None)
def active_ride(principal: PassengerDep, lifecycle: LifecycleDep) -> Ride | None:
    return lifecycle.active(principal)


@router.get("/rides/{ride_id}", response_model=Ride)
def get_ride(ride_id: str, principal: PassengerDep, lifecycle: LifecycleDep) -> Ride:
    return lifecycle.get(principal, ride_id)


@router.post("/rides/{ride_id}/cancel", response_model=Ride)
def cancel_ride(ride_id: str, principal: PassengerDep, lifecycle: LifecycleDep) -> Ride:
    return lifecycle.cancel(principal, ride_id)


@router.post(
    "/rides/{ride_id}/rating", response_model=Rating, status_code=status.HTTP_201_CREATED
)
def rate_driver(
    ride_id: str, body: DriverRatingScores, principal: PassengerDep, ratings: RatingsDep
) -> Rating:
    return ratings.rate_driver(principal, ride_id, body)
