"""Proximity discovery over H3 cell columns.

Candidate rows are pulled from every H3 cell that can hold a point within
the radius, then refined with the exact haversine distance and ordered
nearest first.
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from ridehail.accounts.models import Role
from ridehail.accounts.tokens import Principal
from ridehail.core.exceptions import (
    AuthorizationError,
    GuardViolationError,
    NotFoundError,
    ValidationError,
)
from ridehail.db.repositories import DriverRepository, RideRepository
from ridehail.db.transaction import transaction
from ridehail.db.utils import utc_now
from ridehail.geo import cell_for, cells_within, haversine_distance_km, validate_coordinates
from ridehail.pubsub import (
    CHANNEL_DRIVER_LOCATIONS,
    DriverLocationMessage,
    EventBuffer,
    EventPublisher,
)
from ridehail.ride import Ride
from ridehail.settings import MatchingSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearbyRide:
    ride: Ride
    distance_km: float


@dataclass(frozen=True)
class NearbyDriver:
    driver_id: str
    distance_km: float
    vehicle_model: str
    vehicle_color: str
    plate_number: str
    rating: float


class DriverAvailability(BaseModel):
    """Availability signal shown to a passenger before booking."""

    available_drivers: int
    nearest_driver_km: float | None


def pending_rides_near(
    session: Session, lat: float, lon: float, settings: MatchingSettings
) -> list[NearbyRide]:
    cells = cells_within(lat, lon, settings.radius_km, settings.h3_resolution)
    nearby = []
    for ride in RideRepository(session).list_pending_in_cells(cells):
        distance = haversine_distance_km(lat, lon, ride.pickup.lat, ride.pickup.lng)
        if distance <= settings.radius_km:
            nearby.append(NearbyRide(ride=ride, distance_km=round(distance, 2)))
    nearby.sort(key=lambda n: n.distance_km)
    return nearby


def available_drivers_near(
    session: Session, lat: float, lon: float, settings: MatchingSettings
) -> list[NearbyDriver]:
    cells = cells_within(lat, lon, settings.radius_km, settings.h3_resolution)
    nearby = []
    for profile in DriverRepository(session).list_available_in_cells(cells):
        if profile.latitude is None or profile.longitude is None:
            continue
        distance = haversine_distance_km(lat, lon, profile.latitude, profile.longitude)
        if distance <= settings.radius_km:
            nearby.append(
                NearbyDriver(
                    driver_id=profile.account_id,
                    distance_km=round(distance, 2),
                    vehicle_model=profile.vehicle_model,
                    vehicle_color=profile.vehicle_color,
                    plate_number=profile.plate_number,
                    rating=profile.rating,
                )
            )
    nearby.sort(key=lambda n: n.distance_km)
    return nearby


class MatchingService:
    """Driver availability, location pings and proximity queries."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        publisher: EventPublisher,
        settings: MatchingSettings | None = None,
    ):
        self._session_factory = session_factory
        self._publisher = publisher
        self.settings = settings or MatchingSettings()

    def nearby_rides(self, principal: Principal) -> list[NearbyRide]:
        """Pending rides around the driver's last reported location."""
        _require_driver(principal)
        with self._session_factory() as session:
            profile = DriverRepository(session).get(principal.account_id)
            if profile is None:
                raise NotFoundError("Driver profile not found")
            if not profile.available:
                raise GuardViolationError("You must be available to receive ride requests")
            if profile.latitude is None or profile.longitude is None:
                raise GuardViolationError("Report your location before searching for rides")
            return pending_rides_near(session, profile.latitude, profile.longitude, self.settings)

    def driver_availability(self, lat: float, lon: float) -> DriverAvailability:
        try:
            validate_coordinates(lat, lon)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        with self._session_factory() as session:
            drivers = available_drivers_near(session, lat, lon, self.settings)
        return DriverAvailability(
            available_drivers=len(drivers),
            nearest_driver_km=drivers[0].distance_km if drivers else None,
        )

    def set_availability(self, principal: Principal, available: bool) -> bool:
        _require_driver(principal)
        with self._session_factory() as session, transaction(session):
            drivers = DriverRepository(session)
            if not drivers.exists(principal.account_id):
                raise NotFoundError("Driver profile not found")
            drivers.set_available(principal.account_id, available)

        logger.info(
            f"Driver {principal.account_id} is now {'available' if available else 'unavailable'}"
        )
        return available

    def update_location(self, principal: Principal, lat: float, lon: float) -> str | None:
        """Store the driver's position and fan it out. Returns the active ride id, if any."""
        _require_driver(principal)
        try:
            validate_coordinates(lat, lon)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        cell = cell_for(lat, lon, self.settings.h3_resolution)
        with self._session_factory() as session, transaction(session):
            drivers = DriverRepository(session)
            if not drivers.exists(principal.account_id):
                raise NotFoundError("Driver profile not found")
            drivers.update_location(principal.account_id, lat, lon, cell)
            active = RideRepository(session).active_for_driver(principal.account_id)

        ride_id = active.ride_id if active else None
        recipients = [principal.account_id]
        if active:
            recipients.append(active.passenger_id)
        message = DriverLocationMessage(
            driver_id=principal.account_id,
            location=(lat, lon),
            ride_id=ride_id,
            recipients=recipients,
            timestamp=utc_now().isoformat(),
        )
        events = EventBuffer(self._publisher)
        events.add(CHANNEL_DRIVER_LOCATIONS, message)
        events.publish_all()
        return ride_id


def _require_driver(principal: Principal) -> None:
    if principal.role != Role.DRIVER:
        raise AuthorizationError("Driver role required")
