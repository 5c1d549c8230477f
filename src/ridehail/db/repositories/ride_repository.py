"""Ride repository with compare-and-set lifecycle writes."""

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ridehail.ride import (
    ACTIVE_DRIVER_STATUSES,
    TERMINAL_STATUSES,
    PaymentMethod,
    PaymentStatus,
    PickupStatus,
    Place,
    RideStatus,
)
from ridehail.ride import Ride as RideDomain

from ..schema import Ride
from ..utils import utc_now

TERMINAL_VALUES = {s.value for s in TERMINAL_STATUSES}
ACTIVE_DRIVER_VALUES = {s.value for s in ACTIVE_DRIVER_STATUSES}


class RideRepository:
    """Repository for ride CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        ride_id: str,
        passenger_id: str,
        pickup: Place,
        pickup_h3: str,
        dropoff: Place,
        distance_km: float,
        fare: float,
        estimated_duration_min: int,
        payment_method: PaymentMethod,
    ) -> RideDomain:
        """Create a new ride in PENDING state with no driver."""
        ride = Ride(
            ride_id=ride_id,
            passenger_id=passenger_id,
            driver_id=None,
            pickup_address=pickup.address,
            pickup_lat=pickup.lat,
            pickup_lng=pickup.lng,
            pickup_h3=pickup_h3,
            dropoff_address=dropoff.address,
            dropoff_lat=dropoff.lat,
            dropoff_lng=dropoff.lng,
            distance_km=distance_km,
            fare=fare,
            estimated_duration_min=estimated_duration_min,
            status=RideStatus.PENDING.value,
            pickup_status=PickupStatus.PENDING.value,
            payment_method=payment_method.value,
            payment_status=PaymentStatus.PENDING.value,
            version=0,
            requested_at=utc_now(),
        )
        self.session.add(ride)
        self.session.flush()
        return self._to_domain(ride)

    def get(self, ride_id: str) -> RideDomain | None:
        """Get ride by ID, returning domain model."""
        ride = self.session.get(Ride, ride_id, populate_existing=True)
        if ride is None:
            return None
        return self._to_domain(ride)

    def compare_and_set(
        self,
        ride_id: str,
        expected_status: RideStatus,
        expected_version: int,
        **values: Any,
    ) -> bool:
        """Apply values only if the ride still has the expected status and version.

        Returns False when another writer got there first. The version is
        bumped on every successful write.
        """
        converted = {
            key: value.value if isinstance(value, RideStatus | PickupStatus | PaymentStatus) else value
            for key, value in values.items()
        }
        stmt = (
            update(Ride)
            .where(
                Ride.ride_id == ride_id,
                Ride.status == expected_status.value,
                Ride.version == expected_version,
            )
            .values(**converted, version=Ride.version + 1, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def set_payment_status(self, ride_id: str, status: PaymentStatus) -> None:
        """Payment status is settlement-owned and does not bump the lifecycle version."""
        stmt = (
            update(Ride)
            .where(Ride.ride_id == ride_id)
            .values(payment_status=status.value, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)

    def active_for_passenger(self, passenger_id: str) -> RideDomain | None:
        stmt = select(Ride).where(
            Ride.passenger_id == passenger_id, Ride.status.notin_(TERMINAL_VALUES)
        )
        ride = self.session.execute(stmt).scalars().first()
        return self._to_domain(ride) if ride else None

    def active_for_driver(self, driver_id: str) -> RideDomain | None:
        stmt = select(Ride).where(
            Ride.driver_id == driver_id, Ride.status.in_(ACTIVE_DRIVER_VALUES)
        )
        ride = self.session.execute(stmt).scalars().first()
        return self._to_domain(ride) if ride else None

    def list_pending_in_cells(self, cells: list[str]) -> list[RideDomain]:
        """Pending rides whose pickup falls in any of the given H3 cells."""
        if not cells:
            return []
        stmt = select(Ride).where(
            Ride.status == RideStatus.PENDING.value, Ride.pickup_h3.in_(cells)
        )
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def list_by_passenger(self, passenger_id: str) -> list[RideDomain]:
        """List rides by passenger, newest request first."""
        stmt = (
            select(Ride)
            .where(Ride.passenger_id == passenger_id)
            .order_by(Ride.requested_at.desc())
        )
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def list_by_driver(self, driver_id: str) -> list[RideDomain]:
        """List rides by driver, most recently completed first."""
        stmt = (
            select(Ride)
            .where(Ride.driver_id == driver_id)
            .order_by(Ride.completed_at.desc().nulls_first(), Ride.requested_at.desc())
        )
        result = self.session.execute(stmt)
        return [self._to_domain(r) for r in result.scalars().all()]

    def _to_domain(self, ride: Ride) -> RideDomain:
        """Convert ORM model to domain model."""
        return RideDomain(
            ride_id=ride.ride_id,
            passenger_id=ride.passenger_id,
            driver_id=ride.driver_id,
            pickup=Place(address=ride.pickup_address, lat=ride.pickup_lat, lng=ride.pickup_lng),
            dropoff=Place(
                address=ride.dropoff_address, lat=ride.dropoff_lat, lng=ride.dropoff_lng
            ),
            distance_km=ride.distance_km,
            fare=ride.fare,
            estimated_duration_min=ride.estimated_duration_min,
            status=RideStatus(ride.status),
            pickup_status=PickupStatus(ride.pickup_status),
            payment_method=PaymentMethod(ride.payment_method),
            payment_status=PaymentStatus(ride.payment_status),
            cancelled_by=ride.cancelled_by,
            version=ride.version,
            requested_at=ride.requested_at,
            accepted_at=ride.accepted_at,
            started_at=ride.started_at,
            completed_at=ride.completed_at,
            cancelled_at=ride.cancelled_at,
        )
