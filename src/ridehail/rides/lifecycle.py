"""Ride lifecycle: request, accept, reject, pickup outcome, cancel and complete.

Every status change is a compare-and-set on (status, version). A writer that
loses the race sees zero affected rows and gets a ConflictError instead of
overwriting the winner.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ridehail.accounts.models import Role
from ridehail.accounts.tokens import Principal
from ridehail.core.exceptions import (
    AuthorizationError,
    ConflictError,
    GuardViolationError,
    NotFoundError,
    ValidationError,
)
from ridehail.db.repositories import (
    DriverRepository,
    PassengerRepository,
    PaymentRepository,
    RideRepository,
)
from ridehail.db.transaction import transaction
from ridehail.db.utils import new_id, utc_now
from ridehail.fare import FareCalculator
from ridehail.geo import cell_for
from ridehail.matching.discovery import available_drivers_near
from ridehail.messaging.models import NotificationType
from ridehail.messaging.notifications import notify
from ridehail.payment import Payment
from ridehail.pubsub import CHANNEL_RIDE_UPDATES, EventBuffer, EventPublisher, RideUpdateMessage
from ridehail.ride import (
    PaymentMethod,
    PaymentStatus,
    PickupStatus,
    Ride,
    RideRequest,
    RideStatus,
    ensure_transition,
)
from ridehail.ride_logging import log_ride_context
from ridehail.settings import MatchingSettings

logger = logging.getLogger(__name__)


class RideCompletion(BaseModel):
    ride: Ride
    payment: Payment


class RideLifecycle:
    """Owns every ride status transition."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        publisher: EventPublisher,
        fare_calculator: FareCalculator | None = None,
        matching_settings: MatchingSettings | None = None,
    ):
        self._session_factory = session_factory
        self._publisher = publisher
        self.fare_calculator = fare_calculator or FareCalculator()
        self.matching_settings = matching_settings or MatchingSettings()

    # Passenger operations

    def request(self, principal: Principal, request: RideRequest) -> Ride:
        """Create a pending ride and announce it to nearby available drivers."""
        _require_role(principal, Role.PASSENGER)
        passenger_id = principal.account_id
        estimate = self.fare_calculator.estimate(request.pickup.point, request.dropoff.point)
        ride_id = new_id()

        with (
            log_ride_context(ride_id, passenger_id=passenger_id),
            self._unit_of_work("You already have an active ride") as (session, events),
        ):
            if not PassengerRepository(session).exists(passenger_id):
                raise NotFoundError("Passenger profile not found")

            rides = RideRepository(session)
            active = rides.active_for_passenger(passenger_id)
            if active is not None:
                raise GuardViolationError(
                    "You already have an active ride", {"ride_id": active.ride_id}
                )

            ride = rides.create(
                ride_id=ride_id,
                passenger_id=passenger_id,
                pickup=request.pickup,
                pickup_h3=cell_for(
                    request.pickup.lat, request.pickup.lng, self.matching_settings.h3_resolution
                ),
                dropoff=request.dropoff,
                distance_km=estimate.distance_km,
                fare=estimate.fare,
                estimated_duration_min=estimate.estimated_duration_min,
                payment_method=request.payment_method,
            )
            nearby = available_drivers_near(
                session, request.pickup.lat, request.pickup.lng, self.matching_settings
            )
            events.add(
                CHANNEL_RIDE_UPDATES,
                _ride_event(ride, [passenger_id, *(d.driver_id for d in nearby)]),
            )
            logger.info(
                f"Ride requested: {ride.distance_km} km, fare {ride.fare}, "
                f"{len(nearby)} drivers nearby"
            )

        return ride

    def cancel(self, principal: Principal, ride_id: str) -> Ride:
        """Passenger cancels a ride that has not started yet."""
        _require_role(principal, Role.PASSENGER)

        with (
            log_ride_context(ride_id, passenger_id=principal.account_id),
            self._unit_of_work() as (session, events),
        ):
            rides = RideRepository(session)
            ride = _load(rides, ride_id)
            if ride.passenger_id != principal.account_id:
                raise GuardViolationError("You can only cancel your own rides")

            updated = _transition(
                rides,
                ride,
                RideStatus.CANCELLED,
                cancelled_at=utc_now(),
                cancelled_by="passenger",
            )
            if ride.driver_id:
                notify(
                    session,
                    events,
                    ride.driver_id,
                    NotificationType.RIDE_CANCELLED,
                    "The passenger cancelled the ride",
                    ride_id=ride_id,
                )
            events.add(CHANNEL_RIDE_UPDATES, _ride_event(updated, [ride.driver_id]))
            logger.info(f"Ride cancelled by passenger from {ride.status.value}")

        return updated

    # Driver operations

    def accept(self, principal: Principal, ride_id: str) -> Ride:
        """First driver to accept a pending ride wins. Everyone else is told it is gone."""
        _require_role(principal, Role.DRIVER)
        driver_id = principal.account_id

        with (
            log_ride_context(ride_id, driver_id=driver_id),
            self._unit_of_work("Ride is no longer available") as (session, events),
        ):
            rides = RideRepository(session)
            ride = _load(rides, ride_id)
            if ride.status != RideStatus.PENDING:
                raise GuardViolationError(
                    "Ride is no longer available", {"status": ride.status.value}
                )
            if not DriverRepository(session).exists(driver_id):
                raise NotFoundError("Driver profile not found")
            active = rides.active_for_driver(driver_id)
            if active is not None:
                raise GuardViolationError(
                    "You already have an active ride", {"ride_id": active.ride_id}
                )

            updated = _transition(
                rides,
                ride,
                RideStatus.ACCEPTED,
                conflict_message="Ride is no longer available",
                driver_id=driver_id,
                accepted_at=utc_now(),
                pickup_status=PickupStatus.PENDING,
            )
            notify(
                session,
                events,
                ride.passenger_id,
                NotificationType.RIDE_ACCEPTED,
                "A driver accepted your ride",
                ride_id=ride_id,
            )
            events.add(CHANNEL_RIDE_UPDATES, _ride_event(updated))
            logger.info("Ride accepted")

        return updated

    def reject(self, principal: Principal, ride_id: str) -> Ride:
        """Assigned driver hands the ride back to the pool."""
        _require_role(principal, Role.DRIVER)
        driver_id = principal.account_id

        with (
            log_ride_context(ride_id, driver_id=driver_id),
            self._unit_of_work() as (session, events),
        ):
            rides = RideRepository(session)
            ride = _load(rides, ride_id)
            _require_assigned_driver(ride, driver_id)
            if ride.status != RideStatus.ACCEPTED:
                raise GuardViolationError(
                    "Only accepted rides can be rejected", {"status": ride.status.value}
                )

            updated = _transition(
                rides,
                ride,
                RideStatus.PENDING,
                driver_id=None,
                accepted_at=None,
                pickup_status=PickupStatus.PENDING,
            )
            events.add(CHANNEL_RIDE_UPDATES, _ride_event(updated, [driver_id]))
            logger.info("Ride rejected, back in the pool")

        return updated

    def update_pickup(self, principal: Principal, ride_id: str, outcome: PickupStatus) -> Ride:
        """Record the pickup outcome. Success starts the trip, failure cancels it."""
        _require_role(principal, Role.DRIVER)
        if outcome == PickupStatus.PENDING:
            raise ValidationError("Pickup outcome must be successful or failed")
        driver_id = principal.account_id

        with (
            log_ride_context(ride_id, driver_id=driver_id),
            self._unit_of_work() as (session, events),
        ):
            rides = RideRepository(session)
            ride = _load(rides, ride_id)
            _require_assigned_driver(ride, driver_id)
            if ride.status != RideStatus.ACCEPTED:
                raise GuardViolationError(
                    "Pickup can only be recorded for an accepted ride",
                    {"status": ride.status.value},
                )

            if outcome == PickupStatus.SUCCESSFUL:
                updated = _transition(
                    rides,
                    ride,
                    RideStatus.IN_PROGRESS,
                    pickup_status=PickupStatus.SUCCESSFUL,
                    started_at=utc_now(),
                )
                notify(
                    session,
                    events,
                    ride.passenger_id,
                    NotificationType.RIDE_STARTED,
                    "Your ride has started",
                    ride_id=ride_id,
                )
            else:
                updated = _transition(
                    rides,
                    ride,
                    RideStatus.CANCELLED,
                    pickup_status=PickupStatus.FAILED,
                    driver_id=None,
                    cancelled_at=utc_now(),
                    cancelled_by="driver",
                )
                notify(
                    session,
                    events,
                    ride.passenger_id,
                    NotificationType.RIDE_CANCELLED,
                    "Pickup failed and the ride was cancelled",
                    ride_id=ride_id,
                )
            events.add(CHANNEL_RIDE_UPDATES, _ride_event(updated, [driver_id]))
            logger.info(f"Pickup {outcome.value}, ride now {updated.status.value}")

        return updated

    def complete(self, principal: Principal, ride_id: str) -> RideCompletion:
        """Finish the trip and open its payment.

        Cash settles on the spot and goes to total earnings. Card stays pending
        until the processor confirms it. Completing a completed ride returns
        the existing payment unchanged.
        """
        _require_role(principal, Role.DRIVER)
        driver_id = principal.account_id

        with (
            log_ride_context(ride_id, driver_id=driver_id),
            self._unit_of_work("Ride was completed concurrently") as (session, events),
        ):
            rides = RideRepository(session)
            payments = PaymentRepository(session)
            ride = _load(rides, ride_id)
            _require_assigned_driver(ride, driver_id)

            if ride.status == RideStatus.COMPLETED:
                return _existing_completion(ride, payments)
            ensure_transition(ride.status, RideStatus.COMPLETED)

            is_cash = ride.payment_method == PaymentMethod.CASH
            payment_status = PaymentStatus.COMPLETED if is_cash else PaymentStatus.PENDING
            applied = rides.compare_and_set(
                ride_id,
                ride.status,
                ride.version,
                status=RideStatus.COMPLETED,
                completed_at=utc_now(),
                payment_status=payment_status,
            )
            if not applied:
                current = _load(rides, ride_id)
                if current.status == RideStatus.COMPLETED:
                    return _existing_completion(current, payments)
                raise ConflictError("Ride was modified concurrently", {"ride_id": ride_id})

            payment = payments.create(
                payment_id=new_id(),
                ride_id=ride_id,
                payer_id=ride.passenger_id,
                payee_id=driver_id,
                amount=ride.fare,
                currency=self.fare_calculator.currency,
                method=ride.payment_method,
                status=payment_status,
            )
            DriverRepository(session).record_completed_ride(
                driver_id, cash_earnings=ride.fare if is_cash else 0.0
            )
            updated = _load(rides, ride_id)

            notify(
                session,
                events,
                ride.passenger_id,
                NotificationType.RIDE_COMPLETED,
                f"Ride completed. Fare: {ride.fare:.2f} {payment.currency.upper()}",
                ride_id=ride_id,
            )
            if is_cash:
                notify(
                    session,
                    events,
                    driver_id,
                    NotificationType.PAYMENT_RECEIVED,
                    f"Cash payment of {ride.fare:.2f} {payment.currency.upper()} recorded",
                    ride_id=ride_id,
                )
            events.add(CHANNEL_RIDE_UPDATES, _ride_event(updated))
            logger.info(
                f"Ride completed, {payment.method.value} payment {payment.status.value}"
            )

        return RideCompletion(ride=updated, payment=payment)

    # Queries

    def get(self, principal: Principal, ride_id: str) -> Ride:
        """Ride detail for its parties. Drivers may also look at rides still in the pool."""
        with self._session_factory() as session:
            ride = _load(RideRepository(session), ride_id)
        visible_to_driver = principal.role == Role.DRIVER and ride.status == RideStatus.PENDING
        if not ride.is_party(principal.account_id) and not visible_to_driver:
            raise AuthorizationError("You are not part of this ride")
        return ride

    def active(self, principal: Principal) -> Ride | None:
        with self._session_factory() as session:
            rides = RideRepository(session)
            if principal.role == Role.DRIVER:
                return rides.active_for_driver(principal.account_id)
            return rides.active_for_passenger(principal.account_id)

    def history(self, principal: Principal) -> list[Ride]:
        """Passengers see newest requests first, drivers newest completions first."""
        with self._session_factory() as session:
            rides = RideRepository(session)
            if principal.role == Role.DRIVER:
                return rides.list_by_driver(principal.account_id)
            return rides.list_by_passenger(principal.account_id)

    @contextmanager
    def _unit_of_work(
        self, conflict_message: str = "Ride was modified concurrently"
    ) -> Iterator[tuple[Session, EventBuffer]]:
        """One transaction plus the realtime events to publish once it commits."""
        events = EventBuffer(self._publisher)
        try:
            with self._session_factory() as session, transaction(session):
                yield session, events
        except IntegrityError as e:
            raise ConflictError(conflict_message) from e
        events.publish_all()


def _require_role(principal: Principal, role: Role) -> None:
    if principal.role != role:
        raise AuthorizationError(f"{role.value.capitalize()} role required")


def _require_assigned_driver(ride: Ride, driver_id: str) -> None:
    if ride.driver_id != driver_id:
        raise GuardViolationError("You are not the driver for this ride")


def _load(rides: RideRepository, ride_id: str) -> Ride:
    ride = rides.get(ride_id)
    if ride is None:
        raise NotFoundError("Ride not found", {"ride_id": ride_id})
    return ride


def _transition(
    rides: RideRepository,
    ride: Ride,
    new_status: RideStatus,
    conflict_message: str = "Ride was modified concurrently",
    **values: Any,
) -> Ride:
    ensure_transition(ride.status, new_status)
    if not rides.compare_and_set(ride.ride_id, ride.status, ride.version, status=new_status, **values):
        raise ConflictError(conflict_message, {"ride_id": ride.ride_id})
    return _load(rides, ride.ride_id)


def _existing_completion(ride: Ride, payments: PaymentRepository) -> RideCompletion:
    payment = payments.get_by_ride(ride.ride_id)
    if payment is None:
        raise NotFoundError("Payment not found for completed ride", {"ride_id": ride.ride_id})
    logger.info("Ride already completed, returning existing payment")
    return RideCompletion(ride=ride, payment=payment)


def _ride_event(ride: Ride, extra_recipients: list[str | None] | None = None) -> RideUpdateMessage:
    recipients = [ride.passenger_id, ride.driver_id, *(extra_recipients or [])]
    return RideUpdateMessage(
        event_type=ride.status.to_event_type(),
        ride_id=ride.ride_id,
        status=ride.status.value,
        passenger_id=ride.passenger_id,
        driver_id=ride.driver_id,
        pickup=ride.pickup.point,
        dropoff=ride.dropoff.point,
        fare=ride.fare,
        recipients=list(dict.fromkeys(r for r in recipients if r)),
        timestamp=utc_now().isoformat(),
    )
