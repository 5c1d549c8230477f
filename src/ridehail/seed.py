"""Populate a development database with passengers and available drivers."""

from __future__ import annotations

import argparse
import logging

from faker import Faker
from faker.providers import BaseProvider
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ridehail.accounts.passwords import hash_password
from ridehail.db import init_database
from ridehail.db.repositories import (
    AccountRepository,
    DriverRepository,
    PassengerRepository,
    RideRepository,
)
from ridehail.db.transaction import savepoint, transaction
from ridehail.db.utils import new_id
from ridehail.fare import FareCalculator
from ridehail.geo import cell_for
from ridehail.ride import PaymentMethod, Place
from ridehail.ride_logging import setup_logging
from ridehail.settings import get_settings

logger = logging.getLogger(__name__)

# Kuala Lumpur city centre
DEFAULT_CENTER = (3.1390, 101.6869)
DEFAULT_PASSWORD = "password123"


class MalaysianLicensePlateProvider(BaseProvider):
    """Custom provider for Peninsular Malaysia plates (e.g. WXY 1234)."""

    def license_plate_my(self) -> str:
        prefix = self.random_element(["W", "V", "B", "J", "P", "A"])
        letters = "".join(self.random_elements("ABCDEFGHJKLMNPRSTUVWXY", length=2, unique=False))
        number = self.random_int(min=1, max=9999)
        return f"{prefix}{letters} {number}"


class MalaysianPhoneProvider(BaseProvider):
    """Custom provider for Malaysian mobile numbers: 01XXXXXXXX (10 digits)."""

    def phone_my_mobile(self) -> str:
        operator = self.random_element(["2", "3", "6", "7", "8", "9"])
        digits = "".join(self.random_elements("0123456789", length=7, unique=False))
        return f"01{operator}{digits}"


class MalaysianVehicleProvider(BaseProvider):
    VEHICLE_MODELS: list[str] = [
        "Perodua Myvi",
        "Perodua Axia",
        "Perodua Bezza",
        "Proton Saga",
        "Proton Persona",
        "Honda City",
        "Toyota Vios",
    ]
    COLORS: list[str] = ["White", "Silver", "Black", "Red", "Blue", "Grey"]

    def vehicle_model_my(self) -> str:
        return self.random_element(self.VEHICLE_MODELS)

    def vehicle_color(self) -> str:
        return self.random_element(self.COLORS)


def build_faker(seed: int | None = None) -> Faker:
    fake = Faker("en_US")
    fake.add_provider(MalaysianLicensePlateProvider)
    fake.add_provider(MalaysianPhoneProvider)
    fake.add_provider(MalaysianVehicleProvider)
    if seed is not None:
        fake.seed_instance(seed)
    return fake


def _random_place(fake: Faker, center: tuple[float, float], spread_deg: float) -> Place:
    return Place(
        address=fake.street_address(),
        lat=round(center[0] + fake.pyfloat(min_value=-spread_deg, max_value=spread_deg), 6),
        lng=round(center[1] + fake.pyfloat(min_value=-spread_deg, max_value=spread_deg), 6),
    )


def _create_account(session: Session, fake: Faker, password_hash: str) -> str:
    account_id = new_id()
    first_name = fake.first_name()
    last_name = fake.last_name()
    AccountRepository(session).create(
        account_id=account_id,
        username=f"{first_name.lower()}.{last_name.lower()}{fake.random_int(1, 999)}",
        phone_number=fake.phone_my_mobile(),
        first_name=first_name,
        last_name=last_name,
        password_hash=password_hash,
        email=fake.unique.email(),
    )
    return account_id


def seed(
    session_factory: sessionmaker[Session],
    passengers: int = 10,
    drivers: int = 5,
    rides: int = 0,
    center: tuple[float, float] = DEFAULT_CENTER,
    spread_km: float = 3.0,
    h3_resolution: int = 7,
    fake: Faker | None = None,
) -> dict[str, int]:
    """Create passengers and available drivers scattered around ``center``.

    The first ``rides`` new passengers each get one pending ride nearby.
    Accounts whose generated username, phone or plate collide with an existing
    row are skipped. Returns counts of what was created.
    """
    fake = fake or build_faker()
    password_hash = hash_password(DEFAULT_PASSWORD)
    # ~111 km per degree of latitude
    spread_deg = spread_km / 111.0
    created = {"passengers": 0, "drivers": 0, "rides": 0, "skipped": 0}
    passenger_ids: list[str] = []

    with session_factory() as session, transaction(session):
        for _ in range(passengers):
            try:
                with savepoint(session):
                    account_id = _create_account(session, fake, password_hash)
                    PassengerRepository(session).create(account_id)
                created["passengers"] += 1
                passenger_ids.append(account_id)
            except IntegrityError:
                created["skipped"] += 1

        for _ in range(drivers):
            lat = center[0] + fake.pyfloat(min_value=-spread_deg, max_value=spread_deg)
            lon = center[1] + fake.pyfloat(min_value=-spread_deg, max_value=spread_deg)
            try:
                with savepoint(session):
                    account_id = _create_account(session, fake, password_hash)
                    repo = DriverRepository(session)
                    repo.create(
                        account_id=account_id,
                        vehicle_model=fake.vehicle_model_my(),
                        vehicle_color=fake.vehicle_color(),
                        plate_number=fake.license_plate_my(),
                    )
                    repo.update_location(account_id, lat, lon, cell_for(lat, lon, h3_resolution))
                    repo.set_available(account_id, True)
                    session.flush()
                created["drivers"] += 1
            except IntegrityError:
                created["skipped"] += 1

        fares = FareCalculator()
        for passenger_id in passenger_ids[:rides]:
            pickup = _random_place(fake, center, spread_deg)
            dropoff = _random_place(fake, center, spread_deg)
            quote = fares.estimate(pickup.point, dropoff.point)
            RideRepository(session).create(
                ride_id=new_id(),
                passenger_id=passenger_id,
                pickup=pickup,
                pickup_h3=cell_for(pickup.lat, pickup.lng, h3_resolution),
                dropoff=dropoff,
                distance_km=quote.distance_km,
                fare=quote.fare,
                estimated_duration_min=quote.estimated_duration_min,
                payment_method=fake.random_element(list(PaymentMethod)),
            )
            created["rides"] += 1

    logger.info(
        f"Seeded {created['passengers']} passengers, {created['drivers']} drivers and "
        f"{created['rides']} pending rides "
        f"({created['skipped']} skipped)"
    )
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the ride-hailing database")
    parser.add_argument("--passengers", type=int, default=10)
    parser.add_argument("--drivers", type=int, default=5)
    parser.add_argument("--rides", type=int, default=3, help="Pending rides for new passengers")
    parser.add_argument("--seed", type=int, default=None, help="Faker seed for repeatable data")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(
        level=settings.logging.level,
        json_output=settings.logging.format == "json",
        environment=settings.logging.environment,
    )
    session_factory = init_database(settings.database.url, echo=settings.database.echo)
    seed(
        session_factory,
        passengers=args.passengers,
        drivers=args.drivers,
        rides=args.rides,
        h3_resolution=settings.matching.h3_resolution,
        fake=build_faker(args.seed),
    )


if __name__ == "__main__":
    main()
