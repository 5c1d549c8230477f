"""Tests for development data seeding."""

import re

import pytest
from sqlalchemy import func, select

from ridehail.accounts.models import LoginRequest, validate_phone_number
from ridehail.db.schema import Account, DriverProfile, PassengerProfile, Ride
from ridehail.seed import DEFAULT_CENTER, DEFAULT_PASSWORD, build_faker, seed


@pytest.mark.unit
class TestProviders:
    def test_plate_format(self):
        fake = build_faker(7)
        for _ in range(20):
            assert re.match(r"^[WVBJPA][A-Z]{2} \d{1,4}$", fake.license_plate_my())

    def test_phone_numbers_pass_registration_validation(self):
        fake = build_faker(7)
        for _ in range(20):
            phone = fake.phone_my_mobile()
            assert len(phone) == 10
            assert validate_phone_number(phone) == phone

    def test_vehicle_details(self):
        fake = build_faker(7)
        assert fake.vehicle_model_my()
        assert fake.vehicle_color()

    def test_seeded_faker_is_repeatable(self):
        assert build_faker(3).phone_my_mobile() == build_faker(3).phone_my_mobile()


@pytest.mark.integration
class TestSeed:
    def test_creates_passengers_and_available_drivers(self, session_factory, matching):
        created = seed(session_factory, passengers=3, drivers=2, fake=build_faker(42))

        assert created == {"passengers": 3, "drivers": 2, "rides": 0, "skipped": 0}
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(PassengerProfile)) == 3
            drivers = session.execute(select(DriverProfile)).scalars().all()
            assert all(d.available and d.h3_cell for d in drivers)

        assert matching.driver_availability(*DEFAULT_CENTER).available_drivers == 2

    def test_seeded_accounts_can_log_in(self, session_factory, accounts):
        seed(session_factory, passengers=1, drivers=1, fake=build_faker(42))
        with session_factory() as session:
            usernames = session.execute(select(Account.username)).scalars().all()

        for username in usernames:
            result = accounts.login(LoginRequest(identifier=username, password=DEFAULT_PASSWORD))
            assert result.token

    def test_reseeding_skips_existing_accounts(self, session_factory):
        seed(session_factory, passengers=3, drivers=0, fake=build_faker(42))

        again = seed(session_factory, passengers=3, drivers=0, fake=build_faker(42))

        assert again == {"passengers": 0, "drivers": 0, "rides": 0, "skipped": 3}
        with session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Account)) == 3

    def test_creates_pending_rides_for_new_passengers(self, session_factory):
        created = seed(session_factory, passengers=3, drivers=0, rides=2, fake=build_faker(42))

        assert created["rides"] == 2
        with session_factory() as session:
            rides = session.execute(select(Ride)).scalars().all()
        assert len(rides) == 2
        assert len({r.passenger_id for r in rides}) == 2
        assert all(r.status == "pending" and r.pickup_h3 for r in rides)
        assert all(r.fare >= 2.0 for r in rides)

    def test_ride_count_is_capped_by_new_passengers(self, session_factory):
        created = seed(session_factory, passengers=1, drivers=0, rides=5, fake=build_faker(42))

        assert created["rides"] == 1
