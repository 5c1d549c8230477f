"""Driver profile repository: availability, location, wallet and counters."""

from sqlalchemy import select, update

from ..schema import DriverProfile
from ..utils import utc_now
from .base_profile_repository import BaseProfileRepository


class DriverRepository(BaseProfileRepository[DriverProfile]):
    """Repository for driver profile operations.

    Money and counter updates are single UPDATE statements with SQL-side
    increments, so concurrent settlements never lose a write.
    """

    model_class = DriverProfile

    def create(
        self,
        account_id: str,
        vehicle_model: str,
        vehicle_color: str,
        plate_number: str,
    ) -> DriverProfile:
        profile = DriverProfile(
            account_id=account_id,
            vehicle_model=vehicle_model,
            vehicle_color=vehicle_color,
            plate_number=plate_number,
            available=False,
            wallet_balance=0.0,
            total_earnings=0.0,
            completed_ride_count=0,
            rating=5.0,
            rating_count=0,
        )
        self.session.add(profile)
        self.session.flush()
        return profile

    def plate_in_use(self, plate_number: str) -> bool:
        stmt = select(DriverProfile.account_id).where(DriverProfile.plate_number == plate_number)
        return self.session.execute(stmt).first() is not None

    def update_vehicle(self, account_id: str, **fields: str) -> None:
        profile = self.session.get(DriverProfile, account_id)
        if profile:
            for key, value in fields.items():
                setattr(profile, key, value)

    def set_available(self, account_id: str, available: bool) -> None:
        profile = self.session.get(DriverProfile, account_id)
        if profile:
            profile.available = available

    def update_location(self, account_id: str, lat: float, lon: float, h3_cell: str) -> None:
        profile = self.session.get(DriverProfile, account_id)
        if profile:
            profile.latitude = lat
            profile.longitude = lon
            profile.h3_cell = h3_cell
            profile.location_updated_at = utc_now()

    def list_available_in_cells(self, cells: list[str]) -> list[DriverProfile]:
        if not cells:
            return []
        stmt = select(DriverProfile).where(
            DriverProfile.available.is_(True), DriverProfile.h3_cell.in_(cells)
        )
        return list(self.session.execute(stmt).scalars().all())

    def record_completed_ride(self, account_id: str, cash_earnings: float = 0.0) -> None:
        """Count a completed ride; cash fares go straight to earnings, not the wallet."""
        stmt = (
            update(DriverProfile)
            .where(DriverProfile.account_id == account_id)
            .values(
                completed_ride_count=DriverProfile.completed_ride_count + 1,
                total_earnings=DriverProfile.total_earnings + cash_earnings,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)

    def credit_wallet(self, account_id: str, amount: float) -> None:
        """Credit a settled card payment to the wallet and lifetime earnings."""
        stmt = (
            update(DriverProfile)
            .where(DriverProfile.account_id == account_id)
            .values(
                wallet_balance=DriverProfile.wallet_balance + amount,
                total_earnings=DriverProfile.total_earnings + amount,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
