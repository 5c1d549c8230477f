"""Passenger profile repository."""

from typing import Any

from ..schema import PassengerProfile
from .base_profile_repository import BaseProfileRepository


class PassengerRepository(BaseProfileRepository[PassengerProfile]):
    """Repository for passenger profile operations."""

    model_class = PassengerProfile

    def create(self, account_id: str) -> PassengerProfile:
        profile = PassengerProfile(
            account_id=account_id,
            rating=5.0,
            rating_count=0,
            emergency_contacts=[],
            stored_payment_methods=[],
        )
        self.session.add(profile)
        self.session.flush()
        return profile

    def set_emergency_contacts(self, account_id: str, contacts: list[dict[str, Any]]) -> None:
        profile = self.session.get(PassengerProfile, account_id)
        if profile:
            profile.emergency_contacts = list(contacts)

    def add_payment_method(self, account_id: str, method: dict[str, Any]) -> None:
        profile = self.session.get(PassengerProfile, account_id)
        if profile:
            # Reassign so the JSON column is flagged dirty.
            profile.stored_payment_methods = [*profile.stored_payment_methods, method]
