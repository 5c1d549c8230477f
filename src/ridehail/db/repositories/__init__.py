"""Repository layer for database CRUD operations."""

from .account_repository import AccountRepository
from .base_profile_repository import BaseProfileRepository
from .driver_repository import DriverRepository
from .message_repository import MessageRepository, NotificationRepository
from .passenger_repository import PassengerRepository
from .payment_repository import PaymentRepository
from .rating_repository import RatingRepository
from .ride_repository import RideRepository

__all__ = [
    "AccountRepository",
    "BaseProfileRepository",
    "DriverRepository",
    "MessageRepository",
    "NotificationRepository",
    "PassengerRepository",
    "PaymentRepository",
    "RatingRepository",
    "RideRepository",
]
