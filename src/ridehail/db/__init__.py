"""Database persistence module."""

from .database import init_database
from .schema import (
    Account,
    DriverProfile,
    Message,
    Notification,
    PassengerProfile,
    Payment,
    Rating,
    Ride,
    ServiceMetadata,
)
from .transaction import savepoint, transaction

__all__ = [
    "init_database",
    "Account",
    "DriverProfile",
    "PassengerProfile",
    "Ride",
    "Payment",
    "Rating",
    "Message",
    "Notification",
    "ServiceMetadata",
    "transaction",
    "savepoint",
]
