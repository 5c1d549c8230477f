"""Proximity matching between drivers and pending rides."""

from .discovery import (
    DriverAvailability,
    MatchingService,
    NearbyDriver,
    NearbyRide,
    available_drivers_near,
    pending_rides_near,
)

__all__ = [
    "DriverAvailability",
    "MatchingService",
    "NearbyDriver",
    "NearbyRide",
    "available_drivers_near",
    "pending_rides_near",
]
