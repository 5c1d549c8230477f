"""Ride lifecycle service."""

from .lifecycle import RideCompletion, RideLifecycle

__all__ = ["RideCompletion", "RideLifecycle"]
