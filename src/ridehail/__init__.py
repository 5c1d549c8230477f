"""Ride-hailing backend: ride lifecycle, matching, fares, ratings and payments."""

__version__ = "1.0.0"
