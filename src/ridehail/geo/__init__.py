"""Geographic helpers: haversine distance and H3 cell lookups."""

from .cells import cell_for, cells_within
from .distance import EARTH_RADIUS_KM, haversine_distance_km, validate_coordinates

__all__ = [
    "EARTH_RADIUS_KM",
    "cell_for",
    "cells_within",
    "haversine_distance_km",
    "validate_coordinates",
]
