"""H3 cell helpers backing the proximity queries.

Drivers and ride pickups store the H3 cell of their coordinates in an
indexed column; a radius query becomes an ``IN`` over the cells of a grid
disk followed by an exact haversine filter.
"""

import math
from functools import lru_cache

import h3


def cell_for(lat: float, lon: float, resolution: int) -> str:
    return h3.latlng_to_cell(lat, lon, resolution)


@lru_cache(maxsize=4096)
def rings_for_radius(radius_km: float, center: str) -> int:
    """Number of grid-disk rings around ``center`` whose union covers radius_km.

    Stepping out one ring toward a cell vertex advances only 1.5 edge
    lengths, so the ring count is sized from the shortest edge of the centre
    cell. One extra ring covers a query point sitting on the centre cell's
    boundary.
    """
    edge_km = min(
        h3.edge_length(edge, unit="km") for edge in h3.origin_to_directed_edges(center)
    )
    return max(1, math.ceil(radius_km / (1.5 * edge_km)) + 1)


def cells_within(lat: float, lon: float, radius_km: float, resolution: int) -> list[str]:
    """Candidate cells for every point within radius_km of (lat, lon)."""
    center = cell_for(lat, lon, resolution)
    return list(h3.grid_disk(center, rings_for_radius(radius_km, center)))
