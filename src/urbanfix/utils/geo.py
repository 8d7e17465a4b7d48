"""Great-circle helpers used by the proximity index and geocell locks."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

# Mean Earth radius (IUGG), metres.
EARTH_RADIUS_METERS: Final[float] = 6_371_008.8
METERS_PER_DEGREE_LAT: Final[float] = math.pi * EARTH_RADIUS_METERS / 180.0
# Keeps the SQL prefilter box slightly larger than the circle it stands in for.
_BBOX_PADDING: Final[float] = 1.01
# Floor for cos(latitude) when sizing geocell columns next to a pole.
_MIN_COS_LAT: Final[float] = 1e-12


@dataclass(frozen=True)
class GeoPoint:
    """Latitude/longitude in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude {self.latitude} is outside [-90, 90]")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude {self.longitude} is outside [-180, 180]")


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned degree box enclosing a search circle."""

    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float


def haversine_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Return the great-circle distance between two points in metres."""
    lat1, lon1, lat2, lon2 = map(
        math.radians, (a.latitude, a.longitude, b.latitude, b.longitude)
    )
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def bounding_box(center: GeoPoint, radius_meters: float) -> BoundingBox:
    """Return a box guaranteed to contain every point within ``radius_meters``.

    The box is only a prefilter for the SQL query; exact distances are always
    recomputed with :func:`haversine_meters`.
    """
    dlat = radius_meters * _BBOX_PADDING / METERS_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(center.latitude))
    if cos_lat < 1e-9:
        dlon = 180.0
    else:
        dlon = min(180.0, dlat / cos_lat)
    return BoundingBox(
        min_latitude=max(-90.0, center.latitude - dlat),
        max_latitude=min(90.0, center.latitude + dlat),
        min_longitude=center.longitude - dlon,
        max_longitude=center.longitude + dlon,
    )


def _row_columns(row: int, cell_size_degrees: float) -> int:
    """Return how many equal-width columns wrap around latitude row ``row``.

    Columns are sized for the most poleward latitude a point within one cell
    height of the row can have, so a column is never narrower on the ground
    than a cell is tall. Rows touching a pole collapse to a single column.
    """
    poleward = min(
        90.0,
        max(abs((row - 1) * cell_size_degrees), abs((row + 2) * cell_size_degrees)),
    )
    width = cell_size_degrees / max(math.cos(math.radians(poleward)), _MIN_COS_LAT)
    return max(1, math.floor(360.0 / width))


def _column(longitude: float, row: int, cell_size_degrees: float) -> int:
    columns = _row_columns(row, cell_size_degrees)
    # Longitude 180 wraps onto the column of -180.
    return math.floor((longitude + 180.0) * columns / 360.0) % columns


def geocell(point: GeoPoint, cell_size_degrees: float) -> tuple[int, int]:
    """Return the integer (row, column) of the coarse cell holding ``point``."""
    row = math.floor(point.latitude / cell_size_degrees)
    return row, _column(point.longitude, row, cell_size_degrees)


def covering_cells(point: GeoPoint, cell_size_degrees: float) -> list[tuple[int, int]]:
    """Return the block of cells around ``point`` in a stable order.

    For each of the three rows around the point this takes the point's column
    in that row and its two neighbours, wrapping at the antimeridian. Two points
    closer than one cell height share a row and sit at most one column apart
    in it, so their blocks always intersect and locking a whole block
    serializes nearby decisions at any latitude.
    """
    row = math.floor(point.latitude / cell_size_degrees)
    cells: set[tuple[int, int]] = set()
    for r in (row - 1, row, row + 1):
        columns = _row_columns(r, cell_size_degrees)
        col = _column(point.longitude, r, cell_size_degrees)
        cells.update((r, (col + dc) % columns) for dc in (-1, 0, 1))
    return sorted(cells)


def cell_lock_key(cell: tuple[int, int]) -> int:
    """Map a cell onto a signed 63-bit integer usable as an advisory lock key."""
    row, col = cell
    return ((row & 0xFFFFFFFF) << 31) ^ (col & 0x7FFFFFFF)
