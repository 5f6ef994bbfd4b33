"""Coordinate type and great-circle distance helpers."""

from __future__ import annotations

import math
from typing import NamedTuple

EARTH_RADIUS_KM = 6371.0


class Coordinates(NamedTuple):
    """WGS84 latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return the great-circle distance in kilometres between two points."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(origin: Coordinates, target: Coordinates) -> float:
    return haversine_distance(origin.latitude, origin.longitude, target.latitude, target.longitude)
