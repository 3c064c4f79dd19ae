"""
Great-circle distance between two geo-points (Haversine formula).

Coordinates are degrees, results are kilometres on a sphere of radius
6371 km.  Out-of-range coordinates are not validated: the formula simply
returns whatever the arithmetic produces.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from typing import Protocol

EARTH_RADIUS_KM = 6_371.0


class GeoPoint(Protocol):
    latitude: float
    longitude: float


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def route_distance_km(pickup: GeoPoint, dropoff: GeoPoint) -> float:
    """Straight-line trip distance between a pickup and a drop-off."""
    return haversine_km(
        pickup.latitude, pickup.longitude, dropoff.latitude, dropoff.longitude
    )
