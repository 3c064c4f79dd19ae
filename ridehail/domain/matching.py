"""
Driver Matching
===============

1. **Spatial pre-filter** -- drivers are indexed by H3 cell (resolution 7,
   ~1.2 km edge).  A pickup is expanded to the ring of cells that covers
   the search radius, so only drivers in those cells are loaded.
2. **Exact filter**       -- Haversine distance <= radius.
3. **Scoring**            -- weighted blend, higher is better:

   ==========  ======  ============================================
   Component   Weight  Term
   ==========  ======  ============================================
   Rating      40      rating / 5
   Distance    35      (max_distance - distance) / max_distance
   Experience  15      total_trips / max_trips
   ETA         10      (max_eta - eta) / max_eta
   ==========  ======  ============================================

   Each ``max_*`` is taken over the whole candidate pool and floored at 1.
   A preferred driver receives a flat +100 so they always rank first.

Complexity
----------
Ranking is O(n log n) in the number of candidates; the pre-filter bounds
n to the drivers inside the covering cells.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional

import h3

from .distance import haversine_km

PREFERRED_DRIVER_BONUS = 100.0


@dataclass(frozen=True)
class DriverCandidate:
    driver_id: int
    name: str
    rating: float
    distance_km: float
    eta_minutes: int
    total_trips: int = 0
    car_model: Optional[str] = None
    car_plate: Optional[str] = None
    match_score: float = 0.0
    is_preferred: bool = False


def location_h3_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def covering_cells(
    lat: float, lng: float, radius_km: float, resolution: int = 7
) -> set[str]:
    """H3 cells whose union covers a disc of *radius_km* around the point."""
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    k = max(1, math.ceil(radius_km / (edge_km * 1.5)) + 1)
    return set(h3.grid_disk(location_h3_cell(lat, lng, resolution), k))


def estimate_eta_minutes(distance_km: float, average_speed_kmh: float = 30.0) -> int:
    return round(distance_km / average_speed_kmh * 60)


def build_candidate(
    driver,
    pickup_lat: float,
    pickup_lng: float,
    average_speed_kmh: float = 30.0,
) -> DriverCandidate:
    distance = haversine_km(
        driver.current_lat, driver.current_lng, pickup_lat, pickup_lng
    )
    return DriverCandidate(
        driver_id=driver.id,
        name=driver.name,
        rating=float(driver.rating or 0.0),
        distance_km=distance,
        eta_minutes=estimate_eta_minutes(distance, average_speed_kmh),
        total_trips=driver.total_trips or 0,
        car_model=driver.car_model,
        car_plate=driver.car_plate,
    )


def rank_drivers(
    candidates: Iterable[DriverCandidate],
    preferred_driver_id: Optional[int] = None,
    min_rating: float = 0.0,
) -> list[DriverCandidate]:
    """Score, filter by *min_rating* and sort candidates best-first."""
    pool = list(candidates)
    if not pool:
        return []

    max_distance = max([c.distance_km for c in pool] + [1])
    max_trips = max([c.total_trips for c in pool] + [1])
    max_eta = max([c.eta_minutes for c in pool] + [1])

    scored = []
    for c in pool:
        if c.rating < min_rating:
            continue
        score = (c.rating / 5.0) * 40
        score += (max_distance - c.distance_km) / max_distance * 35
        score += c.total_trips / max_trips * 15
        score += (max_eta - c.eta_minutes) / max_eta * 10

        preferred = preferred_driver_id is not None and c.driver_id == preferred_driver_id
        if preferred:
            score += PREFERRED_DRIVER_BONUS

        scored.append(
            replace(c, match_score=round(score, 2), is_preferred=preferred)
        )

    scored.sort(key=lambda c: c.match_score, reverse=True)
    return scored
