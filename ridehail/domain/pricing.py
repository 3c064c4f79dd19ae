"""
Fare Estimation  (Strategy Pattern)
===================================

Formula
-------
Fare = max((Base_Fare + Distance x Per_KM_Rate) x Surge, Minimum_Fare)

* **Per_KM_Rate** depends on the rate policy:

  - ``StandardRate``         -- the category's ``price_per_km``
  - ``CapacityWeightedRate`` -- ``price_per_km x passenger_capacity``

  Exactly one policy is active service-wide (``capacity_weighted`` flag).
* **Surge** is the category multiplier times the active surge-zone
  multiplier, never below 1.0.  With no surge the formula is the plain
  linear tariff clamped to the minimum fare.

Complexity: O(1) per quote.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .distance import haversine_km


@dataclass(frozen=True)
class Tariff:
    base_fare: float
    price_per_km: float
    minimum_fare: float
    passenger_capacity: int = 4
    surge_multiplier: float = 1.0


@dataclass(frozen=True)
class FareQuote:
    distance_km: float
    per_km_rate: float
    surge_multiplier: float
    fare: float
    minimum_applied: bool


# ── Rate policies ─────────────────────────────────────────────────────


class RatePolicy(ABC):
    @abstractmethod
    def per_km_rate(self, tariff: Tariff) -> float: ...


class StandardRate(RatePolicy):
    def per_km_rate(self, tariff: Tariff) -> float:
        return tariff.price_per_km


class CapacityWeightedRate(RatePolicy):
    """Scales the per-km rate by the number of seats in the category."""

    def per_km_rate(self, tariff: Tariff) -> float:
        return tariff.price_per_km * tariff.passenger_capacity


# ── Estimator facade ──────────────────────────────────────────────────


class FareEstimator:
    """High-level API used by the ride routes and the dispatch worker."""

    def __init__(self, capacity_weighted: bool = False):
        self.capacity_weighted = capacity_weighted
        self.policy: RatePolicy = (
            CapacityWeightedRate() if capacity_weighted else StandardRate()
        )

    @staticmethod
    def effective_surge(*multipliers: float) -> float:
        surge = 1.0
        for m in multipliers:
            surge *= m
        return max(1.0, surge)

    def estimate(
        self, distance_km: float, tariff: Tariff, zone_multiplier: float = 1.0
    ) -> FareQuote:
        rate = self.policy.per_km_rate(tariff)
        surge = self.effective_surge(tariff.surge_multiplier, zone_multiplier)
        raw = (tariff.base_fare + distance_km * rate) * surge
        fare = max(raw, tariff.minimum_fare)
        return FareQuote(
            distance_km=round(distance_km, 2),
            per_km_rate=rate,
            surge_multiplier=surge,
            fare=round(fare, 2),
            minimum_applied=raw < tariff.minimum_fare,
        )

    def estimate_trip(
        self,
        pickup_lat: float,
        pickup_lng: float,
        dropoff_lat: float,
        dropoff_lng: float,
        tariff: Tariff,
        zone_multiplier: float = 1.0,
    ) -> FareQuote:
        distance = haversine_km(pickup_lat, pickup_lng, dropoff_lat, dropoff_lng)
        return self.estimate(distance, tariff, zone_multiplier)


def format_currency(amount: float, currency: str = "RWF") -> str:
    """Render whole currency units with thousands separators: ``5,000 RWF``."""
    units = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{int(units):,} {currency}"
