"""Driver earnings aggregation over completed rides."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional


@dataclass(frozen=True)
class EarningsPeriod:
    rides: int = 0
    total: float = 0.0


@dataclass(frozen=True)
class EarningsSummary:
    today: EarningsPeriod
    last_7_days: EarningsPeriod
    last_30_days: EarningsPeriod
    all_time: EarningsPeriod
    average_rating: Optional[float] = None


def _period(rows: list[tuple[datetime, float]], since: Optional[datetime]) -> EarningsPeriod:
    selected = [fare for at, fare in rows if since is None or at >= since]
    return EarningsPeriod(rides=len(selected), total=round(sum(selected), 2))


def summarize_earnings(rides: Iterable, now: Optional[datetime] = None) -> EarningsSummary:
    """Aggregate completed rides (anything with completed_at/final_fare/rating)."""
    now = now or datetime.now(timezone.utc)
    rows: list[tuple[datetime, float]] = []
    ratings: list[int] = []
    for ride in rides:
        at = ride.completed_at
        if at is None:
            continue
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        rows.append((at, float(ride.final_fare or 0.0)))
        if ride.rating is not None:
            ratings.append(ride.rating)

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return EarningsSummary(
        today=_period(rows, midnight),
        last_7_days=_period(rows, now - timedelta(days=7)),
        last_30_days=_period(rows, now - timedelta(days=30)),
        all_time=_period(rows, None),
        average_rating=round(sum(ratings) / len(ratings), 2) if ratings else None,
    )
