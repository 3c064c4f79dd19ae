"""
Background Auto-Dispatch Worker
===============================

Runs every ``DISPATCH_INTERVAL_SECONDS`` (default 10 s).

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance runs the dispatch
  cycle at a time across multiple API processes.
* **Conditional UPDATEs** on both rows: the driver is claimed with
  ``... WHERE status = 'available'`` and the ride with
  ``... WHERE status = 'pending'``, so a manual accept racing the worker
  wins or loses cleanly instead of double-assigning either side.
* Events are published only after the cycle's transaction commits.

Algorithm per cycle
-------------------
1. Fetch all PENDING rides without a driver, oldest first.
2. For each ride, load available drivers active in the last few minutes
   within the matching radius (H3 pre-filter + Haversine).
3. Rank them (rating / distance / experience / ETA), dropping drivers
   below the minimum rating.
4. Claim the best driver that is still free and assign the ride; after
   the commit, publish the status changes.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from redis.exceptions import RedisError

from ridehail.config import settings
from ridehail.domain.enums import DriverStatus, RideStatus
from ridehail.domain.matching import rank_drivers
from ridehail.infrastructure.database import async_session_factory
from ridehail.infrastructure.events import RideEventPublisher
from ridehail.infrastructure.locks import DistributedLock
from ridehail.infrastructure.redis_client import get_redis
from ridehail.infrastructure.repositories import DriverRepository, RideRepository

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_dispatch_loop() -> None:
    global _task, _stop_event
    if not settings.auto_dispatch_enabled:
        logger.info("Auto-dispatch disabled by settings")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Dispatch worker started (interval=%ds)", settings.dispatch_interval_seconds
    )


async def stop_dispatch_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Dispatch worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a dispatch cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_dispatch_cycle()
        except Exception:
            logger.exception("Unhandled error in dispatch cycle")
        # Wait for the interval or until stop is signalled
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.dispatch_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def _claim_best_driver(driver_repo, ranked, now) -> int | None:
    """Claim the highest-ranked driver that is still free."""
    for candidate in ranked:
        if await driver_repo.claim(candidate.driver_id, now):
            return candidate.driver_id
    return None


async def dispatch_pending_rides(session) -> list:
    """Assign drivers to pending rides in *session*.  Returns the assigned rides.

    Nothing is committed or published here; the caller commits first and
    only then announces the assignments.
    """
    ride_repo = RideRepository(session)
    driver_repo = DriverRepository(session)

    pending = await ride_repo.get_pending_rides()
    if not pending:
        return []

    now = datetime.now(timezone.utc)
    active_since = now - timedelta(minutes=settings.driver_activity_timeout_minutes)
    assigned = []

    for ride in pending:
        candidates = await driver_repo.find_candidates(
            ride.pickup_lat,
            ride.pickup_lng,
            radius_km=settings.driver_matching_radius_km,
            active_since=active_since,
            limit=settings.max_dispatch_candidates,
            h3_resolution=settings.h3_resolution,
            average_speed_kmh=settings.average_speed_kmh,
        )
        ranked = rank_drivers(candidates, min_rating=settings.min_driver_rating)
        if not ranked:
            logger.debug("No eligible drivers for ride %s", ride.id)
            continue

        driver_id = await _claim_best_driver(driver_repo, ranked, now)
        if driver_id is None:
            continue  # every candidate was taken by a manual accept
        if not await ride_repo.assign_driver(ride.id, driver_id, now):
            # accepted manually in the meantime; hand the driver back
            driver = await driver_repo.get_by_id(driver_id)
            await driver_repo.set_status(driver, DriverStatus.AVAILABLE, now)
            continue

        best = next(c for c in ranked if c.driver_id == driver_id)
        assigned.append(ride)
        logger.info(
            "Dispatched ride %s to driver %s (score=%.2f, %.2f km, eta %d min)",
            ride.id, driver_id, best.match_score, best.distance_km, best.eta_minutes,
        )

    return assigned


async def publish_assignments(publisher: RideEventPublisher, rides: list) -> None:
    for ride in rides:
        try:
            await publisher.publish(ride, previous_status=RideStatus.PENDING)
        except RedisError:
            logger.warning("Could not publish dispatch of ride %s", ride.id)


async def run_dispatch_cycle() -> int:
    """Execute one dispatch cycle.  Returns the number of rides dispatched."""
    redis = await get_redis()
    lock = DistributedLock(redis, "dispatch_engine", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    dispatched = 0
    try:
        async with async_session_factory() as session:
            assigned = await dispatch_pending_rides(session)
            await session.commit()
        await publish_assignments(RideEventPublisher(redis), assigned)
        dispatched = len(assigned)
        if dispatched:
            logger.info("Dispatch cycle: %d rides assigned", dispatched)
    except Exception:
        logger.exception("Error in dispatch cycle")
    finally:
        await lock.release()

    return dispatched
