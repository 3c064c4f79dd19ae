"""
Ride endpoints
==============

POST  /api/v1/rides/estimate              -- fare quote for a trip
POST  /api/v1/rides                       -- request a ride (202, dispatch is async)
GET   /api/v1/rides/{ride_id}             -- ride details
GET   /api/v1/rides/{ride_id}/cancellation -- can the passenger still cancel?
PATCH /api/v1/rides/{ride_id}/accept      -- driver accepts a pending ride
PATCH /api/v1/rides/{ride_id}/start       -- driver picks the passenger up
PATCH /api/v1/rides/{ride_id}/complete    -- driver finishes the trip
PATCH /api/v1/rides/{ride_id}/cancel      -- passenger cancels
PATCH /api/v1/rides/{ride_id}/rate        -- passenger rates a completed ride
WS    /api/v1/rides/{ride_id}/events      -- realtime status changes
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis.asyncio as aioredis
from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import (
    get_db,
    get_event_publisher,
    get_fare_estimator,
    get_redis_client,
)
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    CancellationStatusResponse,
    FareEstimateRequest,
    FareEstimateResponse,
    RideAcceptRequest,
    RideCancelRequest,
    RideCreateRequest,
    RideRateRequest,
    RideResponse,
)
from ridehail.config import settings
from ridehail.domain.entities import Ride
from ridehail.domain.enums import CancellationAnchor, DriverStatus, RideStatus
from ridehail.domain.errors import InvalidStateTransition
from ridehail.domain.pricing import FareEstimator, FareQuote, Tariff, format_currency
from ridehail.infrastructure.database import async_session_factory
from ridehail.infrastructure.events import RideEventPublisher
from ridehail.infrastructure.repositories import (
    CarCategoryRepository,
    DriverRepository,
    PassengerRepository,
    RideRepository,
    SurgeZoneRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rides", tags=["rides"])


def _cancellation_policy() -> tuple[timedelta, CancellationAnchor]:
    return (
        timedelta(minutes=settings.cancellation_window_minutes),
        CancellationAnchor(settings.cancellation_window_anchor),
    )


def tariff_from_category(category) -> Tariff:
    return Tariff(
        base_fare=category.base_fare,
        price_per_km=category.base_price_per_km,
        minimum_fare=category.minimum_fare,
        passenger_capacity=category.passenger_capacity,
        surge_multiplier=category.surge_multiplier or 1.0,
    )


async def _quote(
    db: AsyncSession, body: FareEstimateRequest, estimator: FareEstimator
) -> FareQuote:
    category = await CarCategoryRepository(db).get_by_id(body.category_id)
    if not category or not category.is_active:
        raise HTTPException(status_code=404, detail="Car category not found")

    zone_multiplier = await SurgeZoneRepository(db).multiplier_at(
        body.pickup_lat, body.pickup_lng, datetime.now(timezone.utc)
    )
    return estimator.estimate_trip(
        body.pickup_lat,
        body.pickup_lng,
        body.dropoff_lat,
        body.dropoff_lng,
        tariff_from_category(category),
        zone_multiplier=zone_multiplier,
    )


async def _get_ride_or_404(repo: RideRepository, ride_id: int):
    ride = await repo.get_by_id(ride_id)
    if not ride:
        raise HTTPException(status_code=404, detail="Ride not found")
    return ride


async def _commit_and_notify(
    db: AsyncSession,
    publisher: RideEventPublisher,
    ride,
    previous: Optional[RideStatus],
) -> None:
    """Commit the ride change, then publish it; events only describe committed state."""
    await db.commit()
    try:
        await publisher.publish(ride, previous_status=previous)
    except RedisError:
        logger.warning("Could not publish event for ride %s", ride.id, exc_info=True)


async def _release_driver(db: AsyncSession, driver_id: Optional[int], completed: bool):
    if not driver_id:
        return
    repo = DriverRepository(db)
    driver = await repo.get_by_id(driver_id)
    if driver:
        if completed:
            driver.total_trips = (driver.total_trips or 0) + 1
        await repo.set_status(driver, DriverStatus.AVAILABLE, datetime.now(timezone.utc))


# ── Booking ───────────────────────────────────────────────────────────


@router.post(
    "/estimate",
    response_model=FareEstimateResponse,
    summary="Estimate the fare for a trip",
)
@limiter.limit(settings.rate_limit)
async def estimate_fare(
    request: Request,
    body: FareEstimateRequest,
    db: AsyncSession = Depends(get_db),
    estimator: FareEstimator = Depends(get_fare_estimator),
):
    quote = await _quote(db, body, estimator)
    return FareEstimateResponse(
        category_id=body.category_id,
        distance_km=quote.distance_km,
        per_km_rate=quote.per_km_rate,
        surge_multiplier=quote.surge_multiplier,
        estimated_fare=quote.fare,
        minimum_applied=quote.minimum_applied,
        display=format_currency(quote.fare, settings.currency),
    )


@router.post(
    "",
    status_code=202,
    response_model=RideResponse,
    summary="Request a ride",
    responses={202: {"description": "Ride requested; driver dispatch is async."}},
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    db: AsyncSession = Depends(get_db),
    estimator: FareEstimator = Depends(get_fare_estimator),
    publisher: RideEventPublisher = Depends(get_event_publisher),
):
    repo = RideRepository(db)

    # ── Idempotency guard ─────────────────────────────────────────
    if body.idempotency_key:
        existing = await repo.get_by_idempotency_key(body.idempotency_key)
        if existing:
            return existing

    if not await PassengerRepository(db).get_by_id(body.passenger_id):
        raise HTTPException(status_code=404, detail="Passenger not found")

    # Fare is always computed here, never taken from the client
    quote = await _quote(db, body, estimator)
    ride = await repo.create_ride(
        passenger_id=body.passenger_id,
        category_id=body.category_id,
        pickup_lat=body.pickup_lat,
        pickup_lng=body.pickup_lng,
        dropoff_lat=body.dropoff_lat,
        dropoff_lng=body.dropoff_lng,
        pickup_address=body.pickup_address,
        dropoff_address=body.dropoff_address,
        payment_method=body.payment_method,
        distance_km=quote.distance_km,
        estimated_fare=quote.fare,
        idempotency_key=body.idempotency_key,
    )
    logger.info("Ride %s requested, estimated fare %.2f", ride.id, quote.fare)
    await _commit_and_notify(db, publisher, ride, None)
    return ride


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await _get_ride_or_404(RideRepository(db), ride_id)


@router.get(
    "/{ride_id}/cancellation",
    response_model=CancellationStatusResponse,
    summary="Whether the passenger may still cancel",
)
@limiter.limit(settings.rate_limit)
async def get_cancellation_status(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    ride = Ride.from_record(await _get_ride_or_404(RideRepository(db), ride_id))
    window, anchor = _cancellation_policy()
    return CancellationStatusResponse(
        ride_id=ride_id,
        can_cancel=ride.can_cancel(window=window, anchor=anchor),
        reason=ride.cancellation_block_reason(window=window, anchor=anchor),
    )


# ── Driver actions ────────────────────────────────────────────────────


@router.patch("/{ride_id}/accept", response_model=RideResponse, summary="Accept a ride")
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int,
    body: RideAcceptRequest,
    db: AsyncSession = Depends(get_db),
    publisher: RideEventPublisher = Depends(get_event_publisher),
):
    ride_repo = RideRepository(db)
    driver_repo = DriverRepository(db)

    record = await _get_ride_or_404(ride_repo, ride_id)
    driver = await driver_repo.get_by_id(body.driver_id)
    if not driver:
        raise HTTPException(status_code=404, detail="Driver not found")

    now = datetime.now(timezone.utc)
    Ride.from_record(record).accept(driver.id, now)  # validates the transition

    # Both guards are conditional UPDATEs; losing the ride race rolls back the claim
    if not await driver_repo.claim(driver.id, now):
        raise HTTPException(status_code=409, detail="Driver is not available")
    if not await ride_repo.assign_driver(ride_id, driver.id, now):
        raise InvalidStateTransition("Ride has already been accepted")

    logger.info("Ride %s accepted by driver %s", ride_id, driver.id)
    await _commit_and_notify(db, publisher, record, RideStatus.PENDING)
    return record


@router.patch("/{ride_id}/start", response_model=RideResponse, summary="Start a ride")
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    publisher: RideEventPublisher = Depends(get_event_publisher),
):
    record = await _get_ride_or_404(RideRepository(db), ride_id)
    ride = Ride.from_record(record)
    previous = ride.status
    ride.start()
    ride.apply_to(record)
    await _commit_and_notify(db, publisher, record, previous)
    return record


@router.patch(
    "/{ride_id}/complete", response_model=RideResponse, summary="Complete a ride"
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    publisher: RideEventPublisher = Depends(get_event_publisher),
):
    record = await _get_ride_or_404(RideRepository(db), ride_id)
    ride = Ride.from_record(record)
    previous = ride.status
    ride.complete()
    ride.apply_to(record)
    await _release_driver(db, ride.driver_id, completed=True)
    logger.info("Ride %s completed, final fare %.2f", ride_id, ride.final_fare or 0.0)
    await _commit_and_notify(db, publisher, record, previous)
    return record


# ── Passenger actions ─────────────────────────────────────────────────


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Pending rides can always be cancelled.  Accepted rides only within "
        "the cancellation window; rides in progress cannot be cancelled."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: Optional[RideCancelRequest] = None,
    db: AsyncSession = Depends(get_db),
    publisher: RideEventPublisher = Depends(get_event_publisher),
):
    record = await _get_ride_or_404(RideRepository(db), ride_id)
    ride = Ride.from_record(record)
    previous = ride.status
    window, anchor = _cancellation_policy()
    ride.cancel(reason=body.reason if body else None, window=window, anchor=anchor)
    ride.apply_to(record)
    await _release_driver(db, ride.driver_id, completed=False)
    logger.info("Ride %s cancelled from %s", ride_id, previous.value)
    await _commit_and_notify(db, publisher, record, previous)
    return record


@router.patch("/{ride_id}/rate", response_model=RideResponse, summary="Rate a ride")
@limiter.limit(settings.rate_limit)
async def rate_ride(
    request: Request,
    ride_id: int,
    body: RideRateRequest,
    db: AsyncSession = Depends(get_db),
):
    ride_repo = RideRepository(db)
    record = await _get_ride_or_404(ride_repo, ride_id)
    ride = Ride.from_record(record)
    ride.rate(body.rating, body.feedback)
    ride.apply_to(record)
    await db.flush()

    if ride.driver_id:
        driver = await DriverRepository(db).get_by_id(ride.driver_id)
        if driver:
            rated = [
                r.rating
                for r in await ride_repo.get_completed_for_driver(ride.driver_id)
                if r.rating is not None
            ]
            if rated:
                driver.rating = round(sum(rated) / len(rated), 2)
    return record


# ── Realtime ──────────────────────────────────────────────────────────


async def _forward_events(
    publisher: RideEventPublisher, ride_id: int, websocket: WebSocket
) -> None:
    async with aclosing(publisher.subscribe(ride_id)) as events:
        async for payload in events:
            await websocket.send_text(payload)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/{ride_id}/events")
async def ride_events(
    websocket: WebSocket,
    ride_id: int,
    client: aioredis.Redis = Depends(get_redis_client),
):
    """Stream status changes of one ride until the client goes away."""
    async with async_session_factory() as session:
        ride = await RideRepository(session).get_by_id(ride_id)
    if ride is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Ride not found")
        return

    await websocket.accept()
    forward = asyncio.create_task(
        _forward_events(RideEventPublisher(client), ride_id, websocket)
    )
    disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
    # pubsub.listen() blocks through a client disconnect; only receive() sees it
    try:
        await asyncio.wait({forward, disconnect}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        forward.cancel()
        disconnect.cancel()
        results = await asyncio.gather(forward, disconnect, return_exceptions=True)

    for result in results:
        if isinstance(result, Exception) and not isinstance(result, WebSocketDisconnect):
            logger.warning("Event stream for ride %s failed: %r", ride_id, result)
    logger.debug("Subscriber for ride %s disconnected", ride_id)
