"""
Driver endpoints
================

GET   /api/v1/drivers/nearby                 -- ranked drivers around a pickup
PATCH /api/v1/drivers/{driver_id}/location     -- location heartbeat
PATCH /api/v1/drivers/{driver_id}/availability -- go online / offline
GET   /api/v1/drivers/{driver_id}/earnings     -- earnings summary
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_db
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    DriverAvailabilityRequest,
    DriverLocationRequest,
    DriverMatchResponse,
    DriverResponse,
    EarningsPeriodResponse,
    EarningsSummaryResponse,
)
from ridehail.config import settings
from ridehail.domain.earnings import summarize_earnings
from ridehail.domain.enums import DriverStatus
from ridehail.domain.matching import rank_drivers
from ridehail.infrastructure.repositories import DriverRepository, RideRepository

router = APIRouter(prefix="/drivers", tags=["drivers"])


async def _get_driver_or_404(repo: DriverRepository, driver_id: int):
    driver = await repo.get_by_id(driver_id)
    if not driver:
        raise HTTPException(status_code=404, detail="Driver not found")
    return driver


@router.get(
    "/nearby",
    response_model=list[DriverMatchResponse],
    summary="Rank available drivers around a pickup point",
)
@limiter.limit(settings.rate_limit)
async def nearby_drivers(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(settings.driver_matching_radius_km, gt=0, le=50),
    limit: int = Query(5, ge=1, le=50),
    preferred_driver_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    now = datetime.now(timezone.utc)
    candidates = await DriverRepository(db).find_candidates(
        lat,
        lng,
        radius_km=radius_km,
        active_since=now - timedelta(minutes=settings.driver_activity_timeout_minutes),
        limit=limit,
        h3_resolution=settings.h3_resolution,
        average_speed_kmh=settings.average_speed_kmh,
    )
    return rank_drivers(candidates, preferred_driver_id=preferred_driver_id)


@router.patch(
    "/{driver_id}/location",
    response_model=DriverResponse,
    summary="Update the driver's current location",
)
@limiter.limit("600/minute")
async def update_location(
    request: Request,
    driver_id: int,
    body: DriverLocationRequest,
    db: AsyncSession = Depends(get_db),
):
    repo = DriverRepository(db)
    driver = await _get_driver_or_404(repo, driver_id)
    return await repo.update_location(
        driver,
        body.latitude,
        body.longitude,
        datetime.now(timezone.utc),
        h3_resolution=settings.h3_resolution,
    )


@router.patch(
    "/{driver_id}/availability",
    response_model=DriverResponse,
    summary="Set the driver online (available) or offline",
)
@limiter.limit(settings.rate_limit)
async def update_availability(
    request: Request,
    driver_id: int,
    body: DriverAvailabilityRequest,
    db: AsyncSession = Depends(get_db),
):
    repo = DriverRepository(db)
    driver = await _get_driver_or_404(repo, driver_id)
    if body.status is DriverStatus.BUSY:
        raise HTTPException(
            status_code=422, detail="Drivers become busy by accepting a ride"
        )
    if DriverStatus(driver.status) is DriverStatus.BUSY:
        raise HTTPException(
            status_code=409, detail="Cannot change availability during a ride"
        )
    return await repo.set_status(driver, body.status, datetime.now(timezone.utc))


@router.get(
    "/{driver_id}/earnings",
    response_model=EarningsSummaryResponse,
    summary="Earnings for today, the last 7 / 30 days and all time",
)
@limiter.limit(settings.rate_limit)
async def driver_earnings(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
):
    await _get_driver_or_404(DriverRepository(db), driver_id)
    rides = await RideRepository(db).get_completed_for_driver(driver_id)
    summary = summarize_earnings(rides)
    return EarningsSummaryResponse(
        driver_id=driver_id,
        today=EarningsPeriodResponse.model_validate(summary.today),
        last_7_days=EarningsPeriodResponse.model_validate(summary.last_7_days),
        last_30_days=EarningsPeriodResponse.model_validate(summary.last_30_days),
        all_time=EarningsPeriodResponse.model_validate(summary.all_time),
        average_rating=summary.average_rating,
    )
