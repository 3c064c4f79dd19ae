"""
Car rental endpoints
====================

GET   /api/v1/rentals/cars                 -- rentable cars
POST  /api/v1/rentals/quote                -- duration and price for a window
POST  /api/v1/rentals                      -- book a car (201)
GET   /api/v1/rentals/{rental_id}          -- booking details
PATCH /api/v1/rentals/{rental_id}/status   -- confirm / activate / complete / cancel
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_db, get_redis_client
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    RentalCarResponse,
    RentalCreateRequest,
    RentalQuoteRequest,
    RentalQuoteResponse,
    RentalResponse,
    RentalStatusRequest,
)
from ridehail.config import settings
from ridehail.domain.entities import Rental
from ridehail.domain.enums import CarAvailability, DurationType, RentalStatus
from ridehail.domain.errors import InvalidRentalWindow
from ridehail.domain.rentals import (
    format_duration,
    rental_duration,
    rental_price,
    validate_rental_window,
)
from ridehail.infrastructure.locks import rental_car_lock
from ridehail.infrastructure.repositories import (
    PassengerRepository,
    RentalCarRepository,
    RentalRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rentals", tags=["rentals"])

# Car availability implied by each booking status
_CAR_AVAILABILITY = {
    RentalStatus.ACTIVE: CarAvailability.RENTED,
    RentalStatus.COMPLETED: CarAvailability.AVAILABLE,
}


async def _get_car_or_404(db: AsyncSession, car_id: int):
    car = await RentalCarRepository(db).get_by_id(car_id)
    if not car or not car.is_active:
        raise HTTPException(status_code=404, detail="Rental car not found")
    return car


def _quote(car, body: RentalQuoteRequest) -> RentalQuoteResponse:
    duration = rental_duration(body.rental_start, body.rental_end, body.duration_type)
    rate = (
        car.price_per_hour
        if body.duration_type is DurationType.HOURLY
        else car.price_per_day
    )
    return RentalQuoteResponse(
        car_id=car.id,
        duration_type=body.duration_type,
        duration_value=duration,
        unit_rate=rate,
        total_price=rental_price(rate, duration),
        display_duration=format_duration(duration, body.duration_type),
    )


@router.get("/cars", response_model=list[RentalCarResponse], summary="Rentable cars")
@limiter.limit(settings.rate_limit)
async def list_cars(request: Request, db: AsyncSession = Depends(get_db)):
    return await RentalCarRepository(db).list_available()


@router.post(
    "/quote", response_model=RentalQuoteResponse, summary="Price a rental window"
)
@limiter.limit(settings.rate_limit)
async def quote_rental(
    request: Request,
    body: RentalQuoteRequest,
    db: AsyncSession = Depends(get_db),
):
    car = await _get_car_or_404(db, body.car_id)
    return _quote(car, body)


@router.post(
    "",
    status_code=201,
    response_model=RentalResponse,
    summary="Book a rental car",
)
@limiter.limit(settings.rate_limit)
async def create_rental(
    request: Request,
    body: RentalCreateRequest,
    db: AsyncSession = Depends(get_db),
    client: aioredis.Redis = Depends(get_redis_client),
):
    start, end = validate_rental_window(body.rental_start, body.rental_end)
    if not await PassengerRepository(db).get_by_id(body.user_id):
        raise HTTPException(status_code=404, detail="Passenger not found")
    car = await _get_car_or_404(db, body.car_id)
    if car.availability_status == CarAvailability.MAINTENANCE:
        raise HTTPException(status_code=409, detail="Car is under maintenance")

    quote = _quote(car, body)
    if quote.duration_value <= 0:
        raise InvalidRentalWindow("Please select a valid rental period")

    repo = RentalRepository(db)
    async with rental_car_lock(client, car.id):
        if await repo.has_overlap(car.id, start, end):
            raise HTTPException(
                status_code=409, detail="Car is already booked for these dates"
            )
        rental = await repo.create(
            car_id=car.id,
            user_id=body.user_id,
            rental_start=start,
            rental_end=end,
            duration_type=body.duration_type,
            duration_value=quote.duration_value,
            total_price=quote.total_price,
            status=RentalStatus.PENDING,
            pickup_location=body.pickup_location,
            return_location=body.return_location,
            driver_license_number=body.driver_license_number,
            contact_phone=body.contact_phone,
            special_requests=body.special_requests,
        )
        # Make the booking visible before the lock is released
        await db.commit()

    logger.info(
        "Rental %s booked: car %s for %s (%s)",
        rental.id, car.id, quote.display_duration, quote.total_price,
    )
    return rental


@router.get("/{rental_id}", response_model=RentalResponse, summary="Get a rental")
@limiter.limit(settings.rate_limit)
async def get_rental(
    request: Request,
    rental_id: int,
    db: AsyncSession = Depends(get_db),
):
    rental = await RentalRepository(db).get_by_id(rental_id)
    if not rental:
        raise HTTPException(status_code=404, detail="Rental not found")
    return rental


@router.patch(
    "/{rental_id}/status",
    response_model=RentalResponse,
    summary="Move a rental through its lifecycle",
)
@limiter.limit(settings.rate_limit)
async def update_rental_status(
    request: Request,
    rental_id: int,
    body: RentalStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    record = await RentalRepository(db).get_by_id(rental_id)
    if not record:
        raise HTTPException(status_code=404, detail="Rental not found")

    rental = Rental(
        id=record.id,
        car_id=record.car_id,
        user_id=record.user_id,
        status=RentalStatus(record.status),
    )
    rental.transition_to(body.status)
    record.status = rental.status

    availability = _CAR_AVAILABILITY.get(rental.status)
    if availability is not None:
        car = await RentalCarRepository(db).get_by_id(record.car_id)
        if car:
            car.availability_status = availability
    return record
