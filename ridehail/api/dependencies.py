"""FastAPI dependency injection helpers."""

from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.config import settings
from ridehail.domain.pricing import FareEstimator
from ridehail.infrastructure.database import async_session_factory
from ridehail.infrastructure.events import RideEventPublisher
from ridehail.infrastructure.geocoding import MapboxGeocoder
from ridehail.infrastructure.redis_client import get_redis


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_redis_client() -> aioredis.Redis:
    return await get_redis()


async def get_event_publisher(
    client: aioredis.Redis = Depends(get_redis_client),
) -> RideEventPublisher:
    return RideEventPublisher(client)


def get_fare_estimator() -> FareEstimator:
    return FareEstimator(capacity_weighted=settings.fare_capacity_weighting)


async def get_geocoder() -> AsyncIterator[MapboxGeocoder]:
    geocoder = MapboxGeocoder()
    try:
        yield geocoder
    finally:
        await geocoder.aclose()
