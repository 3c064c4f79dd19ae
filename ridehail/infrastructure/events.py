"""
Realtime ride change notifications over Redis pub/sub.

Every ride mutation publishes a ``RideEvent`` on ``rides:{ride_id}``.
WebSocket clients subscribe to that channel.  Delivery is at-most-once
and ordered only as far as Redis pub/sub orders it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
from pydantic import BaseModel, Field

from ridehail.domain.enums import RideStatus

logger = logging.getLogger(__name__)


def ride_channel(ride_id: int) -> str:
    return f"rides:{ride_id}"


class RideEvent(BaseModel):
    ride_id: int
    status: RideStatus
    previous_status: Optional[RideStatus] = None
    driver_id: Optional[int] = None
    final_fare: Optional[float] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RideEventPublisher:
    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def publish(self, ride, previous_status: Optional[RideStatus] = None) -> RideEvent:
        event = RideEvent(
            ride_id=ride.id,
            status=ride.status,
            previous_status=previous_status,
            driver_id=ride.driver_id,
            final_fare=ride.final_fare,
        )
        receivers = await self.redis.publish(
            ride_channel(ride.id), event.model_dump_json()
        )
        logger.debug(
            "Published %s for ride %s to %s subscriber(s)",
            event.status.value, ride.id, receivers,
        )
        return event

    async def subscribe(self, ride_id: int) -> AsyncIterator[str]:
        """Yield raw JSON events for *ride_id* until the caller closes the generator.

        Wrap it in ``contextlib.aclosing`` so the subscription is released
        as soon as the consumer stops, not at garbage collection.
        """
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(ride_channel(ride_id))
        try:
            async for message in pubsub.listen():
                if message.get("type") == "message":
                    yield message["data"]
        finally:
            await pubsub.unsubscribe(ride_channel(ride_id))
            await pubsub.close()
