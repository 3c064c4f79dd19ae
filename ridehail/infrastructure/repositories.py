"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  The mapped class is a class attribute so a
repository can be pointed at a differently-mapped table (e.g. without
PostGIS columns).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from geoalchemy2.functions import ST_MakePoint, ST_SetSRID
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    CarCategoryModel,
    CarRentalModel,
    DriverModel,
    PassengerModel,
    RentalCarModel,
    RideModel,
    SurgeZoneModel,
)
from ridehail.domain.distance import haversine_km
from ridehail.domain.enums import (
    CarAvailability,
    DriverStatus,
    RentalStatus,
    RideStatus,
)
from ridehail.domain.matching import (
    DriverCandidate,
    build_candidate,
    covering_cells,
    location_h3_cell,
)


def _point(lat: float, lng: float) -> Any:
    return ST_SetSRID(ST_MakePoint(lng, lat), 4326)


class RideRepository:
    model = RideModel

    def __init__(self, session: AsyncSession):
        self.session = session

    def make_point(self, lat: float, lng: float) -> Any:
        return _point(lat, lng)

    async def create_ride(
        self,
        *,
        passenger_id: int,
        category_id: Optional[int],
        pickup_lat: float,
        pickup_lng: float,
        dropoff_lat: float,
        dropoff_lng: float,
        pickup_address: str = "",
        dropoff_address: str = "",
        payment_method: Any = None,
        distance_km: Optional[float] = None,
        estimated_fare: Optional[float] = None,
        idempotency_key: str | None = None,
        status: RideStatus = RideStatus.PENDING,
    ):
        """Create a ride with proper PostGIS geometry columns."""
        ride = self.model(
            passenger_id=passenger_id,
            category_id=category_id,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            dropoff_lat=dropoff_lat,
            dropoff_lng=dropoff_lng,
            pickup_point=self.make_point(pickup_lat, pickup_lng),
            dropoff_point=self.make_point(dropoff_lat, dropoff_lng),
            pickup_address=pickup_address,
            dropoff_address=dropoff_address,
            payment_method=payment_method,
            distance_km=distance_km,
            estimated_fare=estimated_fare,
            idempotency_key=idempotency_key,
            status=status,
        )
        self.session.add(ride)
        await self.session.flush()
        await self.session.refresh(ride)
        return ride

    async def get_by_id(self, ride_id: int):
        return await self.session.get(self.model, ride_id)

    async def get_by_idempotency_key(self, key: str):
        result = await self.session.execute(
            select(self.model).where(self.model.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def get_pending_rides(self) -> list:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.status == RideStatus.PENDING)
            .where(self.model.driver_id.is_(None))
            .order_by(self.model.created_at)
        )
        return list(result.scalars().all())

    async def get_live_rides(self) -> list:
        result = await self.session.execute(
            select(self.model)
            .where(
                self.model.status.in_(
                    [RideStatus.PENDING, RideStatus.ACCEPTED, RideStatus.IN_PROGRESS]
                )
            )
            .order_by(self.model.created_at)
        )
        return list(result.scalars().all())

    async def assign_driver(
        self, ride_id: int, driver_id: int, accepted_at: datetime
    ) -> bool:
        """Accept a ride only if it is still pending.  Returns True on success.

        The status guard in the WHERE clause makes concurrent accepts
        race-free: exactly one UPDATE matches.
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == ride_id)
            .where(self.model.status == RideStatus.PENDING)
            .values(
                driver_id=driver_id,
                status=RideStatus.ACCEPTED,
                accepted_at=accepted_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        ride = await self.get_by_id(ride_id)
        if ride is not None:
            await self.session.refresh(ride)
        return True

    async def get_completed_for_driver(self, driver_id: int) -> list:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.driver_id == driver_id)
            .where(self.model.status == RideStatus.COMPLETED)
        )
        return list(result.scalars().all())


class DriverRepository:
    model = DriverModel

    def __init__(self, session: AsyncSession):
        self.session = session

    def make_point(self, lat: float, lng: float) -> Any:
        return _point(lat, lng)

    async def get_by_id(self, driver_id: int):
        return await self.session.get(self.model, driver_id)

    async def update_location(
        self,
        driver,
        lat: float,
        lng: float,
        now: datetime,
        h3_resolution: int = 7,
    ):
        driver.current_lat = lat
        driver.current_lng = lng
        driver.current_location = self.make_point(lat, lng)
        driver.h3_cell = location_h3_cell(lat, lng, h3_resolution)
        driver.last_activity_at = now
        await self.session.flush()
        return driver

    async def set_status(self, driver, status: DriverStatus, now: datetime):
        driver.status = status
        driver.last_activity_at = now
        await self.session.flush()
        return driver

    async def claim(self, driver_id: int, now: datetime) -> bool:
        """Mark the driver busy only if still available.  Returns True on success.

        Like ``RideRepository.assign_driver``, the guard lives in the WHERE
        clause so two rides can never claim the same driver.
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == driver_id)
            .where(self.model.status == DriverStatus.AVAILABLE)
            .values(status=DriverStatus.BUSY, last_activity_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        driver = await self.get_by_id(driver_id)
        if driver is not None:
            await self.session.refresh(driver)
        return True

    async def get_available_in_cells(
        self, cells: set[str], active_since: datetime
    ) -> list:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.status == DriverStatus.AVAILABLE)
            .where(self.model.h3_cell.in_(cells))
            .where(self.model.current_lat.is_not(None))
            .where(self.model.last_activity_at >= active_since)
        )
        return list(result.scalars().all())

    async def find_candidates(
        self,
        lat: float,
        lng: float,
        *,
        radius_km: float,
        active_since: datetime,
        limit: int,
        h3_resolution: int = 7,
        average_speed_kmh: float = 30.0,
    ) -> list[DriverCandidate]:
        """Available, recently-active drivers within *radius_km*, nearest first."""
        cells = covering_cells(lat, lng, radius_km, h3_resolution)
        drivers = await self.get_available_in_cells(cells, active_since)
        candidates = [
            build_candidate(d, lat, lng, average_speed_kmh)
            for d in drivers
            if haversine_km(d.current_lat, d.current_lng, lat, lng) <= radius_km
        ]
        candidates.sort(key=lambda c: c.distance_km)
        return candidates[:limit]


class CarCategoryRepository:
    model = CarCategoryModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields):
        category = self.model(**fields)
        self.session.add(category)
        await self.session.flush()
        return category

    async def get_by_id(self, category_id: int):
        return await self.session.get(self.model, category_id)

    async def list_all(self, active_only: bool = False) -> list:
        query = select(self.model).order_by(self.model.base_price_per_km)
        if active_only:
            query = query.where(self.model.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars().all())


class SurgeZoneRepository:
    model = SurgeZoneModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields):
        zone = self.model(**fields)
        self.session.add(zone)
        await self.session.flush()
        return zone

    async def list_all(self) -> list:
        result = await self.session.execute(select(self.model))
        return list(result.scalars().all())

    async def multiplier_at(self, lat: float, lng: float, now: datetime) -> float:
        """Highest active multiplier covering the point (1.0 if none)."""
        m = self.model
        result = await self.session.execute(
            select(m.multiplier)
            .where(m.is_active.is_(True))
            .where(m.min_lat <= lat, m.max_lat >= lat)
            .where(m.min_lng <= lng, m.max_lng >= lng)
            .where(or_(m.start_time.is_(None), m.start_time <= now))
            .where(or_(m.end_time.is_(None), m.end_time >= now))
        )
        multipliers = list(result.scalars().all())
        return max(multipliers, default=1.0)


class RentalCarRepository:
    model = RentalCarModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, car_id: int):
        return await self.session.get(self.model, car_id)

    async def list_available(self) -> list:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.is_active.is_(True))
            .where(self.model.availability_status == CarAvailability.AVAILABLE)
            .order_by(self.model.price_per_day)
        )
        return list(result.scalars().all())


class RentalRepository:
    model = CarRentalModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **fields):
        rental = self.model(**fields)
        self.session.add(rental)
        await self.session.flush()
        await self.session.refresh(rental)
        return rental

    async def get_by_id(self, rental_id: int):
        return await self.session.get(self.model, rental_id)

    async def has_overlap(self, car_id: int, start: datetime, end: datetime) -> bool:
        """True if a live booking for *car_id* intersects ``[start, end)``."""
        result = await self.session.execute(
            select(self.model.id)
            .where(self.model.car_id == car_id)
            .where(
                self.model.status.in_(
                    [RentalStatus.PENDING, RentalStatus.CONFIRMED, RentalStatus.ACTIVE]
                )
            )
            .where(self.model.rental_start < end)
            .where(self.model.rental_end > start)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None


class PassengerRepository:
    model = PassengerModel

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, passenger_id: int):
        return await self.session.get(self.model, passenger_id)
