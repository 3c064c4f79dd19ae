"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  PostGIS-specific features (Geometry columns)
are mocked by using plain String columns in the test models, and the
production repositories are subclassed to point at those models.
"""

import asyncio
import os
from datetime import datetime, timezone
from typing import AsyncGenerator

# Must be set before ridehail.config is imported anywhere
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("AUTO_DISPATCH_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ridehail.domain.enums import (
    CarAvailability,
    DriverStatus,
    DurationType,
    PaymentMethod,
    RentalStatus,
    RideStatus,
)
from ridehail.domain.matching import location_h3_cell
from ridehail.infrastructure.repositories import (
    CarCategoryRepository,
    DriverRepository,
    PassengerRepository,
    RentalCarRepository,
    RentalRepository,
    RideRepository,
    SurgeZoneRepository,
)


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


class TestBase(DeclarativeBase):
    pass


def _enum(enum_cls):
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e])


# Mirror the production models but without PostGIS Geometry columns
# (SQLite doesn't support them).

class TestPassengerModel(TestBase):
    __tablename__ = "passengers"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class TestCarCategoryModel(TestBase):
    __tablename__ = "car_categories"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(60), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    base_fare = Column(Float, nullable=False, default=2.5)
    base_price_per_km = Column(Float, nullable=False, default=1.2)
    minimum_fare = Column(Float, nullable=False, default=5.0)
    passenger_capacity = Column(Integer, nullable=False, default=4)
    surge_multiplier = Column(Float, nullable=False, default=1.0)
    features = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class TestDriverModel(TestBase):
    __tablename__ = "drivers"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(32), unique=True, nullable=True)
    car_model = Column(String(120), nullable=True)
    car_plate = Column(String(20), nullable=True)
    category_id = Column(Integer, ForeignKey("car_categories.id"), nullable=True)
    status = Column(_enum(DriverStatus), default=DriverStatus.OFFLINE, nullable=False)
    current_location = Column(String, nullable=True)  # stub for Geometry
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)
    rating = Column(Float, default=5.0)
    total_trips = Column(Integer, default=0, nullable=False)
    last_activity_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class TestRideModel(TestBase):
    __tablename__ = "rides"
    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(Integer, ForeignKey("passengers.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("car_categories.id"), nullable=True)
    pickup_point = Column(String, nullable=True)  # stub for Geometry
    dropoff_point = Column(String, nullable=True)  # stub for Geometry
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    pickup_address = Column(Text, nullable=False, default="")
    dropoff_address = Column(Text, nullable=False, default="")
    status = Column(_enum(RideStatus), default=RideStatus.PENDING, nullable=False)
    payment_method = Column(
        _enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False
    )
    distance_km = Column(Float, nullable=True)
    estimated_fare = Column(Float, nullable=True)
    final_fare = Column(Float, nullable=True)
    rating = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    idempotency_key = Column(String(64), unique=True, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    accepted_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, server_default=func.now())


class TestRentalCarModel(TestBase):
    __tablename__ = "rental_cars"
    id = Column(Integer, primary_key=True, autoincrement=True)
    brand = Column(String(60), nullable=False)
    model = Column(String(60), nullable=False)
    year = Column(Integer, nullable=False)
    car_type = Column(String(30), nullable=False)
    seating_capacity = Column(Integer, default=5, nullable=False)
    fuel_type = Column(String(20), default="Petrol", nullable=False)
    price_per_day = Column(Float, nullable=False)
    price_per_hour = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    features = Column(JSON, default=list)
    availability_status = Column(
        _enum(CarAvailability), default=CarAvailability.AVAILABLE, nullable=False
    )
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    location_address = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class TestCarRentalModel(TestBase):
    __tablename__ = "car_rentals"
    id = Column(Integer, primary_key=True, autoincrement=True)
    car_id = Column(Integer, ForeignKey("rental_cars.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("passengers.id"), nullable=False)
    rental_start = Column(DateTime, nullable=False)
    rental_end = Column(DateTime, nullable=False)
    duration_type = Column(_enum(DurationType), nullable=False)
    duration_value = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)
    status = Column(_enum(RentalStatus), default=RentalStatus.PENDING, nullable=False)
    pickup_location = Column(Text, nullable=True)
    return_location = Column(Text, nullable=True)
    driver_license_number = Column(String(64), nullable=True)
    contact_phone = Column(String(32), nullable=False)
    special_requests = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


class TestSurgeZoneModel(TestBase):
    __tablename__ = "surge_zones"
    id = Column(Integer, primary_key=True, autoincrement=True)
    area_name = Column(String(120), nullable=False)
    min_lat = Column(Float, nullable=False)
    min_lng = Column(Float, nullable=False)
    max_lat = Column(Float, nullable=False)
    max_lng = Column(Float, nullable=False)
    multiplier = Column(Float, default=1.0, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


# ── Repositories bound to the test models ─────────────────────────────


def _wkt_point(lat: float, lng: float) -> str:
    return f"POINT({lng} {lat})"


class TestRideRepository(RideRepository):
    model = TestRideModel

    def make_point(self, lat, lng):
        return _wkt_point(lat, lng)


class TestDriverRepository(DriverRepository):
    model = TestDriverModel

    def make_point(self, lat, lng):
        return _wkt_point(lat, lng)


class TestCarCategoryRepository(CarCategoryRepository):
    model = TestCarCategoryModel


class TestSurgeZoneRepository(SurgeZoneRepository):
    model = TestSurgeZoneModel


class TestRentalCarRepository(RentalCarRepository):
    model = TestRentalCarModel


class TestRentalRepository(RentalRepository):
    model = TestCarRentalModel


class TestPassengerRepository(PassengerRepository):
    model = TestPassengerModel


# ── Sample data (central Kigali) ──────────────────────────────────────

CITY_CENTRE = (-1.9441, 30.0619)
KIMIHURURA = (-1.9500, 30.0700)
AIRPORT = (-1.9686, 30.1395)


def make_driver(name: str, lat: float, lng: float, **fields) -> TestDriverModel:
    fields.setdefault("status", DriverStatus.AVAILABLE)
    fields.setdefault("rating", 4.8)
    fields.setdefault("total_trips", 100)
    fields.setdefault("last_activity_at", datetime.now(timezone.utc))
    return TestDriverModel(
        name=name,
        current_lat=lat,
        current_lng=lng,
        current_location=_wkt_point(lat, lng),
        h3_cell=location_h3_cell(lat, lng, 7),
        **fields,
    )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def event_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.drop_all)
