"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``passengers``      -- riders
* ``car_categories``  -- ride tariffs
* ``drivers``         -- drivers with live location and availability
* ``rides``           -- ride requests and their lifecycle
* ``rental_cars``     -- self-drive fleet
* ``car_rentals``     -- rental bookings
* ``surge_zones``     -- time-boxed fare multipliers over a bounding box

Indexes
-------
* **GIST** on geometry columns (pickup_point, dropoff_point, current_location).
* **B-Tree** on ``status``, ``h3_cell``, foreign keys and ``idempotency_key``
  for the look-ups used by dispatch and the API.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from geoalchemy2 import Geometry

from .database import Base
from ridehail.domain.enums import (
    CarAvailability,
    DriverStatus,
    DurationType,
    PaymentMethod,
    RentalStatus,
    RideStatus,
)


def _values(enum_cls):
    # Persist the lowercase values, not the member names
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e])


class PassengerModel(Base):
    __tablename__ = "passengers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CarCategoryModel(Base):
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
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(32), unique=True, nullable=True)
    car_model = Column(String(120), nullable=True)
    car_plate = Column(String(20), nullable=True)
    category_id = Column(Integer, ForeignKey("car_categories.id"), nullable=True)
    status = Column(_values(DriverStatus), default=DriverStatus.OFFLINE, nullable=False)

    current_location = Column(Geometry("POINT", srid=4326), nullable=True)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)

    rating = Column(Float, default=5.0)
    total_trips = Column(Integer, default=0, nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_drivers_location", "current_location", postgresql_using="gist"),
        Index("idx_drivers_status", "status"),
        Index("idx_drivers_cell", "h3_cell"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(Integer, ForeignKey("passengers.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("car_categories.id"), nullable=True)

    # Stored as PostGIS geometry for spatial indexing
    pickup_point = Column(Geometry("POINT", srid=4326), nullable=False)
    dropoff_point = Column(Geometry("POINT", srid=4326), nullable=False)

    # Also stored as plain floats for fast reads (avoids ST_X / ST_Y)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    pickup_address = Column(Text, nullable=False, default="")
    dropoff_address = Column(Text, nullable=False, default="")

    status = Column(_values(RideStatus), default=RideStatus.PENDING, nullable=False)
    payment_method = Column(
        _values(PaymentMethod), default=PaymentMethod.CASH, nullable=False
    )
    distance_km = Column(Float, nullable=True)
    estimated_fare = Column(Float, nullable=True)
    final_fare = Column(Float, nullable=True)
    rating = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rides_pickup", "pickup_point", postgresql_using="gist"),
        Index("idx_rides_dropoff", "dropoff_point", postgresql_using="gist"),
        Index("idx_rides_status", "status"),
        Index("idx_rides_passenger", "passenger_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_idempotency", "idempotency_key"),
    )


class RentalCarModel(Base):
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
        _values(CarAvailability), default=CarAvailability.AVAILABLE, nullable=False
    )
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)
    location_address = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CarRentalModel(Base):
    __tablename__ = "car_rentals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    car_id = Column(Integer, ForeignKey("rental_cars.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("passengers.id"), nullable=False)
    rental_start = Column(DateTime(timezone=True), nullable=False)
    rental_end = Column(DateTime(timezone=True), nullable=False)
    duration_type = Column(_values(DurationType), nullable=False)
    duration_value = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)
    status = Column(_values(RentalStatus), default=RentalStatus.PENDING, nullable=False)
    pickup_location = Column(Text, nullable=True)
    return_location = Column(Text, nullable=True)
    driver_license_number = Column(String(64), nullable=True)
    contact_phone = Column(String(32), nullable=False)
    special_requests = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_car_rentals_car", "car_id"),
        Index("idx_car_rentals_user", "user_id"),
        Index("idx_car_rentals_status", "status"),
    )


class SurgeZoneModel(Base):
    __tablename__ = "surge_zones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    area_name = Column(String(120), nullable=False)
    min_lat = Column(Float, nullable=False)
    min_lng = Column(Float, nullable=False)
    max_lat = Column(Float, nullable=False)
    max_lng = Column(Float, nullable=False)
    multiplier = Column(Float, default=1.0, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_surge_zones_active", "is_active"),)
