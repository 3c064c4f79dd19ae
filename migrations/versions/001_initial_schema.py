"""Initial schema with PostGIS extension and all core tables.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

RIDE_STATUS = sa.Enum(
    "pending", "accepted", "in_progress", "completed", "cancelled",
    name="ridestatus",
)
RENTAL_STATUS = sa.Enum(
    "pending", "confirmed", "active", "completed", "cancelled",
    name="rentalstatus",
)
DRIVER_STATUS = sa.Enum("available", "busy", "offline", name="driverstatus")
PAYMENT_METHOD = sa.Enum("cash", "mobile_money", "card", name="paymentmethod")
DURATION_TYPE = sa.Enum("hourly", "daily", name="durationtype")
CAR_AVAILABILITY = sa.Enum(
    "available", "rented", "maintenance", name="caravailability"
)


def _timestamps(*, updated: bool = False) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        )
    ]
    if updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
            )
        )
    return cols


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── passengers ────────────────────────────────────────────────────
    op.create_table(
        "passengers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        *_timestamps(),
    )

    # ── car_categories ────────────────────────────────────────────────
    op.create_table(
        "car_categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(60), unique=True, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("base_fare", sa.Float, nullable=False, server_default="2.5"),
        sa.Column("base_price_per_km", sa.Float, nullable=False, server_default="1.2"),
        sa.Column("minimum_fare", sa.Float, nullable=False, server_default="5.0"),
        sa.Column("passenger_capacity", sa.Integer, nullable=False, server_default="4"),
        sa.Column("surge_multiplier", sa.Float, nullable=False, server_default="1.0"),
        sa.Column("features", sa.JSON, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(32), unique=True, nullable=True),
        sa.Column("car_model", sa.String(120), nullable=True),
        sa.Column("car_plate", sa.String(20), nullable=True),
        sa.Column(
            "category_id",
            sa.Integer,
            sa.ForeignKey("car_categories.id"),
            nullable=True,
        ),
        sa.Column("status", DRIVER_STATUS, nullable=False, server_default="offline"),
        sa.Column(
            "current_location", Geometry("POINT", srid=4326), nullable=True
        ),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("rating", sa.Float, server_default="5.0"),
        sa.Column("total_trips", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_drivers_location",
        "drivers",
        ["current_location"],
        postgresql_using="gist",
    )
    op.create_index("idx_drivers_status", "drivers", ["status"])
    op.create_index("idx_drivers_cell", "drivers", ["h3_cell"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "passenger_id",
            sa.Integer,
            sa.ForeignKey("passengers.id"),
            nullable=False,
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True
        ),
        sa.Column(
            "category_id",
            sa.Integer,
            sa.ForeignKey("car_categories.id"),
            nullable=True,
        ),
        sa.Column(
            "pickup_point", Geometry("POINT", srid=4326), nullable=False
        ),
        sa.Column(
            "dropoff_point", Geometry("POINT", srid=4326), nullable=False
        ),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("pickup_address", sa.Text, nullable=False, server_default=""),
        sa.Column("dropoff_address", sa.Text, nullable=False, server_default=""),
        sa.Column("status", RIDE_STATUS, nullable=False, server_default="pending"),
        sa.Column(
            "payment_method", PAYMENT_METHOD, nullable=False, server_default="cash"
        ),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("estimated_fare", sa.Float, nullable=True),
        sa.Column("final_fare", sa.Float, nullable=True),
        sa.Column("rating", sa.Integer, nullable=True),
        sa.Column("feedback", sa.Text, nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=True),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_rides_rating"),
    )
    op.create_index(
        "idx_rides_pickup", "rides", ["pickup_point"], postgresql_using="gist"
    )
    op.create_index(
        "idx_rides_dropoff", "rides", ["dropoff_point"], postgresql_using="gist"
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_passenger", "rides", ["passenger_id"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_idempotency", "rides", ["idempotency_key"])

    # ── rental_cars ───────────────────────────────────────────────────
    op.create_table(
        "rental_cars",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("brand", sa.String(60), nullable=False),
        sa.Column("model", sa.String(60), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("car_type", sa.String(30), nullable=False),
        sa.Column("seating_capacity", sa.Integer, nullable=False, server_default="5"),
        sa.Column("fuel_type", sa.String(20), nullable=False, server_default="Petrol"),
        sa.Column("price_per_day", sa.Float, nullable=False),
        sa.Column("price_per_hour", sa.Float, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("features", sa.JSON, nullable=True),
        sa.Column(
            "availability_status",
            CAR_AVAILABILITY,
            nullable=False,
            server_default="available",
        ),
        sa.Column("location_lat", sa.Float, nullable=True),
        sa.Column("location_lng", sa.Float, nullable=True),
        sa.Column("location_address", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # ── car_rentals ───────────────────────────────────────────────────
    op.create_table(
        "car_rentals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "car_id", sa.Integer, sa.ForeignKey("rental_cars.id"), nullable=False
        ),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("passengers.id"), nullable=False
        ),
        sa.Column("rental_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rental_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_type", DURATION_TYPE, nullable=False),
        sa.Column("duration_value", sa.Integer, nullable=False),
        sa.Column("total_price", sa.Float, nullable=False),
        sa.Column("status", RENTAL_STATUS, nullable=False, server_default="pending"),
        sa.Column("pickup_location", sa.Text, nullable=True),
        sa.Column("return_location", sa.Text, nullable=True),
        sa.Column("driver_license_number", sa.String(64), nullable=True),
        sa.Column("contact_phone", sa.String(32), nullable=False),
        sa.Column("special_requests", sa.Text, nullable=True),
        *_timestamps(updated=True),
    )
    op.create_index("idx_car_rentals_car", "car_rentals", ["car_id"])
    op.create_index("idx_car_rentals_user", "car_rentals", ["user_id"])
    op.create_index("idx_car_rentals_status", "car_rentals", ["status"])

    # ── surge_zones ───────────────────────────────────────────────────
    op.create_table(
        "surge_zones",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("area_name", sa.String(120), nullable=False),
        sa.Column("min_lat", sa.Float, nullable=False),
        sa.Column("min_lng", sa.Float, nullable=False),
        sa.Column("max_lat", sa.Float, nullable=False),
        sa.Column("max_lng", sa.Float, nullable=False),
        sa.Column("multiplier", sa.Float, nullable=False, server_default="1.0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_surge_zones_active", "surge_zones", ["is_active"])


def downgrade() -> None:
    op.drop_table("surge_zones")
    op.drop_table("car_rentals")
    op.drop_table("rental_cars")
    op.drop_table("rides")
    op.drop_table("drivers")
    op.drop_table("car_categories")
    op.drop_table("passengers")
    for name in (
        "ridestatus",
        "rentalstatus",
        "driverstatus",
        "paymentmethod",
        "durationtype",
        "caravailability",
    ):
        op.execute(f"DROP TYPE IF EXISTS {name}")
