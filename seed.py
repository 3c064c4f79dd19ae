"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 4 ride categories (Economy, Comfort, Premium, XL)
  - 6 sample passengers
  - 10 sample drivers (spread around central Kigali, online)
  - 6 sample rides (mix of pending, accepted, completed)
  - 5 rental cars
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from ridehail.config import settings
from ridehail.domain.distance import haversine_km
from ridehail.domain.enums import DriverStatus, RideStatus
from ridehail.domain.matching import location_h3_cell
from ridehail.domain.pricing import FareEstimator, Tariff
from ridehail.infrastructure.database import async_session_factory, engine
from ridehail.infrastructure.models import (
    CarCategoryModel,
    DriverModel,
    PassengerModel,
    RentalCarModel,
    RideModel,
)
from ridehail.infrastructure.repositories import _point

# Kigali city centre (approx)
CENTRE_LAT, CENTRE_LNG = -1.9441, 30.0619


CATEGORIES = [
    {"name": "Economy", "description": "Affordable everyday rides",
     "base_price_per_km": 1.20, "base_fare": 2.50, "minimum_fare": 5.00,
     "passenger_capacity": 4, "features": ["Air Conditioning", "4 Seats", "Standard Comfort"]},
    {"name": "Comfort", "description": "More space and comfort",
     "base_price_per_km": 1.80, "base_fare": 3.50, "minimum_fare": 7.00,
     "passenger_capacity": 4, "features": ["Air Conditioning", "4 Seats", "Premium Comfort", "Extra Legroom"]},
    {"name": "Premium", "description": "Luxury vehicles with premium service",
     "base_price_per_km": 2.50, "base_fare": 5.00, "minimum_fare": 12.00,
     "passenger_capacity": 4, "features": ["Air Conditioning", "Luxury Interior", "Professional Driver"]},
    {"name": "XL", "description": "Larger vehicles for groups",
     "base_price_per_km": 2.00, "base_fare": 4.00, "minimum_fare": 8.00,
     "passenger_capacity": 6, "features": ["Air Conditioning", "6+ Seats", "Group Travel"]},
]

PASSENGERS = [
    {"name": "Aline Uwase", "email": "aline@example.com", "phone": "+250788000001"},
    {"name": "Eric Mugisha", "email": "eric@example.com", "phone": "+250788000002"},
    {"name": "Grace Ingabire", "email": "grace@example.com", "phone": "+250788000003"},
    {"name": "Jean Habimana", "email": "jean@example.com", "phone": "+250788000004"},
    {"name": "Diane Mukamana", "email": "diane@example.com", "phone": "+250788000005"},
    {"name": "Patrick Nshuti", "email": "patrick@example.com", "phone": "+250788000006"},
]

DRIVERS = [
    {"name": "Claude Niyonzima", "car": "Toyota Corolla", "plate": "RAD 101A", "cat": 0, "rating": 4.8, "trips": 320, "lat": -1.9450, "lng": 30.0600},
    {"name": "Olivier Ndayisaba", "car": "Toyota Vitz", "plate": "RAD 102B", "cat": 0, "rating": 4.6, "trips": 150, "lat": -1.9500, "lng": 30.0650},
    {"name": "Sandrine Umutoni", "car": "Honda Fit", "plate": "RAD 103C", "cat": 0, "rating": 4.9, "trips": 410, "lat": -1.9400, "lng": 30.0580},
    {"name": "Emmanuel Bizimana", "car": "Toyota Premio", "plate": "RAD 104D", "cat": 1, "rating": 4.7, "trips": 220, "lat": -1.9550, "lng": 30.0700},
    {"name": "Yvonne Uwimana", "car": "Hyundai Elantra", "plate": "RAD 105E", "cat": 1, "rating": 4.4, "trips": 95, "lat": -1.9380, "lng": 30.0550},
    {"name": "Thierry Kamanzi", "car": "Mercedes E-Class", "plate": "RAD 106F", "cat": 2, "rating": 4.9, "trips": 510, "lat": -1.9600, "lng": 30.0900},
    {"name": "Fabrice Munyaneza", "car": "BMW 5 Series", "plate": "RAD 107G", "cat": 2, "rating": 4.5, "trips": 60, "lat": -1.9530, "lng": 30.0920},
    {"name": "Josiane Mutesi", "car": "Toyota Noah", "plate": "RAD 108H", "cat": 3, "rating": 4.6, "trips": 270, "lat": -1.9470, "lng": 30.0610},
    {"name": "Alexis Hakizimana", "car": "Toyota Hiace", "plate": "RAD 109J", "cat": 3, "rating": 3.2, "trips": 40, "lat": -1.9420, "lng": 30.0640},
    {"name": "Esther Mukeshimana", "car": "Suzuki Swift", "plate": "RAD 110K", "cat": 0, "rating": 4.3, "trips": 180, "lat": -1.9700, "lng": 30.1040},
]

RENTAL_CARS = [
    {"brand": "Toyota", "model": "RAV4", "year": 2022, "car_type": "SUV", "seating_capacity": 5, "price_per_day": 60000, "price_per_hour": 5000},
    {"brand": "Toyota", "model": "Land Cruiser", "year": 2021, "car_type": "SUV", "seating_capacity": 7, "price_per_day": 120000, "price_per_hour": 10000},
    {"brand": "Hyundai", "model": "Tucson", "year": 2023, "car_type": "SUV", "seating_capacity": 5, "price_per_day": 55000, "price_per_hour": 4500},
    {"brand": "Toyota", "model": "Corolla", "year": 2020, "car_type": "Sedan", "seating_capacity": 5, "price_per_day": 35000, "price_per_hour": 3000},
    {"brand": "Mercedes-Benz", "model": "C-Class", "year": 2022, "car_type": "Luxury", "seating_capacity": 5, "price_per_day": 150000, "price_per_hour": 12500},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM car_categories"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = datetime.now(timezone.utc)

        # ── Categories ────────────────────────────────────────────────
        categories = [CarCategoryModel(**c) for c in CATEGORIES]
        session.add_all(categories)
        await session.flush()
        print(f"  Created {len(categories)} categories")

        # ── Passengers ────────────────────────────────────────────────
        passengers = [PassengerModel(**p) for p in PASSENGERS]
        session.add_all(passengers)
        await session.flush()
        print(f"  Created {len(passengers)} passengers")

        # ── Drivers ───────────────────────────────────────────────────
        drivers = []
        for d in DRIVERS:
            m = DriverModel(
                name=d["name"],
                car_model=d["car"],
                car_plate=d["plate"],
                category_id=categories[d["cat"]].id,
                status=DriverStatus.AVAILABLE,
                current_lat=d["lat"],
                current_lng=d["lng"],
                current_location=_point(d["lat"], d["lng"]),
                h3_cell=location_h3_cell(d["lat"], d["lng"], settings.h3_resolution),
                rating=d["rating"],
                total_trips=d["trips"],
                last_activity_at=now,
            )
            session.add(m)
            drivers.append(m)
        await session.flush()
        print(f"  Created {len(drivers)} drivers")

        # ── Rides ─────────────────────────────────────────────────────
        estimator = FareEstimator(capacity_weighted=settings.fare_capacity_weighting)
        rides_data = [
            {"p": 0, "pickup": (-1.9441, 30.0619, "Kigali City Tower"),
             "dropoff": (-1.9500, 30.0700, "Kimihurura"), "cat": 0,
             "status": RideStatus.PENDING, "driver": None},
            {"p": 1, "pickup": (-1.9536, 30.0606, "Nyamirambo"),
             "dropoff": (-1.9686, 30.1395, "Kigali International Airport"), "cat": 1,
             "status": RideStatus.PENDING, "driver": None},
            {"p": 2, "pickup": (-1.9355, 30.0928, "Kacyiru"),
             "dropoff": (-1.9441, 30.0619, "Kigali City Tower"), "cat": 0,
             "status": RideStatus.ACCEPTED, "driver": 1},
            {"p": 3, "pickup": (-1.9590, 30.1040, "Remera"),
             "dropoff": (-1.9300, 30.1100, "Kibagabaga"), "cat": 2,
             "status": RideStatus.COMPLETED, "driver": 5},
            {"p": 4, "pickup": (-1.9441, 30.0619, "Kigali City Tower"),
             "dropoff": (-1.9706, 30.1044, "Kicukiro"), "cat": 3,
             "status": RideStatus.COMPLETED, "driver": 7},
            {"p": 5, "pickup": (-1.9500, 30.0588, "Nyarugenge"),
             "dropoff": (-1.9400, 30.0600, "Muhima"), "cat": 0,
             "status": RideStatus.CANCELLED, "driver": None},
        ]

        for r in rides_data:
            cat = categories[r["cat"]]
            (plat, plng, paddr), (dlat, dlng, daddr) = r["pickup"], r["dropoff"]
            quote = estimator.estimate(
                haversine_km(plat, plng, dlat, dlng),
                Tariff(cat.base_fare, cat.base_price_per_km, cat.minimum_fare,
                       cat.passenger_capacity, cat.surge_multiplier),
            )
            driver = drivers[r["driver"]] if r["driver"] is not None else None
            completed = r["status"] is RideStatus.COMPLETED
            ride = RideModel(
                passenger_id=passengers[r["p"]].id,
                driver_id=driver.id if driver else None,
                category_id=cat.id,
                pickup_lat=plat,
                pickup_lng=plng,
                dropoff_lat=dlat,
                dropoff_lng=dlng,
                pickup_point=_point(plat, plng),
                dropoff_point=_point(dlat, dlng),
                pickup_address=paddr,
                dropoff_address=daddr,
                status=r["status"],
                distance_km=quote.distance_km,
                estimated_fare=quote.fare,
                final_fare=quote.fare if completed else None,
                rating=5 if completed else None,
                accepted_at=now - timedelta(minutes=20) if driver else None,
                started_at=now - timedelta(minutes=15) if completed else None,
                completed_at=now - timedelta(minutes=2) if completed else None,
            )
            if driver and not completed:
                driver.status = DriverStatus.BUSY
            session.add(ride)
        await session.flush()
        print(f"  Created {len(rides_data)} rides")

        # ── Rental cars ───────────────────────────────────────────────
        session.add_all(
            RentalCarModel(location_address="Kigali City Centre", **c)
            for c in RENTAL_CARS
        )
        await session.flush()
        print(f"  Created {len(RENTAL_CARS)} rental cars")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
