"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ridehail.domain.enums import (
    CarAvailability,
    DriverStatus,
    DurationType,
    PaymentMethod,
    RentalStatus,
    RideStatus,
)


# ── Requests ──────────────────────────────────────────────────────────


class TripRequest(BaseModel):
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    dropoff_lat: float = Field(..., ge=-90, le=90)
    dropoff_lng: float = Field(..., ge=-180, le=180)
    category_id: int


class FareEstimateRequest(TripRequest):
    pass


class RideCreateRequest(TripRequest):
    passenger_id: int
    pickup_address: str = Field("", max_length=500)
    dropoff_address: str = Field("", max_length=500)
    payment_method: PaymentMethod = PaymentMethod.CASH
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )


class RideAcceptRequest(BaseModel):
    driver_id: int


class RideCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class RideRateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)


class DriverLocationRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class DriverAvailabilityRequest(BaseModel):
    status: DriverStatus


class RentalQuoteRequest(BaseModel):
    car_id: int
    rental_start: datetime
    rental_end: datetime
    duration_type: DurationType = DurationType.DAILY


class RentalCreateRequest(RentalQuoteRequest):
    user_id: int
    pickup_location: Optional[str] = None
    return_location: Optional[str] = None
    driver_license_number: str = Field(..., min_length=1, max_length=64)
    contact_phone: str = Field(..., min_length=1, max_length=32)
    special_requests: Optional[str] = None

    @field_validator("driver_license_number", "contact_phone")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class RentalStatusRequest(BaseModel):
    status: RentalStatus


class CarCategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    description: Optional[str] = None
    base_fare: float = Field(..., ge=0)
    base_price_per_km: float = Field(..., ge=0)
    minimum_fare: float = Field(..., ge=0)
    passenger_capacity: int = Field(4, ge=1, le=20)
    surge_multiplier: float = Field(1.0, ge=1.0, le=5.0)
    features: list[str] = []
    is_active: bool = True


class CarCategoryUpdateRequest(BaseModel):
    description: Optional[str] = None
    base_fare: Optional[float] = Field(None, ge=0)
    base_price_per_km: Optional[float] = Field(None, ge=0)
    minimum_fare: Optional[float] = Field(None, ge=0)
    passenger_capacity: Optional[int] = Field(None, ge=1, le=20)
    surge_multiplier: Optional[float] = Field(None, ge=1.0, le=5.0)
    features: Optional[list[str]] = None
    is_active: Optional[bool] = None


class SurgeZoneCreateRequest(BaseModel):
    area_name: str = Field(..., min_length=1, max_length=120)
    min_lat: float = Field(..., ge=-90, le=90)
    min_lng: float = Field(..., ge=-180, le=180)
    max_lat: float = Field(..., ge=-90, le=90)
    max_lng: float = Field(..., ge=-180, le=180)
    multiplier: float = Field(..., ge=1.0, le=5.0)
    is_active: bool = True
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    reason: Optional[str] = None


# ── Responses ─────────────────────────────────────────────────────────


class FareEstimateResponse(BaseModel):
    category_id: int
    distance_km: float
    per_km_rate: float
    surge_multiplier: float
    estimated_fare: float
    minimum_applied: bool
    display: str


class RideResponse(BaseModel):
    id: int
    passenger_id: int
    driver_id: Optional[int] = None
    category_id: Optional[int] = None
    pickup_lat: float
    pickup_lng: float
    dropoff_lat: float
    dropoff_lng: float
    pickup_address: str = ""
    dropoff_address: str = ""
    status: RideStatus
    payment_method: PaymentMethod
    distance_km: Optional[float] = None
    estimated_fare: Optional[float] = None
    final_fare: Optional[float] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CancellationStatusResponse(BaseModel):
    ride_id: int
    can_cancel: bool
    reason: str = ""


class DriverMatchResponse(BaseModel):
    driver_id: int
    name: str
    rating: float
    distance_km: float
    eta_minutes: int
    total_trips: int
    car_model: Optional[str] = None
    car_plate: Optional[str] = None
    match_score: float
    is_preferred: bool = False

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    id: int
    name: str
    status: DriverStatus
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    rating: Optional[float] = None
    total_trips: int = 0
    last_activity_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EarningsPeriodResponse(BaseModel):
    rides: int
    total: float

    model_config = {"from_attributes": True}


class EarningsSummaryResponse(BaseModel):
    driver_id: int
    today: EarningsPeriodResponse
    last_7_days: EarningsPeriodResponse
    last_30_days: EarningsPeriodResponse
    all_time: EarningsPeriodResponse
    average_rating: Optional[float] = None


class RentalCarResponse(BaseModel):
    id: int
    brand: str
    model: str
    year: int
    car_type: str
    seating_capacity: int
    fuel_type: str
    price_per_day: float
    price_per_hour: float
    features: list[str] = []
    availability_status: CarAvailability
    location_address: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("features", mode="before")
    @classmethod
    def _features(cls, v):
        return list(v or [])


class RentalQuoteResponse(BaseModel):
    car_id: int
    duration_type: DurationType
    duration_value: int
    unit_rate: float
    total_price: int
    display_duration: str


class RentalResponse(BaseModel):
    id: int
    car_id: int
    user_id: int
    rental_start: datetime
    rental_end: datetime
    duration_type: DurationType
    duration_value: int
    total_price: float
    status: RentalStatus
    pickup_location: Optional[str] = None
    return_location: Optional[str] = None
    contact_phone: str
    special_requests: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CarCategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    base_fare: float
    base_price_per_km: float
    minimum_fare: float
    passenger_capacity: int
    surge_multiplier: float
    features: list[str] = []
    is_active: bool

    model_config = {"from_attributes": True}

    @field_validator("features", mode="before")
    @classmethod
    def _features(cls, v):
        return list(v or [])


class SurgeZoneResponse(BaseModel):
    id: int
    area_name: str
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float
    multiplier: float
    is_active: bool
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    reason: Optional[str] = None

    model_config = {"from_attributes": True}


class PlaceResponse(BaseModel):
    name: str
    latitude: float
    longitude: float


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
