"""
Admin / observability endpoints
===============================

GET   /api/v1/admin/health                    -- simple health check
GET   /api/v1/admin/categories                -- list ride tariffs
POST  /api/v1/admin/categories                -- create a tariff
PATCH /api/v1/admin/categories/{category_id}  -- edit a tariff
GET   /api/v1/admin/surge-zones               -- list surge zones
POST  /api/v1/admin/surge-zones               -- create a surge zone
GET   /api/v1/admin/live-rides                -- pending / accepted / in-progress rides
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import get_db
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    CarCategoryCreateRequest,
    CarCategoryResponse,
    CarCategoryUpdateRequest,
    HealthResponse,
    RideResponse,
    SurgeZoneCreateRequest,
    SurgeZoneResponse,
)
from ridehail.config import settings
from ridehail.infrastructure.repositories import (
    CarCategoryRepository,
    RideRepository,
    SurgeZoneRepository,
)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()


@router.get(
    "/categories",
    response_model=list[CarCategoryResponse],
    summary="List ride categories (tariffs)",
)
@limiter.limit(settings.rate_limit)
async def list_categories(
    request: Request,
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
):
    return await CarCategoryRepository(db).list_all(active_only=active_only)


@router.post(
    "/categories",
    status_code=201,
    response_model=CarCategoryResponse,
    summary="Create a ride category",
)
@limiter.limit(settings.rate_limit)
async def create_category(
    request: Request,
    body: CarCategoryCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CarCategoryRepository(db).create(**body.model_dump())
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Category name already exists")


@router.patch(
    "/categories/{category_id}",
    response_model=CarCategoryResponse,
    summary="Update a ride category",
)
@limiter.limit(settings.rate_limit)
async def update_category(
    request: Request,
    category_id: int,
    body: CarCategoryUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    category = await CarCategoryRepository(db).get_by_id(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Car category not found")
    for name, value in body.model_dump(exclude_unset=True).items():
        setattr(category, name, value)
    await db.flush()
    return category


@router.get(
    "/surge-zones",
    response_model=list[SurgeZoneResponse],
    summary="List surge pricing zones",
)
@limiter.limit(settings.rate_limit)
async def list_surge_zones(request: Request, db: AsyncSession = Depends(get_db)):
    return await SurgeZoneRepository(db).list_all()


@router.post(
    "/surge-zones",
    status_code=201,
    response_model=SurgeZoneResponse,
    summary="Create a surge pricing zone",
)
@limiter.limit(settings.rate_limit)
async def create_surge_zone(
    request: Request,
    body: SurgeZoneCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    if body.min_lat > body.max_lat or body.min_lng > body.max_lng:
        raise HTTPException(status_code=422, detail="Invalid zone bounds")
    return await SurgeZoneRepository(db).create(**body.model_dump())


@router.get(
    "/live-rides",
    response_model=list[RideResponse],
    summary="Rides that are pending, accepted or in progress",
)
@limiter.limit(settings.rate_limit)
async def live_rides(request: Request, db: AsyncSession = Depends(get_db)):
    return await RideRepository(db).get_live_rides()
