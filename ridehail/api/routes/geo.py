"""
Geocoding endpoints (proxied to Mapbox so the token stays server-side)
======================================================================

GET /api/v1/geo/reverse?lat=..&lng=..  -- address for a point
GET /api/v1/geo/search?q=..            -- place search near the service area
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ridehail.api.dependencies import get_geocoder
from ridehail.api.middleware import limiter
from ridehail.api.schemas import PlaceResponse
from ridehail.config import settings
from ridehail.infrastructure.geocoding import MapboxGeocoder

router = APIRouter(prefix="/geo", tags=["geo"])


@router.get("/reverse", response_model=PlaceResponse, summary="Reverse geocode a point")
@limiter.limit(settings.rate_limit)
async def reverse_geocode(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    place = await geocoder.reverse(lat, lng)
    if place is None:
        raise HTTPException(status_code=404, detail="No address found")
    return place


@router.get("/search", response_model=list[PlaceResponse], summary="Search places")
@limiter.limit(settings.rate_limit)
async def search_places(
    request: Request,
    q: str = Query(..., min_length=2, max_length=200),
    limit: int = Query(5, ge=1, le=10),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    return await geocoder.search(q, limit=limit)
