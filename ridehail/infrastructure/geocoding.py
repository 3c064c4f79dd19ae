"""
Mapbox geocoding client.

Reverse geocoding (point -> address) and forward place search, restricted
to the configured country and biased towards the configured proximity.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from ridehail.config import settings

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """The geocoding provider was unreachable or rejected the request."""


class Place(BaseModel):
    name: str
    latitude: float
    longitude: float


def _places(payload: dict) -> list[Place]:
    places = []
    for feature in payload.get("features", []):
        lng, lat = feature["center"]
        places.append(Place(name=feature["place_name"], latitude=lat, longitude=lng))
    return places


class MapboxGeocoder:
    def __init__(
        self,
        token: str = settings.mapbox_token,
        base_url: str = settings.mapbox_base_url,
        country: str = settings.geocoding_country,
        proximity: str = settings.geocoding_proximity,
        timeout: float = settings.geocoding_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.country = country
        self.proximity = proximity
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )

    async def _get(self, path: str, params: dict) -> dict:
        if not self.token:
            raise GeocodingError("Mapbox token is not configured")
        params = {"access_token": self.token, "country": self.country, **params}
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Geocoding request failed: %s", exc)
            raise GeocodingError(str(exc)) from exc
        return resp.json()

    async def reverse(self, lat: float, lng: float) -> Optional[Place]:
        payload = await self._get(f"/geocoding/v5/mapbox.places/{lng},{lat}.json", {})
        places = _places(payload)
        return places[0] if places else None

    async def search(self, query: str, limit: int = 5) -> list[Place]:
        payload = await self._get(
            f"/geocoding/v5/mapbox.places/{quote(query)}.json",
            {"proximity": self.proximity, "limit": limit},
        )
        return _places(payload)

    async def aclose(self) -> None:
        await self._client.aclose()
