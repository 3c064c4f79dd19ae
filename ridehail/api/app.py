"""
FastAPI application factory.

* Registers routes for rides, drivers, rentals, geocoding and admin.
* Starts / stops the background dispatch worker via lifespan events and
  releases the DB engine and Redis pool on shutdown.
* Maps domain exceptions to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridehail.api.middleware import limiter
from ridehail.api.routes import admin, drivers, geo, rentals, rides
from ridehail.domain.errors import DomainError, InvalidRentalWindow
from ridehail.infrastructure import database, redis_client
from ridehail.infrastructure.geocoding import GeocodingError
from ridehail.infrastructure.locks import LockNotAcquired
from ridehail.workers import dispatcher as _dispatcher

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the dispatch worker on startup; stop it and close pools on shutdown."""
    await _dispatcher.start_dispatch_loop()
    yield
    await _dispatcher.stop_dispatch_loop()
    await redis_client.close_redis()
    await database.dispose_engine()


# ── Exception handlers ────────────────────────────────────────────────


async def _domain_error(request: Request, exc: DomainError) -> JSONResponse:
    status = 422 if isinstance(exc, InvalidRentalWindow) else 409
    return JSONResponse(status_code=status, content={"detail": str(exc)})


async def _lock_busy(request: Request, exc: LockNotAcquired) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": "Another booking for this car is in progress, retry shortly"},
    )


async def _geocoding_failed(request: Request, exc: GeocodingError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": f"Geocoding failed: {exc}"})


async def _redis_unavailable(request: Request, exc: RedisError) -> JSONResponse:
    logger.error("Redis unavailable: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable"})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Hailing & Car Rental API",
        description=(
            "Passenger ride booking with server-side fare estimation, "
            "driver dispatch, ride lifecycle with realtime updates, and "
            "self-drive car rentals."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Errors
    app.add_exception_handler(DomainError, _domain_error)
    app.add_exception_handler(LockNotAcquired, _lock_busy)
    app.add_exception_handler(GeocodingError, _geocoding_failed)
    app.add_exception_handler(RedisError, _redis_unavailable)

    # Routers
    for module in (rides, drivers, rentals, geo, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
