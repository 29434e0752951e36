"""
FastAPI application factory.

* Registers routes for auth, users, bookings, drivers, payments,
  notifications and admin.
* Maps domain errors to HTTP status codes.
* Applies rate-limiting middleware.
* Disposes the DB engine and the Redis pool on shutdown.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.errors import register_exception_handlers
from src.api.middleware import limiter
from src.api.routes import admin, auth, bookings, drivers, notifications, payments, users
from src.config import settings
from src.infrastructure.database import engine
from src.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Ride-hailing API starting")
    yield
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride-Hailing Booking API",
        description=(
            "Accounts, bookings, drivers, payments and notifications for a "
            "ride-hailing service.  Driver assignment is atomic, fares are "
            "priced server-side, and cancellations refund on a sliding scale."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    # Routers
    for module in (auth, users, bookings, drivers, payments, notifications, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
