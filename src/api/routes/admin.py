"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health               -- simple health check
PUT /api/v1/admin/bookings/{id}/surge  -- reprice a booking at a new surge multiplier
"""

from fastapi import APIRouter, Depends, Request

from src.api.auth import require_admin
from src.api.dependencies import get_booking_service
from src.api.middleware import limiter
from src.api.schemas import BookingResponse, HealthResponse, SurgeUpdateRequest
from src.config import settings
from src.domain.entities import Identity
from src.services.bookings import BookingService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put(
    "/bookings/{booking_id}/surge",
    response_model=BookingResponse,
    summary="Update a booking's surge multiplier",
    description="Only bookings without a driver and without a captured payment can be repriced.",
)
@limiter.limit(settings.rate_limit)
async def update_surge(
    request: Request,
    booking_id: int,
    body: SurgeUpdateRequest,
    identity: Identity = Depends(require_admin),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.update_surge(identity, booking_id, body.surge_multiplier)
    return BookingResponse.from_model(booking)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
