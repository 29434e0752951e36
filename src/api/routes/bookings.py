"""
Booking endpoints
=================

POST   /api/v1/bookings                     -- create a booking (priced server-side)
GET    /api/v1/bookings                     -- own bookings, filtered / paginated
GET    /api/v1/bookings/available           -- confirmed bookings near a driver
GET    /api/v1/bookings/{id}                -- one booking (rider, driver or admin)
PUT    /api/v1/bookings/{id}/status         -- advance the status
PUT    /api/v1/bookings/{id}/rating         -- rider rates the driver
PUT    /api/v1/bookings/{id}/rider-rating   -- driver rates the rider
DELETE /api/v1/bookings/{id}                -- cancel with a reason
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.auth import get_identity, require_driver
from src.api.dependencies import get_booking_service
from src.api.middleware import limiter
from src.api.schemas import (
    BookingCreateRequest,
    BookingPage,
    BookingResponse,
    CancelRequest,
    Page,
    RatingRequest,
    StatusUpdateRequest,
)
from src.config import settings
from src.domain.entities import Identity
from src.domain.enums import BookingStatus
from src.services.bookings import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Create a booking",
    responses={201: {"description": "Booking created; cash bookings start confirmed."}},
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    identity: Identity = Depends(get_identity),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.create(
        identity,
        pickup=body.pickup.model_dump(),
        destination=body.destination.model_dump(),
        scheduled_time=body.scheduled_time,
        payment_method=body.payment_method,
        vehicle_type=body.vehicle_type,
        passengers=body.passengers,
        special_requests=body.special_requests,
        metadata=body.metadata.model_dump(exclude_none=True) if body.metadata else None,
    )
    return BookingResponse.from_model(booking)


@router.get("", response_model=BookingPage, summary="List own bookings")
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["created_at", "scheduled_time"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    identity: Identity = Depends(get_identity),
    bookings: BookingService = Depends(get_booking_service),
):
    items, total = await bookings.list_for_rider(
        identity,
        status=status,
        page=page,
        limit=limit,
        sort_by=sort_by,
        descending=sort_order == "desc",
    )
    return BookingPage(
        items=[BookingResponse.from_model(b) for b in items],
        total=total,
        page=page,
        limit=limit,
        pages=Page.count_pages(total, limit),
    )


@router.get(
    "/available",
    response_model=list[BookingResponse],
    summary="Confirmed bookings near a driver",
    description="Nearest first, within `radius` km (default 10), at most 20.",
)
@limiter.limit(settings.rate_limit)
async def available_bookings(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0, le=100),
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    found = await bookings.available_for_drivers(lat, lng, radius)
    return [BookingResponse.from_model(b) for b in found]


@router.get("/{booking_id}", response_model=BookingResponse, summary="Get a booking")
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    identity: Identity = Depends(get_identity),
    bookings: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_model(await bookings.get(identity, booking_id))


@router.put(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Advance the booking status",
    description=(
        "Transitions follow pending -> confirmed -> driver_assigned -> "
        "driver_en_route -> arrived -> in_progress -> completed; cancelled "
        "and no_show are reachable from any non-terminal status. Only an admin "
        "may confirm directly (riders confirm by paying); the ride steps from "
        "driver_en_route onwards belong to the assigned driver."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_status(
    request: Request,
    booking_id: int,
    body: StatusUpdateRequest,
    identity: Identity = Depends(get_identity),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.advance(
        identity,
        booking_id,
        body.status,
        reason=body.reason,
        location=body.location.model_dump() if body.location else None,
    )
    return BookingResponse.from_model(booking)


@router.put("/{booking_id}/rating", response_model=BookingResponse, summary="Rate the driver")
@limiter.limit(settings.rate_limit)
async def rate_driver(
    request: Request,
    booking_id: int,
    body: RatingRequest,
    identity: Identity = Depends(get_identity),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.rate_driver(identity, booking_id, body.rating, body.comment)
    return BookingResponse.from_model(booking)


@router.put(
    "/{booking_id}/rider-rating", response_model=BookingResponse, summary="Rate the rider"
)
@limiter.limit(settings.rate_limit)
async def rate_rider(
    request: Request,
    booking_id: int,
    body: RatingRequest,
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.rate_rider(identity, booking_id, body.rating, body.comment)
    return BookingResponse.from_model(booking)


@router.delete("/{booking_id}", response_model=BookingResponse, summary="Cancel a booking")
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    body: CancelRequest,
    identity: Identity = Depends(get_identity),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.cancel(identity, booking_id, body.reason)
    return BookingResponse.from_model(booking)
