"""
Driver endpoints
================

GET  /api/v1/drivers/profile                 -- own driver profile
PUT  /api/v1/drivers/profile                 -- vehicle / documents
PUT  /api/v1/drivers/location                -- report current position
GET  /api/v1/drivers/bookings                -- bookings assigned to me
POST /api/v1/drivers/bookings/{id}/accept    -- atomic accept
PUT  /api/v1/drivers/bookings/{id}/status    -- en route / arrived (+ route point)
POST /api/v1/drivers/bookings/{id}/start     -- arrived -> in_progress
POST /api/v1/drivers/bookings/{id}/complete  -- in_progress -> completed
GET  /api/v1/drivers/earnings                -- week | month | year
GET  /api/v1/drivers/available               -- active drivers near a point (public)
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.auth import require_driver
from src.api.dependencies import get_account_service, get_booking_service
from src.api.middleware import limiter
from src.api.schemas import (
    BookingPage,
    BookingResponse,
    CompleteRideRequest,
    DriverProfileUpdateRequest,
    DriverStatusUpdateRequest,
    DriverSummary,
    EarningsResponse,
    LocationIn,
    Page,
    UserResponse,
)
from src.config import settings
from src.domain.entities import Identity
from src.domain.enums import BookingStatus
from src.services.accounts import AccountService
from src.services.bookings import BookingService

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("/profile", response_model=UserResponse, summary="Own driver profile")
@limiter.limit(settings.rate_limit)
async def get_driver_profile(
    request: Request,
    identity: Identity = Depends(require_driver),
    accounts: AccountService = Depends(get_account_service),
):
    return UserResponse.model_validate(await accounts.driver_profile(identity))


@router.put("/profile", response_model=UserResponse, summary="Update vehicle / documents")
@limiter.limit(settings.rate_limit)
async def update_driver_profile(
    request: Request,
    body: DriverProfileUpdateRequest,
    identity: Identity = Depends(require_driver),
    accounts: AccountService = Depends(get_account_service),
):
    driver = await accounts.update_driver_profile(
        identity,
        vehicle=body.vehicle.model_dump(mode="json", exclude_none=True) if body.vehicle else None,
        documents=(
            body.documents.model_dump(mode="json", exclude_none=True) if body.documents else None
        ),
    )
    return UserResponse.model_validate(driver)


@router.put("/location", response_model=DriverSummary, summary="Report current position")
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    body: LocationIn,
    identity: Identity = Depends(require_driver),
    accounts: AccountService = Depends(get_account_service),
):
    return DriverSummary.from_model(await accounts.update_location(identity, body.lat, body.lng))


@router.get("/bookings", response_model=BookingPage, summary="Assigned bookings")
@limiter.limit(settings.rate_limit)
async def list_driver_bookings(
    request: Request,
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    items, total = await bookings.list_for_driver(
        identity, status=status, page=page, limit=limit
    )
    return BookingPage(
        items=[BookingResponse.from_model(b) for b in items],
        total=total,
        page=page,
        limit=limit,
        pages=Page.count_pages(total, limit),
    )


@router.post(
    "/bookings/{booking_id}/accept",
    response_model=BookingResponse,
    summary="Accept a booking",
    description="Atomic: of several drivers accepting at once, exactly one wins; the rest get 409.",
)
@limiter.limit(settings.rate_limit)
async def accept_booking(
    request: Request,
    booking_id: int,
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_model(await bookings.assign_driver(identity, booking_id))


@router.put(
    "/bookings/{booking_id}/status", response_model=BookingResponse, summary="En route / arrived"
)
@limiter.limit(settings.rate_limit)
async def update_driver_status(
    request: Request,
    booking_id: int,
    body: DriverStatusUpdateRequest,
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.driver_update_status(
        identity,
        booking_id,
        BookingStatus(body.status),
        location=body.location.model_dump() if body.location else None,
    )
    return BookingResponse.from_model(booking)


@router.post("/bookings/{booking_id}/start", response_model=BookingResponse, summary="Start ride")
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    booking_id: int,
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_model(await bookings.start_ride(identity, booking_id))


@router.post(
    "/bookings/{booking_id}/complete", response_model=BookingResponse, summary="Complete ride"
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    booking_id: int,
    body: CompleteRideRequest,
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    booking = await bookings.complete_ride(
        identity,
        booking_id,
        actual_distance=body.actual_distance,
        actual_duration=body.actual_duration,
    )
    return BookingResponse.from_model(booking)


@router.get("/earnings", response_model=EarningsResponse, summary="Earnings summary")
@limiter.limit(settings.rate_limit)
async def earnings(
    request: Request,
    period: Literal["week", "month", "year"] = "month",
    identity: Identity = Depends(require_driver),
    bookings: BookingService = Depends(get_booking_service),
):
    return EarningsResponse(**await bookings.earnings(identity, period))


@router.get(
    "/available",
    response_model=list[DriverSummary],
    summary="Active drivers near a point",
    description="Nearest first, within `radius` km (default 10), at most 20.",
)
@limiter.limit(settings.rate_limit)
async def available_drivers(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0, le=100),
    accounts: AccountService = Depends(get_account_service),
):
    drivers = await accounts.nearby_drivers(lat, lng, radius)
    return [DriverSummary.from_model(d) for d in drivers]
