"""
Booking lifecycle service
=========================

Every operation receives the caller's ``Identity`` explicitly and runs in
the request's unit of work.

Status writes go through ``BookingRepository.compare_and_set`` keyed on
the status observed when the booking was loaded.  A losing concurrent
writer gets a ``Conflict``; the side effects attached to a transition
(rider stats on completion, refund on cancellation) therefore run exactly
once, for the single winning write.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.cancellation import cancelled_by, refund_amount
from src.domain.entities import Identity, as_utc, route_point, utcnow
from src.domain.enums import (
    BookingStatus,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    UserRole,
    VehicleType,
)
from src.domain.errors import AccessDenied, Conflict, NotFound, ValidationFailed
from src.domain.pricing import PricingEngine
from src.domain.rating import average_rating, is_valid_score
from src.infrastructure.models import BookingModel
from src.infrastructure.repositories import (
    BookingRepository,
    TransactionRepository,
    UserRepository,
)
from src.services.notifications import Notifier
from src.services.payments import issue_refund

logger = logging.getLogger(__name__)

DRIVER_PROGRESS_STATUSES = frozenset(
    {BookingStatus.DRIVER_EN_ROUTE, BookingStatus.ARRIVED}
)
# only the assigned driver (or an admin) moves a ride through these
DRIVER_OWNED_STATUSES = DRIVER_PROGRESS_STATUSES | {
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
}
EARNINGS_PERIODS = ("week", "month", "year")


def default_pricing() -> PricingEngine:
    return PricingEngine(
        base_fare=settings.base_fare,
        price_per_km=settings.price_per_km,
        tax_rate=settings.tax_rate,
        currency=settings.currency,
    )


def earnings_window_start(period: str, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    if period == "year":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class BookingService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Notifier,
        pricing: Optional[PricingEngine] = None,
    ):
        self.repo = BookingRepository(session)
        self.users = UserRepository(session)
        self.transactions = TransactionRepository(session)
        self.notifier = notifier
        self.pricing = pricing or default_pricing()

    # ── Access helpers ────────────────────────────────────────────────

    async def _load(self, booking_id: int) -> BookingModel:
        booking = await self.repo.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    @staticmethod
    def _ensure_participant(identity: Identity, booking: BookingModel) -> None:
        if identity.is_admin:
            return
        if identity.id not in (booking.rider_id, booking.driver_id):
            raise AccessDenied("Access denied")

    @staticmethod
    def _ensure_assigned_driver(identity: Identity, booking: BookingModel) -> None:
        if identity.is_admin:
            return
        if booking.driver_id is None or booking.driver_id != identity.id:
            raise AccessDenied("Access denied")

    async def _swap(
        self, booking: BookingModel, values: dict[str, Any]
    ) -> BookingModel:
        """CAS from the status we loaded; reload the row on success."""
        expected = BookingStatus(booking.status)
        if not await self.repo.compare_and_set(booking.id, expected, values):
            raise Conflict(
                "Booking was modified by another request; reload and retry"
            )
        return await self.repo.reload(booking.id)

    # ── Create / read ─────────────────────────────────────────────────

    async def create(
        self,
        identity: Identity,
        *,
        pickup: dict[str, Any],
        destination: dict[str, Any],
        scheduled_time: datetime,
        payment_method: PaymentMethod,
        vehicle_type: VehicleType = VehicleType.STANDARD,
        passengers: int = 1,
        special_requests: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> BookingModel:
        scheduled_time = as_utc(scheduled_time)
        if scheduled_time <= utcnow():
            raise ValidationFailed(
                "Scheduled time must be in the future", field="scheduled_time"
            )

        fare = self.pricing.quote(
            pickup["lat"],
            pickup["lng"],
            destination["lat"],
            destination["lng"],
            vehicle_type,
        )
        # cash is settled with the driver; everything else waits for a charge
        status = (
            BookingStatus.CONFIRMED
            if payment_method == PaymentMethod.CASH
            else BookingStatus.PENDING
        )

        booking = await self.repo.create(
            BookingModel(
                rider_id=identity.id,
                pickup_address=pickup["address"],
                pickup_city=pickup.get("city"),
                pickup_lat=pickup["lat"],
                pickup_lng=pickup["lng"],
                pickup_instructions=pickup.get("instructions"),
                destination_address=destination["address"],
                destination_city=destination.get("city"),
                destination_lat=destination["lat"],
                destination_lng=destination["lng"],
                destination_instructions=destination.get("instructions"),
                scheduled_time=scheduled_time,
                vehicle_type=vehicle_type,
                passengers=passengers,
                special_requests=special_requests,
                status=status,
                base_fare=fare.base_fare,
                distance_km=fare.distance_km,
                vehicle_multiplier=fare.vehicle_multiplier,
                surge_multiplier=fare.surge_multiplier,
                subtotal=fare.subtotal,
                taxes=fare.taxes,
                total=fare.total,
                currency=fare.currency,
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
                route=[],
                client_metadata=metadata,
            )
        )
        logger.info(
            "Booking %s created by user %s (%s, %.1f km, %.2f %s)",
            booking.id,
            identity.id,
            status.value,
            fare.distance_km,
            fare.total,
            fare.currency,
        )

        if status == BookingStatus.CONFIRMED:
            kind, title = NotificationType.BOOKING_CONFIRMED, "Booking confirmed"
            message = f"Your ride to {booking.destination_address} is confirmed."
        else:
            kind, title = NotificationType.PAYMENT_REQUIRED, "Booking received"
            message = f"Complete payment to confirm your ride to {booking.destination_address}."
        await self.notifier.notify_user_id(
            identity.id,
            kind,
            title,
            message,
            {"booking_id": booking.id, "total": booking.total},
        )
        return booking

    async def get(self, identity: Identity, booking_id: int) -> BookingModel:
        booking = await self._load(booking_id)
        self._ensure_participant(identity, booking)
        return booking

    async def list_for_rider(
        self,
        identity: Identity,
        *,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[BookingModel], int]:
        return await self.repo.list_for_rider(
            identity.id,
            status=status,
            page=page,
            limit=limit,
            sort_by=sort_by,
            descending=descending,
        )

    async def list_for_driver(
        self,
        identity: Identity,
        *,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[BookingModel], int]:
        return await self.repo.list_for_driver(
            identity.id, status=status, page=page, limit=limit
        )

    async def available_for_drivers(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
    ) -> list[BookingModel]:
        return await self.repo.nearby_confirmed(
            lat,
            lng,
            radius_km if radius_km is not None else settings.search_radius_km,
            settings.search_limit,
        )

    # ── Driver assignment ─────────────────────────────────────────────

    async def assign_driver(self, identity: Identity, booking_id: int) -> BookingModel:
        """Driver accepts a confirmed, unassigned booking.

        Exactly one of any number of concurrent accepts succeeds; the
        others see ``Conflict``.
        """
        if identity.role != UserRole.DRIVER:
            raise AccessDenied("Only drivers can accept bookings")
        await self._load(booking_id)

        if not await self.repo.assign_driver(booking_id, identity.id):
            raise Conflict("Booking is not available for assignment")

        booking = await self.repo.reload(booking_id)
        logger.info("Booking %s accepted by driver %s", booking_id, identity.id)
        await self.notifier.notify_user_id(
            booking.rider_id,
            NotificationType.DRIVER_ASSIGNED,
            "Driver assigned",
            "A driver has accepted your booking.",
            {"booking_id": booking.id, "driver_id": identity.id},
        )
        return booking

    # ── Status machine ────────────────────────────────────────────────

    async def _advance(
        self,
        booking: BookingModel,
        new_status: BookingStatus,
        *,
        location: Optional[dict[str, float]] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> BookingModel:
        now = utcnow()
        values = booking.changes_for(new_status, now)
        if location is not None:
            values["route"] = [
                *(booking.route or []),
                route_point(location["lat"], location["lng"], now),
            ]
        if extra:
            values.update(extra)

        booking = await self._swap(booking, values)
        logger.info("Booking %s -> %s", booking.id, new_status.value)

        if new_status == BookingStatus.COMPLETED:
            await self.users.record_completed_ride(booking.rider_id, booking.total)
            await self.notifier.notify_user_id(
                booking.rider_id,
                NotificationType.RIDE_COMPLETED,
                "Ride completed",
                f"Your ride to {booking.destination_address} is complete. "
                f"Total: {booking.total:.2f} {booking.currency}.",
                {"booking_id": booking.id, "total": booking.total},
            )
        return booking

    async def advance(
        self,
        identity: Identity,
        booking_id: int,
        new_status: BookingStatus,
        *,
        reason: Optional[str] = None,
        location: Optional[dict[str, float]] = None,
    ) -> BookingModel:
        booking = await self._load(booking_id)
        self._ensure_participant(identity, booking)

        if new_status == BookingStatus.CANCELLED:
            return await self._cancel(identity, booking, reason)
        if new_status == BookingStatus.DRIVER_ASSIGNED:
            raise ValidationFailed(
                "Drivers are assigned by accepting the booking", field="status"
            )
        if new_status == BookingStatus.CONFIRMED and not identity.is_admin:
            raise AccessDenied("Bookings are confirmed by completing payment")
        if new_status in DRIVER_OWNED_STATUSES:
            self._ensure_assigned_driver(identity, booking)
        return await self._advance(booking, new_status, location=location)

    async def driver_update_status(
        self,
        identity: Identity,
        booking_id: int,
        new_status: BookingStatus,
        location: Optional[dict[str, float]] = None,
    ) -> BookingModel:
        if new_status not in DRIVER_PROGRESS_STATUSES:
            raise ValidationFailed("Invalid status for driver", field="status")
        booking = await self._load(booking_id)
        self._ensure_assigned_driver(identity, booking)
        return await self._advance(booking, new_status, location=location)

    async def start_ride(self, identity: Identity, booking_id: int) -> BookingModel:
        booking = await self._load(booking_id)
        self._ensure_assigned_driver(identity, booking)
        return await self._advance(booking, BookingStatus.IN_PROGRESS)

    async def complete_ride(
        self,
        identity: Identity,
        booking_id: int,
        *,
        actual_distance: Optional[float] = None,
        actual_duration: Optional[float] = None,
    ) -> BookingModel:
        booking = await self._load(booking_id)
        self._ensure_assigned_driver(identity, booking)
        extra = {}
        if actual_distance is not None:
            extra["actual_distance"] = actual_distance
        if actual_duration is not None:
            extra["actual_duration"] = actual_duration
        return await self._advance(booking, BookingStatus.COMPLETED, extra=extra)

    # ── Cancellation ──────────────────────────────────────────────────

    async def cancel(
        self, identity: Identity, booking_id: int, reason: Optional[str]
    ) -> BookingModel:
        booking = await self._load(booking_id)
        self._ensure_participant(identity, booking)
        return await self._cancel(identity, booking, reason)

    async def _cancel(
        self, identity: Identity, booking: BookingModel, reason: Optional[str]
    ) -> BookingModel:
        if booking.is_terminal:
            raise Conflict(
                f"Booking cannot be cancelled from status {BookingStatus(booking.status).value}"
            )

        now = utcnow()
        refund = refund_amount(booking.total, booking.scheduled_time, now)
        initiator = cancelled_by(identity.id, booking.rider_id, booking.driver_id)
        values = booking.changes_for(BookingStatus.CANCELLED, now)
        values.update(
            cancel_reason=reason,
            cancelled_by=initiator,
            cancelled_at=now,
            refund_amount=refund,
        )
        booking = await self._swap(booking, values)
        logger.info(
            "Booking %s cancelled by %s (refund %.2f)",
            booking.id,
            initiator.value,
            refund,
        )

        if (
            refund > 0
            and booking.payment_status == PaymentStatus.COMPLETED
            and booking.transaction_id
        ):
            await issue_refund(
                self.repo,
                self.transactions,
                booking,
                refund,
                f"Refund for cancelled booking {booking.id}",
            )
            booking = await self.repo.reload(booking.id)

        message = "Your booking has been cancelled."
        if refund > 0:
            message += f" Refund: {refund:.2f} {booking.currency}."
        await self.notifier.notify_user_id(
            booking.rider_id,
            NotificationType.BOOKING_CANCELLED,
            "Booking cancelled",
            message,
            {"booking_id": booking.id, "refund_amount": refund},
        )
        if booking.driver_id is not None and booking.driver_id != identity.id:
            await self.notifier.notify_user_id(
                booking.driver_id,
                NotificationType.BOOKING_CANCELLED,
                "Booking cancelled",
                f"Booking {booking.id} was cancelled.",
                {"booking_id": booking.id},
            )
        return booking

    # ── Ratings ───────────────────────────────────────────────────────

    async def _rate(
        self,
        booking: BookingModel,
        *,
        by_rider: bool,
        score: int,
        comment: Optional[str],
    ) -> BookingModel:
        if not is_valid_score(score):
            raise ValidationFailed("Rating must be between 1 and 5", field="rating")
        if BookingStatus(booking.status) != BookingStatus.COMPLETED:
            raise Conflict("Can only rate completed bookings")
        recorded = await self.repo.record_rating(
            booking.id, by_rider=by_rider, score=score, comment=comment, at=utcnow()
        )
        if not recorded:
            raise Conflict("Booking already rated")
        return await self.repo.reload(booking.id)

    async def rate_driver(
        self,
        identity: Identity,
        booking_id: int,
        score: int,
        comment: Optional[str] = None,
    ) -> BookingModel:
        """Rider rates the driver; the driver's average is re-aggregated."""
        booking = await self._load(booking_id)
        if booking.rider_id != identity.id:
            raise AccessDenied("Access denied")
        booking = await self._rate(booking, by_rider=True, score=score, comment=comment)

        if booking.driver_id is not None:
            average = average_rating(await self.repo.ratings_for_driver(booking.driver_id))
            if average is not None:
                await self.users.set_average_rating(booking.driver_id, average)
                logger.info("Driver %s average rating now %.1f", booking.driver_id, average)
        return booking

    async def rate_rider(
        self,
        identity: Identity,
        booking_id: int,
        score: int,
        comment: Optional[str] = None,
    ) -> BookingModel:
        """Driver rates the rider; the rider's average is re-aggregated."""
        booking = await self._load(booking_id)
        if booking.driver_id is None or booking.driver_id != identity.id:
            raise AccessDenied("Access denied")
        booking = await self._rate(booking, by_rider=False, score=score, comment=comment)

        average = average_rating(await self.repo.ratings_for_rider(booking.rider_id))
        if average is not None:
            await self.users.set_average_rating(booking.rider_id, average)
        return booking

    # ── Admin / driver reporting ──────────────────────────────────────

    async def update_surge(
        self, identity: Identity, booking_id: int, surge_multiplier: float
    ) -> BookingModel:
        """Reprice a booking no driver has taken yet."""
        if not identity.is_admin:
            raise AccessDenied("Admin access required")
        booking = await self._load(booking_id)
        status = BookingStatus(booking.status)
        if status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise Conflict(f"Cannot reprice a booking in status {status.value}")
        if booking.payment_status != PaymentStatus.PENDING:
            raise Conflict("Cannot reprice a booking after payment")

        fare = self.pricing.price(booking.distance_km, booking.vehicle_type, surge_multiplier)
        booking = await self._swap(
            booking,
            {
                "base_fare": fare.base_fare,
                "vehicle_multiplier": fare.vehicle_multiplier,
                "surge_multiplier": fare.surge_multiplier,
                "subtotal": fare.subtotal,
                "taxes": fare.taxes,
                "total": fare.total,
            },
        )
        logger.info(
            "Booking %s repriced at surge %.2f: total %.2f", booking.id, surge_multiplier, fare.total
        )
        return booking

    async def earnings(self, identity: Identity, period: str = "month") -> dict[str, Any]:
        if period not in EARNINGS_PERIODS:
            period = "month"
        now = utcnow()
        start = earnings_window_start(period, now)
        summary = await self.repo.driver_earnings(identity.id, start)
        return {"period": period, "start_date": start, "end_date": now, **summary}
