"""
Saved payment methods, booking charges, refunds and the transaction ledger.

Payment status on a booking is itself guarded by compare-and-swap writes:
``pending|failed -> completed`` on charge and ``completed -> refunded`` on
refund, so a booking is captured at most once and refunded at most once.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.defaults import default_for_new_item, make_default, promote_after_removal
from src.domain.entities import Identity, utcnow
from src.domain.enums import (
    BookingStatus,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    TransactionStatus,
    TransactionType,
)
from src.domain.errors import AccessDenied, Conflict, NotFound, ValidationFailed
from src.infrastructure.locks import profile_lock
from src.infrastructure.models import BookingModel, PaymentMethodModel, TransactionModel
from src.infrastructure.repositories import (
    BookingRepository,
    PaymentMethodRepository,
    TransactionRepository,
)
from src.services.notifications import Notifier
from src.services.payment_gateway import (
    GatewayResult,
    gateway_for_reference,
    select_gateway,
)

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.005


async def issue_refund(
    bookings: BookingRepository,
    transactions: TransactionRepository,
    booking: BookingModel,
    amount: float,
    description: str,
) -> GatewayResult:
    """Refund part of a captured payment.

    The booking is flipped to ``refunded`` *before* the gateway call so
    concurrent refund attempts cannot both reach the gateway; a gateway
    failure flips it back.
    """
    claimed = await bookings.compare_and_set_payment(
        booking.id, (PaymentStatus.COMPLETED,), {"payment_status": PaymentStatus.REFUNDED}
    )
    if not claimed:
        raise Conflict("Booking has no captured payment to refund")

    result = await gateway_for_reference(booking.transaction_id).refund(
        booking.transaction_id, amount
    )
    await transactions.add(
        TransactionModel(
            user_id=booking.rider_id,
            booking_id=booking.id,
            type=TransactionType.REFUND,
            amount=amount,
            currency=booking.currency,
            status=TransactionStatus.COMPLETED if result.success else TransactionStatus.FAILED,
            description=description,
            gateway_reference=result.reference,
            payment_method_label=PaymentMethod(booking.payment_method).value,
        )
    )
    if result.success:
        logger.info("Refunded %.2f on booking %s (%s)", amount, booking.id, result.reference)
    else:
        logger.warning("Refund on booking %s failed: %s", booking.id, result.error)
        await bookings.compare_and_set_payment(
            booking.id, (PaymentStatus.REFUNDED,), {"payment_status": PaymentStatus.COMPLETED}
        )
    return result


class PaymentService:
    def __init__(self, session: AsyncSession, redis: aioredis.Redis, notifier: Notifier):
        self.bookings = BookingRepository(session)
        self.methods = PaymentMethodRepository(session)
        self.transactions = TransactionRepository(session)
        self.redis = redis
        self.notifier = notifier

    # ── Payment methods ───────────────────────────────────────────────

    async def list_methods(self, identity: Identity) -> list[PaymentMethodModel]:
        return await self.methods.list_for_user(identity.id)

    async def add_method(
        self,
        identity: Identity,
        type: PaymentMethod,
        gateway_token: Optional[str] = None,
        is_default: bool = False,
    ) -> PaymentMethodModel:
        method = PaymentMethodModel(user_id=identity.id, type=type, gateway_token=gateway_token)
        if type == PaymentMethod.CARD and gateway_token:
            card = await select_gateway(True).describe_method(gateway_token)
            if card is not None:
                method.last4 = card.last4
                method.brand = card.brand
                method.expiry_month = card.expiry_month
                method.expiry_year = card.expiry_year

        async with profile_lock(self.redis, identity.id):
            existing = await self.methods.list_for_user(identity.id)
            method.is_default = default_for_new_item(existing, is_default)
            await self.methods.add(method)
            if method.is_default:
                make_default([*existing, method], method)
        return method

    async def update_method(
        self, identity: Identity, method_id: int, is_default: bool
    ) -> PaymentMethodModel:
        async with profile_lock(self.redis, identity.id):
            method = await self.methods.get_for_user(identity.id, method_id)
            if method is None:
                raise NotFound("Payment method not found")
            if is_default:
                make_default(await self.methods.list_for_user(identity.id), method)
            else:
                method.is_default = False
        return method

    async def delete_method(self, identity: Identity, method_id: int) -> None:
        async with profile_lock(self.redis, identity.id):
            method = await self.methods.get_for_user(identity.id, method_id)
            if method is None:
                raise NotFound("Payment method not found")
            was_default = method.is_default
            await self.methods.delete(method)
            promote_after_removal(await self.methods.list_for_user(identity.id), was_default)

    # ── Charges / refunds ─────────────────────────────────────────────

    async def _booking_for_payer(self, identity: Identity, booking_id: int) -> BookingModel:
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        if booking.rider_id != identity.id and not identity.is_admin:
            raise AccessDenied("Access denied")
        return booking

    async def process(
        self, identity: Identity, booking_id: int, method_id: int, amount: float
    ) -> tuple[GatewayResult, BookingModel]:
        """Charge a booking.  A declined charge is returned, not raised."""
        booking = await self._booking_for_payer(identity, booking_id)
        if booking.is_terminal:
            raise Conflict(f"Cannot pay for a {BookingStatus(booking.status).value} booking")
        if booking.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
            raise Conflict("Booking is already paid")
        if abs(amount - booking.total) > AMOUNT_TOLERANCE:
            raise ValidationFailed(
                f"Amount must equal the booking total of {booking.total:.2f}", field="amount"
            )

        method = await self.methods.get_for_user(booking.rider_id, method_id)
        if method is None:
            raise NotFound("Payment method not found")

        gateway = select_gateway(method.type == PaymentMethod.CARD and bool(method.gateway_token))
        result = await gateway.charge(
            method.gateway_token,
            amount,
            booking.currency,
            {"booking_id": booking.id, "user_id": booking.rider_id},
        )

        if result.success:
            captured = await self.bookings.compare_and_set_payment(
                booking.id,
                (PaymentStatus.PENDING, PaymentStatus.FAILED),
                {
                    "payment_status": PaymentStatus.COMPLETED,
                    "transaction_id": result.reference,
                    "paid_at": utcnow(),
                },
            )
            if not captured:
                logger.warning(
                    "Booking %s was paid concurrently; reversing charge %s",
                    booking.id,
                    result.reference,
                )
                await gateway.refund(result.reference, result.amount)
                raise Conflict("Booking is already paid")
        else:
            await self.bookings.compare_and_set_payment(
                booking.id, (PaymentStatus.PENDING,), {"payment_status": PaymentStatus.FAILED}
            )

        await self.transactions.add(
            TransactionModel(
                user_id=booking.rider_id,
                booking_id=booking.id,
                type=TransactionType.PAYMENT,
                amount=result.amount,
                currency=booking.currency,
                status=TransactionStatus.COMPLETED if result.success else TransactionStatus.FAILED,
                description=f"Ride to {booking.destination_address}",
                gateway_reference=result.reference,
                payment_method_label=method.label,
            )
        )

        if result.success and BookingStatus(booking.status) == BookingStatus.PENDING:
            confirmed = await self.bookings.compare_and_set(
                booking.id,
                BookingStatus.PENDING,
                booking.changes_for(BookingStatus.CONFIRMED),
            )
            if confirmed:
                await self.notifier.notify_user_id(
                    booking.rider_id,
                    NotificationType.BOOKING_CONFIRMED,
                    "Booking confirmed",
                    f"Your ride to {booking.destination_address} is confirmed.",
                    {"booking_id": booking.id},
                )

        logger.info(
            "Payment on booking %s: %s (%s)",
            booking.id,
            result.status,
            result.reference,
        )
        return result, await self.bookings.reload(booking.id)

    async def refund(
        self, identity: Identity, booking_id: int, amount: float, reason: str
    ) -> GatewayResult:
        booking = await self._booking_for_payer(identity, booking_id)
        if BookingStatus(booking.status) != BookingStatus.CANCELLED:
            raise Conflict("Only cancelled bookings can be refunded")
        allowed = booking.refund_amount or 0.0
        if amount - allowed > AMOUNT_TOLERANCE:
            raise ValidationFailed(
                f"Refund cannot exceed {allowed:.2f}", field="amount"
            )
        return await issue_refund(self.bookings, self.transactions, booking, amount, reason)

    async def transactions_for(
        self,
        identity: Identity,
        *,
        type: Optional[TransactionType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[TransactionModel], int]:
        return await self.transactions.list_for_user(
            identity.id, type=type, page=page, limit=limit
        )
