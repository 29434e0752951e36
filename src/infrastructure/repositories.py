"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.

Status changes on bookings are written with a single conditional UPDATE
(``WHERE id = :id AND status = :expected``), i.e. a compare-and-swap: of
several concurrent writers observing the same status, exactly one wins.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from geoalchemy2 import Geography
from geoalchemy2 import functions as geo_func
from sqlalchemy import Select, case, cast, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AddressModel,
    BookingModel,
    NotificationModel,
    PaymentMethodModel,
    TransactionModel,
    UserModel,
)
from src.domain.enums import (
    AccountStatus,
    BookingStatus,
    PaymentStatus,
    TransactionType,
    UserRole,
)
from src.domain.matching import km_to_meters, nearest_within

SRID_WGS84 = 4326


# ── Shared helpers ────────────────────────────────────────────────────


def _geography(lat, lng):
    return cast(
        geo_func.ST_SetSRID(geo_func.ST_MakePoint(lng, lat), SRID_WGS84),
        Geography(srid=SRID_WGS84),
    )


def nearby_bookings_statement(
    lat: float, lng: float, radius_km: float, limit: int
) -> Select:
    """PostGIS query: confirmed bookings whose pickup is within the radius."""
    pickup = _geography(BookingModel.pickup_lat, BookingModel.pickup_lng)
    center = _geography(lat, lng)
    return (
        select(BookingModel)
        .where(
            BookingModel.status == BookingStatus.CONFIRMED,
            geo_func.ST_DWithin(pickup, center, km_to_meters(radius_km)),
        )
        .order_by(
            geo_func.ST_Distance(pickup, center),
            BookingModel.created_at,
            BookingModel.id,
        )
        .limit(limit)
    )


def _driver_filter():
    return (
        UserModel.role == UserRole.DRIVER,
        UserModel.status == AccountStatus.ACTIVE,
        UserModel.current_lat.is_not(None),
        UserModel.current_lng.is_not(None),
    )


def nearby_drivers_statement(
    lat: float, lng: float, radius_km: float, limit: int
) -> Select:
    """PostGIS query: active drivers whose last known position is in range."""
    position = _geography(UserModel.current_lat, UserModel.current_lng)
    center = _geography(lat, lng)
    return (
        select(UserModel)
        .where(
            *_driver_filter(),
            geo_func.ST_DWithin(position, center, km_to_meters(radius_km)),
        )
        .order_by(geo_func.ST_Distance(position, center), UserModel.id)
        .limit(limit)
    )


async def _paginate(
    session: AsyncSession, query: Select, page: int, limit: int
) -> tuple[list[Any], int]:
    total = (
        await session.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0
    result = await session.execute(query.offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), total


def _is_postgres(session: AsyncSession) -> bool:
    return session.get_bind().dialect.name == "postgresql"


# ── Bookings ──────────────────────────────────────────────────────────


class BookingRepository:
    SORTABLE = {
        "created_at": BookingModel.created_at,
        "scheduled_time": BookingModel.scheduled_time,
    }

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def reload(self, booking_id: int) -> Optional[BookingModel]:
        """Re-read a row after a conditional UPDATE bypassed the identity map."""
        return await self.session.get(
            BookingModel, booking_id, populate_existing=True
        )

    async def list_for_rider(
        self,
        rider_id: int,
        *,
        status: BookingStatus | None = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[BookingModel], int]:
        column = self.SORTABLE.get(sort_by, BookingModel.created_at)
        order = column.desc() if descending else column.asc()
        query = select(BookingModel).where(BookingModel.rider_id == rider_id)
        if status is not None:
            query = query.where(BookingModel.status == status)
        query = query.order_by(order, BookingModel.id.desc() if descending else BookingModel.id)
        return await _paginate(self.session, query, page, limit)

    async def list_for_driver(
        self,
        driver_id: int,
        *,
        status: BookingStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[BookingModel], int]:
        query = select(BookingModel).where(BookingModel.driver_id == driver_id)
        if status is not None:
            query = query.where(BookingModel.status == status)
        query = query.order_by(BookingModel.scheduled_time, BookingModel.id)
        return await _paginate(self.session, query, page, limit)

    async def compare_and_set(
        self,
        booking_id: int,
        expected_status: BookingStatus,
        values: dict[str, Any],
    ) -> bool:
        """Apply *values* only if the row is still in *expected_status*."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status == expected_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def assign_driver(self, booking_id: int, driver_id: int) -> bool:
        """Atomic accept: succeeds only for a confirmed, unassigned booking."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status == BookingStatus.CONFIRMED,
                BookingModel.driver_id.is_(None),
            )
            .values(driver_id=driver_id, status=BookingStatus.DRIVER_ASSIGNED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def compare_and_set_payment(
        self,
        booking_id: int,
        expected: tuple[PaymentStatus, ...],
        values: dict[str, Any],
    ) -> bool:
        """Same as ``compare_and_set`` but keyed on the payment status."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.payment_status.in_(expected),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def record_rating(
        self,
        booking_id: int,
        *,
        by_rider: bool,
        score: int,
        comment: Optional[str],
        at: datetime,
    ) -> bool:
        """Set-once: only writes if this side has not rated yet."""
        if by_rider:
            column, values = BookingModel.rider_rating, {
                "rider_rating": score,
                "rider_comment": comment,
                "rider_rated_at": at,
            }
        else:
            column, values = BookingModel.driver_rating, {
                "driver_rating": score,
                "driver_comment": comment,
                "driver_rated_at": at,
            }
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status == BookingStatus.COMPLETED,
                column.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def ratings_for_driver(self, driver_id: int) -> list[int]:
        result = await self.session.execute(
            select(BookingModel.rider_rating).where(
                BookingModel.driver_id == driver_id,
                BookingModel.rider_rating.is_not(None),
            )
        )
        return list(result.scalars().all())

    async def ratings_for_rider(self, rider_id: int) -> list[int]:
        result = await self.session.execute(
            select(BookingModel.driver_rating).where(
                BookingModel.rider_id == rider_id,
                BookingModel.driver_rating.is_not(None),
            )
        )
        return list(result.scalars().all())

    async def nearby_confirmed(
        self, lat: float, lng: float, radius_km: float, limit: int
    ) -> list[BookingModel]:
        if _is_postgres(self.session):
            result = await self.session.execute(
                nearby_bookings_statement(lat, lng, radius_km, limit)
            )
            return list(result.scalars().all())

        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.status == BookingStatus.CONFIRMED)
            .order_by(BookingModel.created_at, BookingModel.id)
        )
        return nearest_within(
            (lat, lng),
            result.scalars().all(),
            lambda b: (b.pickup_lat, b.pickup_lng),
            radius_km,
            limit,
        )

    async def rider_summary(self, rider_id: int) -> dict[str, Any]:
        result = await self.session.execute(
            select(
                func.count(BookingModel.id),
                func.coalesce(func.sum(BookingModel.total), 0.0),
                func.coalesce(
                    func.sum(case((BookingModel.status == BookingStatus.COMPLETED, 1), else_=0)), 0
                ),
                func.coalesce(
                    func.sum(case((BookingModel.status == BookingStatus.CANCELLED, 1), else_=0)), 0
                ),
                func.avg(BookingModel.rider_rating),
            ).where(BookingModel.rider_id == rider_id)
        )
        total, spent, completed, cancelled, avg_rating = result.one()
        return {
            "total_bookings": total,
            "total_spent": float(spent),
            "completed_rides": completed,
            "cancelled_rides": cancelled,
            "average_rating": float(avg_rating) if avg_rating is not None else 0.0,
        }

    async def driver_earnings(self, driver_id: int, since: datetime) -> dict[str, Any]:
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(BookingModel.total), 0.0),
                func.count(BookingModel.id),
                func.avg(BookingModel.total),
            ).where(
                BookingModel.driver_id == driver_id,
                BookingModel.status == BookingStatus.COMPLETED,
                BookingModel.ended_at >= since,
            )
        )
        earned, rides, average = result.one()
        return {
            "total_earnings": float(earned),
            "total_rides": rides,
            "average_earning": float(average) if average is not None else 0.0,
        }


# ── Users ─────────────────────────────────────────────────────────────


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.phone == phone)
        )
        return result.scalar_one_or_none()

    async def get_by_verification_hash(self, token_hash: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.verification_token_hash == token_hash)
        )
        return result.scalar_one_or_none()

    async def get_by_reset_hash(self, token_hash: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.reset_token_hash == token_hash)
        )
        return result.scalar_one_or_none()

    async def record_completed_ride(self, user_id: int, fare: float) -> None:
        """Atomic increment; never read-modify-write the counters."""
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                total_rides=UserModel.total_rides + 1,
                total_spent=UserModel.total_spent + fare,
            )
            .execution_options(synchronize_session=False)
        )

    async def set_average_rating(self, user_id: int, value: float) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(average_rating=value)
            .execution_options(synchronize_session=False)
        )

    async def nearby_drivers(
        self, lat: float, lng: float, radius_km: float, limit: int
    ) -> list[UserModel]:
        if _is_postgres(self.session):
            result = await self.session.execute(
                nearby_drivers_statement(lat, lng, radius_km, limit)
            )
            return list(result.scalars().all())

        result = await self.session.execute(
            select(UserModel).where(*_driver_filter()).order_by(UserModel.id)
        )
        return nearest_within(
            (lat, lng),
            result.scalars().all(),
            lambda u: (u.current_lat, u.current_lng),
            radius_km,
            limit,
        )


# ── Saved addresses / payment methods ─────────────────────────────────


class AddressRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: int) -> list[AddressModel]:
        result = await self.session.execute(
            select(AddressModel)
            .where(AddressModel.user_id == user_id)
            .order_by(AddressModel.id)
        )
        return list(result.scalars().all())

    async def get_for_user(self, user_id: int, address_id: int) -> Optional[AddressModel]:
        result = await self.session.execute(
            select(AddressModel).where(
                AddressModel.id == address_id,
                AddressModel.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, address: AddressModel) -> AddressModel:
        self.session.add(address)
        await self.session.flush()
        return address

    async def delete(self, address: AddressModel) -> None:
        await self.session.delete(address)
        await self.session.flush()


class PaymentMethodRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: int) -> list[PaymentMethodModel]:
        result = await self.session.execute(
            select(PaymentMethodModel)
            .where(PaymentMethodModel.user_id == user_id)
            .order_by(PaymentMethodModel.id)
        )
        return list(result.scalars().all())

    async def get_for_user(
        self, user_id: int, method_id: int
    ) -> Optional[PaymentMethodModel]:
        result = await self.session.execute(
            select(PaymentMethodModel).where(
                PaymentMethodModel.id == method_id,
                PaymentMethodModel.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, method: PaymentMethodModel) -> PaymentMethodModel:
        self.session.add(method)
        await self.session.flush()
        return method

    async def delete(self, method: PaymentMethodModel) -> None:
        await self.session.delete(method)
        await self.session.flush()


# ── Notifications / transactions ──────────────────────────────────────


class NotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, notification: NotificationModel) -> NotificationModel:
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def get_for_user(
        self, user_id: int, notification_id: int
    ) -> Optional[NotificationModel]:
        result = await self.session.execute(
            select(NotificationModel).where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: int, *, unread_only: bool = False, page: int = 1, limit: int = 20
    ) -> tuple[list[NotificationModel], int]:
        query = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            query = query.where(NotificationModel.is_read.is_(False))
        query = query.order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        return await _paginate(self.session, query, page, limit)

    async def unread_count(self, user_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(NotificationModel)
            .where(
                NotificationModel.user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(
                NotificationModel.user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete(self, user_id: int, notification_id: int) -> bool:
        result = await self.session.execute(
            delete(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class TransactionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, transaction: TransactionModel) -> TransactionModel:
        self.session.add(transaction)
        await self.session.flush()
        return transaction

    async def list_for_user(
        self,
        user_id: int,
        *,
        type: TransactionType | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[TransactionModel], int]:
        query = select(TransactionModel).where(TransactionModel.user_id == user_id)
        if type is not None:
            query = query.where(TransactionModel.type == type)
        query = query.order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
        return await _paginate(self.session, query, page, limit)
