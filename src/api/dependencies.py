"""FastAPI dependency injection helpers."""

import redis.asyncio as aioredis
from fastapi import BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import get_redis
from src.services.accounts import AccountService
from src.services.bookings import BookingService
from src.services.mailer import Mailer, get_mailer
from src.services.notifications import NotificationService, Notifier
from src.services.payments import PaymentService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_notifier(
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> Notifier:
    return Notifier(db, mailer, background)


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> BookingService:
    return BookingService(db, notifier)


def get_account_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    notifier: Notifier = Depends(get_notifier),
) -> AccountService:
    return AccountService(db, redis, notifier)


def get_payment_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    notifier: Notifier = Depends(get_notifier),
) -> PaymentService:
    return PaymentService(db, redis, notifier)


def get_notification_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> NotificationService:
    return NotificationService(db, notifier)
