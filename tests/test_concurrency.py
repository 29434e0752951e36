"""
Concurrency safety tests.

Demonstrates:
1. Of N drivers accepting the same booking at once, exactly one wins.
2. A stale status write (compare-and-swap on an old status) is rejected.
3. Distributed lock prevents simultaneous acquire.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from src.config import settings
from src.domain.entities import utcnow
from src.domain.enums import (
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    UserRole,
    VehicleType,
)
from src.domain.errors import Conflict
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.locks import DistributedLock, profile_lock
from src.infrastructure.models import BookingModel, UserModel
from src.infrastructure.repositories import BookingRepository

DRIVERS = 8


@pytest_asyncio.fixture
async def seeded(session_factory):
    """One rider, ``DRIVERS`` drivers and a confirmed, unassigned booking."""
    async with session_factory() as session:
        rider = UserModel(
            name="Rider", email="rider@example.com", phone="+15550000100", password_hash="x"
        )
        drivers = [
            UserModel(
                name=f"Driver {i}",
                email=f"driver{i}@example.com",
                phone=f"+1555000020{i}",
                password_hash="x",
                role=UserRole.DRIVER,
            )
            for i in range(DRIVERS)
        ]
        session.add_all([rider, *drivers])
        await session.flush()

        booking = BookingModel(
            rider_id=rider.id,
            pickup_address="1 Centre St, New York",
            pickup_lat=40.7128,
            pickup_lng=-74.0060,
            destination_address="200 Kent Ave, Brooklyn",
            destination_lat=40.7306,
            destination_lng=-73.9352,
            scheduled_time=utcnow() + timedelta(hours=4),
            vehicle_type=VehicleType.STANDARD,
            status=BookingStatus.CONFIRMED,
            base_fare=25.0,
            distance_km=6.3,
            subtotal=40.75,
            taxes=4.08,
            total=44.83,
            payment_method=PaymentMethod.CASH,
            payment_status=PaymentStatus.PENDING,
            route=[],
        )
        session.add(booking)
        await session.commit()
        return booking.id, [d.id for d in drivers]


class TestAtomicAssignment:
    @pytest.mark.asyncio
    async def test_exactly_one_concurrent_accept_wins(self, session_factory, seeded):
        booking_id, driver_ids = seeded

        async def accept(driver_id: int) -> bool:
            async with session_factory() as session:
                won = await BookingRepository(session).assign_driver(booking_id, driver_id)
                await session.commit()
                return won

        results = await asyncio.gather(*(accept(d) for d in driver_ids))
        assert sum(results) == 1

        winner = driver_ids[results.index(True)]
        async with session_factory() as session:
            booking = await session.get(BookingModel, booking_id)
            assert booking.driver_id == winner
            assert booking.status == BookingStatus.DRIVER_ASSIGNED

    @pytest.mark.asyncio
    async def test_second_accept_after_first_fails(self, session_factory, seeded):
        booking_id, driver_ids = seeded
        async with session_factory() as session:
            repo = BookingRepository(session)
            assert await repo.assign_driver(booking_id, driver_ids[0]) is True
            assert await repo.assign_driver(booking_id, driver_ids[1]) is False

    @pytest.mark.asyncio
    async def test_stale_compare_and_set_is_rejected(self, session_factory, seeded):
        booking_id, _ = seeded
        async with session_factory() as session:
            repo = BookingRepository(session)
            assert await repo.compare_and_set(
                booking_id, BookingStatus.CONFIRMED, {"status": BookingStatus.CANCELLED}
            )
            # a second writer that also observed "confirmed" loses
            assert not await repo.compare_and_set(
                booking_id, BookingStatus.CONFIRMED, {"status": BookingStatus.NO_SHOW}
            )
            booking = await repo.reload(booking_id)
            assert booking.status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_payment_captured_once(self, session_factory, seeded):
        booking_id, _ = seeded
        async with session_factory() as session:
            repo = BookingRepository(session)
            expected = (PaymentStatus.PENDING, PaymentStatus.FAILED)
            values = {"payment_status": PaymentStatus.COMPLETED}
            assert await repo.compare_and_set_payment(booking_id, expected, values)
            assert not await repo.compare_and_set_payment(booking_id, expected, values)


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "lock:test-key", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=None)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_calls_eval(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        mock_redis.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises_conflict(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        with pytest.raises(Conflict, match="Another update is in progress"):
            async with profile_lock(mock_redis, 42):
                pass
        mock_redis.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_profile_lock_key_is_per_user(self):
        mock_redis = AsyncMock()
        assert profile_lock(mock_redis, 7).key == "lock:profile:7"


class TestSessionFactory:
    def test_pool_sized_from_settings(self):
        assert engine.sync_engine.pool.size() == settings.db_pool_size

    def test_objects_survive_commit(self):
        assert async_session_factory.kw["expire_on_commit"] is False
