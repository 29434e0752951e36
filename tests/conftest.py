"""
Shared test fixtures.

Uses a throwaway SQLite file database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Coordinates are plain float columns, so the
production models are used as-is; proximity queries fall back to the
in-process haversine matcher on non-PostgreSQL dialects.  Redis is an
``AsyncMock`` that always grants the profile lock.
"""

import os

# bcrypt's minimum cost keeps signup / login fast; must be set before
# src.config is imported.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT", "10000/minute")

from datetime import timedelta
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.api.app import create_app
from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.domain.entities import utcnow
from src.domain.enums import UserRole
from src.infrastructure.database import Base
from src.infrastructure.models import UserModel
from src.infrastructure.redis_client import get_redis
from src.infrastructure.security import create_access_token, hash_password

PASSWORD = "secret123"

# Lower Manhattan -> Williamsburg
PICKUP = {"address": "1 Centre St, New York", "city": "New York", "lat": 40.7128, "lng": -74.0060}
DESTINATION = {"address": "200 Kent Ave, Brooklyn", "city": "Brooklyn", "lat": 40.7306, "lng": -73.9352}


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh schema per test; a file (not :memory:) so sessions can share it."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis_mock():
    mock = AsyncMock()
    mock.set = AsyncMock(return_value=True)
    mock.eval = AsyncMock(return_value=1)
    return mock


# ── App / client ──────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, redis_mock):
    app = create_app()

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_redis():
        return redis_mock

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis] = _get_redis
    limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


# ── Helpers ───────────────────────────────────────────────────────────


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def future(hours: float) -> str:
    return (utcnow() + timedelta(hours=hours)).isoformat()


async def signup(
    client: AsyncClient,
    email: str,
    phone: str,
    role: str = "user",
    name: str = "Test User",
) -> tuple[int, str]:
    """Register through the API; returns ``(user_id, token)``."""
    resp = await client.post(
        "/api/v1/auth/signup",
        json={"name": name, "email": email, "phone": phone, "password": PASSWORD, "role": role},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["user"]["id"], body["access_token"]


async def create_admin(session_factory) -> tuple[int, str]:
    """Admins cannot self-register, so insert one directly."""
    async with session_factory() as session:
        admin = UserModel(
            name="Ops Admin",
            email="admin@example.com",
            phone="+15550000001",
            password_hash=hash_password(PASSWORD),
            role=UserRole.ADMIN,
            is_verified=True,
        )
        session.add(admin)
        await session.commit()
        return admin.id, create_access_token(admin.id, UserRole.ADMIN.value)


async def create_booking(
    client: AsyncClient,
    token: str,
    *,
    payment_method: str = "cash",
    hours_ahead: float = 5,
    vehicle_type: str = "standard",
) -> dict:
    resp = await client.post(
        "/api/v1/bookings",
        json={
            "pickup": PICKUP,
            "destination": DESTINATION,
            "scheduled_time": future(hours_ahead),
            "vehicle_type": vehicle_type,
            "payment_method": payment_method,
        },
        headers=auth(token),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
