"""
Async SQLAlchemy engine and session factory.

Each request gets one ``AsyncSession`` from ``src.api.dependencies.get_db``,
which commits when the handler returns and rolls back on error. Booking
status, payment and rating writes are conditional UPDATEs issued through this
session; the repositories reload the row with ``populate_existing`` afterwards
and objects stay usable after commit (``expire_on_commit=False``).
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for the booking, user, notification and ledger tables."""
