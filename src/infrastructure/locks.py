"""
Redis-based distributed lock.

Serialises edits to one user's saved addresses and payment methods so two
concurrent requests cannot both flag a different item as the default.
The booking lifecycle does not use it: bookings rely on conditional
UPDATEs in the database instead.

Implementation uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import logging
import uuid

import redis.asyncio as aioredis

from src.config import settings
from src.domain.errors import Conflict

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        released = await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        if not released:
            logger.warning("Lock %s expired before release", self.key)

    # context-manager support
    async def __aenter__(self):
        if not await self.acquire():
            raise Conflict("Another update is in progress, please retry")
        return self

    async def __aexit__(self, *args):
        await self.release()


def profile_lock(client: aioredis.Redis, user_id: int) -> DistributedLock:
    """Lock guarding a user's default-address / default-payment flags."""
    return DistributedLock(
        client, f"profile:{user_id}", ttl_seconds=settings.profile_lock_ttl_seconds
    )
