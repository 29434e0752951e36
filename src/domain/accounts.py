"""Login lockout policy.

After ``max_attempts`` consecutive failures the account is locked for
``lock_duration``.  A failure after an expired lock restarts the count.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .entities import as_utc


@dataclass(frozen=True)
class LoginState:
    attempts: int
    lock_until: Optional[datetime]


def is_locked(lock_until: Optional[datetime], now: datetime) -> bool:
    return lock_until is not None and as_utc(lock_until) > as_utc(now)


def register_failure(
    state: LoginState,
    now: datetime,
    max_attempts: int = 5,
    lock_duration: timedelta = timedelta(hours=2),
) -> LoginState:
    if state.lock_until is not None and not is_locked(state.lock_until, now):
        return LoginState(attempts=1, lock_until=None)

    attempts = state.attempts + 1
    lock_until = state.lock_until
    if attempts >= max_attempts and not is_locked(lock_until, now):
        lock_until = now + lock_duration
    return LoginState(attempts=attempts, lock_until=lock_until)


def register_success() -> LoginState:
    return LoginState(attempts=0, lock_until=None)
