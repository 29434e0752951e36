"""
Cancellation & refund policy.

Refund tiers by hours left until the scheduled pickup:

    h > 2        -> 80 %
    1 < h <= 2   -> 50 %
    h <= 1       ->  0 %
"""

from __future__ import annotations

from datetime import datetime

from .entities import as_utc
from .enums import CancelledBy
from .pricing import round_half_up

REFUND_TIERS: list[tuple[float, float]] = [
    (2.0, 0.8),
    (1.0, 0.5),
]


def hours_until(scheduled_time: datetime, now: datetime) -> float:
    return (as_utc(scheduled_time) - as_utc(now)).total_seconds() / 3600


def refund_fraction(hours_left: float) -> float:
    for threshold, fraction in REFUND_TIERS:
        if hours_left > threshold:
            return fraction
    return 0.0


def refund_amount(total: float, scheduled_time: datetime, now: datetime) -> float:
    fraction = refund_fraction(hours_until(scheduled_time, now))
    return round_half_up(total * fraction)


def cancelled_by(
    caller_id: int, rider_id: int, driver_id: int | None
) -> CancelledBy:
    """Who initiated the cancellation, judged by the caller's relation to it."""
    if caller_id == rider_id:
        return CancelledBy.USER
    if driver_id is not None and caller_id == driver_id:
        return CancelledBy.DRIVER
    return CancelledBy.SYSTEM
