"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on bookings: ``BookingLifecycle`` is mixed into the
  persisted booking model and enforces valid lifecycle transitions
  (pending -> confirmed -> driver_assigned -> driver_en_route -> arrived
  -> in_progress -> completed, with cancelled | no_show from any
  non-terminal state).
- Derived fields (``is_active``, ``ride_duration_minutes`` ...) are computed
  on read, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from .enums import (
    ACTIVE_STATUSES,
    BOOKING_TRANSITIONS,
    TERMINAL_STATUSES,
    BookingStatus,
    UserRole,
)
from .errors import InvalidStateTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, threaded explicitly into every operation."""

    id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def route_point(lat: float, lng: float, at: Optional[datetime] = None) -> dict[str, Any]:
    return {"lat": lat, "lng": lng, "timestamp": (at or utcnow()).isoformat()}


# ── Booking lifecycle ─────────────────────────────────────────────────


class BookingLifecycle:
    """Status rules shared by anything shaped like a booking.

    Expects ``status``, ``scheduled_time``, ``started_at`` and ``ended_at``
    attributes on the host class.
    """

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in BOOKING_TRANSITIONS.get(BookingStatus(self.status), set())

    def changes_for(
        self, new_status: BookingStatus, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        """Column changes for moving to *new_status*; raises if illegal.

        Start/end stamps are only written when unset, so re-entering a
        state never moves them.
        """
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Cannot transition from {BookingStatus(self.status).value} "
                f"to {BookingStatus(new_status).value}"
            )
        now = now or utcnow()
        changes: dict[str, Any] = {"status": new_status}
        if new_status == BookingStatus.IN_PROGRESS and self.started_at is None:
            changes["started_at"] = now
        elif new_status == BookingStatus.COMPLETED and self.ended_at is None:
            changes["ended_at"] = now
        return changes

    def transition_to(
        self, new_status: BookingStatus, now: Optional[datetime] = None
    ) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        for name, value in self.changes_for(new_status, now).items():
            setattr(self, name, value)

    @property
    def is_terminal(self) -> bool:
        return BookingStatus(self.status) in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return BookingStatus(self.status) in ACTIVE_STATUSES

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        return (
            BookingStatus(self.status) == BookingStatus.CONFIRMED
            and as_utc(self.scheduled_time) > as_utc(now or utcnow())
        )

    @property
    def ride_duration_minutes(self) -> Optional[float]:
        if self.started_at is None or self.ended_at is None:
            return None
        delta = as_utc(self.ended_at) - as_utc(self.started_at)
        return delta.total_seconds() / 60
