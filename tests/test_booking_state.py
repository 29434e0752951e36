"""Unit tests for booking state transitions (State Pattern)."""

from datetime import datetime, timedelta, timezone

import pytest

from src.domain.enums import BOOKING_TRANSITIONS, TERMINAL_STATUSES, BookingStatus
from src.domain.errors import Conflict, InvalidStateTransition
from src.infrastructure.models import BookingModel

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def booking(status: BookingStatus, **kwargs) -> BookingModel:
    kwargs.setdefault("scheduled_time", NOW + timedelta(hours=3))
    return BookingModel(status=status, **kwargs)


class TestBookingStateMachine:
    # ── Valid transitions ─────────────────────────────────────────

    @pytest.mark.parametrize(
        "current, nxt",
        [
            (BookingStatus.PENDING, BookingStatus.CONFIRMED),
            (BookingStatus.CONFIRMED, BookingStatus.DRIVER_ASSIGNED),
            (BookingStatus.DRIVER_ASSIGNED, BookingStatus.DRIVER_EN_ROUTE),
            (BookingStatus.DRIVER_EN_ROUTE, BookingStatus.ARRIVED),
            (BookingStatus.ARRIVED, BookingStatus.IN_PROGRESS),
            (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED),
        ],
    )
    def test_forward_step(self, current, nxt):
        b = booking(current)
        b.transition_to(nxt, NOW)
        assert b.status == nxt

    def test_cancel_and_no_show_from_any_non_terminal(self):
        for status, allowed in BOOKING_TRANSITIONS.items():
            if status in TERMINAL_STATUSES:
                continue
            assert BookingStatus.CANCELLED in allowed
            assert BookingStatus.NO_SHOW in allowed

    # ── Invalid transitions ───────────────────────────────────────

    def test_cannot_skip_ahead(self):
        with pytest.raises(InvalidStateTransition):
            booking(BookingStatus.PENDING).transition_to(BookingStatus.COMPLETED, NOW)

    def test_cannot_go_backwards(self):
        with pytest.raises(InvalidStateTransition):
            booking(BookingStatus.ARRIVED).transition_to(BookingStatus.DRIVER_EN_ROUTE, NOW)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_reject_everything(self, terminal):
        for target in BookingStatus:
            assert not booking(terminal).can_transition_to(target)

    def test_invalid_transition_is_a_conflict(self):
        assert issubclass(InvalidStateTransition, Conflict)

    # ── Timestamps ────────────────────────────────────────────────

    def test_in_progress_stamps_start(self):
        b = booking(BookingStatus.ARRIVED)
        b.transition_to(BookingStatus.IN_PROGRESS, NOW)
        assert b.started_at == NOW

    def test_completed_stamps_end(self):
        b = booking(BookingStatus.IN_PROGRESS, started_at=NOW)
        b.transition_to(BookingStatus.COMPLETED, NOW + timedelta(minutes=25))
        assert b.ended_at == NOW + timedelta(minutes=25)
        assert b.ride_duration_minutes == 25

    def test_existing_start_is_not_overwritten(self):
        earlier = NOW - timedelta(hours=1)
        b = booking(BookingStatus.ARRIVED, started_at=earlier)
        changes = b.changes_for(BookingStatus.IN_PROGRESS, NOW)
        assert "started_at" not in changes

    def test_changes_for_does_not_mutate(self):
        b = booking(BookingStatus.PENDING)
        assert b.changes_for(BookingStatus.CONFIRMED, NOW) == {"status": BookingStatus.CONFIRMED}
        assert b.status == BookingStatus.PENDING

    # ── Derived flags ─────────────────────────────────────────────

    def test_is_upcoming_only_for_future_confirmed(self):
        assert booking(BookingStatus.CONFIRMED).is_upcoming(NOW)
        assert not booking(BookingStatus.PENDING).is_upcoming(NOW)
        assert not booking(
            BookingStatus.CONFIRMED, scheduled_time=NOW - timedelta(minutes=1)
        ).is_upcoming(NOW)

    def test_is_active(self):
        assert booking(BookingStatus.DRIVER_EN_ROUTE).is_active
        assert not booking(BookingStatus.CONFIRMED).is_active
        assert not booking(BookingStatus.COMPLETED).is_active

    def test_naive_timestamps_treated_as_utc(self):
        naive = NOW.replace(tzinfo=None) + timedelta(hours=1)
        assert booking(BookingStatus.CONFIRMED, scheduled_time=naive).is_upcoming(NOW)

    def test_no_duration_until_finished(self):
        assert booking(BookingStatus.IN_PROGRESS, started_at=NOW).ride_duration_minutes is None
