"""Unit tests for cancellation refunds, rating aggregation, login lockout and defaults."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from src.domain.accounts import LoginState, is_locked, register_failure, register_success
from src.domain.cancellation import cancelled_by, refund_amount, refund_fraction
from src.domain.defaults import default_for_new_item, make_default, promote_after_removal
from src.domain.enums import CancelledBy
from src.domain.rating import average_rating, is_valid_score

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestRefundPolicy:
    @pytest.mark.parametrize(
        "hours_ahead, expected",
        [(3, 80.0), (1.5, 50.0), (0.5, 0.0)],
    )
    def test_tiers(self, hours_ahead, expected):
        assert refund_amount(100.0, NOW + timedelta(hours=hours_ahead), NOW) == expected

    def test_boundaries_fall_to_lower_tier(self):
        assert refund_fraction(2.0) == 0.5
        assert refund_fraction(1.0) == 0.0

    def test_past_pickup_refunds_nothing(self):
        assert refund_amount(100.0, NOW - timedelta(hours=1), NOW) == 0.0

    def test_rounded_to_cents(self):
        assert refund_amount(56.65, NOW + timedelta(hours=3), NOW) == 45.32


class TestCancelledBy:
    def test_rider(self):
        assert cancelled_by(1, rider_id=1, driver_id=2) == CancelledBy.USER

    def test_driver(self):
        assert cancelled_by(2, rider_id=1, driver_id=2) == CancelledBy.DRIVER

    def test_anyone_else_is_system(self):
        assert cancelled_by(9, rider_id=1, driver_id=2) == CancelledBy.SYSTEM
        assert cancelled_by(9, rider_id=1, driver_id=None) == CancelledBy.SYSTEM


class TestRating:
    def test_average_rounded_to_one_decimal(self):
        assert average_rating([4, 5, 5]) == 4.7

    def test_no_scores(self):
        assert average_rating([]) is None

    def test_score_bounds(self):
        assert is_valid_score(1) and is_valid_score(5)
        assert not is_valid_score(0) and not is_valid_score(6)


class TestLoginLockout:
    def test_locks_on_fifth_failure(self):
        state = LoginState(0, None)
        for _ in range(4):
            state = register_failure(state, NOW)
        assert not is_locked(state.lock_until, NOW)

        state = register_failure(state, NOW)
        assert state.attempts == 5
        assert state.lock_until == NOW + timedelta(hours=2)
        assert is_locked(state.lock_until, NOW + timedelta(minutes=119))

    def test_lock_expires(self):
        state = LoginState(5, NOW)
        assert not is_locked(state.lock_until, NOW + timedelta(seconds=1))

    def test_failure_after_expired_lock_restarts_count(self):
        state = register_failure(LoginState(5, NOW - timedelta(minutes=1)), NOW)
        assert state == LoginState(1, None)

    def test_failure_while_locked_keeps_lock(self):
        lock_until = NOW + timedelta(hours=1)
        state = register_failure(LoginState(5, lock_until), NOW)
        assert state.lock_until == lock_until

    def test_success_resets(self):
        assert register_success() == LoginState(0, None)


@dataclass
class Item:
    name: str
    is_default: bool = False


class TestDefaults:
    def test_first_item_becomes_default(self):
        assert default_for_new_item([], requested=False)
        assert not default_for_new_item([Item("a", True)], requested=False)

    def test_make_default_clears_others(self):
        items = [Item("a", True), Item("b"), Item("c")]
        make_default(items, items[2])
        assert [i.is_default for i in items] == [False, False, True]

    def test_promote_after_removing_default(self):
        remaining = [Item("b"), Item("c")]
        promoted = promote_after_removal(remaining, removed_was_default=True)
        assert promoted is remaining[0]
        assert remaining[0].is_default

    def test_no_promotion_when_removed_item_was_not_default(self):
        remaining = [Item("b"), Item("c", True)]
        assert promote_after_removal(remaining, removed_was_default=False) is None
        assert [i.is_default for i in remaining] == [False, True]
