"""Rating aggregation.

Averages are recomputed from every historical score on each new rating
rather than maintained incrementally.  That is O(n) per rating; fine for
the current volume, a candidate for a materialised running sum later.
"""

from __future__ import annotations

from collections.abc import Iterable

from .pricing import round_half_up

MIN_SCORE = 1
MAX_SCORE = 5


def is_valid_score(score: int) -> bool:
    return MIN_SCORE <= score <= MAX_SCORE


def average_rating(scores: Iterable[int | float]) -> float | None:
    """Arithmetic mean rounded half-up to one decimal; ``None`` if no scores."""
    values = list(scores)
    if not values:
        return None
    return round_half_up(sum(values) / len(values), 1)
