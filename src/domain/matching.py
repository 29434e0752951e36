"""
Proximity Matching
==================

Drivers look for confirmed bookings near them; riders look for active
drivers near them.  Both are nearest-neighbour queries:

1. **Radius filter** -- keep candidates whose great-circle distance to the
   centre is within ``radius_km``.
2. **Ordering**      -- nearest first.  Equidistant candidates keep their
   input order (the repository feeds them in insertion order), so ties
   resolve stably by insertion.
3. **Limit**         -- at most ``limit`` results (default 20).

On PostgreSQL the same contract is executed by PostGIS
(``ST_DWithin`` + ``ORDER BY ST_Distance``) against GIST indexes; this
module is the reference implementation used on other dialects.

Complexity
----------
O(N log N) for N candidates (one haversine per candidate, then a sort).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

from .distance import haversine_km

T = TypeVar("T")

DEFAULT_RADIUS_KM = 10.0
DEFAULT_LIMIT = 20


def km_to_meters(radius_km: float) -> float:
    return radius_km * 1000


def nearest_within(
    center: tuple[float, float],
    candidates: Iterable[T],
    coords: Callable[[T], tuple[float, float] | None],
    radius_km: float = DEFAULT_RADIUS_KM,
    limit: int = DEFAULT_LIMIT,
) -> list[T]:
    """Return up to *limit* candidates within *radius_km*, nearest first.

    *coords* maps a candidate to ``(lat, lng)``; candidates without a
    location (``None``) are skipped.
    """
    lat, lng = center
    scored: list[tuple[float, T]] = []
    for candidate in candidates:
        point = coords(candidate)
        if point is None:
            continue
        d = haversine_km(lat, lng, point[0], point[1])
        if d <= radius_km:
            scored.append((d, candidate))

    # sort() is stable: equal distances keep insertion order
    scored.sort(key=lambda pair: pair[0])
    return [candidate for _, candidate in scored[:limit]]
