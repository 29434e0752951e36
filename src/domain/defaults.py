"""Default-flag bookkeeping for a user's saved addresses / payment methods.

Invariant: at most one item in a collection has ``is_default`` set.
Items are anything with a mutable ``is_default`` attribute.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


def make_default(items: Sequence[Any], chosen: Any) -> None:
    """Flag *chosen* as the default and clear every other item."""
    for item in items:
        item.is_default = item is chosen


def default_for_new_item(existing: Sequence[Any], requested: bool) -> bool:
    """The first item in an empty collection always becomes the default."""
    return requested or not existing


def promote_after_removal(remaining: Sequence[Any], removed_was_default: bool) -> Any:
    """After deleting the default, the first remaining item takes over.

    Returns the promoted item, or ``None`` when nothing changed.
    """
    if removed_was_default and remaining and not any(i.is_default for i in remaining):
        remaining[0].is_default = True
        return remaining[0]
    return None
