"""Manual asset ordering rules."""

from __future__ import annotations

from typing import Hashable, Optional, Sequence, TypeVar

T = TypeVar("T", bound=Hashable)


def can_reorder(role: Optional[str], *, status_filter: Optional[str], type_filter: Optional[str]) -> bool:
    """Drag-and-drop ordering is an admin action on the unfiltered list only."""
    if role != "admin":
        return False
    return not _is_active_filter(status_filter) and not _is_active_filter(type_filter)


def _is_active_filter(value: Optional[str]) -> bool:
    return bool(value) and value != "all"


def move_item(order: Sequence[T], source_index: int, destination_index: int) -> list[T]:
    """Return a new ordering with one element moved."""
    result = list(order)
    if not (0 <= source_index < len(result)) or not (0 <= destination_index < len(result)):
        raise IndexError("Reorder index out of range")
    item = result.pop(source_index)
    result.insert(destination_index, item)
    return result


def dense_sort_orders(order: Sequence[T]) -> dict[T, int]:
    """Map each id to its 1-based position."""
    if len(set(order)) != len(order):
        raise ValueError("Ordering contains duplicate ids")
    return {item: position for position, item in enumerate(order, start=1)}
