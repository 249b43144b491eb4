"""Set algebra over per-clause id sets.

Kept independent of the store so the combination rules can be tested on plain sets.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable
from typing import TypeVar

from volunteer_hub.filters.schema import FilterOp

T = TypeVar("T", bound=Hashable)


def intersect_all(sets: Iterable[set[T]]) -> set[T]:
    """Intersect sets in order, stopping as soon as the running result is empty.

    Raises:
        ValueError: If `sets` is empty (the intersection of nothing is undefined here).
    """

    iterator = iter(sets)
    try:
        result = set(next(iterator))
    except StopIteration as exc:
        raise ValueError("intersect_all requires at least one set") from exc

    for current in iterator:
        if not result:
            break
        result &= current
    return result


def union_all(sets: Iterable[set[T]]) -> set[T]:
    """Union of all sets (empty for no sets)."""

    result: set[T] = set()
    for current in sets:
        result |= current
    return result


def combine(sets: list[set[T]], op: FilterOp) -> set[T]:
    """Fold per-clause sets with the global operator (AND = intersection, OR = union).

    Callers handle the zero-clause case before combining; see `filter_volunteers`.
    """

    if op == FilterOp.AND:
        return intersect_all(sets)
    return union_all(sets)
