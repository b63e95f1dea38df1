"""Ordering helpers: single-element move and full-permutation validation."""
from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence, TypeVar

T = TypeVar("T")


def move_item(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """Remove the element at ``from_index`` and reinsert it at ``to_index``.

    Every other element keeps its relative order. ``to_index`` is clamped to the list bounds.
    """
    n = len(items)
    if from_index < 0 or from_index >= n:
        raise IndexError(f"from_index {from_index} out of range for {n} items")
    out = list(items)
    moved = out.pop(from_index)
    to_index = max(0, min(to_index, n - 1))
    out.insert(to_index, moved)
    return out


def permutation_problems(current_ids: Iterable[str], submitted_ids: Sequence[str]) -> list[str]:
    """Return human-readable reasons ``submitted_ids`` is not a permutation of ``current_ids``.

    Empty list means the submitted order is valid.
    """
    current = set(current_ids)
    problems: list[str] = []
    dupes = sorted(i for i, c in Counter(submitted_ids).items() if c > 1)
    if dupes:
        problems.append(f"duplicate ids: {', '.join(dupes)}")
    unknown = sorted(set(submitted_ids) - current)
    if unknown:
        problems.append(f"unknown ids: {', '.join(unknown)}")
    missing = sorted(current - set(submitted_ids))
    if missing:
        problems.append(f"missing ids: {', '.join(missing)}")
    return problems


def is_full_permutation(current_ids: Iterable[str], submitted_ids: Sequence[str]) -> bool:
    return not permutation_problems(current_ids, submitted_ids)
