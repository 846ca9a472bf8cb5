"""Merge helpers for combining pages from several channels."""

from collections.abc import Callable, Hashable, Iterable
from typing import TypeVar

T = TypeVar("T")


def merge_by_identity(
    existing: Iterable[T], incoming: Iterable[T], key: Callable[[T], Hashable]
) -> tuple[list[T], int]:
    """Append incoming items whose key is not already present.

    The first occurrence of a key wins; later duplicates are dropped, both
    against ``existing`` and within ``incoming`` itself. Merging the same
    page twice is a no-op.

    Args:
        existing: Items already buffered, in their current order
        incoming: Newly fetched items
        key: Returns the identity of an item

    Returns:
        Tuple of (merged list, number of items added)
    """
    merged = list(existing)
    seen = {key(it) for it in merged}
    added = 0
    for it in incoming:
        k = key(it)
        if k in seen:
            continue
        seen.add(k)
        merged.append(it)
        added += 1
    return merged, added
