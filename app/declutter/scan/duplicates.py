"""Name-based duplicate detection.

Items sharing a file name and size are reported as a duplicate group.
Contents are never hashed, so groups are candidates rather than proof.
"""

from collections import defaultdict
from collections.abc import Iterable

from declutter.models.item import CleanableItem, DuplicateGroup


def duplicate_key(item: CleanableItem) -> str:
    """Grouping key of an item."""
    return f"{item.name}:{item.size}"


def find_duplicates(items: Iterable[CleanableItem]) -> list[DuplicateGroup]:
    """Group items by file name and size.

    Empty files are ignored since they waste no space. Members of each
    group are ordered by path so the kept "first" member is stable
    across runs.

    Args:
        items: Items to group.

    Returns:
        Groups with at least two members, largest waste first.
    """
    buckets: dict[str, list[CleanableItem]] = defaultdict(list)
    seen_paths: set[str] = set()
    for item in items:
        if item.size == 0 or item.path in seen_paths:
            continue
        seen_paths.add(item.path)
        buckets[duplicate_key(item)].append(item)

    groups = [
        DuplicateGroup(key=key, items=tuple(sorted(members, key=lambda i: i.path)))
        for key, members in buckets.items()
        if len(members) > 1
    ]
    groups.sort(key=lambda g: g.wasted_space, reverse=True)
    return groups
