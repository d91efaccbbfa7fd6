"""Unit tests for cleanable item models.

Tests for CleanableItem validation, score updates and duplicate groups.
"""

import pytest
from declutter.models.item import (
    SAFE_CATEGORIES,
    Category,
    CleanableItem,
    DuplicateGroup,
    clamp_score,
)


class TestCleanableItem:
    """Tests for CleanableItem dataclass."""

    def test_create_item(self) -> None:
        """Items get a unique id and a display name."""
        first = CleanableItem(path="/tmp/cache/a.bin", category=Category.CACHE, size=10, safety_score=80)
        second = CleanableItem(path="/tmp/cache/a.bin", category=Category.CACHE, size=10, safety_score=80)

        assert first.name == "a.bin"
        assert first.id != second.id

    @pytest.mark.parametrize(
        ("path", "size", "score"),
        [("", 0, 50), ("/tmp/x", -1, 50), ("/tmp/x", 0, 101), ("/tmp/x", 0, -1)],
    )
    def test_invalid_items_rejected(self, path: str, size: int, score: int) -> None:
        """Empty paths, negative sizes and out-of-range scores raise."""
        with pytest.raises(ValueError):
            CleanableItem(path=path, category=Category.OTHER, size=size, safety_score=score)

    def test_set_safety_score_clamps(self) -> None:
        """set_safety_score clamps into [0, 100]."""
        item = CleanableItem(path="/tmp/x", category=Category.CACHE, size=0, safety_score=50)

        item.set_safety_score(140)
        assert item.safety_score == 100
        item.set_safety_score(-5)
        assert item.safety_score == 0

    def test_cap_safety_score_only_lowers(self) -> None:
        """cap_safety_score lowers high scores and attaches the warning."""
        item = CleanableItem(path="/tmp/x", category=Category.CACHE, size=0, safety_score=90)
        item.cap_safety_score(25, "Critical system path")
        assert item.safety_score == 25
        assert item.warning == "Critical system path"

        low = CleanableItem(path="/tmp/y", category=Category.CACHE, size=0, safety_score=10)
        low.cap_safety_score(25)
        assert low.safety_score == 10
        assert low.warning is None

    def test_is_recommended(self) -> None:
        """Only high-scored items without a warning are recommended."""
        item = CleanableItem(path="/tmp/x", category=Category.CACHE, size=0, safety_score=71)
        assert item.is_recommended

        item.warning = "in use"
        assert not item.is_recommended


class TestDuplicateGroup:
    """Tests for DuplicateGroup."""

    def test_wasted_space_excludes_first(self) -> None:
        """Wasted space counts every member except the kept first one."""
        members = tuple(
            CleanableItem(path=f"/d{i}/setup.dmg", category=Category.DUPLICATES, size=500, safety_score=50)
            for i in range(3)
        )

        assert DuplicateGroup(key="setup.dmg:500", items=members).wasted_space == 1000
        assert DuplicateGroup(key="x", items=members[:1]).wasted_space == 0


def test_clamp_score() -> None:
    """clamp_score bounds values to [0, 100]."""
    assert clamp_score(-3) == 0
    assert clamp_score(55) == 55
    assert clamp_score(300) == 100


def test_safe_categories_exclude_user_files() -> None:
    """Default scan categories never include user download folders."""
    assert Category.DOWNLOADS not in SAFE_CATEGORIES
    assert Category.DUPLICATES not in SAFE_CATEGORIES
    assert Category.CACHE in SAFE_CATEGORIES
