"""Unit tests for name-based duplicate detection."""

from collections.abc import Callable

from declutter.models.item import Category, CleanableItem
from declutter.scan.duplicates import duplicate_key, find_duplicates


class TestFindDuplicates:
    """Tests for find_duplicates."""

    def test_same_name_and_size_grouped(self, make_item: Callable[..., CleanableItem]) -> None:
        """Two equally sized files with the same name form one group."""
        a = make_item("/home/u/Downloads/b/photo.jpg", Category.DUPLICATES, size=4096)
        b = make_item("/home/u/Downloads/a/photo.jpg", Category.DUPLICATES, size=4096)

        (group,) = find_duplicates([a, b])

        assert group.key == "photo.jpg:4096"
        assert [i.path for i in group.items] == [b.path, a.path]
        assert group.wasted_space == 4096

    def test_different_size_not_grouped(self, make_item: Callable[..., CleanableItem]) -> None:
        """Equal names with different sizes are not duplicates."""
        items = [make_item("/a/photo.jpg", size=1), make_item("/b/photo.jpg", size=2)]

        assert find_duplicates(items) == []

    def test_empty_files_and_repeated_paths_ignored(self, make_item: Callable[..., CleanableItem]) -> None:
        """Zero-byte files and the same path seen twice never form a group."""
        items = [
            make_item("/a/empty", size=0),
            make_item("/b/empty", size=0),
            make_item("/a/same.bin", size=10),
            make_item("/a/same.bin", size=10),
        ]

        assert find_duplicates(items) == []

    def test_groups_sorted_by_waste(self, make_item: Callable[..., CleanableItem]) -> None:
        """The group wasting the most space comes first."""
        items = [
            make_item("/a/small.bin", size=10),
            make_item("/b/small.bin", size=10),
            make_item("/a/big.iso", size=1000),
            make_item("/b/big.iso", size=1000),
            make_item("/c/big.iso", size=1000),
        ]

        groups = find_duplicates(items)

        assert [g.key for g in groups] == ["big.iso:1000", "small.bin:10"]
        assert groups[0].wasted_space == 2000


def test_duplicate_key(make_item: Callable[..., CleanableItem]) -> None:
    """The key combines file name and size."""
    assert duplicate_key(make_item("/x/setup.dmg", size=42)) == "setup.dmg:42"
