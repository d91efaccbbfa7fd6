"""Unit tests for baseline safety scoring."""

from datetime import datetime, timedelta
from pathlib import Path

from declutter.models.item import Category
from declutter.scan.scoring import CATEGORY_BASE_SCORES, baseline_safety_score


class TestBaselineSafetyScore:
    """Tests for baseline_safety_score."""

    def test_category_base(self, now: datetime) -> None:
        """Mid-aged items keep their category's base score."""
        score = baseline_safety_score(Category.CACHE, "/x/blob", now - timedelta(days=30), now)

        assert score == CATEGORY_BASE_SCORES[Category.CACHE]

    def test_disposable_suffix_and_old_age_raise(self, now: datetime) -> None:
        """Disposable extensions and old age add to the score."""
        score = baseline_safety_score(Category.CACHE, "/x/data.tmp", now - timedelta(days=400), now)

        assert score == CATEGORY_BASE_SCORES[Category.CACHE] + 10

    def test_recent_modification_lowers(self, now: datetime) -> None:
        """Recently modified items are less safe."""
        score = baseline_safety_score(Category.TRASH, "/x/file", now - timedelta(days=1), now)

        assert score == CATEGORY_BASE_SCORES[Category.TRASH] - 10

    def test_critical_path_is_zero(self, now: datetime) -> None:
        """Deny-listed paths score 0."""
        assert baseline_safety_score(Category.LOGS, "/usr/lib/x.log", None, now) == 0

    def test_user_data_is_capped(self, now: datetime, tmp_path: Path) -> None:
        """Items under user data locations never score above 40."""
        path = str(tmp_path / "Documents" / "old.tmp")

        score = baseline_safety_score(Category.TRASH, path, now - timedelta(days=400), now, home=tmp_path)

        assert score == 40

    def test_clamped_to_hundred(self, now: datetime) -> None:
        """Scores never exceed 100."""
        score = baseline_safety_score(Category.TRASH, "/x/old.cache", now - timedelta(days=999), now)

        assert score == 100
