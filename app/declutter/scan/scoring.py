"""Baseline heuristic safety score.

Every item gets a baseline score when it is created, before any
enrichment phase runs. The risk audit phase may only lower it.
"""

from datetime import datetime, timedelta
from pathlib import Path, PurePath

from declutter.models.item import Category, clamp_score
from declutter.risk.rules import important_user_path_for, is_critical_path

CATEGORY_BASE_SCORES: dict[Category, int] = {
    Category.CACHE: 80,
    Category.LOGS: 80,
    Category.TEMPORARY: 85,
    Category.NODE_MODULES: 75,
    Category.XCODE: 80,
    Category.BREW: 85,
    Category.PIP: 85,
    Category.TRASH: 90,
    Category.DOWNLOADS: 45,
    Category.DUPLICATES: 50,
    Category.OTHER: 50,
}

DISPOSABLE_SUFFIXES: tuple[str, ...] = (".cache", ".log", ".tmp", ".temp")

USER_DATA_CEILING = 40


def baseline_safety_score(
    category: Category,
    path: str,
    modified_at: datetime | None,
    now: datetime,
    home: Path | None = None,
) -> int:
    """Compute the baseline safety score for a new item.

    Args:
        category: Item category.
        path: Absolute item path.
        modified_at: Last modification time, if known.
        now: Reference time for the age adjustments.
        home: Home directory for the user-data cap.

    Returns:
        Score in [0, 100]; 0 for paths on the critical deny-list.
    """
    if is_critical_path(path):
        return 0

    score = CATEGORY_BASE_SCORES[category]

    if PurePath(path).name.lower().endswith(DISPOSABLE_SUFFIXES):
        score += 5

    if modified_at is not None:
        age = now - modified_at
        if age < timedelta(days=7):
            score -= 10
        elif age > timedelta(days=365):
            score += 5

    if important_user_path_for(path, home) is not None:
        score = min(score, USER_DATA_CEILING)

    return clamp_score(score)
