"""Data models for declutter.

This module exports the core data structures used throughout the application.
"""

from declutter.models.history import HistoryEntry, create_history_entry
from declutter.models.item import (
    DEVELOPER_CATEGORIES,
    SAFE_CATEGORIES,
    Category,
    CleanableItem,
    DuplicateGroup,
)
from declutter.models.results import (
    CleaningRecommendation,
    CleanResult,
    FailedItem,
    PhaseReport,
    ScanResults,
)

__all__ = [
    "DEVELOPER_CATEGORIES",
    "SAFE_CATEGORIES",
    "Category",
    "CleanResult",
    "CleanableItem",
    "CleaningRecommendation",
    "DuplicateGroup",
    "FailedItem",
    "HistoryEntry",
    "PhaseReport",
    "ScanResults",
    "create_history_entry",
]
