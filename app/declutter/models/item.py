"""Cleanable item model.

This module defines the candidate-for-deletion record produced by scan
tasks, refined by the scoring phases and consumed by the deletion engine.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePath

MIN_SAFETY_SCORE = 0
MAX_SAFETY_SCORE = 100


class Category(str, Enum):
    """Category tag of a cleanable item.

    Attributes:
        CACHE: Application and user caches.
        LOGS: Application and system log files.
        TEMPORARY: Temporary and partial files.
        NODE_MODULES: JavaScript dependency trees.
        XCODE: Xcode derived data and archives.
        BREW: Homebrew download cache.
        PIP: pip wheel and HTTP cache.
        TRASH: Files already moved to the trash.
        DOWNLOADS: Installer images and archives in Downloads.
        DUPLICATES: Candidate duplicates in Downloads.
        OTHER: Anything found under user-configured extra roots.
    """

    CACHE = "cache"
    LOGS = "logs"
    TEMPORARY = "temporary"
    NODE_MODULES = "node_modules"
    XCODE = "xcode"
    BREW = "brew"
    PIP = "pip"
    TRASH = "trash"
    DOWNLOADS = "downloads"
    DUPLICATES = "duplicates"
    OTHER = "other"


# Categories that produce build or package-manager leftovers
DEVELOPER_CATEGORIES: frozenset[Category] = frozenset(
    {Category.NODE_MODULES, Category.XCODE, Category.BREW, Category.PIP}
)

# Categories scanned when the caller does not ask for anything specific
SAFE_CATEGORIES: frozenset[Category] = frozenset(
    {
        Category.CACHE,
        Category.LOGS,
        Category.TRASH,
        Category.NODE_MODULES,
        Category.BREW,
        Category.PIP,
    }
)


def clamp_score(score: int) -> int:
    """Clamp a score into the [0, 100] range."""
    return max(MIN_SAFETY_SCORE, min(MAX_SAFETY_SCORE, score))


@dataclass(slots=True)
class CleanableItem:
    """A scan-discovered candidate for deletion.

    Items are created by scan tasks and mutated in place only by the
    scoring phases (safety score, warning, explanation). The deletion
    engine treats them as read-only.

    Attributes:
        path: Absolute filesystem path.
        category: Category tag of the scan task that found the item.
        size: Size in bytes (recursive for directories).
        safety_score: 0-100, higher means safer to delete.
        last_modified: Last modification time, if known.
        last_accessed: Last access time, if known.
        warning: Risk warning attached by the audit phase.
        explanation: Human-readable explanation from the explanation phase.
        id: Stable identifier, unique per scan.
    """

    path: str
    category: Category
    size: int
    safety_score: int
    last_modified: datetime | None = None
    last_accessed: datetime | None = None
    warning: str | None = None
    explanation: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        """Validate item data after initialization."""
        if not self.path:
            msg = "Path cannot be empty"
            raise ValueError(msg)
        if self.size < 0:
            msg = f"Size must be non-negative, got {self.size}"
            raise ValueError(msg)
        if not (MIN_SAFETY_SCORE <= self.safety_score <= MAX_SAFETY_SCORE):
            msg = f"Safety score must be between 0 and 100, got {self.safety_score}"
            raise ValueError(msg)

    @property
    def name(self) -> str:
        """Display name (last path component)."""
        return PurePath(self.path).name or self.path

    @property
    def is_recommended(self) -> bool:
        """Whether the item is safe enough to pre-select for deletion."""
        return self.safety_score > 70 and self.warning is None

    def set_safety_score(self, score: int) -> None:
        """Replace the safety score, clamped into [0, 100]."""
        self.safety_score = clamp_score(score)

    def cap_safety_score(self, ceiling: int, warning: str | None = None) -> None:
        """Lower the safety score to ``ceiling`` and attach a warning.

        Scores already below the ceiling are left untouched.

        Args:
            ceiling: Maximum score the item may keep.
            warning: Warning text to attach, if any.
        """
        self.safety_score = clamp_score(min(self.safety_score, ceiling))
        if warning:
            self.warning = warning


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """Items that share a file name and size.

    Duplicate detection is name based; contents are never hashed.

    Attributes:
        key: Grouping key (file name and size).
        items: Group members, in discovery order.
    """

    key: str
    items: tuple[CleanableItem, ...]

    @property
    def wasted_space(self) -> int:
        """Bytes that would be freed by keeping only the first member."""
        if len(self.items) < 2:
            return 0
        return sum(item.size for item in self.items[1:])
