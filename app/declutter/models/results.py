"""Pipeline result models.

Scan, clean and recommendation results are created fresh for each
call and never shared between concurrent pipeline invocations.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime

from declutter.core.concurrency import PhaseStatus
from declutter.models.item import Category, CleanableItem, DuplicateGroup


@dataclass(frozen=True, slots=True)
class PhaseReport:
    """How one enrichment phase of a scan ended.

    Attributes:
        name: Phase name ("duplicates", "risk_audit", "explanations").
        status: Final phase status.
        elapsed: Seconds spent in the phase.
        error: Failure reason for TIMEOUT/ERROR phases.
    """

    name: str
    status: PhaseStatus
    elapsed: float = 0.0
    error: str | None = None


@dataclass(slots=True)
class ScanResults:
    """Merged and scored output of one scan.

    Attributes:
        items: Scored cleanable items (unordered).
        duplicates: Name-based duplicate groups.
        phases: Report for each enrichment phase.
        timestamp: When the scan finished.
    """

    items: list[CleanableItem] = field(default_factory=list)
    duplicates: list[DuplicateGroup] = field(default_factory=list)
    phases: list[PhaseReport] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def total_size(self) -> int:
        """Sum of all item sizes in bytes."""
        return sum(item.size for item in self.items)

    @property
    def items_by_category(self) -> dict[Category, list[CleanableItem]]:
        """Items grouped by category."""
        grouped: dict[Category, list[CleanableItem]] = defaultdict(list)
        for item in self.items:
            grouped[item.category].append(item)
        return dict(grouped)

    @property
    def safe_total_size(self) -> int:
        """Bytes held by items scored above 70."""
        return sum(item.size for item in self.items if item.safety_score > 70)

    def phase(self, name: str) -> PhaseReport | None:
        """Look up the report of a phase by name."""
        for report in self.phases:
            if report.name == name:
                return report
        return None


@dataclass(frozen=True, slots=True)
class FailedItem:
    """An item the deletion engine could not remove.

    Attributes:
        item: The item that failed.
        reason: Why deletion failed.
    """

    item: CleanableItem
    reason: str


@dataclass(frozen=True, slots=True)
class CleanResult:
    """Outcome of one clean call.

    Attributes:
        deleted_items: Items verified absent after the call.
        failed_items: Items that could not be deleted, with reasons.
        freed_space: Bytes freed by verified deletions.
        dry_run: Whether the call only simulated deletion.
        timestamp: When the call finished.
    """

    deleted_items: tuple[CleanableItem, ...] = ()
    failed_items: tuple[FailedItem, ...] = ()
    freed_space: int = 0
    dry_run: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def success(self) -> bool:
        """True when every requested item was deleted."""
        return not self.failed_items

    @property
    def deleted_paths(self) -> list[str]:
        """Paths of deleted items."""
        return [item.path for item in self.deleted_items]

    @property
    def failed_paths(self) -> list[str]:
        """Paths of failed items."""
        return [failure.item.path for failure in self.failed_items]


@dataclass(frozen=True, slots=True)
class CleaningRecommendation:
    """A named bucket of items suggested for deletion.

    Attributes:
        title: Short bucket title.
        description: One-line explanation of the bucket.
        items: Items in the bucket.
        confidence: How confident the bucket heuristic is (0.0 to 1.0).
        id: Unique identifier.
    """

    title: str
    description: str
    items: tuple[CleanableItem, ...]
    confidence: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def potential_space(self) -> int:
        """Bytes the bucket would free."""
        return sum(item.size for item in self.items)
