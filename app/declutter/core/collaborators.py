"""Contracts of the optional collaborators the pipeline calls out to.

None of these are implemented here. Any of them may be absent; the
pipeline then skips the phase that would have used it, except for the
backup service, which is mandatory once ``auto_backup`` is enabled.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from declutter.models.item import CleanableItem


@dataclass(frozen=True, slots=True)
class BackupSnapshot:
    """Descriptor passed to the backup service before a group is deleted.

    Attributes:
        id: Snapshot identifier.
        timestamp: When the snapshot was requested.
        total_size: Bytes covered by the snapshot.
        item_count: Number of items covered.
        metadata: Free-form metadata (snapshot type, categories).
    """

    total_size: int
    item_count: int
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class BackupService(Protocol):
    """Creates a restorable copy of items before they are deleted."""

    def create_snapshot(self, items: Sequence[CleanableItem], snapshot: BackupSnapshot) -> str:
        """Back up ``items``.

        Returns:
            Identifier of the stored snapshot.

        Raises:
            Exception: Any failure; the deletion engine aborts the clean.
        """
        ...


class ScoreEnhancer(Protocol):
    """Secondary safety scorer run during the duplicate phase."""

    def enhance(self, item: CleanableItem) -> int | None:
        """Return a refined safety score, or None to keep the current one."""
        ...


class ExplanationGenerator(Protocol):
    """Produces a human-readable explanation for an item."""

    def explain(self, item: CleanableItem) -> str | None:
        """Return an explanation, or None if there is nothing to say."""
        ...
