"""History entry model for recording clean runs.

This module defines data structures for recording deletion runs in a
JSON Lines history file, giving the operator an audit trail of what
was removed and how much space it freed.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from declutter.models.results import CleanResult


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """Record of a single clean run.

    Attributes:
        id: Unique identifier (12-character hex string from UUID).
        timestamp: When the run finished (ISO 8601 format with timezone).
        freed_bytes: Bytes freed by verified deletions.
        deleted: Paths that were deleted.
        failed: Paths that could not be deleted, mapped to the reason.
        categories: Categories touched by the run.
        dry_run: Whether the run only simulated deletion.
        metadata: Additional context (command, backup id, etc.).
    """

    id: str
    timestamp: str
    freed_bytes: int
    deleted: tuple[str, ...]
    failed: dict[str, str] = field(default_factory=lambda: {})
    categories: tuple[str, ...] = ()
    dry_run: bool = False
    metadata: dict[str, Any] = field(default_factory=lambda: {})

    def __post_init__(self) -> None:
        """Validate entry data after initialization."""
        if not self.id:
            msg = "History entry ID cannot be empty"
            raise ValueError(msg)
        if not self.timestamp:
            msg = "Timestamp cannot be empty"
            raise ValueError(msg)
        if self.freed_bytes < 0:
            msg = f"Freed bytes must be non-negative, got {self.freed_bytes}"
            raise ValueError(msg)

    @property
    def success(self) -> bool:
        """Whether every path in the run was deleted."""
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "freed_bytes": self.freed_bytes,
            "deleted": list(self.deleted),
            "failed": dict(self.failed),
            "categories": list(self.categories),
            "dry_run": self.dry_run,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        """Deserialize from dictionary.

        Args:
            data: Dictionary containing entry data.

        Returns:
            HistoryEntry instance.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If field values are invalid.
        """
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            freed_bytes=int(data["freed_bytes"]),
            deleted=tuple(data["deleted"]),
            failed=dict(data.get("failed", {})),
            categories=tuple(data.get("categories", ())),
            dry_run=bool(data.get("dry_run", False)),
            metadata=data.get("metadata", {}),
        )

    def to_json_line(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> HistoryEntry:
        """Deserialize from JSON line.

        Raises:
            json.JSONDecodeError: If line is not valid JSON.
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        data = json.loads(line.strip())
        return cls.from_dict(data)


def create_history_entry(
    result: CleanResult,
    metadata: dict[str, Any] | None = None,
) -> HistoryEntry:
    """Build a history entry from a clean result.

    Automatically generates a unique ID; the timestamp is taken from the
    result so the history matches what the caller was shown.

    Args:
        result: Result of the clean run.
        metadata: Optional additional context.

    Returns:
        New HistoryEntry.

    Raises:
        ValueError: If the result touched no items at all.
    """
    if not result.deleted_items and not result.failed_items:
        msg = "Cannot create history entry for an empty clean run"
        raise ValueError(msg)

    categories = sorted(
        {item.category.value for item in result.deleted_items}
        | {failure.item.category.value for failure in result.failed_items}
    )
    return HistoryEntry(
        id=uuid.uuid4().hex[:12],
        timestamp=result.timestamp.astimezone(UTC).isoformat(),
        freed_bytes=result.freed_space,
        deleted=tuple(result.deleted_paths),
        failed={failure.item.path: failure.reason for failure in result.failed_items},
        categories=tuple(categories),
        dry_run=result.dry_run,
        metadata=metadata or {},
    )
