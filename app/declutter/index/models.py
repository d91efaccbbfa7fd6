"""Incremental index data models.

Index entries and snapshots are pydantic models so the persisted map
round-trips losslessly through JSON.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

INDEX_FORMAT_VERSION = 1


class ChangeFlag(str, Enum):
    """Kind of change observed for a path."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    METADATA_CHANGED = "metadata_changed"
    SIZE_CHANGED = "size_changed"


class IndexState(str, Enum):
    """Lifecycle state of the indexer."""

    IDLE = "idle"
    SCANNING = "scanning"
    UPDATING = "updating"
    ERROR = "error"


class IndexEntry(BaseModel):
    """Last-known metadata of one indexed path.

    Attributes:
        path: Absolute path (unique key).
        size: Size in bytes (0 for directories).
        modified_at: Modification time.
        created_at: Creation time.
        is_directory: Whether the path is a directory.
        file_type: MIME-style type tag, if known.
        inode: Inode number, if known.
        last_indexed: When the entry was last written.
        change_flags: Changes observed when the entry was last written.
        content_size: Cached recursive size for directory items.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(min_length=1)
    size: int = Field(ge=0)
    modified_at: datetime
    created_at: datetime
    is_directory: bool = False
    file_type: str | None = None
    inode: int | None = None
    last_indexed: datetime = Field(default_factory=lambda: datetime.now(UTC))
    change_flags: frozenset[ChangeFlag] = frozenset()
    content_size: int | None = Field(default=None, ge=0)

    def differs_from(self, other: "IndexEntry") -> set[ChangeFlag]:
        """Changes between this entry and a newer observation of the same path."""
        flags: set[ChangeFlag] = set()
        if self.size != other.size:
            flags.add(ChangeFlag.SIZE_CHANGED)
        if self.modified_at != other.modified_at:
            flags.add(ChangeFlag.MODIFIED)
        if self.inode != other.inode or self.is_directory != other.is_directory:
            flags.add(ChangeFlag.METADATA_CHANGED)
        return flags


class IndexSnapshot(BaseModel):
    """Persisted metadata map."""

    model_config = ConfigDict(extra="forbid")

    version: int = INDEX_FORMAT_VERSION
    saved_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    entries: dict[str, IndexEntry] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class IndexStatistics:
    """Aggregate numbers from a full scan or over the whole index.

    Attributes:
        files: Number of non-directory entries.
        total_size: Sum of file sizes in bytes.
        directories: Number of directory entries.
        elapsed: Seconds spent (0 for whole-index statistics).
    """

    files: int = 0
    total_size: int = 0
    directories: int = 0
    elapsed: float = 0.0

    @property
    def entries(self) -> int:
        """Total number of entries."""
        return self.files + self.directories


@dataclass(frozen=True, slots=True)
class PendingChange:
    """A change notification waiting to be applied.

    Attributes:
        path: Path the notification refers to.
        flags: Kinds of change reported by the source.
    """

    path: str
    flags: frozenset[ChangeFlag]

    @property
    def is_deletion(self) -> bool:
        return ChangeFlag.DELETED in self.flags


@dataclass(frozen=True, slots=True)
class IncrementalUpdateResult:
    """Paths changed by one incremental update.

    Attributes:
        added: Paths newly indexed.
        modified: Paths whose entry was rewritten.
        removed: Paths confirmed absent and evicted.
        timestamp: When the update finished.
    """

    added: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def changed_paths(self) -> tuple[str, ...]:
        """Every path touched by the update."""
        return self.added + self.modified + self.removed

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed)
