"""Filesystem metadata models.

This module defines the immutable records the filesystem accessor
returns for stat and directory-listing calls.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class FileMetadata:
    """Metadata of a single path, read without following symlinks.

    Attributes:
        size: Size in bytes as reported by lstat (0 is typical for dirs).
        modified_at: Last modification time (UTC).
        accessed_at: Last access time (UTC).
        created_at: Birth time where the platform reports it, else ctime (UTC).
        is_directory: Whether the path is a real directory.
        is_symlink: Whether the path is a symbolic link.
        inode: Inode number, if reported.
        uid: Owning user id, if reported.
    """

    size: int
    modified_at: datetime
    accessed_at: datetime
    created_at: datetime
    is_directory: bool
    is_symlink: bool = False
    inode: int | None = None
    uid: int | None = None


@dataclass(frozen=True, slots=True)
class DirEntry:
    """A single entry of a directory listing.

    Attributes:
        name: Entry name (last path component).
        path: Absolute path of the entry.
        is_directory: Whether the entry is a directory (symlinks excluded).
        is_symlink: Whether the entry is a symbolic link.
    """

    name: str
    path: str
    is_directory: bool
    is_symlink: bool = False

    @property
    def is_hidden(self) -> bool:
        """Dot-files are treated as hidden."""
        return self.name.startswith(".")
