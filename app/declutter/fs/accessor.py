"""Filesystem accessor used by every pipeline component.

The scanner, risk auditor, indexer and deletion engine never touch the
filesystem directly; they go through a ``FileSystemAccessor``. The
``LocalFileSystem`` implementation is backed by ``os`` and ``shutil``
and never shells out. Tests substitute instrumented fakes.
"""

import logging
import os
import shutil
import stat as stat_module
import sys
import threading
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from declutter.fs.models import DirEntry, FileMetadata

logger = logging.getLogger(__name__)

# How long a snapshot of open file descriptors stays valid
_OPEN_FILES_TTL = 5.0


class FileSystemAccessor(Protocol):
    """Filesystem primitives consumed by the pipeline."""

    def exists(self, path: str) -> bool:
        """Whether the path exists (a dangling symlink counts as existing)."""
        ...

    def stat(self, path: str) -> FileMetadata:
        """Read metadata without following symlinks.

        Raises:
            OSError: If the path cannot be stat'ed.
        """
        ...

    def list_directory(self, path: str) -> list[DirEntry]:
        """List the direct children of a directory.

        Raises:
            OSError: If the directory cannot be read.
        """
        ...

    def remove(self, path: str) -> None:
        """Remove a file, symlink or directory tree.

        Raises:
            OSError: If removal fails.
        """
        ...

    def read_symlink_target(self, path: str) -> str:
        """Return the raw target of a symbolic link.

        Raises:
            OSError: If the link cannot be read.
        """
        ...

    def is_writable(self, path: str) -> bool:
        """Whether the current user may modify the path."""
        ...

    def open_file_paths(self) -> frozenset[str]:
        """Paths currently held open by other processes."""
        ...


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=UTC)


class LocalFileSystem:
    """FileSystemAccessor backed by the local operating system.

    Open-file detection reads ``/proc/<pid>/fd`` on Linux and returns an
    empty set on platforms without procfs. The snapshot is cached for a
    few seconds so auditing a large batch does not re-walk procfs per item.
    """

    def __init__(self, proc_root: Path | None = None) -> None:
        self._proc_root = proc_root or Path("/proc")
        self._open_files: frozenset[str] | None = None
        self._open_files_at = 0.0
        self._open_files_lock = threading.Lock()

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def stat(self, path: str) -> FileMetadata:
        st = os.lstat(path)
        birth = getattr(st, "st_birthtime", None)
        return FileMetadata(
            size=st.st_size,
            modified_at=_to_datetime(st.st_mtime),
            accessed_at=_to_datetime(st.st_atime),
            created_at=_to_datetime(birth if birth is not None else st.st_ctime),
            is_directory=stat_module.S_ISDIR(st.st_mode),
            is_symlink=stat_module.S_ISLNK(st.st_mode),
            inode=st.st_ino or None,
            uid=st.st_uid,
        )

    def list_directory(self, path: str) -> list[DirEntry]:
        entries: list[DirEntry] = []
        with os.scandir(path) as it:
            for entry in it:
                try:
                    is_symlink = entry.is_symlink()
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    logger.debug("Cannot determine type of: %s", entry.path)
                    continue
                entries.append(
                    DirEntry(
                        name=entry.name,
                        path=entry.path,
                        is_directory=is_dir,
                        is_symlink=is_symlink,
                    )
                )
        return entries

    def remove(self, path: str) -> None:
        target = Path(path)
        # Directories (but not symlinks to directories)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(path)
        else:
            target.unlink()

    def read_symlink_target(self, path: str) -> str:
        return os.readlink(path)

    def is_writable(self, path: str) -> bool:
        return os.access(path, os.W_OK, follow_symlinks=False)

    def open_file_paths(self) -> frozenset[str]:
        with self._open_files_lock:
            now = time.monotonic()
            if self._open_files is None or now - self._open_files_at > _OPEN_FILES_TTL:
                self._open_files = self._read_open_files()
                self._open_files_at = now
            return self._open_files

    def _read_open_files(self) -> frozenset[str]:
        """Collect file paths held open by processes other than this one."""
        if not sys.platform.startswith("linux") or not self._proc_root.is_dir():
            return frozenset()

        own_pid = str(os.getpid())
        paths: set[str] = set()
        try:
            proc_entries = list(self._proc_root.iterdir())
        except OSError:
            return frozenset()

        for proc_dir in proc_entries:
            if not proc_dir.name.isdigit() or proc_dir.name == own_pid:
                continue
            try:
                fds = list((proc_dir / "fd").iterdir())
            except OSError:
                # Other users' processes are not readable without privileges
                continue
            for fd in fds:
                try:
                    target = os.readlink(fd)
                except OSError:
                    continue
                if target.startswith("/"):
                    paths.add(target)

        return frozenset(paths)


def tree_size(accessor: FileSystemAccessor, path: str) -> int:
    """Calculate the total size of a directory tree.

    Symlinks are not followed and unreadable entries are skipped, so the
    result is a lower bound when permissions are missing.

    Args:
        accessor: Filesystem accessor to use.
        path: Root of the tree.

    Returns:
        Total size in bytes of all files under ``path``.
    """
    total = 0
    stack: list[str] = [path]
    while stack:
        current = stack.pop()
        try:
            entries = accessor.list_directory(current)
        except OSError:
            continue
        for entry in entries:
            if entry.is_directory:
                stack.append(entry.path)
                continue
            try:
                total += accessor.stat(entry.path).size
            except OSError:
                continue
    return total
