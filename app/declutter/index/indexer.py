"""Incremental file index.

Keeps a persisted map of path to last-known metadata plus a bloom
filter for fast "definitely not indexed" answers, so repeated scans do
not have to re-walk unchanged trees.

Concurrency model:
- A full scan holds the write lock and is single-flight; a second
  concurrent full scan is rejected immediately.
- Incremental updates and read-only queries hold the read lock, so they
  never overlap a full scan. Updates additionally serialize on an
  internal mutex since they mutate the map.
"""

import logging
import mimetypes
import threading
import time
from collections import deque
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from declutter.core.concurrency import CancellationToken, ReadWriteLock
from declutter.core.errors import IndexCorruptionError, IndexPersistenceError, IndexScanInProgressError
from declutter.core.paths import get_index_dir
from declutter.fs.accessor import FileSystemAccessor, LocalFileSystem
from declutter.fs.models import FileMetadata
from declutter.index.bloom import BloomFilter
from declutter.index.models import (
    ChangeFlag,
    IncrementalUpdateResult,
    IndexEntry,
    IndexState,
    IndexStatistics,
    PendingChange,
)
from declutter.index.store import IndexStore

logger = logging.getLogger(__name__)

# Entries processed between cooperative yields during a full scan
YIELD_INTERVAL = 1000


def _file_type(path: str, metadata: FileMetadata) -> str | None:
    if metadata.is_directory:
        return "inode/directory"
    if metadata.is_symlink:
        return "inode/symlink"
    return mimetypes.guess_type(path)[0]


class IncrementalIndexer:
    """Owner of the persisted path index and its membership filter.

    Attributes:
        _store: Persistence backend for the two index files.
        _accessor: Filesystem accessor for walks and re-stats.
        _entries: Indexed entries keyed by path.
        _bloom: Membership filter over the keys of ``_entries``.
    """

    def __init__(
        self,
        directory: Path | None = None,
        accessor: FileSystemAccessor | None = None,
        expected_elements: int = 100_000,
        false_positive_rate: float = 0.01,
        fallback_sample: int = 256,
        autoload: bool = True,
    ) -> None:
        """Initialize the indexer.

        Args:
            directory: Directory for the index files (default: state dir/index).
            accessor: Filesystem accessor (default: LocalFileSystem).
            expected_elements: Bloom filter sizing: expected entry count.
            false_positive_rate: Bloom filter sizing: target false-positive rate.
            fallback_sample: Recently indexed entries re-checked per update.
            autoload: Load the persisted index immediately.
        """
        self._store = IndexStore(directory if directory is not None else get_index_dir())
        self._accessor = accessor or LocalFileSystem()
        self._expected_elements = expected_elements
        self._false_positive_rate = false_positive_rate
        self._fallback_sample_size = fallback_sample

        self._entries: dict[str, IndexEntry] = {}
        self._bloom = self._new_bloom()
        self._state = IndexState.IDLE

        self._rw_lock = ReadWriteLock()
        self._scan_guard = threading.Lock()
        self._mutex = threading.Lock()
        self._pending: deque[PendingChange] = deque()
        self._pending_lock = threading.Lock()

        if autoload:
            self.load()

    @property
    def state(self) -> IndexState:
        """Current lifecycle state."""
        return self._state

    @property
    def store(self) -> IndexStore:
        return self._store

    def _new_bloom(self) -> BloomFilter:
        return BloomFilter(self._expected_elements, self._false_positive_rate)

    def _rebuild_bloom(self) -> None:
        """Replace the filter with one built from the surviving keys.

        The new filter is built aside and swapped in, so concurrent
        membership tests never observe a half-filled filter.
        """
        bloom = self._new_bloom()
        bloom.update(self._entries)
        self._bloom = bloom

    # Persistence

    def load(self) -> bool:
        """Load the persisted index, resetting to empty on failure.

        Returns:
            True if a persisted index was loaded, False if the index is empty.
        """
        with self._rw_lock.write(), self._mutex:
            try:
                entries, bloom = self._store.load()
            except FileNotFoundError:
                logger.debug("No persisted index at %s", self._store.directory)
                self._reset()
                return False
            except IndexCorruptionError as e:
                logger.warning("Index could not be loaded, starting empty: %s", e)
                self._reset()
                return False

            self._entries = dict(entries)
            if bloom is None:
                self._rebuild_bloom()
            elif all(key in bloom for key in self._entries):
                self._bloom = bloom
            else:
                # A filter missing any key would answer false negatives.
                logger.warning("Bloom filter out of date with %s, rebuilding", self._store.index_path)
                self._rebuild_bloom()
            self._state = IndexState.IDLE

        logger.info("Loaded %d index entries from %s", len(entries), self._store.directory)
        return True

    def save(self) -> None:
        """Persist the index.

        Raises:
            IndexPersistenceError: If the files cannot be written. The index
                is reset to empty before the error propagates.
        """
        with self._rw_lock.read(), self._mutex:
            self._persist()

    def _persist(self) -> None:
        """Write both files. Caller holds the mutex or the write lock."""
        try:
            self._store.save(self._entries, self._bloom)
        except IndexPersistenceError as e:
            self._state = IndexState.ERROR
            logger.error("Index persistence failed, resetting to an empty index: %s", e)
            # ERROR is transient; _reset leaves an empty IDLE index.
            self._reset()
            raise

    def _reset(self) -> None:
        self._entries = {}
        self._bloom = self._new_bloom()
        self._state = IndexState.IDLE

    def clear(self) -> None:
        """Drop every entry and delete the persisted files."""
        with self._rw_lock.write(), self._mutex:
            self._reset()
            with self._pending_lock:
                self._pending.clear()
            self._store.delete()
        logger.info("Cleared index at %s", self._store.directory)

    # Full scan

    def full_scan(
        self,
        roots: Iterable[str | Path],
        token: CancellationToken | None = None,
    ) -> IndexStatistics:
        """Walk ``roots`` and index every file and directory below them.

        The roots themselves are not indexed. Entries previously indexed
        below a scanned root that no longer exist are dropped.

        Args:
            roots: Directories to walk. Missing roots are skipped.
            token: Cancellation token polled between entries.

        Returns:
            Statistics for the walked trees.

        Raises:
            IndexScanInProgressError: If another full scan is running.
            OperationCancelledError: If the token is cancelled mid-walk.
                The index is left unchanged.
            IndexPersistenceError: If the result cannot be saved.
        """
        if not self._scan_guard.acquire(blocking=False):
            raise IndexScanInProgressError()

        try:
            with self._rw_lock.write():
                self._state = IndexState.SCANNING
                try:
                    return self._full_scan_locked([str(root) for root in roots], token)
                finally:
                    if self._state == IndexState.SCANNING:
                        self._state = IndexState.IDLE
        finally:
            self._scan_guard.release()

    def _full_scan_locked(self, roots: list[str], token: CancellationToken | None) -> IndexStatistics:
        start = time.monotonic()
        scanned: dict[str, IndexEntry] = {}
        walked_roots: list[str] = []
        files = directories = total_size = 0
        processed = 0

        for root in roots:
            if not self._accessor.exists(root):
                logger.warning("Index root does not exist, skipping: %s", root)
                continue
            walked_roots.append(root.rstrip("/") or "/")

            stack = [root]
            while stack:
                current = stack.pop()
                try:
                    children = self._accessor.list_directory(current)
                except OSError as e:
                    logger.debug("Cannot list %s: %s", current, e)
                    continue

                for child in children:
                    if token is not None:
                        token.raise_if_cancelled("index scan")
                    try:
                        metadata = self._accessor.stat(child.path)
                    except OSError as e:
                        logger.debug("Cannot stat %s: %s", child.path, e)
                        continue

                    entry = self._make_entry(child.path, metadata, self._entries.get(child.path))
                    scanned[child.path] = entry
                    if entry.is_directory:
                        directories += 1
                        if not metadata.is_symlink:
                            stack.append(child.path)
                    else:
                        files += 1
                        total_size += entry.size

                    processed += 1
                    if processed % YIELD_INTERVAL == 0:
                        time.sleep(0)

        with self._mutex:
            stale = [
                path
                for path in self._entries
                if path not in scanned and any(path.startswith(r.rstrip("/") + "/") for r in walked_roots)
            ]
            for path in stale:
                del self._entries[path]
            self._entries.update(scanned)
            if stale:
                self._rebuild_bloom()
            else:
                self._bloom.update(scanned)
            self._state = IndexState.IDLE
            self._persist()

        stats = IndexStatistics(
            files=files,
            total_size=total_size,
            directories=directories,
            elapsed=time.monotonic() - start,
        )
        logger.info(
            "Indexed %d files (%d bytes) and %d directories in %.2fs",
            stats.files,
            stats.total_size,
            stats.directories,
            stats.elapsed,
        )
        return stats

    def _make_entry(
        self,
        path: str,
        metadata: FileMetadata,
        previous: IndexEntry | None,
        content_size: int | None = None,
    ) -> IndexEntry:
        entry = IndexEntry(
            path=path,
            size=0 if metadata.is_directory else metadata.size,
            modified_at=metadata.modified_at,
            created_at=metadata.created_at,
            is_directory=metadata.is_directory,
            file_type=_file_type(path, metadata),
            inode=metadata.inode,
        )
        if previous is None:
            return entry.model_copy(
                update={"change_flags": frozenset({ChangeFlag.CREATED}), "content_size": content_size}
            )

        flags = previous.differs_from(entry)
        if content_size is None and not flags:
            content_size = previous.content_size
        return entry.model_copy(update={"change_flags": frozenset(flags), "content_size": content_size})

    # Incremental updates

    def queue_change(self, path: str | Path, flags: Iterable[ChangeFlag]) -> None:
        """Queue a change notification for the next incremental update.

        Safe to call from any thread, including a file-watcher callback.
        """
        change = PendingChange(path=str(path), flags=frozenset(flags))
        with self._pending_lock:
            self._pending.append(change)

    @property
    def pending_changes(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def perform_incremental_update(self) -> IncrementalUpdateResult:
        """Apply queued changes, then re-check recently indexed entries.

        Deletions evict the entry; every other notification re-stats the
        path and upserts it. The fallback pass catches changes for which
        no notification ever arrived.

        Returns:
            Paths added, modified and removed by this update.

        Raises:
            IndexPersistenceError: If the updated index cannot be saved.
        """
        with self._rw_lock.read(), self._mutex:
            self._state = IndexState.UPDATING
            added: list[str] = []
            modified: list[str] = []
            removed: list[str] = []
            seen: set[str] = set()

            with self._pending_lock:
                changes = list(self._pending)
                self._pending.clear()

            try:
                for change in changes:
                    if change.path in seen:
                        continue
                    seen.add(change.path)
                    if change.is_deletion and not self._accessor.exists(change.path):
                        if self._evict(change.path):
                            removed.append(change.path)
                        continue
                    self._refresh(change.path, added, modified, removed)

                for entry in self._fallback_sample(seen):
                    seen.add(entry.path)
                    self._refresh(entry.path, added, modified, removed)
            finally:
                if removed:
                    self._rebuild_bloom()
                self._state = IndexState.IDLE

            result = IncrementalUpdateResult(
                added=tuple(added),
                modified=tuple(modified),
                removed=tuple(removed),
            )
            if result.has_changes:
                self._persist()

        logger.info(
            "Incremental update: %d added, %d modified, %d removed",
            len(added),
            len(modified),
            len(removed),
        )
        return result

    def _fallback_sample(self, exclude: set[str]) -> list[IndexEntry]:
        if self._fallback_sample_size <= 0:
            return []
        candidates = [entry for path, entry in self._entries.items() if path not in exclude]
        candidates.sort(key=lambda e: e.last_indexed, reverse=True)
        return candidates[: self._fallback_sample_size]

    def _refresh(self, path: str, added: list[str], modified: list[str], removed: list[str]) -> None:
        try:
            metadata = self._accessor.stat(path)
        except FileNotFoundError:
            if self._evict(path):
                removed.append(path)
            return
        except OSError as e:
            if not self._accessor.exists(path):
                if self._evict(path):
                    removed.append(path)
            else:
                logger.debug("Cannot re-stat %s: %s", path, e)
            return

        previous = self._entries.get(path)
        entry = self._make_entry(path, metadata, previous)
        if previous is None:
            self._entries[path] = entry
            self._bloom.add(path)
            added.append(path)
        elif entry.change_flags:
            self._entries[path] = entry
            modified.append(path)

    def _evict(self, path: str) -> bool:
        """Remove an entry; the caller rebuilds the filter afterwards."""
        if self._entries.pop(path, None) is None:
            return False
        self._bloom.discard(path)
        return True

    # Scan observations

    def record_observations(self, observations: Iterable[tuple[str, FileMetadata, int | None]]) -> int:
        """Upsert paths observed by a successful scan and save the index.

        Args:
            observations: ``(path, metadata, content_size)`` triples; content
                size is the recursive size for directory items, else None.

        Returns:
            Number of entries written.

        Raises:
            IndexPersistenceError: If the index cannot be saved.
        """
        count = 0
        with self._rw_lock.read(), self._mutex:
            for path, metadata, content_size in observations:
                entry = self._make_entry(path, metadata, self._entries.get(path), content_size)
                if path not in self._entries:
                    self._bloom.add(path)
                self._entries[path] = entry
                count += 1
            if count:
                self._persist()
        logger.debug("Recorded %d scan observations in the index", count)
        return count

    # Queries

    def is_path_indexed(self, path: str | Path) -> bool:
        """Whether the path has an entry. The filter answers negatives fast."""
        key = str(path)
        with self._rw_lock.read():
            return key in self._bloom and key in self._entries

    def get_entry(self, path: str | Path) -> IndexEntry | None:
        """Return the entry for a path, if indexed."""
        with self._rw_lock.read():
            return self._entries.get(str(path))

    def get_indexed_paths(self) -> list[str]:
        """Return every indexed path."""
        with self._rw_lock.read(), self._mutex:
            return list(self._entries)

    def get_statistics(self) -> IndexStatistics:
        """Aggregate counts over the whole index."""
        with self._rw_lock.read(), self._mutex:
            entries = list(self._entries.values())
        files = [e for e in entries if not e.is_directory]
        return IndexStatistics(
            files=len(files),
            total_size=sum(e.size for e in files),
            directories=len(entries) - len(files),
        )

    @property
    def last_saved(self) -> datetime | None:
        """Modification time of the persisted map, if any."""
        try:
            return datetime.fromtimestamp(self._store.index_path.stat().st_mtime, tz=UTC)
        except OSError:
            return None
