"""Persistence for the incremental index.

The index is stored as two JSON files in an application-private
directory: the path-to-metadata map and the bloom filter bit array.
Both are written atomically (temporary file + os.replace) so a crash
mid-save leaves the previous generation intact.
"""

import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from pydantic import ValidationError

from declutter.core.errors import IndexCorruptionError, IndexPersistenceError
from declutter.index.bloom import BloomFilter, BloomFilterState
from declutter.index.models import INDEX_FORMAT_VERSION, IndexEntry, IndexSnapshot

logger = logging.getLogger(__name__)


class IndexStore:
    """Reads and writes the two index files.

    Attributes:
        directory: Directory holding the index files.
    """

    INDEX_FILENAME = "file_index.json"
    BLOOM_FILENAME = "bloom_filter.json"

    def __init__(self, directory: Path) -> None:
        """Initialize the store.

        Args:
            directory: Directory for the index files (created on save).
        """
        self.directory = directory

    @property
    def index_path(self) -> Path:
        return self.directory / self.INDEX_FILENAME

    @property
    def bloom_path(self) -> Path:
        return self.directory / self.BLOOM_FILENAME

    def exists(self) -> bool:
        """Whether a persisted index is present."""
        return self.index_path.exists()

    def load(self) -> tuple[dict[str, IndexEntry], BloomFilter | None]:
        """Load the persisted map and filter.

        A missing filter file is not an error: the caller rebuilds the
        filter from the loaded keys.

        Returns:
            Tuple of (entries by path, bloom filter or None).

        Raises:
            FileNotFoundError: If no index has been saved yet.
            IndexCorruptionError: If either file cannot be decoded.
        """
        try:
            raw_index = self.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except OSError as e:
            raise IndexCorruptionError(f"Cannot read {self.index_path}: {e}") from e

        try:
            snapshot = IndexSnapshot.model_validate_json(raw_index)
        except ValidationError as e:
            raise IndexCorruptionError(f"Invalid index file {self.index_path}: {e}") from e

        if snapshot.version != INDEX_FORMAT_VERSION:
            msg = f"Unsupported index version {snapshot.version} (expected {INDEX_FORMAT_VERSION})"
            raise IndexCorruptionError(msg)

        for key, entry in snapshot.entries.items():
            if key != entry.path:
                raise IndexCorruptionError(f"Index key does not match entry path: {key}")

        bloom: BloomFilter | None = None
        if self.bloom_path.exists():
            try:
                state = BloomFilterState.model_validate_json(self.bloom_path.read_text(encoding="utf-8"))
                bloom = BloomFilter.from_state(state)
            except (OSError, ValueError) as e:
                # ValidationError is a ValueError
                raise IndexCorruptionError(f"Invalid bloom filter file {self.bloom_path}: {e}") from e

        return snapshot.entries, bloom

    def save(self, entries: dict[str, IndexEntry], bloom: BloomFilter) -> None:
        """Persist the map and the filter.

        Args:
            entries: Entries keyed by path.
            bloom: Membership filter over the same keys.

        Raises:
            IndexPersistenceError: If either file cannot be written.
        """
        snapshot = IndexSnapshot(entries=entries)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Filter first; the indexer rebuilds a loaded filter that lacks any key.
            self._write_atomic(self.bloom_path, bloom.to_state().model_dump_json())
            self._write_atomic(self.index_path, snapshot.model_dump_json())
        except OSError as e:
            raise IndexPersistenceError(f"Failed to save index to {self.directory}: {e}") from e

        logger.debug("Saved %d index entries to %s", len(entries), self.directory)

    def delete(self) -> None:
        """Remove both persisted files if present."""
        for path in (self.index_path, self.bloom_path):
            try:
                path.unlink()
            except FileNotFoundError:
                continue

    def _write_atomic(self, path: Path, content: str) -> None:
        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=path.parent,
                delete=False,
                suffix=".tmp",
            ) as f:
                tmp_path = Path(f.name)
                f.write(content)
            os.replace(str(tmp_path), str(path))
        except OSError:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise
