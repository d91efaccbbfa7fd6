"""Unit tests for the deletion engine.

Tests verified deletion, dry-run purity, bounded concurrency, safe mode,
backups, cancellation and timeouts against real temporary files.
"""

import threading
import time
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from declutter.clean.engine import DeletionEngine
from declutter.core.concurrency import CancellationToken
from declutter.core.config import EngineConfig
from declutter.core.errors import (
    BackupFailedError,
    OperationCancelledError,
    OperationInProgressError,
    OperationTimeoutError,
)
from declutter.fs.accessor import LocalFileSystem
from declutter.models.item import Category, CleanableItem


@pytest.fixture
def config() -> EngineConfig:
    """Live (non dry-run) configuration with four workers."""
    return EngineConfig(parallel_workers=4)


@pytest.fixture
def files(tmp_path: Path, make_file: Callable[..., Path]) -> list[Path]:
    """Five 100-byte files."""
    return [make_file(tmp_path / "junk" / f"f{i}.tmp", size=100) for i in range(5)]


@pytest.fixture
def items(files: list[Path], make_item: Callable[..., CleanableItem]) -> list[CleanableItem]:
    """Cache items for the five files."""
    return [make_item(path, Category.CACHE, size=100) for path in files]


class TestClean:
    """Tests for DeletionEngine.clean."""

    def test_deletes_and_verifies(self, items: list[CleanableItem], files: list[Path], config: EngineConfig) -> None:
        """Every deleted item is absent afterwards and its size counted."""
        result = DeletionEngine(LocalFileSystem()).clean(items, config)

        assert result.success
        assert not result.dry_run
        assert len(result.deleted_items) == 5
        assert result.freed_space == 500
        assert not any(path.exists() for path in files)

    def test_directory_item(
        self, tmp_path: Path, make_file: Callable[..., Path], make_item: Callable[..., CleanableItem], config: EngineConfig
    ) -> None:
        """Directory items are removed as whole trees."""
        tree = tmp_path / "node_modules"
        make_file(tree / "pkg" / "index.js", size=10)

        result = DeletionEngine(LocalFileSystem()).clean([make_item(tree, Category.NODE_MODULES, size=10)], config)

        assert result.success
        assert not tree.exists()

    def test_already_absent_counts_as_deleted(
        self, tmp_path: Path, make_item: Callable[..., CleanableItem], config: EngineConfig
    ) -> None:
        """A path that is already gone is a success that frees nothing."""
        item = make_item(tmp_path / "ghost.tmp", size=4096)

        result = DeletionEngine(LocalFileSystem()).clean([item], config)

        assert result.deleted_items == (item,)
        assert result.freed_space == 0

    def test_dry_run_touches_nothing(
        self, items: list[CleanableItem], files: list[Path], recording_fs: LocalFileSystem
    ) -> None:
        """Dry runs make no filesystem calls and report the full size."""
        result = DeletionEngine(recording_fs).clean(items, EngineConfig(dry_run=True))

        assert recording_fs.calls == []
        assert result.dry_run
        assert result.freed_space == 500
        assert len(result.deleted_items) == 5
        assert all(path.exists() for path in files)

    def test_permission_error_collected(
        self, items: list[CleanableItem], config: EngineConfig
    ) -> None:
        """Per-item failures are collected, the rest still get deleted."""
        real_remove = LocalFileSystem.remove
        blocked = items[2].path

        def remove(self: LocalFileSystem, path: str) -> None:
            if path == blocked:
                raise PermissionError(13, "Permission denied", path)
            real_remove(self, path)

        with patch.object(LocalFileSystem, "remove", remove):
            result = DeletionEngine(LocalFileSystem()).clean(items, config)

        assert not result.success
        assert result.failed_paths == [blocked]
        assert result.failed_items[0].reason.startswith("Permission denied")
        assert len(result.deleted_items) == 4
        assert result.freed_space == 400

    def test_verification_failure(self, items: list[CleanableItem], config: EngineConfig) -> None:
        """A removal that leaves the path behind is reported as failed."""
        with patch.object(LocalFileSystem, "remove", lambda self, path: None):
            result = DeletionEngine(LocalFileSystem()).clean(items[:1], config)

        assert result.deleted_items == ()
        assert result.failed_items[0].reason == "Verification failed: path still exists"
        assert result.freed_space == 0

    def test_safe_mode_refuses_critical_paths(
        self, recording_fs: LocalFileSystem, make_item: Callable[..., CleanableItem], config: EngineConfig
    ) -> None:
        """Deny-listed paths fail without any removal attempt."""
        item = make_item("/usr/lib/libfoo.so", Category.OTHER)

        result = DeletionEngine(recording_fs).clean([item], config)

        assert "remove" not in recording_fs.calls
        assert result.failed_items[0].reason == "Protected path cannot be deleted: /usr/lib/libfoo.so"

    def test_bounded_concurrency(self, items: list[CleanableItem], recording_fs: LocalFileSystem) -> None:
        """No more removals overlap than there are workers."""
        recording_fs.remove_delay = 0.05

        result = DeletionEngine(recording_fs).clean(items, EngineConfig(parallel_workers=2))

        assert result.success
        assert 1 <= recording_fs.max_concurrent_removes <= 2

    def test_single_flight(
        self, items: list[CleanableItem], config: EngineConfig, recording_fs: LocalFileSystem
    ) -> None:
        """A clean started while another runs is rejected."""
        recording_fs.remove_delay = 0.2
        engine = DeletionEngine(recording_fs)
        worker = threading.Thread(target=engine.clean, args=(items[:1], config))
        worker.start()
        try:
            deadline = time.monotonic() + 5
            while "remove" not in recording_fs.calls and time.monotonic() < deadline:
                time.sleep(0.01)
            assert engine.is_cleaning
            with pytest.raises(OperationInProgressError):
                engine.clean(items[1:], config)
        finally:
            worker.join(timeout=5)

        assert not engine.is_cleaning

    def test_cancelled_before_start(self, items: list[CleanableItem], files: list[Path], config: EngineConfig) -> None:
        """A cancelled token stops the clean before any deletion."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            DeletionEngine(LocalFileSystem()).clean(items, config, token)

        assert all(path.exists() for path in files)

    def test_category_timeout(self, items: list[CleanableItem], recording_fs: LocalFileSystem) -> None:
        """Items not started before the category deadline fail as timed out."""
        recording_fs.remove_delay = 0.5
        config = EngineConfig(parallel_workers=1).model_copy(update={"category_timeout_seconds": 0.2})

        result = DeletionEngine(recording_fs).clean(items, config)

        assert len(result.deleted_items) + len(result.failed_items) == 5
        assert result.failed_items
        assert all(f.reason == "Category 'cache' timed out" for f in result.failed_items)

    def test_whole_call_timeout_carries_partial_result(
        self,
        tmp_path: Path,
        make_file: Callable[..., Path],
        make_item: Callable[..., CleanableItem],
        recording_fs: LocalFileSystem,
    ) -> None:
        """Exceeding the clean budget raises with the partial result attached."""
        cache = make_item(make_file(tmp_path / "c.tmp", size=1), Category.CACHE, size=1)
        logs = make_item(make_file(tmp_path / "l.log", size=1), Category.LOGS, size=1)
        recording_fs.remove_delay = 0.3
        config = EngineConfig(parallel_workers=1).model_copy(update={"clean_timeout_seconds": 0.1})

        with pytest.raises(OperationTimeoutError) as exc_info:
            DeletionEngine(recording_fs).clean([cache, logs], config)

        partial = exc_info.value.partial_result
        assert partial is not None
        assert partial.deleted_paths == [cache.path]
        assert partial.failed_paths == [logs.path]


class TestBackup:
    """Tests for the pre-deletion backup."""

    def test_backup_per_category(
        self,
        tmp_path: Path,
        make_file: Callable[..., Path],
        make_item: Callable[..., CleanableItem],
    ) -> None:
        """One snapshot is requested per category before deleting."""
        cache = make_item(make_file(tmp_path / "c.tmp", size=10), Category.CACHE, size=10)
        logs = make_item(make_file(tmp_path / "l.log", size=20), Category.LOGS, size=20)
        backup = MagicMock()
        backup.create_snapshot.return_value = "snap-1"

        result = DeletionEngine(LocalFileSystem(), backup).clean(
            [cache, logs], EngineConfig(parallel_workers=2, auto_backup=True)
        )

        assert result.success
        assert backup.create_snapshot.call_count == 2
        snapshots = [call.args[1] for call in backup.create_snapshot.call_args_list]
        assert {s.metadata["categories"][0] for s in snapshots} == {"cache", "logs"}
        assert all(s.metadata["type"] == "pre-cleanup" for s in snapshots)

    def test_backup_failure_aborts(self, items: list[CleanableItem], files: list[Path]) -> None:
        """Nothing is deleted when the backup fails."""
        backup = MagicMock()
        backup.create_snapshot.side_effect = OSError("backup disk missing")

        with pytest.raises(BackupFailedError, match="backup disk missing"):
            DeletionEngine(LocalFileSystem(), backup).clean(items, EngineConfig(auto_backup=True))

        assert all(path.exists() for path in files)

    def test_backup_without_service_aborts(self, items: list[CleanableItem], files: list[Path]) -> None:
        """auto_backup without a backup service is an error."""
        with pytest.raises(BackupFailedError, match="no backup service"):
            DeletionEngine(LocalFileSystem()).clean(items, EngineConfig(auto_backup=True))

        assert all(path.exists() for path in files)
