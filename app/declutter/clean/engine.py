"""Deletion engine.

Deletes approved items with bounded concurrency and per-item
verification. Items are grouped by category; each group optionally gets
a backup snapshot first, then its items are removed under a counting
semaphore sized to the worker count.

Per-item failures never abort the run; they are collected into the
result. Only a failed backup, cancellation or the whole-call deadline
end a clean early.
"""

import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass

from declutter.core.collaborators import BackupService, BackupSnapshot
from declutter.core.concurrency import CancellationToken
from declutter.core.config import EngineConfig
from declutter.core.errors import (
    BackupFailedError,
    OperationCancelledError,
    OperationInProgressError,
    OperationTimeoutError,
)
from declutter.fs.accessor import FileSystemAccessor, LocalFileSystem
from declutter.models.item import Category, CleanableItem
from declutter.models.results import CleanResult, FailedItem
from declutter.risk.rules import is_critical_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeletionOutcome:
    """Result of deleting a single item.

    Attributes:
        item: The item.
        success: Whether the path is verified absent.
        freed: Bytes freed (0 when the path was already gone).
        error: Failure reason, if any.
    """

    item: CleanableItem
    success: bool
    freed: int = 0
    error: str | None = None


class _Accumulator:
    """Collects outcomes for one clean call."""

    def __init__(self) -> None:
        self.deleted: list[CleanableItem] = []
        self.failed: list[FailedItem] = []
        self.freed = 0

    def add(self, outcome: DeletionOutcome) -> None:
        if outcome.success:
            self.deleted.append(outcome.item)
            self.freed += outcome.freed
        else:
            self.failed.append(FailedItem(item=outcome.item, reason=outcome.error or "Unknown error"))

    def fail(self, items: Iterable[CleanableItem], reason: str) -> None:
        self.failed.extend(FailedItem(item=item, reason=reason) for item in items)

    def result(self) -> CleanResult:
        return CleanResult(
            deleted_items=tuple(self.deleted),
            failed_items=tuple(self.failed),
            freed_space=self.freed,
            dry_run=False,
        )


class DeletionEngine:
    """Deletes items with verification, bounded concurrency and timeouts.

    Only one clean may run at a time per engine.

    Attributes:
        _accessor: Filesystem accessor used for every check and removal.
        _backup_service: Optional backup collaborator.
    """

    def __init__(
        self,
        accessor: FileSystemAccessor | None = None,
        backup_service: BackupService | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            accessor: Filesystem accessor (default: LocalFileSystem).
            backup_service: Backup collaborator required when auto_backup is on.
        """
        self._accessor = accessor or LocalFileSystem()
        self._backup_service = backup_service
        self._lock = threading.Lock()

    @property
    def is_cleaning(self) -> bool:
        return self._lock.locked()

    def clean(
        self,
        items: Iterable[CleanableItem],
        config: EngineConfig,
        token: CancellationToken | None = None,
    ) -> CleanResult:
        """Delete ``items``.

        Args:
            items: Approved items.
            config: Engine configuration.
            token: Cancellation token; no new deletions start once cancelled.

        Returns:
            CleanResult with verified deletions and collected failures.

        Raises:
            OperationInProgressError: If a clean is already running.
            BackupFailedError: If a requested backup fails or times out.
            OperationTimeoutError: If the whole call exceeds its deadline;
                carries the partial result.
            OperationCancelledError: If the token is cancelled.
        """
        if not self._lock.acquire(blocking=False):
            raise OperationInProgressError("clean")
        try:
            item_list = list(items)
            if config.dry_run:
                return self._simulate(item_list)
            return self._clean(item_list, config, token or CancellationToken())
        finally:
            self._lock.release()

    def _simulate(self, items: list[CleanableItem]) -> CleanResult:
        """Report every item as deleted without touching the filesystem."""
        freed = sum(item.size for item in items)
        logger.info("Dry-run: would delete %d items (%d bytes)", len(items), freed)
        return CleanResult(deleted_items=tuple(items), freed_space=freed, dry_run=True)

    def _clean(
        self,
        items: list[CleanableItem],
        config: EngineConfig,
        token: CancellationToken,
    ) -> CleanResult:
        call_deadline = time.monotonic() + config.clean_timeout_seconds
        acc = _Accumulator()

        groups: dict[Category, list[CleanableItem]] = {}
        for item in items:
            if config.safe_mode and is_critical_path(item.path):
                logger.warning("Refusing to delete protected path: %s", item.path)
                acc.fail([item], f"Protected path cannot be deleted: {item.path}")
                continue
            groups.setdefault(item.category, []).append(item)

        if config.auto_backup:
            for category, group in groups.items():
                self._backup(category, group, config)

        executor = ThreadPoolExecutor(max_workers=config.parallel_workers, thread_name_prefix="clean")
        semaphore = threading.BoundedSemaphore(config.parallel_workers)
        try:
            ordered = list(groups.items())
            for position, (category, group) in enumerate(ordered):
                self._clean_group(category, group, config, call_deadline, executor, semaphore, token, acc)
                if time.monotonic() >= call_deadline:
                    for _, remaining_group in ordered[position + 1 :]:
                        acc.fail(remaining_group, "Clean timed out")
                    logger.warning("Clean exceeded %gs", config.clean_timeout_seconds)
                    raise OperationTimeoutError("clean", config.clean_timeout_seconds, partial_result=acc.result())
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        result = acc.result()
        logger.info(
            "Clean finished: %d deleted, %d failed, %d bytes freed",
            len(result.deleted_items),
            len(result.failed_items),
            result.freed_space,
        )
        return result

    def _clean_group(
        self,
        category: Category,
        group: list[CleanableItem],
        config: EngineConfig,
        call_deadline: float,
        executor: ThreadPoolExecutor,
        semaphore: threading.BoundedSemaphore,
        token: CancellationToken,
        acc: _Accumulator,
    ) -> None:
        deadline = min(time.monotonic() + config.category_timeout_seconds, call_deadline)
        futures: list[Future[DeletionOutcome]] = []
        unsubmitted: list[CleanableItem] = []
        cancelled = False

        for position, item in enumerate(group):
            if token.is_cancelled:
                cancelled = True
                unsubmitted = group[position:]
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0 or not semaphore.acquire(timeout=remaining):
                unsubmitted = group[position:]
                break
            future = executor.submit(self._delete_one, item)
            future.add_done_callback(lambda _: semaphore.release())
            futures.append(future)

        _, not_done = wait(futures, timeout=max(0.0, deadline - time.monotonic()))
        timed_out = bool(unsubmitted and not cancelled) or bool(not_done)

        for item, future in zip(group, futures):
            if future in not_done and future.cancel():
                acc.fail([item], f"Category '{category.value}' timed out")
                continue
            # In-flight deletions are allowed to finish
            acc.add(future.result())

        if cancelled:
            acc.fail(unsubmitted, "Cancelled")
            raise OperationCancelledError("clean")

        if timed_out:
            acc.fail(unsubmitted, f"Category '{category.value}' timed out")
            logger.warning(
                "Deleting category '%s' timed out after %gs; %d items not processed",
                category.value,
                config.category_timeout_seconds,
                len(unsubmitted) + sum(1 for f in not_done if f.cancelled()),
            )

    def _delete_one(self, item: CleanableItem) -> DeletionOutcome:
        """Delete one item and verify it is gone."""
        path = item.path
        if not self._accessor.exists(path):
            logger.debug("Already absent: %s", path)
            return DeletionOutcome(item=item, success=True)

        expected = item.size
        try:
            self._accessor.remove(path)
        except FileNotFoundError:
            return DeletionOutcome(item=item, success=True)
        except PermissionError as e:
            logger.warning("Permission denied deleting %s: %s", path, e)
            return DeletionOutcome(item=item, success=False, error=f"Permission denied: {e}")
        except OSError as e:
            logger.warning("Failed to delete %s: %s", path, e)
            return DeletionOutcome(item=item, success=False, error=str(e))

        if self._accessor.exists(path):
            logger.warning("Path still exists after removal: %s", path)
            return DeletionOutcome(item=item, success=False, error="Verification failed: path still exists")

        logger.debug("Deleted %s (%d bytes)", path, expected)
        return DeletionOutcome(item=item, success=True, freed=expected)

    def _backup(self, category: Category, group: list[CleanableItem], config: EngineConfig) -> str:
        """Snapshot one category group through the backup service.

        Raises:
            BackupFailedError: If no service is configured, or the call
                fails or exceeds its budget.
        """
        if self._backup_service is None:
            raise BackupFailedError("auto_backup is enabled but no backup service is configured")

        snapshot = BackupSnapshot(
            total_size=sum(item.size for item in group),
            item_count=len(group),
            metadata={"type": "pre-cleanup", "categories": [category.value]},
        )
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="backup")
        future = executor.submit(self._backup_service.create_snapshot, group, snapshot)
        try:
            snapshot_id = future.result(timeout=config.backup_timeout_seconds)
        except FutureTimeoutError as e:
            raise BackupFailedError(f"timed out after {config.backup_timeout_seconds:g}s") from e
        except Exception as e:
            raise BackupFailedError(str(e)) from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info("Backed up %d '%s' items as snapshot %s", len(group), category.value, snapshot_id)
        return snapshot_id

