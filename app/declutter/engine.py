"""Pipeline facade.

``DeclutterEngine`` is the single entry point for callers: ``scan``,
``clean`` and ``get_recommendations``. It wires the scan orchestrator,
risk auditor, incremental index and deletion engine together, keeps the
most recent scan results, and records clean runs in the history file.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from pathlib import Path

from declutter.clean.engine import DeletionEngine
from declutter.core.collaborators import BackupService, ExplanationGenerator, ScoreEnhancer
from declutter.core.concurrency import CancellationToken
from declutter.core.config import EngineConfig
from declutter.core.errors import NoScanResultsError, OperationInProgressError
from declutter.core.state import StateManager
from declutter.fs.accessor import FileSystemAccessor, LocalFileSystem
from declutter.index.indexer import IncrementalIndexer
from declutter.models.history import create_history_entry
from declutter.models.item import DEVELOPER_CATEGORIES, SAFE_CATEGORIES, Category, CleanableItem
from declutter.models.results import CleaningRecommendation, CleanResult, ScanResults
from declutter.risk.auditor import RiskAuditor
from declutter.risk.rules import is_critical_path
from declutter.scan.orchestrator import ScanOrchestrator

logger = logging.getLogger(__name__)

LARGE_FILE_THRESHOLD = 100 * 1024 * 1024
UNUSED_AGE = timedelta(days=90)


class DeclutterEngine:
    """Scan, score and clean pipeline.

    Scans and cleans are single-flight: a second concurrent call raises
    OperationInProgressError without starting any work.

    Example:
        >>> engine = DeclutterEngine(EngineConfig(dry_run=True))
        >>> results = engine.scan([Category.CACHE])
        >>> engine.clean(results.items)
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        accessor: FileSystemAccessor | None = None,
        indexer: IncrementalIndexer | None = None,
        backup_service: BackupService | None = None,
        enhancer: ScoreEnhancer | None = None,
        explainer: ExplanationGenerator | None = None,
        state_manager: StateManager | None = None,
        home: Path | None = None,
        temp_dir: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration (default: EngineConfig()).
            accessor: Filesystem accessor shared by every component.
            indexer: Incremental index updated by every successful scan.
            backup_service: Backup collaborator for auto_backup.
            enhancer: Secondary safety scorer.
            explainer: Explanation generator.
            state_manager: History store; clean runs are not recorded if None.
            home: Home directory override.
            temp_dir: Temporary directory override.
            clock: Clock returning an aware datetime.
        """
        self.config = config or EngineConfig()
        self._accessor = accessor or LocalFileSystem()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._state_manager = state_manager
        self._orchestrator = ScanOrchestrator(
            accessor=self._accessor,
            auditor=RiskAuditor(self._accessor, home=home, now=self._clock),
            indexer=indexer,
            enhancer=enhancer,
            explainer=explainer,
            home=home,
            temp_dir=temp_dir,
            clock=self._clock,
        )
        self._deleter = DeletionEngine(self._accessor, backup_service)
        self._results_lock = threading.Lock()
        self._last_results: ScanResults | None = None
        self._scan_lock = threading.Lock()
        self._scan_token: CancellationToken | None = None

    @property
    def is_scanning(self) -> bool:
        return self._orchestrator.is_scanning

    @property
    def is_cleaning(self) -> bool:
        return self._deleter.is_cleaning

    @property
    def last_results(self) -> ScanResults | None:
        """Results of the most recent successful scan."""
        with self._results_lock:
            return self._last_results

    def scan(self, categories: Iterable[Category] | None = None) -> ScanResults:
        """Scan categories and score every item found.

        Args:
            categories: Categories to scan (default: SAFE_CATEGORIES).

        Returns:
            Scan results; also kept for get_recommendations().

        Raises:
            OperationInProgressError: If a scan is already running.
            OperationTimeoutError: If the scan exceeds its deadline.
            OperationCancelledError: If cancel_scan() was called.
        """
        requested = list(categories) if categories is not None else sorted(SAFE_CATEGORIES, key=lambda c: c.value)
        # A rejected scan must not replace the running scan's token.
        if not self._scan_lock.acquire(blocking=False):
            raise OperationInProgressError("scan")
        try:
            token = CancellationToken()
            self._scan_token = token
            results = self._orchestrator.scan(requested, self.config, token)
            with self._results_lock:
                self._last_results = results
            return results
        finally:
            self._scan_token = None
            self._scan_lock.release()

    def cancel_scan(self) -> None:
        """Request cancellation of the running scan, if any."""
        token = self._scan_token
        if token is not None:
            logger.info("Scan cancellation requested")
            token.cancel()

    def clean(self, items: Iterable[CleanableItem]) -> CleanResult:
        """Delete items and record the run in the history.

        Args:
            items: Items approved by the caller.

        Returns:
            CleanResult with verified deletions and failures.

        Raises:
            OperationInProgressError: If a clean is already running.
            BackupFailedError: If a requested backup fails.
            OperationTimeoutError: If the clean exceeds its deadline.
        """
        result = self._deleter.clean(items, self.config)

        if not result.dry_run:
            self._forget(result.deleted_paths)
            self._record(result)
        return result

    def _forget(self, paths: list[str]) -> None:
        """Drop deleted items from the cached scan results."""
        if not paths:
            return
        deleted = set(paths)
        with self._results_lock:
            if self._last_results is not None:
                self._last_results.items = [i for i in self._last_results.items if i.path not in deleted]

    def _record(self, result: CleanResult) -> None:
        if self._state_manager is None or (not result.deleted_items and not result.failed_items):
            return
        try:
            self._state_manager.record_clean(create_history_entry(result))
        except (OSError, RuntimeError) as e:
            logger.warning("Failed to record clean history: %s", e)

    def get_recommendations(self) -> list[CleaningRecommendation]:
        """Bucket the last scan's items into cleaning recommendations.

        Items carrying a risk warning or lying on the critical deny-list
        never appear in any bucket. Empty buckets are omitted.

        Returns:
            Recommendations, most confident first.

        Raises:
            NoScanResultsError: If no scan has completed yet.
        """
        results = self.last_results
        if results is None:
            raise NoScanResultsError()

        eligible = [item for item in results.items if item.warning is None and not is_critical_path(item.path)]
        eligible_ids = {item.id for item in eligible}
        threshold = self.config.effective_safe_threshold
        unused_before = self._clock() - UNUSED_AGE

        recommendations = [
            CleaningRecommendation(
                title="Safe to Delete",
                description=f"Items scored above {threshold} with no risk findings",
                items=tuple(item for item in eligible if item.safety_score > threshold),
                confidence=0.95,
            ),
            CleaningRecommendation(
                title="Developer Cache",
                description="Build output and package manager caches",
                items=tuple(item for item in eligible if item.category in DEVELOPER_CATEGORIES),
                confidence=0.90,
            ),
            CleaningRecommendation(
                title="Large Unused Files",
                description="Items over 100 MB not accessed in 90 days",
                items=tuple(
                    item
                    for item in eligible
                    if item.size > LARGE_FILE_THRESHOLD
                    and item.last_accessed is not None
                    and item.last_accessed < unused_before
                ),
                confidence=0.85,
            ),
            CleaningRecommendation(
                title="Duplicate Files",
                description="Extra copies sharing a name and size",
                items=tuple(
                    member
                    for group in results.duplicates
                    for member in group.items[1:]
                    if member.id in eligible_ids
                ),
                confidence=0.70,
            ),
        ]
        return [rec for rec in recommendations if rec.items]
