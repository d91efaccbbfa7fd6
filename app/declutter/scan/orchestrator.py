"""Scan orchestration.

Expands requested categories into scan tasks, runs them on a bounded
worker pool under a hard deadline, merges the results and pipes them
through the optional enrichment phases:

1. duplicate detection and score enhancement
2. risk audit (clamps high-risk items)
3. explanation generation

Each phase has its own budget and degrades gracefully: a phase that
times out or raises leaves items exactly as they were. Phases compute
updates without touching the items; updates are applied only when the
phase finishes in time.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, as_completed, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from declutter.core.collaborators import ExplanationGenerator, ScoreEnhancer
from declutter.core.concurrency import CancellationToken, PhaseOutcome, run_phase
from declutter.core.config import EngineConfig
from declutter.core.errors import (
    IndexPersistenceError,
    OperationCancelledError,
    OperationInProgressError,
    OperationTimeoutError,
)
from declutter.fs.accessor import FileSystemAccessor, LocalFileSystem
from declutter.index.indexer import IncrementalIndexer
from declutter.models.item import Category, CleanableItem, DuplicateGroup
from declutter.models.results import PhaseReport, ScanResults
from declutter.risk.auditor import RiskAuditor
from declutter.risk.models import RiskAssessment
from declutter.scan.duplicates import find_duplicates
from declutter.scan.tasks import ScanTask, build_scan_tasks
from declutter.scan.walker import ScanMatch, TaskWalker

logger = logging.getLogger(__name__)

# Ceiling applied to high and critical risk items by the audit phase
HIGH_RISK_SCORE_CEILING = 25

# How often the fan-in loop wakes up to poll cancellation and the deadline
_POLL_INTERVAL = 0.1

# Categories holding user files that may have been saved twice
DUPLICATE_SOURCE_CATEGORIES: frozenset[Category] = frozenset(
    {Category.DUPLICATES, Category.DOWNLOADS, Category.OTHER}
)

PHASE_DUPLICATES = "duplicates"
PHASE_RISK_AUDIT = "risk_audit"
PHASE_EXPLANATIONS = "explanations"


@dataclass(frozen=True, slots=True)
class DuplicatePhaseResult:
    """Updates computed by the duplicate phase.

    Attributes:
        groups: Duplicate groups found.
        scores: Enhanced safety scores by item id.
        dropped: Ids of duplicate-category items that belong to no group.
    """

    groups: list[DuplicateGroup] = field(default_factory=list)
    scores: dict[str, int] = field(default_factory=dict)
    dropped: frozenset[str] = frozenset()


class ScanOrchestrator:
    """Runs the scan and enrichment pipeline.

    Only one scan may run at a time per orchestrator.

    Attributes:
        _accessor: Filesystem accessor shared by all tasks.
        _auditor: Risk auditor for the audit phase.
        _indexer: Optional incremental index updated after each successful scan.
        _enhancer: Optional secondary scorer.
        _explainer: Optional explanation generator.
    """

    def __init__(
        self,
        accessor: FileSystemAccessor | None = None,
        auditor: RiskAuditor | None = None,
        indexer: IncrementalIndexer | None = None,
        enhancer: ScoreEnhancer | None = None,
        explainer: ExplanationGenerator | None = None,
        home: Path | None = None,
        temp_dir: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            accessor: Filesystem accessor (default: LocalFileSystem).
            auditor: Risk auditor (default: one sharing ``accessor``).
            indexer: Incremental index that records every scanned path.
            enhancer: Secondary safety scorer, if available.
            explainer: Explanation generator, if available.
            home: Home directory for task roots and scoring.
            temp_dir: Temporary directory for the temporary category.
            clock: Clock returning an aware datetime.
        """
        self._accessor = accessor or LocalFileSystem()
        self._home = home
        self._clock = clock or (lambda: datetime.now(UTC))
        self._auditor = auditor or RiskAuditor(self._accessor, home=home, now=self._clock)
        self._indexer = indexer
        self._enhancer = enhancer
        self._explainer = explainer
        self._temp_dir = temp_dir
        self._lock = threading.Lock()

    @property
    def is_scanning(self) -> bool:
        return self._lock.locked()

    def scan(
        self,
        categories: Iterable[Category],
        config: EngineConfig,
        token: CancellationToken | None = None,
    ) -> ScanResults:
        """Scan the requested categories and score every item found.

        Args:
            categories: Categories to scan.
            config: Engine configuration.
            token: Cancellation token; cancelling it aborts the scan.

        Returns:
            Scored items, duplicate groups and phase reports.

        Raises:
            OperationInProgressError: If a scan is already running.
            OperationTimeoutError: If task fan-out/fan-in exceeds its deadline.
            OperationCancelledError: If the token is cancelled.
        """
        if not self._lock.acquire(blocking=False):
            raise OperationInProgressError("scan")
        try:
            return self._scan(list(categories), config, token or CancellationToken())
        finally:
            self._lock.release()

    def _scan(
        self,
        categories: list[Category],
        config: EngineConfig,
        token: CancellationToken,
    ) -> ScanResults:
        start = time.monotonic()
        tasks = build_scan_tasks(categories, config, home=self._home, temp_dir=self._temp_dir)
        logger.info(
            "Scanning %d categories (%s) with %d workers",
            len(tasks),
            ", ".join(task.category.value for task in tasks),
            config.parallel_workers,
        )

        matches = self._run_tasks(tasks, config, token)
        items = [match.item for match in matches]
        phases: list[PhaseReport] = []
        duplicates: list[DuplicateGroup] = []

        # Phase 1: duplicates and score enhancement
        if config.enable_smart_detection:
            dup_outcome = run_phase(
                PHASE_DUPLICATES,
                lambda t: self._detect_duplicates(items, t),
                config.duplicate_phase_timeout,
                token,
            )
            if dup_outcome.ok and dup_outcome.value is not None:
                result = dup_outcome.value
                duplicates = result.groups
                items = [item for item in items if item.id not in result.dropped]
                for item in items:
                    if item.id in result.scores:
                        item.set_safety_score(result.scores[item.id])
        else:
            dup_outcome = PhaseOutcome.skipped(PHASE_DUPLICATES)
        phases.append(_report(dup_outcome))
        token.raise_if_cancelled("scan")

        # Phase 2: risk audit
        audit_outcome = run_phase(
            PHASE_RISK_AUDIT,
            lambda t: self._audit(items, config, t),
            config.audit_phase_timeout,
            token,
        )
        for item in items:
            assessment = audit_outcome.value_or({}).get(item.id)
            if assessment is not None and assessment.is_blocking:
                item.cap_safety_score(HIGH_RISK_SCORE_CEILING, assessment.message)
        phases.append(_report(audit_outcome))
        token.raise_if_cancelled("scan")

        # Phase 3: explanations
        explainer = self._explainer
        if config.enable_explanations and explainer is not None:
            explain_outcome = run_phase(
                PHASE_EXPLANATIONS,
                lambda t: _explain(explainer, items, t),
                config.explanation_phase_timeout,
                token,
            )
            for item in items:
                text = explain_outcome.value_or({}).get(item.id)
                if text:
                    item.explanation = text
        else:
            explain_outcome = PhaseOutcome.skipped(PHASE_EXPLANATIONS)
        phases.append(_report(explain_outcome))
        token.raise_if_cancelled("scan")

        kept = {item.id for item in items}
        self._commit_to_index([match for match in matches if match.item.id in kept])

        results = ScanResults(items=items, duplicates=duplicates, phases=phases, timestamp=self._clock())
        logger.info(
            "Scan finished: %d items, %d bytes in %.2fs",
            len(results.items),
            results.total_size,
            time.monotonic() - start,
        )
        return results

    def _run_tasks(
        self,
        tasks: list[ScanTask],
        config: EngineConfig,
        token: CancellationToken,
    ) -> list[ScanMatch]:
        """Fan tasks out to the worker pool and merge their results.

        Results are merged in task order and de-duplicated by path, so an
        item found by two overlapping tasks keeps the first task's category.
        """
        walker = TaskWalker(self._accessor, self._clock(), home=self._home)
        run_token = token.child()
        deadline = time.monotonic() + config.scan_timeout_seconds

        executor = ThreadPoolExecutor(max_workers=config.parallel_workers, thread_name_prefix="scan")
        finished = False
        try:
            futures: dict[Future[list[ScanMatch]], int] = {}
            for position, task in enumerate(tasks):
                token.raise_if_cancelled("scan")
                futures[executor.submit(walker.run, task, run_token)] = position

            per_task: dict[int, list[ScanMatch]] = {}
            pending = set(futures)
            while pending:
                token.raise_if_cancelled("scan")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning("Scan exceeded %gs, aborting", config.scan_timeout_seconds)
                    raise OperationTimeoutError("scan", config.scan_timeout_seconds)

                done, pending = wait(pending, timeout=min(remaining, _POLL_INTERVAL), return_when=FIRST_COMPLETED)
                for future in done:
                    token.raise_if_cancelled("scan")
                    position = futures[future]
                    try:
                        per_task[position] = future.result()
                    except OperationCancelledError:
                        raise
                    except Exception as e:
                        logger.warning("Scan task '%s' failed: %s", tasks[position].category.value, e)
                        per_task[position] = []
            finished = True
        finally:
            if not finished:
                run_token.cancel()
            executor.shutdown(wait=False, cancel_futures=True)

        merged: list[ScanMatch] = []
        seen: set[str] = set()
        for position in range(len(tasks)):
            for match in per_task.get(position, []):
                if match.item.path in seen:
                    continue
                seen.add(match.item.path)
                merged.append(match)
        return merged

    def _detect_duplicates(self, items: list[CleanableItem], token: CancellationToken) -> DuplicatePhaseResult:
        groups = find_duplicates(item for item in items if item.category in DUPLICATE_SOURCE_CATEGORIES)
        grouped = {member.id for group in groups for member in group.items}
        dropped = frozenset(
            item.id for item in items if item.category == Category.DUPLICATES and item.id not in grouped
        )

        scores: dict[str, int] = {}
        if self._enhancer is not None:
            for item in items:
                token.raise_if_cancelled("duplicate detection")
                if item.id in dropped:
                    continue
                enhanced = self._enhancer.enhance(item)
                if enhanced is not None:
                    scores[item.id] = enhanced

        return DuplicatePhaseResult(groups=groups, scores=scores, dropped=dropped)

    def _audit(
        self,
        items: list[CleanableItem],
        config: EngineConfig,
        token: CancellationToken,
    ) -> dict[str, RiskAssessment]:
        assessments: dict[str, RiskAssessment] = {}
        executor = ThreadPoolExecutor(max_workers=config.parallel_workers, thread_name_prefix="audit")
        try:
            futures = {executor.submit(self._auditor.audit, item.path): item.id for item in items}
            for future in as_completed(futures):
                token.raise_if_cancelled("risk audit")
                assessments[futures[future]] = future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return assessments

    def _commit_to_index(self, matches: list[ScanMatch]) -> None:
        if self._indexer is None or not matches:
            return
        try:
            self._indexer.record_observations(
                (match.item.path, match.metadata, match.content_size) for match in matches
            )
        except IndexPersistenceError as e:
            logger.warning("Could not update the index after scan: %s", e)


def _explain(
    explainer: ExplanationGenerator,
    items: list[CleanableItem],
    token: CancellationToken,
) -> dict[str, str]:
    explanations: dict[str, str] = {}
    for item in items:
        token.raise_if_cancelled("explanations")
        text = explainer.explain(item)
        if text:
            explanations[item.id] = text
    return explanations


def _report(outcome: PhaseOutcome) -> PhaseReport:
    return PhaseReport(
        name=outcome.name,
        status=outcome.status,
        elapsed=outcome.elapsed,
        error=outcome.error,
    )
