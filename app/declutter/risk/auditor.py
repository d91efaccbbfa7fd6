"""Multi-factor risk auditor.

Runs an ordered set of independent checks against a path and its
metadata. Each check either abstains or returns a partial risk score
with a message. The aggregate score is the maximum over the checks
that fired, never their sum.

The auditor holds no mutable state beyond its accessor, so ``audit``
may be called concurrently from worker threads.
"""

import logging
import os
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from pathlib import Path

from declutter.fs.accessor import FileSystemAccessor, LocalFileSystem
from declutter.fs.models import FileMetadata
from declutter.risk.models import BatchRiskAssessment, RiskAssessment, RiskFinding
from declutter.risk.rules import (
    critical_prefix_for,
    important_user_path_for,
    is_critical_path,
    is_suspicious_link_target,
    is_system_library_path,
    sensitive_name_pattern_for,
)

logger = logging.getLogger(__name__)

RECENT_AGE = timedelta(days=7)
OLD_AGE = timedelta(days=365)

# Batch penalties (advisory only)
LARGE_BATCH_THRESHOLD = 100
LARGE_BATCH_PENALTY = 20
SYSTEM_ITEM_PENALTY = 30


class RiskAuditor:
    """Scores how dangerous it would be to delete a path.

    Attributes:
        _accessor: Filesystem accessor used for metadata lookups.
        _home: Home directory that user-data locations resolve against.
        _now: Clock used by the age heuristic.
    """

    def __init__(
        self,
        accessor: FileSystemAccessor | None = None,
        home: Path | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the auditor.

        Args:
            accessor: Filesystem accessor (default: LocalFileSystem).
            home: Home directory for user-data checks (default: current user).
            now: Clock returning an aware datetime (default: UTC now).
        """
        self._accessor = accessor or LocalFileSystem()
        self._home = home
        self._now = now or (lambda: datetime.now(UTC))

    def audit(self, path: str) -> RiskAssessment:
        """Audit a single path.

        Args:
            path: Absolute filesystem path.

        Returns:
            RiskAssessment with the maximum score of all checks that fired.
        """
        metadata: FileMetadata | None = None
        stat_error: OSError | None = None
        try:
            metadata = self._accessor.stat(path)
        except OSError as e:
            stat_error = e

        findings: list[RiskFinding] = []
        for check in (
            self._check_critical_path,
            self._check_user_data,
            self._check_sensitive_name,
        ):
            finding = check(path)
            if finding is not None:
                findings.append(finding)

        finding = self._check_permissions(path, metadata, stat_error)
        if finding is not None:
            findings.append(finding)

        finding = self._check_active_usage(path)
        if finding is not None:
            findings.append(finding)

        if metadata is not None:
            for check in (self._check_symlink, self._check_age):
                finding = check(path, metadata)
                if finding is not None:
                    findings.append(finding)

        if not findings:
            return RiskAssessment(path=path, score=0, message="File appears safe to clean")

        top = max(findings, key=lambda f: f.score)
        assessment = RiskAssessment(
            path=path,
            score=top.score,
            message=top.message,
            findings=tuple(findings),
        )
        logger.debug("Audited %s: %s (%d)", path, assessment.level.label, assessment.score)
        return assessment

    def audit_batch(self, paths: Iterable[str]) -> BatchRiskAssessment:
        """Audit a batch of paths and compute an advisory aggregate.

        The total is the sum of individual scores plus fixed penalties
        for large batches and for batches touching system trees.

        Args:
            paths: Paths to audit.

        Returns:
            BatchRiskAssessment with per-path results and penalties.
        """
        path_list = list(paths)
        assessments = tuple(self.audit(path) for path in path_list)

        penalties: dict[str, int] = {}
        if len(path_list) > LARGE_BATCH_THRESHOLD:
            penalties["large_batch"] = LARGE_BATCH_PENALTY
        if any(is_system_library_path(path) for path in path_list):
            penalties["system_items"] = SYSTEM_ITEM_PENALTY

        total = sum(a.score for a in assessments) + sum(penalties.values())
        return BatchRiskAssessment(
            item_count=len(path_list),
            total_score=total,
            penalties=penalties,
            assessments=assessments,
        )

    def _check_critical_path(self, path: str) -> RiskFinding | None:
        prefix = critical_prefix_for(path)
        if prefix is None:
            return None
        return RiskFinding("critical_path", 100, f"Critical system path ({prefix})")

    def _check_user_data(self, path: str) -> RiskFinding | None:
        location = important_user_path_for(path, self._home)
        if location is None:
            return None
        return RiskFinding("user_data", 75, f"Important user data (~/{location})")

    def _check_sensitive_name(self, path: str) -> RiskFinding | None:
        pattern = sensitive_name_pattern_for(path)
        if pattern is None:
            return None
        return RiskFinding("sensitive_name", 80, f"Sensitive file name ({pattern})")

    def _check_permissions(
        self,
        path: str,
        metadata: FileMetadata | None,
        stat_error: OSError | None,
    ) -> RiskFinding | None:
        if metadata is None:
            # Unreadable attributes fail closed
            return RiskFinding("permissions", 50, f"Cannot read attributes: {stat_error}")

        if metadata.uid == 0 and os.geteuid() != 0:
            return RiskFinding("permissions", 70, "Owned by a privileged account")
        if not self._accessor.is_writable(path):
            return RiskFinding("permissions", 40, "Read-only for the current user")
        return None

    def _check_active_usage(self, path: str) -> RiskFinding | None:
        if path in self._accessor.open_file_paths():
            return RiskFinding("active_usage", 85, "File is in use by another process")
        return None

    def _check_symlink(self, path: str, metadata: FileMetadata) -> RiskFinding | None:
        if not metadata.is_symlink:
            return None
        try:
            target = self._accessor.read_symlink_target(path)
        except OSError:
            return RiskFinding("symlink", 45, "Cannot read symlink target")

        resolved = os.path.normpath(os.path.join(os.path.dirname(path), target))
        if is_critical_path(resolved):
            return RiskFinding("symlink", 95, f"Symlink points into a critical path ({resolved})")
        if is_suspicious_link_target(target):
            return RiskFinding("symlink", 65, f"Suspicious symlink target ({target})")
        return None

    def _check_age(self, path: str, metadata: FileMetadata) -> RiskFinding | None:
        age = self._now() - metadata.modified_at
        if age < RECENT_AGE:
            return RiskFinding("age", 20, "Modified within the last 7 days")
        if age > OLD_AGE:
            return RiskFinding("age", 10, "Not modified for over a year")
        return None
