"""Exception hierarchy for the scan, score and clean pipeline.

Item-level problems (a missing path, a permission error) are never raised
out of the pipeline; they are collected into result objects. The
exceptions below are the call-level failures a caller has to handle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from declutter.models.results import CleanResult


class DeclutterError(Exception):
    """Base exception for all declutter errors."""


class OperationInProgressError(DeclutterError):
    """Raised when a single-flight operation is already running."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"A {operation} operation is already in progress")


class OperationTimeoutError(DeclutterError):
    """Raised when a whole scan or clean call exceeds its time budget.

    Attributes:
        operation: Name of the operation that timed out.
        timeout: Budget in seconds that was exceeded.
        partial_result: Items verified before the deadline (clean only).
    """

    def __init__(
        self,
        operation: str,
        timeout: float,
        partial_result: CleanResult | None = None,
    ) -> None:
        self.operation = operation
        self.timeout = timeout
        self.partial_result = partial_result
        super().__init__(f"{operation} timed out after {timeout:g}s")


class OperationCancelledError(DeclutterError):
    """Raised when a running operation observes a cancellation request."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} was cancelled")


class NoScanResultsError(DeclutterError):
    """Raised when recommendations are requested before any scan."""

    def __init__(self) -> None:
        super().__init__("No scan results available. Please run a scan first.")


class BackupFailedError(DeclutterError):
    """Raised when the pre-deletion backup cannot be created.

    Deletion never proceeds without a backup the caller asked for.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Backup failed: {reason}")


class IndexerError(DeclutterError):
    """Base exception for incremental index errors."""


class IndexScanInProgressError(IndexerError):
    """Raised when a second full index scan is requested concurrently."""

    def __init__(self) -> None:
        super().__init__("A full index scan is already in progress")


class IndexCorruptionError(IndexerError):
    """Raised when persisted index files cannot be decoded.

    The indexer catches this on load and resets to an empty index.
    """


class IndexPersistenceError(IndexerError):
    """Raised when the index cannot be written to disk."""
