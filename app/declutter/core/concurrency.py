"""Concurrency primitives shared by the scanner, indexer and deleter.

Work runs on bounded ``ThreadPoolExecutor`` pools. Cancellation is
cooperative: long-running loops poll a ``CancellationToken`` and stop
starting new work once it is set. Timeouts race a future against a
deadline; the loser is cancelled and the caller gets a result value
rather than a swallowed exception.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from declutter.core.errors import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Thread-safe cooperative cancellation flag.

    Tokens can be chained: a child token reports cancelled when either it
    or its parent has been cancelled. The orchestrator uses this to stop
    its own workers on timeout without cancelling the caller's token.
    """

    def __init__(self, parent: "CancellationToken | None" = None) -> None:
        self._event = threading.Event()
        self._parent = parent

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Whether cancellation has been requested on this token or a parent."""
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_cancelled

    def raise_if_cancelled(self, operation: str) -> None:
        """Raise OperationCancelledError if cancellation was requested.

        Args:
            operation: Operation name used in the error message.

        Raises:
            OperationCancelledError: If the token is cancelled.
        """
        if self.is_cancelled:
            raise OperationCancelledError(operation)

    def child(self) -> "CancellationToken":
        """Create a token that is also cancelled when this one is."""
        return CancellationToken(parent=self)


class ReadWriteLock:
    """Writer-preferring read-write lock.

    Any number of readers may hold the lock together; a writer holds it
    exclusively. Waiting writers block new readers so a stream of queries
    cannot starve a full index scan.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock in shared mode."""
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock in exclusive mode."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class PhaseStatus(str, Enum):
    """Outcome of an optional enrichment phase.

    Attributes:
        OK: Phase finished and its results were applied.
        TIMEOUT: Phase exceeded its budget; prior values were kept.
        ERROR: Phase raised; prior values were kept.
        SKIPPED: Phase disabled or its collaborator is absent.
    """

    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class PhaseOutcome(Generic[T]):
    """Result of running one optional phase.

    Attributes:
        name: Phase name used for logging and reporting.
        status: How the phase ended.
        value: Phase result when status is OK, otherwise None.
        error: Human-readable failure reason, if any.
        elapsed: Wall-clock seconds spent waiting for the phase.
    """

    name: str
    status: PhaseStatus
    value: T | None = None
    error: str | None = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the phase produced a usable value."""
        return self.status == PhaseStatus.OK

    def value_or(self, fallback: T) -> T:
        """Return the phase value, or ``fallback`` if the phase failed."""
        if self.status == PhaseStatus.OK and self.value is not None:
            return self.value
        return fallback

    @classmethod
    def skipped(cls, name: str) -> "PhaseOutcome[T]":
        """Build the outcome of a phase that never ran."""
        return cls(name=name, status=PhaseStatus.SKIPPED)


def run_phase(
    name: str,
    func: Callable[[CancellationToken], T],
    timeout: float,
    token: CancellationToken | None = None,
) -> PhaseOutcome[T]:
    """Run ``func`` on a dedicated worker and wait at most ``timeout`` seconds.

    The phase receives its own child token which is cancelled when the
    deadline passes, so a well-behaved phase stops at its next loop
    boundary instead of running on in the background.

    Args:
        name: Phase name for logging and the returned outcome.
        func: Phase body. Receives a cancellation token to poll.
        timeout: Budget in seconds.
        token: Parent token; cancelling it also cancels the phase.

    Returns:
        PhaseOutcome describing how the phase ended.
    """
    phase_token = token.child() if token is not None else CancellationToken()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"phase-{name}")
    start = time.monotonic()
    future: Future[T] = executor.submit(func, phase_token)
    try:
        value = future.result(timeout=timeout)
    except FutureTimeoutError:
        phase_token.cancel()
        future.cancel()
        elapsed = time.monotonic() - start
        logger.warning("Phase '%s' timed out after %.1fs, keeping prior values", name, elapsed)
        return PhaseOutcome(
            name=name,
            status=PhaseStatus.TIMEOUT,
            error=f"timed out after {timeout:g}s",
            elapsed=elapsed,
        )
    except Exception as e:
        elapsed = time.monotonic() - start
        logger.warning("Phase '%s' failed: %s, keeping prior values", name, e)
        return PhaseOutcome(name=name, status=PhaseStatus.ERROR, error=str(e), elapsed=elapsed)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return PhaseOutcome(
        name=name,
        status=PhaseStatus.OK,
        value=value,
        elapsed=time.monotonic() - start,
    )
