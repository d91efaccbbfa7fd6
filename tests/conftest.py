"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import os
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from declutter.fs.accessor import LocalFileSystem
from declutter.models.item import Category, CleanableItem

# Fixed reference time used by every clock-dependent test
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class RecordingFileSystem(LocalFileSystem):
    """LocalFileSystem that records every call and tracks removal concurrency.

    Attributes:
        calls: Names of accessor methods called, in order.
        remove_delay: Seconds each remove() sleeps before deleting.
        max_concurrent_removes: Highest number of overlapping remove() calls.
    """

    def __init__(self, remove_delay: float = 0.0, open_files: frozenset[str] = frozenset()) -> None:
        super().__init__()
        self.calls: list[str] = []
        self.remove_delay = remove_delay
        self.max_concurrent_removes = 0
        self._active_removes = 0
        self._lock = threading.Lock()
        self._open = open_files

    def _record(self, name: str) -> None:
        with self._lock:
            self.calls.append(name)

    def exists(self, path: str) -> bool:
        self._record("exists")
        return super().exists(path)

    def stat(self, path: str):
        self._record("stat")
        return super().stat(path)

    def list_directory(self, path: str):
        self._record("list_directory")
        return super().list_directory(path)

    def remove(self, path: str) -> None:
        self._record("remove")
        with self._lock:
            self._active_removes += 1
            self.max_concurrent_removes = max(self.max_concurrent_removes, self._active_removes)
        try:
            if self.remove_delay:
                time.sleep(self.remove_delay)
            super().remove(path)
        finally:
            with self._lock:
                self._active_removes -= 1

    def read_symlink_target(self, path: str) -> str:
        self._record("read_symlink_target")
        return super().read_symlink_target(path)

    def is_writable(self, path: str) -> bool:
        self._record("is_writable")
        return super().is_writable(path)

    def open_file_paths(self) -> frozenset[str]:
        self._record("open_file_paths")
        return self._open


@pytest.fixture(autouse=True)
def isolated_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point XDG config and state dirs into the test's tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock that always returns the fixed reference time."""
    return lambda: NOW


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Empty fake home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def recording_fs() -> RecordingFileSystem:
    """Instrumented local filesystem accessor."""
    return RecordingFileSystem()


@pytest.fixture
def make_file() -> Callable[..., Path]:
    """Factory creating a file with a given size and age."""

    def _make(path: Path, size: int = 0, age_days: float | None = 30) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x" * size)
        if age_days is not None:
            stamp = (NOW - timedelta(days=age_days)).timestamp()
            os.utime(path, (stamp, stamp))
        return path

    return _make


@pytest.fixture
def make_item() -> Callable[..., CleanableItem]:
    """Factory creating a CleanableItem with sensible defaults."""

    def _make(
        path: str | Path,
        category: Category = Category.CACHE,
        size: int = 1024,
        safety_score: int = 80,
        **kwargs: object,
    ) -> CleanableItem:
        return CleanableItem(
            path=str(path),
            category=category,
            size=size,
            safety_score=safety_score,
            **kwargs,  # type: ignore[arg-type]
        )

    return _make
