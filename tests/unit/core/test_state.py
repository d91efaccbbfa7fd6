"""Unit tests for StateManager.

Tests for the StateManager class that handles clean history persistence.
"""

import logging
from pathlib import Path

import pytest
from declutter.core.state import StateManager
from declutter.models.history import HistoryEntry


def _entry(entry_id: str, freed: int = 100, dry_run: bool = False) -> HistoryEntry:
    return HistoryEntry(
        id=entry_id,
        timestamp="2026-06-01T12:00:00+00:00",
        freed_bytes=freed,
        deleted=(f"/tmp/{entry_id}",),
        categories=("cache",),
        dry_run=dry_run,
    )


class TestStateManagerInit:
    """Tests for StateManager initialization."""

    def test_default_state_dir_uses_xdg(self, tmp_path: Path) -> None:
        """StateManager defaults to the XDG state directory."""
        manager = StateManager()
        assert manager.history_path == tmp_path / "xdg-state" / "declutter" / "history.jsonl"

    def test_history_path_property(self, tmp_path: Path) -> None:
        """history_path returns correct path."""
        manager = StateManager(state_dir=tmp_path)
        assert manager.history_path == tmp_path / "history.jsonl"


class TestRecordClean:
    """Tests for StateManager.record_clean method."""

    @pytest.fixture
    def manager(self, tmp_path: Path) -> StateManager:
        """Create a StateManager with temporary directory."""
        return StateManager(state_dir=tmp_path / "state")

    def test_record_creates_file(self, manager: StateManager) -> None:
        """record_clean creates directory and history file."""
        manager.record_clean(_entry("aaa111"))

        assert manager.history_path.exists()
        assert len(manager.history_path.read_text().splitlines()) == 1

    def test_record_appends(self, manager: StateManager) -> None:
        """Subsequent records append lines."""
        manager.record_clean(_entry("aaa111"))
        manager.record_clean(_entry("bbb222"))

        assert len(manager.history_path.read_text().splitlines()) == 2


class TestGetHistory:
    """Tests for StateManager.get_history method."""

    def test_missing_file_returns_empty(self, tmp_path: Path) -> None:
        """No history file means no entries."""
        assert StateManager(state_dir=tmp_path).get_history() == []

    def test_newest_first_with_limit(self, tmp_path: Path) -> None:
        """Entries are returned newest first and limited."""
        manager = StateManager(state_dir=tmp_path)
        for entry_id in ("first1", "second", "third3"):
            manager.record_clean(_entry(entry_id))

        entries = manager.get_history(limit=2)

        assert [e.id for e in entries] == ["third3", "second"]

    def test_skips_corrupt_lines(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Corrupt lines are skipped with a warning."""
        manager = StateManager(state_dir=tmp_path)
        manager.record_clean(_entry("good01"))
        with manager.history_path.open("a") as f:
            f.write("not json\n\n")

        with caplog.at_level(logging.WARNING):
            entries = manager.get_history()

        assert [e.id for e in entries] == ["good01"]
        assert "corrupt history line 2" in caplog.text


class TestTotalFreed:
    """Tests for StateManager.total_freed."""

    def test_ignores_dry_runs(self, tmp_path: Path) -> None:
        """Dry-run entries do not count towards the freed total."""
        manager = StateManager(state_dir=tmp_path)
        manager.record_clean(_entry("real01", freed=500))
        manager.record_clean(_entry("dry001", freed=900, dry_run=True))

        assert manager.total_freed() == 500
