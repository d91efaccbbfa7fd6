"""Unit tests for history command.

Tests for the CLI history command implementation.
"""

import json
from unittest.mock import patch

import pytest
from declutter.cli.main import app
from declutter.core.state import StateManager
from declutter.models.history import HistoryEntry
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture
def sample_history_entries() -> list[HistoryEntry]:
    """Create sample history entries for testing."""
    return [
        HistoryEntry(
            id="abc123456789",
            timestamp="2026-01-26T14:30:00+00:00",
            freed_bytes=3 * 1024 * 1024,
            deleted=("/h/.cache/a", "/h/.cache/b"),
            categories=("cache",),
        ),
        HistoryEntry(
            id="def678901234",
            timestamp="2026-01-25T10:00:00+00:00",
            freed_bytes=0,
            deleted=(),
            failed={"/h/Library/Logs/x.log": "Permission denied: x"},
            categories=("logs",),
        ),
    ]


class TestHistoryCommand:
    """Tests for declutter history command."""

    def test_history_help(self) -> None:
        """History command shows help."""
        result = runner.invoke(app, ["history", "--help"])
        assert result.exit_code == 0
        assert "--limit" in result.stdout
        assert "--json" in result.stdout

    def test_history_empty(self) -> None:
        """History shows message when no entries exist."""
        with patch("declutter.cli.commands.history.StateManager") as mock_state:
            mock_state.return_value.get_history.return_value = []

            result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "No history entries found." in result.stdout

    def test_history_table(self, sample_history_entries: list[HistoryEntry]) -> None:
        """History shows entries in a table."""
        with patch("declutter.cli.commands.history.StateManager") as mock_state:
            mock_state.return_value.get_history.return_value = sample_history_entries
            mock_state.return_value.total_freed.return_value = 3 * 1024 * 1024

            result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "Clean History" in result.stdout
        assert "Total freed across all runs: 3.0 MB" in result.stdout
        assert "abc123456789" in result.stdout
        assert "3.0 MB" in result.stdout
        assert "2026-01-26 14:30:00" in result.stdout

    def test_history_limit_forwarded(self, sample_history_entries: list[HistoryEntry]) -> None:
        """--limit is passed to the state manager."""
        with patch("declutter.cli.commands.history.StateManager") as mock_state:
            mock_state.return_value.get_history.return_value = sample_history_entries[:1]

            result = runner.invoke(app, ["history", "-n", "1"])

        assert result.exit_code == 0
        mock_state.return_value.get_history.assert_called_once_with(limit=1)

    def test_history_json(self, sample_history_entries: list[HistoryEntry]) -> None:
        """--json prints entries as a JSON array."""
        with patch("declutter.cli.commands.history.StateManager") as mock_state:
            mock_state.return_value.get_history.return_value = sample_history_entries

            result = runner.invoke(app, ["history", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [entry["id"] for entry in data] == ["abc123456789", "def678901234"]
        assert data[1]["failed"] == {"/h/Library/Logs/x.log": "Permission denied: x"}

    def test_history_reads_state_dir(self, sample_history_entries: list[HistoryEntry]) -> None:
        """Entries recorded in the default state directory are shown."""
        state = StateManager()
        for entry in reversed(sample_history_entries):
            state.record_clean(entry)

        result = runner.invoke(app, ["history", "--json"])

        assert result.exit_code == 0
        assert [entry["id"] for entry in json.loads(result.stdout)] == ["abc123456789", "def678901234"]
