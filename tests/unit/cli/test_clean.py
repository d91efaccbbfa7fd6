"""Unit tests for clean command.

Tests item selection, confirmation and result reporting of the CLI
clean command with a mocked engine.
"""

from collections.abc import Callable
from unittest.mock import MagicMock, patch

import pytest
from declutter.cli.main import app
from declutter.core.errors import BackupFailedError, OperationTimeoutError
from declutter.models.item import Category, CleanableItem
from declutter.models.results import CleanResult, FailedItem, ScanResults
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture
def items(make_item: Callable[..., CleanableItem]) -> dict[str, CleanableItem]:
    """Items covering every selection rule."""
    return {
        "safe": make_item("/h/.cache/safe.bin", Category.CACHE, size=2048, safety_score=90),
        "borderline": make_item("/h/.cache/border.bin", Category.CACHE, size=100, safety_score=70),
        "warned": make_item(
            "/h/.cache/id_rsa", Category.CACHE, size=10, safety_score=95, warning="Sensitive file name (id_*)"
        ),
        "system": make_item("/usr/share/cache.db", Category.CACHE, size=10, safety_score=95),
    }


@pytest.fixture
def mock_engine(items: dict[str, CleanableItem]) -> MagicMock:
    """Engine that scans the sample items and deletes whatever it is given."""
    engine = MagicMock()
    engine.scan.return_value = ScanResults(items=list(items.values()))
    engine.clean.side_effect = lambda selected: CleanResult(
        deleted_items=tuple(selected), freed_space=sum(i.size for i in selected)
    )
    return engine


def _cleaned(engine: MagicMock) -> list[str]:
    (selected,) = engine.clean.call_args.args
    return [item.path for item in selected]


class TestCleanCommand:
    """Tests for declutter clean command."""

    def test_clean_help(self) -> None:
        """Clean command shows help."""
        result = runner.invoke(app, ["clean", "--help"])
        assert result.exit_code == 0
        assert "--dry-run" in result.stdout
        assert "--min-safety" in result.stdout

    def test_clean_selects_only_safe_items(
        self, mock_engine: MagicMock, items: dict[str, CleanableItem]
    ) -> None:
        """Only items above the threshold without warnings are deleted."""
        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["clean", "--yes"])

        assert result.exit_code == 0
        assert _cleaned(mock_engine) == [items["safe"].path]
        assert "Deleted 1 item(s), freed 2.0 KB." in result.stdout

    def test_clean_min_safety(self, mock_engine: MagicMock, items: dict[str, CleanableItem]) -> None:
        """--min-safety lowers the bar but still skips warned and system items."""
        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["clean", "--yes", "--min-safety", "50"])

        assert result.exit_code == 0
        assert _cleaned(mock_engine) == [items["safe"].path, items["borderline"].path]

    def test_clean_dry_run_sets_config(self, mock_engine: MagicMock) -> None:
        """--dry-run builds a dry-run engine and skips the prompt."""
        mock_engine.clean.side_effect = lambda selected: CleanResult(
            deleted_items=tuple(selected), freed_space=sum(i.size for i in selected), dry_run=True
        )

        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine) as build:
            result = runner.invoke(app, ["clean", "--dry-run"])

        assert result.exit_code == 0
        assert build.call_args.args[0].dry_run is True
        assert "would be deleted" in result.stdout

    def test_clean_prompt_declined(self, mock_engine: MagicMock) -> None:
        """Declining the prompt deletes nothing."""
        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["clean"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted." in result.stdout
        mock_engine.clean.assert_not_called()

    def test_clean_prompt_accepted(self, mock_engine: MagicMock) -> None:
        """Accepting the prompt runs the clean."""
        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["clean"], input="y\n")

        assert result.exit_code == 0
        mock_engine.clean.assert_called_once()

    def test_clean_nothing_selected(self) -> None:
        """No eligible items prints a message and never cleans."""
        engine = MagicMock()
        engine.scan.return_value = ScanResults()

        with patch("declutter.cli.commands.clean.build_engine", return_value=engine):
            result = runner.invoke(app, ["clean", "--yes"])

        assert result.exit_code == 0
        assert "Nothing to clean" in result.stdout
        engine.clean.assert_not_called()

    def test_clean_failures_exit_nonzero(self, mock_engine: MagicMock, items: dict[str, CleanableItem]) -> None:
        """Per-item failures are listed and exit with code 1."""
        mock_engine.clean.side_effect = None
        mock_engine.clean.return_value = CleanResult(
            failed_items=(FailedItem(item=items["safe"], reason="Permission denied: nope"),)
        )

        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["clean", "--yes"])

        assert result.exit_code == 1
        assert "Failed Deletions" in result.stdout
        assert "1 failed" in result.stderr

    def test_clean_backup_failure(self, mock_engine: MagicMock) -> None:
        """A failed backup aborts with an error."""
        mock_engine.clean.side_effect = BackupFailedError("disk full")

        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["clean", "--yes"])

        assert result.exit_code == 1
        assert "Backup failed" in result.stderr

    def test_clean_timeout_reports_partial_result(
        self, mock_engine: MagicMock, items: dict[str, CleanableItem]
    ) -> None:
        """A timed-out clean still reports what was deleted."""
        partial = CleanResult(deleted_items=(items["safe"],), freed_space=2048)
        mock_engine.clean.side_effect = OperationTimeoutError("clean", 300, partial_result=partial)

        with patch("declutter.cli.commands.clean.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["clean", "--yes"])

        assert result.exit_code == 1
        assert "Deleted 1 item(s)" in result.stdout
        assert "timed out" in result.stderr
