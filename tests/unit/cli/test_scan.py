"""Unit tests for scan command.

Tests for the CLI scan command implementation.
"""

import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from declutter.cli.main import app
from declutter.core.concurrency import PhaseStatus
from declutter.core.errors import OperationInProgressError
from declutter.models.item import Category, CleanableItem, DuplicateGroup
from declutter.models.results import PhaseReport, ScanResults
from typer.testing import CliRunner

runner = CliRunner()


@pytest.fixture
def sample_results(make_item: Callable[..., CleanableItem]) -> ScanResults:
    """Scan results with three items of different sizes."""
    return ScanResults(
        items=[
            make_item("/h/.cache/small.bin", Category.CACHE, size=100, safety_score=80),
            make_item("/h/.cache/big.bin", Category.CACHE, size=5000, safety_score=90),
            make_item("/h/Library/Logs/app.log", Category.LOGS, size=700, safety_score=60),
        ]
    )


@pytest.fixture
def mock_engine(sample_results: ScanResults) -> MagicMock:
    """Engine whose scan returns the sample results."""
    engine = MagicMock()
    engine.scan.return_value = sample_results
    return engine


class TestScanCommand:
    """Tests for declutter scan command."""

    def test_scan_help(self) -> None:
        """Scan command shows help."""
        result = runner.invoke(app, ["scan", "--help"])
        assert result.exit_code == 0
        assert "--category" in result.stdout
        assert "--format" in result.stdout

    def test_scan_table(self, mock_engine: MagicMock) -> None:
        """Scan prints a table and a summary."""
        with patch("declutter.cli.commands.scan.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["scan"])

        assert result.exit_code == 0
        assert "Cleanable Items" in result.stdout
        assert "Found 3 items" in result.stdout
        mock_engine.scan.assert_called_once_with(None)

    def test_scan_categories_forwarded(self, mock_engine: MagicMock) -> None:
        """Repeated --category options are deduplicated and forwarded."""
        with patch("declutter.cli.commands.scan.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["scan", "-c", "cache", "-c", "logs", "-c", "cache"])

        assert result.exit_code == 0
        mock_engine.scan.assert_called_once_with([Category.CACHE, Category.LOGS])

    def test_scan_invalid_category(self) -> None:
        """Unknown categories are rejected by the option parser."""
        result = runner.invoke(app, ["scan", "-c", "bogus"])
        assert result.exit_code != 0

    def test_scan_json_largest_first(self, mock_engine: MagicMock) -> None:
        """JSON output lists items largest first and honours --limit."""
        with patch("declutter.cli.commands.scan.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["scan", "--format", "json", "--limit", "2"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [entry["size"] for entry in data] == [5000, 700]
        assert data[0]["category"] == "cache"
        assert data[0]["safety_score"] == 90

    def test_scan_empty(self) -> None:
        """An empty scan prints a friendly message."""
        engine = MagicMock()
        engine.scan.return_value = ScanResults()

        with patch("declutter.cli.commands.scan.build_engine", return_value=engine):
            result = runner.invoke(app, ["scan"])

        assert result.exit_code == 0
        assert "Nothing to clean" in result.stdout

    def test_scan_error_exits_nonzero(self) -> None:
        """Engine errors are printed and exit with code 1."""
        engine = MagicMock()
        engine.scan.side_effect = OperationInProgressError("scan")

        with patch("declutter.cli.commands.scan.build_engine", return_value=engine):
            result = runner.invoke(app, ["scan"])

        assert result.exit_code == 1
        assert "already in progress" in result.stderr

    def test_scan_phase_errors_reported(self, mock_engine: MagicMock, sample_results: ScanResults) -> None:
        """Degraded phases are reported as warnings."""
        sample_results.phases.append(PhaseReport("explanations", PhaseStatus.TIMEOUT, error="timed out"))

        with patch("declutter.cli.commands.scan.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["scan"])

        assert result.exit_code == 0
        assert "explanations" in result.stderr

    def test_scan_reports_duplicates(
        self, mock_engine: MagicMock, sample_results: ScanResults, make_item: Callable[..., CleanableItem]
    ) -> None:
        """Duplicate groups are summarised after the table."""
        a = make_item("/d/a/x.zip", Category.DUPLICATES, size=10)
        b = make_item("/d/b/x.zip", Category.DUPLICATES, size=10)
        sample_results.duplicates.append(DuplicateGroup(key="x.zip:10", items=(a, b)))

        with patch("declutter.cli.commands.scan.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["scan"])

        assert result.exit_code == 0
        assert "1 duplicate groups" in result.stdout

    def test_scan_export(self, mock_engine: MagicMock, tmp_path: Path) -> None:
        """--export writes the full results to a JSON file."""
        export = tmp_path / "out" / "scan.json"

        with patch("declutter.cli.commands.scan.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["scan", "--export", str(export)])

        assert result.exit_code == 0
        data = json.loads(export.read_text())
        assert data["total_size"] == 5800
        assert len(data["items"]) == 3
        assert data["duplicates"] == []

    def test_scan_export_to_directory_fails(self, mock_engine: MagicMock, tmp_path: Path) -> None:
        """Exporting onto a directory is an error."""
        with patch("declutter.cli.commands.scan.build_engine", return_value=mock_engine):
            result = runner.invoke(app, ["scan", "--export", str(tmp_path)])

        assert result.exit_code == 1
        assert "directory" in result.stderr
