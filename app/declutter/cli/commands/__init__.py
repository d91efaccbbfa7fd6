"""CLI commands for declutter.

This package contains all subcommand implementations.
"""

from declutter.cli.commands import clean, history, index, recommend, scan

__all__ = ["clean", "history", "index", "recommend", "scan"]
