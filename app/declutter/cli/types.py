"""Shared helpers for CLI commands.

This module builds the configuration, index and engine instances the
commands use, so every command wires the pipeline the same way.
"""

from pathlib import Path

import typer

from declutter.core.config import ConfigError, EngineConfig, load_config_or_default
from declutter.core.state import StateManager
from declutter.engine import DeclutterEngine
from declutter.index.indexer import IncrementalIndexer
from declutter.models.item import Category
from declutter.utils.formatting import print_error


def get_cli_config(ctx: typer.Context) -> EngineConfig:
    """Load the engine configuration selected by the global --config option.

    Args:
        ctx: Typer context carrying the global options.

    Returns:
        Loaded configuration, or defaults when no file exists.

    Raises:
        typer.Exit: If the config file is invalid.
    """
    obj = ctx.obj or {}
    config_path: Path | None = obj.get("config_path")
    try:
        return load_config_or_default(config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def build_indexer(config: EngineConfig) -> IncrementalIndexer:
    """Create the incremental index with the configured sizing."""
    return IncrementalIndexer(
        expected_elements=config.index_expected_elements,
        false_positive_rate=config.index_false_positive_rate,
        fallback_sample=config.index_fallback_sample,
    )


def build_engine(config: EngineConfig) -> DeclutterEngine:
    """Create a pipeline engine wired to the default index and history."""
    return DeclutterEngine(
        config,
        indexer=build_indexer(config),
        state_manager=StateManager(),
    )


def resolve_categories(categories: list[Category] | None) -> list[Category] | None:
    """Normalize a repeated --category option; None selects the defaults."""
    if not categories:
        return None
    return list(dict.fromkeys(categories))
