"""Deletion engine.

This module provides the engine that deletes approved items with
bounded concurrency, per-item verification and optional backups.
"""

from declutter.clean.engine import DeletionEngine, DeletionOutcome

__all__ = ["DeletionEngine", "DeletionOutcome"]
