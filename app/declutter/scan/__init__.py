"""Scan orchestration.

This module provides the scan task table, the task walker, name-based
duplicate detection and the orchestrator that runs them together with
the enrichment phases.
"""

from declutter.scan.duplicates import find_duplicates
from declutter.scan.orchestrator import ScanOrchestrator
from declutter.scan.scoring import baseline_safety_score
from declutter.scan.tasks import ScanTask, build_scan_tasks, matches_pattern

__all__ = [
    "ScanOrchestrator",
    "ScanTask",
    "baseline_safety_score",
    "build_scan_tasks",
    "find_duplicates",
    "matches_pattern",
]
