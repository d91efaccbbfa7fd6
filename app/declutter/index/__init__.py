"""Incremental file index.

This module provides the persisted path index with its bloom filter,
used to avoid re-walking unchanged trees between scans.
"""

from declutter.index.bloom import BloomFilter
from declutter.index.indexer import IncrementalIndexer
from declutter.index.models import (
    ChangeFlag,
    IncrementalUpdateResult,
    IndexEntry,
    IndexState,
    IndexStatistics,
)
from declutter.index.store import IndexStore

__all__ = [
    "BloomFilter",
    "ChangeFlag",
    "IncrementalIndexer",
    "IncrementalUpdateResult",
    "IndexEntry",
    "IndexState",
    "IndexStatistics",
    "IndexStore",
]
