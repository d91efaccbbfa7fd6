"""Filesystem access layer.

This module provides the accessor protocol every pipeline component
goes through, its local implementation, and the metadata records it
returns.
"""

from declutter.fs.accessor import FileSystemAccessor, LocalFileSystem, tree_size
from declutter.fs.models import DirEntry, FileMetadata

__all__ = [
    "DirEntry",
    "FileMetadata",
    "FileSystemAccessor",
    "LocalFileSystem",
    "tree_size",
]
