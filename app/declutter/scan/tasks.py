"""Scan task table.

Each requested category expands into one scan task naming the roots to
walk and the inclusion patterns to match. Patterns come in four forms:

- ``name/``: a directory with exactly this name (matched trees are
  reported as one item and not descended into)
- ``*.ext``: a file name suffix
- ``name``: an exact file or directory name
- any other glob: matched against file names with fnmatch
"""

import fnmatch
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from declutter.core.config import EngineConfig
from declutter.models.item import Category

# Opaque package directories reported as a whole, never descended into
BUNDLE_SUFFIXES: tuple[str, ...] = (".app", ".bundle", ".framework", ".pkg", ".photoslibrary")

MATCH_ALL = "*"

_DOWNLOAD_PATTERNS: tuple[str, ...] = (
    "*.dmg",
    "*.pkg",
    "*.iso",
    "*.zip",
    "*.tar.gz",
    "*.tgz",
    "*.deb",
    "*.rpm",
    "*.AppImage",
    "*.msi",
    "*.exe",
)

# Project roots searched for node_modules; Documents is left alone
_PROJECT_DIRS: tuple[str, ...] = ("Developer", "Projects", "projects", "src", "code", "workspace")


@dataclass(frozen=True, slots=True)
class ScanTask:
    """One unit of scan work.

    Attributes:
        category: Category assigned to every item the task finds.
        roots: Directories to walk; missing roots are skipped.
        patterns: Inclusion patterns.
        top_level: Only match direct children of each root, reporting
            directories as whole trees.
        excluded_dirs: Directory names pruned from the walk because
            another category owns them.
    """

    category: Category
    roots: tuple[Path, ...]
    patterns: tuple[str, ...]
    top_level: bool = False
    excluded_dirs: tuple[str, ...] = ()


def is_bundle(name: str) -> bool:
    """Whether a directory name denotes an opaque package bundle."""
    return name.lower().endswith(BUNDLE_SUFFIXES)


def matches_pattern(name: str, is_directory: bool, pattern: str) -> bool:
    """Test an entry name against one inclusion pattern.

    Directories only match ``name/`` and exact-name patterns, so a
    generic glob never swallows a whole tree. Bundles are the exception:
    they behave like files because they are never descended into.

    Args:
        name: Entry name (last path component).
        is_directory: Whether the entry is a directory.
        pattern: Inclusion pattern.

    Returns:
        True if the entry matches.
    """
    if pattern.endswith("/"):
        return is_directory and name == pattern[:-1]

    if not any(ch in pattern for ch in "*?["):
        return name == pattern

    if is_directory and not is_bundle(name):
        return False

    if pattern.startswith("*.") and not any(ch in pattern[2:] for ch in "*?["):
        return name.endswith(pattern[1:])

    return fnmatch.fnmatchcase(name, pattern)


def matches_any(name: str, is_directory: bool, patterns: Iterable[str]) -> bool:
    """Test an entry against a set of patterns."""
    return any(matches_pattern(name, is_directory, pattern) for pattern in patterns)


def build_scan_tasks(
    categories: Iterable[Category],
    config: EngineConfig,
    home: Path | None = None,
    temp_dir: Path | None = None,
) -> list[ScanTask]:
    """Expand a category set into scan tasks.

    Args:
        categories: Requested categories (duplicates in the input are ignored).
        config: Engine configuration (extra roots for OTHER).
        home: Home directory (default: current user).
        temp_dir: Temporary directory (default: tempfile.gettempdir()).

    Returns:
        One task per requested category that has at least one root.
    """
    home = home or Path.home()
    temp_dir = temp_dir or Path(tempfile.gettempdir())

    table: dict[Category, ScanTask] = {
        Category.CACHE: ScanTask(
            Category.CACHE,
            (home / "Library" / "Caches", home / ".cache"),
            (MATCH_ALL,),
            excluded_dirs=("Homebrew", "pip"),
        ),
        Category.LOGS: ScanTask(
            Category.LOGS,
            (home / "Library" / "Logs", Path("/var/log")),
            ("*.log", "*.log.*"),
        ),
        Category.TEMPORARY: ScanTask(
            Category.TEMPORARY,
            (temp_dir,),
            ("*.tmp", "*.temp", "*.part"),
        ),
        Category.NODE_MODULES: ScanTask(
            Category.NODE_MODULES,
            tuple(home / name for name in _PROJECT_DIRS),
            ("node_modules/",),
        ),
        Category.XCODE: ScanTask(
            Category.XCODE,
            (
                home / "Library" / "Developer" / "Xcode" / "DerivedData",
                home / "Library" / "Developer" / "Xcode" / "Archives",
            ),
            (MATCH_ALL,),
            top_level=True,
        ),
        Category.BREW: ScanTask(
            Category.BREW,
            (
                home / "Library" / "Caches" / "Homebrew",
                home / ".cache" / "Homebrew",
                Path("/opt/homebrew/var/cache"),
            ),
            (MATCH_ALL,),
            top_level=True,
        ),
        Category.PIP: ScanTask(
            Category.PIP,
            (home / "Library" / "Caches" / "pip", home / ".cache" / "pip"),
            (MATCH_ALL,),
            top_level=True,
        ),
        Category.TRASH: ScanTask(
            Category.TRASH,
            (home / ".Trash", home / ".local" / "share" / "Trash" / "files"),
            (MATCH_ALL,),
            top_level=True,
        ),
        Category.DOWNLOADS: ScanTask(
            Category.DOWNLOADS,
            (home / "Downloads",),
            _DOWNLOAD_PATTERNS,
        ),
        Category.DUPLICATES: ScanTask(
            Category.DUPLICATES,
            (home / "Downloads",),
            (MATCH_ALL,),
        ),
        Category.OTHER: ScanTask(
            Category.OTHER,
            tuple(Path(p).expanduser() for p in config.extra_scan_paths),
            (MATCH_ALL,),
        ),
    }

    tasks: list[ScanTask] = []
    for category in dict.fromkeys(categories):
        task = table[Category(category)]
        if task.roots:
            tasks.append(task)
    return tasks
