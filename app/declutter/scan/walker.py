"""Scan task execution.

Walks the roots of one scan task, matches entries against its patterns
and turns every match into a scored ``CleanableItem``. Hidden entries
below a root are skipped and package bundles are never descended into.
Unreadable directories and entries are skipped, never fatal.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from declutter.core.concurrency import CancellationToken
from declutter.fs.accessor import FileSystemAccessor, tree_size
from declutter.fs.models import DirEntry, FileMetadata
from declutter.models.item import CleanableItem
from declutter.scan.scoring import baseline_safety_score
from declutter.scan.tasks import ScanTask, is_bundle, matches_any

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScanMatch:
    """A matched path together with what the walker learned about it.

    Attributes:
        item: The scored item.
        metadata: Fresh metadata of the path.
        content_size: Recursive size for directory items, else None.
    """

    item: CleanableItem
    metadata: FileMetadata
    content_size: int | None = None


class TaskWalker:
    """Executes scan tasks against a filesystem accessor.

    Attributes:
        _accessor: Filesystem accessor.
        _now: Reference time for baseline scoring.
        _home: Home directory for baseline scoring.
    """

    def __init__(
        self,
        accessor: FileSystemAccessor,
        now: datetime,
        home: Path | None = None,
    ) -> None:
        self._accessor = accessor
        self._now = now
        self._home = home

    def run(self, task: ScanTask, token: CancellationToken) -> list[ScanMatch]:
        """Execute one task.

        Args:
            task: Task to run.
            token: Cancellation token, polled once per directory.

        Returns:
            Matches found under all existing roots of the task.

        Raises:
            OperationCancelledError: If the token is cancelled.
        """
        matches: list[ScanMatch] = []
        for root in task.roots:
            token.raise_if_cancelled("scan")
            root_str = str(root)
            if not self._accessor.exists(root_str):
                logger.debug("Scan root does not exist, skipping: %s", root_str)
                continue
            self._walk_root(task, root_str, token, matches)

        logger.debug("Task '%s' matched %d items", task.category.value, len(matches))
        return matches

    def _walk_root(
        self,
        task: ScanTask,
        root: str,
        token: CancellationToken,
        matches: list[ScanMatch],
    ) -> None:
        stack = [root]
        while stack:
            token.raise_if_cancelled("scan")
            current = stack.pop()
            try:
                children = self._accessor.list_directory(current)
            except OSError as e:
                logger.debug("Cannot list %s: %s", current, e)
                continue

            for child in children:
                if child.is_hidden:
                    continue

                if task.top_level:
                    # Every direct child is a whole item, directories included
                    if matches_any(child.name, False, task.patterns):
                        self._add_match(task, child, matches)
                    continue

                if child.is_directory:
                    if child.name in task.excluded_dirs:
                        continue
                    if matches_any(child.name, True, task.patterns):
                        self._add_match(task, child, matches)
                    elif not is_bundle(child.name):
                        stack.append(child.path)
                    continue

                if matches_any(child.name, False, task.patterns):
                    self._add_match(task, child, matches)

    def _add_match(self, task: ScanTask, entry: DirEntry, matches: list[ScanMatch]) -> None:
        try:
            metadata = self._accessor.stat(entry.path)
        except OSError as e:
            logger.debug("Cannot stat %s: %s", entry.path, e)
            return

        content_size: int | None = None
        if metadata.is_directory:
            content_size = tree_size(self._accessor, entry.path)
            size = content_size
        else:
            size = metadata.size

        item = CleanableItem(
            path=entry.path,
            category=task.category,
            size=size,
            safety_score=baseline_safety_score(
                task.category,
                entry.path,
                metadata.modified_at,
                self._now,
                self._home,
            ),
            last_modified=metadata.modified_at,
            last_accessed=metadata.accessed_at,
        )
        matches.append(ScanMatch(item=item, metadata=metadata, content_size=content_size))

