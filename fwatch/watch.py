"""Recursive inotify watch management.

Owns the watch table mapping inotify watch descriptors to directory paths.
Registers one watch per directory under each root, extends the table when new
directories appear, reconciles entries for directories that go away, and
turns ``(wd, name)`` pairs from raw events back into absolute paths.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path

from inotify_simple import INotify, flags

from .ignore import IgnoreRules

logger = logging.getLogger(__name__)

WATCH_MASK = flags.CLOSE_WRITE | flags.MOVED_FROM | flags.MOVED_TO | flags.CREATE | flags.DELETE
READ_TIMEOUT_MS = 250


class WatchManager:
    """Watch table plus the inotify instance it was issued by.

    All mutation happens on the thread consuming events; nothing here is
    shared with the supervisor or pager threads.
    """

    def __init__(self, inotify: INotify | None = None) -> None:
        # Creating the inotify instance is the fatal setup step; OSError propagates.
        self.inotify = inotify if inotify is not None else INotify()
        self.table: dict[int, Path] = {}
        self._paths: dict[Path, int] = {}
        self._rules: list[IgnoreRules] = []
        self._refreshed: set[Path] = set()

    def initialize(self, roots: Iterable[Path], rules: Iterable[IgnoreRules] = ()) -> dict[int, Path]:
        """Walk every root and register a watch per directory, roots included.

        ``rules`` supplies one ignore predicate per root; roots without one are
        walked with the default version-control exclusion only.
        """
        self._rules = list(rules)
        for root in roots:
            root = root.resolve()
            if self._rules_for(root) is None:
                self._rules.append(IgnoreRules(root, use_gitignore=False))
            self.watch_directories(root)
        return self.table

    def _rules_for(self, path: Path) -> IgnoreRules | None:
        best: IgnoreRules | None = None
        for rules in self._rules:
            if rules.covers(path) and (best is None or len(rules.root.parts) > len(best.root.parts)):
                best = rules
        return best

    def _add_watch(self, directory: Path) -> None:
        if directory in self._paths:
            return
        try:
            wd = self.inotify.add_watch(str(directory), WATCH_MASK)
        except OSError as exc:
            logger.warning("could not watch %s: %s", directory, exc)
            return
        stale = self.table.get(wd)
        if stale is not None and stale != directory:
            self._paths.pop(stale, None)
        self.table[wd] = directory
        self._paths[directory] = wd
        logger.debug("watching %s (wd=%d)", directory, wd)

    def watch_directories(self, path: Path) -> None:
        """Register ``path`` and every non-ignored directory below it."""
        rules = self._rules_for(path)

        def on_walk_error(exc: OSError) -> None:
            logger.warning("could not walk %s: %s", exc.filename or path, exc)

        if rules is not None and path != rules.root and rules.is_ignored(path):
            return
        for current, dirnames, _filenames in os.walk(path, onerror=on_walk_error):
            current_path = Path(current)
            self._add_watch(current_path)
            if rules is not None:
                dirnames[:] = [name for name in dirnames if not rules.is_ignored(current_path / name)]

    def begin_batch(self) -> None:
        """Allow each root's gitignore snapshot to be re-read once more."""
        self._refreshed.clear()

    def extend(self, path: Path) -> None:
        """Start watching a directory that appeared after the initial walk.

        Directories already registered by a parent's walk are skipped, and the
        gitignore snapshot for a root is re-read at most once per batch.
        """
        if path in self._paths:
            return
        rules = self._rules_for(path)
        if rules is not None and rules.root not in self._refreshed:
            rules.refresh()
            self._refreshed.add(rules.root)
        self.watch_directories(path)

    def resolve(self, wd: int, name: str | None) -> Path | None:
        """Join the directory for ``wd`` with ``name``; ``None`` for unknown handles."""
        directory = self.table.get(wd)
        if directory is None:
            return None
        if not name:
            return directory
        return directory / name

    def forget(self, wd: int) -> None:
        """Drop the table entry for a watch the kernel has already removed."""
        directory = self.table.pop(wd, None)
        if directory is not None and self._paths.get(directory) == wd:
            del self._paths[directory]

    def retire(self, path: Path) -> None:
        """Remove watches for ``path`` and everything below it."""
        doomed = [wd for wd, directory in self.table.items() if directory == path or path in directory.parents]
        for wd in doomed:
            self.forget(wd)
            try:
                self.inotify.rm_watch(wd)
            except OSError:
                # The kernel drops watches on deleted directories by itself.
                pass

    def reconcile(self, event) -> None:
        """Keep the table in step with directory removals and kernel drops."""
        if event.mask & flags.Q_OVERFLOW:
            logger.warning("inotify event queue overflowed; some changes were missed")
            return
        if event.mask & flags.IGNORED:
            self.forget(event.wd)
            return
        if event.mask & flags.ISDIR and event.mask & (flags.MOVED_FROM | flags.DELETE):
            path = self.resolve(event.wd, event.name)
            if path is not None:
                self.retire(path)

    def read_events(self, stop: threading.Event | None = None, timeout_ms: int = READ_TIMEOUT_MS) -> Iterator:
        """Yield raw events until ``stop`` is set.

        With no stop flag the iterator blocks forever between batches.
        """
        while stop is None or not stop.is_set():
            batch = self.inotify.read(timeout=None if stop is None else timeout_ms)
            self.begin_batch()
            yield from batch

    def close(self) -> None:
        self.inotify.close()
