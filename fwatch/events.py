"""Classification of raw inotify events.

Each event becomes exactly one of ``Ignore``, ``WatchDir`` (a new directory
should be watched) or ``Trigger`` (the command should run for this file).
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from inotify_simple import flags


@dataclass(frozen=True)
class Ignore:
    """Event needs no action."""


@dataclass(frozen=True)
class WatchDir:
    """A directory was created or moved into a watched tree."""

    path: Path


@dataclass(frozen=True)
class Trigger:
    """A regular file finished being written and passed the filters."""

    path: Path


Classification = Ignore | WatchDir | Trigger

IGNORE = Ignore()


def normalize_extension(extension: str | None) -> str | None:
    """Accept ``rs`` or ``.rs``; empty strings mean no filter."""
    if extension is None:
        return None
    extension = extension[1:] if extension.startswith(".") else extension
    return extension or None


class EventFilter:
    """Apply directory detection and the extension/regex file filters.

    ``resolve`` maps ``(wd, name)`` to a path, returning ``None`` for handles
    that are no longer in the watch table.
    """

    def __init__(
        self,
        resolve: Callable[[int, str | None], Path | None],
        extension: str | None = None,
        regex: re.Pattern[str] | None = None,
    ) -> None:
        self.resolve = resolve
        self.extension = normalize_extension(extension)
        self.regex = regex

    def _event_path(self, event) -> Path | None:
        if not event.name:
            return None
        return self.resolve(event.wd, event.name)

    def matches(self, path: Path) -> bool:
        """Return whether ``path`` passes the configured filter.

        The extension is checked first and short-circuits the regex; with no
        filter at all every path matches.
        """
        if self.extension is None and self.regex is None:
            return True
        if self.extension is not None:
            suffix = path.suffix
            if suffix and suffix[1:] == self.extension:
                return True
        if self.regex is not None and self.regex.search(str(path)) is not None:
            return True
        return False

    def classify(self, event) -> Classification:
        mask = event.mask
        if mask & flags.ISDIR:
            if mask & (flags.CREATE | flags.MOVED_TO):
                path = self._event_path(event)
                if path is not None:
                    return WatchDir(path)
            return IGNORE

        if not mask & flags.CLOSE_WRITE:
            return IGNORE
        path = self._event_path(event)
        if path is None or not self.matches(path):
            return IGNORE
        return Trigger(path)
