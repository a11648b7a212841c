"""Ignore rules applied while walking watched trees.

Combines a fixed set of excluded directory names (version-control metadata by
default) with an optional gitignore snapshot obtained by querying git. The walk
asks ``IgnoreRules.is_ignored`` once per directory entry.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_NAMES: tuple[str, ...] = (".git",)


def _is_within(path: Path, root: Path) -> bool:
    """Return whether ``path`` is at or under ``root``."""
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


@dataclass(frozen=True)
class GitIgnoreMatcher:
    """Ignored paths under ``root`` as reported by git at load time.

    ``ignored_dirs`` holds resolved directory paths so a parent hit rejects a
    whole subtree.
    """

    root: Path
    ignored_files: frozenset[Path]
    ignored_dirs: frozenset[Path]

    def is_ignored(self, path: Path) -> bool:
        resolved = path.resolve()
        if not _is_within(resolved, self.root):
            return False
        if resolved in self.ignored_files:
            return True
        current = resolved
        while True:
            if current in self.ignored_dirs:
                return True
            if current == self.root:
                break
            parent = current.parent
            if parent == current:
                break
            current = parent
        return False


def load_gitignore_matcher(root: Path) -> GitIgnoreMatcher | None:
    """Build a matcher for ``root`` from ``git ls-files``.

    Returns ``None`` when git is missing, ``root`` is not inside a work tree, or
    either git call fails.
    """
    if shutil.which("git") is None:
        return None

    root = root.resolve()
    try:
        top_proc = subprocess.run(
            ["git", "-C", str(root), "rev-parse", "--show-toplevel"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None

    top_level = top_proc.stdout.strip()
    if not top_level:
        return None
    repo_root = Path(top_level).resolve()
    if not _is_within(root, repo_root):
        return None

    try:
        proc = subprocess.run(
            [
                "git",
                "-C",
                str(repo_root),
                "ls-files",
                "-z",
                "--others",
                "-i",
                "--exclude-standard",
                "--directory",
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None

    ignored_files: set[Path] = set()
    ignored_dirs: set[Path] = set()
    for raw in proc.stdout.split(b"\x00"):
        if not raw:
            continue
        rel = raw.decode("utf-8", errors="surrogateescape")
        is_dir = rel.endswith("/")
        rel = rel.rstrip("/")
        if not rel:
            continue
        abs_path = (repo_root / rel).resolve()
        if not _is_within(abs_path, root):
            continue
        if is_dir or abs_path.is_dir():
            ignored_dirs.add(abs_path)
        else:
            ignored_files.add(abs_path)

    return GitIgnoreMatcher(
        root=root,
        ignored_files=frozenset(ignored_files),
        ignored_dirs=frozenset(ignored_dirs),
    )


class IgnoreRules:
    """Per-root skip predicate used by the directory walk."""

    def __init__(
        self,
        root: Path,
        excluded_names: tuple[str, ...] = DEFAULT_EXCLUDED_NAMES,
        use_gitignore: bool = True,
    ) -> None:
        self.root = root.resolve()
        self.excluded_names = frozenset(excluded_names)
        self.use_gitignore = use_gitignore
        self._matcher: GitIgnoreMatcher | None = None
        self.refresh()

    def refresh(self) -> None:
        """Reload the gitignore snapshot, if gitignore support is on."""
        if not self.use_gitignore:
            return
        self._matcher = load_gitignore_matcher(self.root)
        if self._matcher is None:
            logger.debug("no gitignore rules for %s", self.root)

    def covers(self, path: Path) -> bool:
        """Return whether ``path`` lies inside this rule set's root."""
        return _is_within(path, self.root)

    def is_ignored(self, path: Path) -> bool:
        if path.name in self.excluded_names:
            return True
        if self._matcher is not None and self._matcher.is_ignored(path):
            return True
        return False
