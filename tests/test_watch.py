"""Tests for the watch table: initial walk, live extension, and reconciliation.

Uses an in-memory inotify stand-in so table bookkeeping can be checked
without depending on kernel event timing.
"""

from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from inotify_simple import Event, flags

from fwatch.ignore import IgnoreRules
from fwatch.watch import WATCH_MASK, WatchManager


class FakeINotify:
    def __init__(self, fail_paths: set[str] | None = None) -> None:
        self.fail_paths = fail_paths or set()
        self.watches: dict[str, int] = {}
        self.masks: dict[str, int] = {}
        self.removed: list[int] = []
        self.add_calls: list[str] = []
        self._next_wd = 1
        self.closed = False

    def add_watch(self, path: str, mask: int) -> int:
        self.add_calls.append(path)
        if path in self.fail_paths:
            raise PermissionError(13, "Permission denied", path)
        if path not in self.watches:
            self.watches[path] = self._next_wd
            self._next_wd += 1
        self.masks[path] = mask
        return self.watches[path]

    def rm_watch(self, wd: int) -> None:
        self.removed.append(wd)

    def read(self, timeout=None, read_delay=None):
        return []

    def close(self) -> None:
        self.closed = True


def _make_tree(root: Path) -> None:
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / ".git" / "objects").mkdir(parents=True)
    (root / ".hidden").mkdir()
    (root / "src" / "main.py").write_text("print()\n", encoding="utf-8")


class InitialWalkTests(unittest.TestCase):
    def test_registers_every_directory_including_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _make_tree(root)
            fake = FakeINotify()
            manager = WatchManager(inotify=fake)

            table = manager.initialize([root], [IgnoreRules(root, use_gitignore=False)])

            self.assertEqual(
                set(table.values()),
                {root, root / "src", root / "src" / "pkg", root / "docs", root / ".hidden"},
            )
            self.assertTrue(all(mask == WATCH_MASK for mask in fake.masks.values()))

    def test_version_control_directories_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _make_tree(root)
            manager = WatchManager(inotify=FakeINotify())

            table = manager.initialize([root])

            self.assertNotIn(root / ".git", table.values())
            self.assertNotIn(root / ".git" / "objects", table.values())

    def test_extra_excluded_names_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _make_tree(root)
            rules = IgnoreRules(root, excluded_names=(".git", "docs"), use_gitignore=False)
            manager = WatchManager(inotify=FakeINotify())

            table = manager.initialize([root], [rules])

            self.assertNotIn(root / "docs", table.values())
            self.assertIn(root / "src", table.values())

    def test_failed_registration_does_not_abort_the_walk(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _make_tree(root)
            fake = FakeINotify(fail_paths={str(root / "src")})
            manager = WatchManager(inotify=fake)

            with self.assertLogs("fwatch.watch", level="WARNING") as logs:
                table = manager.initialize([root])

            self.assertNotIn(root / "src", table.values())
            self.assertIn(root / "src" / "pkg", table.values())
            self.assertIn(root / "docs", table.values())
            self.assertTrue(any("could not watch" in line for line in logs.output))

    def test_multiple_roots_share_one_table(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_a, tempfile.TemporaryDirectory() as tmp_b:
            root_a = Path(tmp_a).resolve()
            root_b = Path(tmp_b).resolve()
            (root_b / "nested").mkdir()
            manager = WatchManager(inotify=FakeINotify())

            table = manager.initialize([root_a, root_b])

            self.assertEqual(set(table.values()), {root_a, root_b, root_b / "nested"})


class ResolveTests(unittest.TestCase):
    def test_resolve_joins_directory_and_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            manager = WatchManager(inotify=FakeINotify())
            manager.initialize([root])
            wd = next(iter(manager.table))

            self.assertEqual(manager.resolve(wd, "a.txt"), root / "a.txt")
            self.assertEqual(manager.resolve(wd, None), root)

    def test_unknown_handle_resolves_to_none(self) -> None:
        manager = WatchManager(inotify=FakeINotify())

        self.assertIsNone(manager.resolve(42, "a.txt"))


class ExtendTests(unittest.TestCase):
    def test_extend_registers_new_subtree(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            manager = WatchManager(inotify=FakeINotify())
            manager.initialize([root])
            (root / "new" / "deeper").mkdir(parents=True)

            manager.extend(root / "new")

            self.assertIn(root / "new", manager.table.values())
            self.assertIn(root / "new" / "deeper", manager.table.values())

    def test_same_directory_is_not_registered_twice(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "sub").mkdir()
            fake = FakeINotify()
            manager = WatchManager(inotify=fake)
            manager.initialize([root])

            manager.extend(root / "sub")
            manager.extend(root / "sub")

            self.assertEqual(fake.add_calls.count(str(root / "sub")), 1)
            self.assertEqual(len(manager.table), 2)

    def test_extend_skips_ignored_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            manager = WatchManager(inotify=FakeINotify())
            manager.initialize([root])
            (root / ".git").mkdir()

            manager.extend(root / ".git")

            self.assertNotIn(root / ".git", manager.table.values())


class GitignoreRefreshTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name).resolve()
        patcher = mock.patch("fwatch.ignore.load_gitignore_matcher", return_value=None)
        self.loader = patcher.start()
        self.addCleanup(patcher.stop)
        self.manager = WatchManager(inotify=FakeINotify())
        self.manager.initialize([self.root], [IgnoreRules(self.root)])
        self.loader.reset_mock()

    def test_rules_are_reread_once_per_batch(self) -> None:
        for name in ("a", "b", "c"):
            (self.root / name).mkdir()

        self.manager.extend(self.root / "a")
        self.manager.extend(self.root / "b")
        self.assertEqual(self.loader.call_count, 1)

        self.manager.begin_batch()
        self.manager.extend(self.root / "c")

        self.assertEqual(self.loader.call_count, 2)
        self.assertTrue({self.root / "a", self.root / "b", self.root / "c"} <= set(self.manager.table.values()))

    def test_directories_found_by_parent_walk_cost_nothing(self) -> None:
        (self.root / "a" / "b" / "c").mkdir(parents=True)
        self.manager.extend(self.root / "a")
        self.manager.begin_batch()

        self.manager.extend(self.root / "a" / "b")
        self.manager.extend(self.root / "a" / "b" / "c")

        self.assertEqual(self.loader.call_count, 1)
        self.assertIn(self.root / "a" / "b" / "c", self.manager.table.values())

    def test_each_read_starts_a_new_batch(self) -> None:
        stop = threading.Event()
        event = Event(wd=1, mask=flags.CLOSE_WRITE, cookie=0, name="x.txt")

        def read_once(timeout=None, read_delay=None):
            stop.set()
            return [event]

        self.manager.inotify.read = read_once
        with mock.patch.object(self.manager, "begin_batch") as begin_batch:
            events = list(self.manager.read_events(stop))

        self.assertEqual(events, [event])
        begin_batch.assert_called_once_with()


class ReconcileTests(unittest.TestCase):
    def test_ignored_event_forgets_handle(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "sub").mkdir()
            fake = FakeINotify()
            manager = WatchManager(inotify=fake)
            manager.initialize([root])
            sub_wd = fake.watches[str(root / "sub")]

            manager.reconcile(Event(wd=sub_wd, mask=flags.IGNORED, cookie=0, name=""))

            self.assertIsNone(manager.resolve(sub_wd, "x"))
            self.assertNotIn(root / "sub", manager.table.values())

    def test_directory_moved_away_retires_whole_subtree(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "sub" / "inner").mkdir(parents=True)
            (root / "subway").mkdir()
            fake = FakeINotify()
            manager = WatchManager(inotify=fake)
            manager.initialize([root])
            root_wd = fake.watches[str(root)]
            retired = {fake.watches[str(root / "sub")], fake.watches[str(root / "sub" / "inner")]}

            manager.reconcile(Event(wd=root_wd, mask=flags.MOVED_FROM | flags.ISDIR, cookie=7, name="sub"))

            self.assertEqual(set(manager.table.values()), {root, root / "subway"})
            self.assertEqual(set(fake.removed), retired)

    def test_retired_directory_can_be_watched_again(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "sub").mkdir()
            fake = FakeINotify()
            manager = WatchManager(inotify=fake)
            manager.initialize([root])

            manager.retire(root / "sub")
            manager.extend(root / "sub")

            self.assertIn(root / "sub", manager.table.values())

    def test_file_events_leave_table_untouched(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            fake = FakeINotify()
            manager = WatchManager(inotify=fake)
            manager.initialize([root])
            before = dict(manager.table)

            manager.reconcile(Event(wd=fake.watches[str(root)], mask=flags.DELETE, cookie=0, name="a.txt"))

            self.assertEqual(manager.table, before)

    def test_queue_overflow_is_logged(self) -> None:
        manager = WatchManager(inotify=FakeINotify())

        with self.assertLogs("fwatch.watch", level="WARNING") as logs:
            manager.reconcile(Event(wd=-1, mask=flags.Q_OVERFLOW, cookie=0, name=""))

        self.assertTrue(any("overflowed" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
