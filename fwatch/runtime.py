"""Thread wiring for a watch session.

The watch loop reads raw events, keeps the watch table current, and forwards
triggers to the supervisor's queue. With a pager, that loop runs on a
background thread and the pager's input loop owns the main thread; without
one, the watch loop runs on the main thread until interrupted.
"""

from __future__ import annotations

import logging
import threading

from .config import WatchSettings
from .events import Classification, EventFilter, Trigger, WatchDir
from .ignore import DEFAULT_EXCLUDED_NAMES, IgnoreRules
from .supervisor import CommandTemplate, ProcessSupervisor
from .watch import WatchManager

logger = logging.getLogger(__name__)

WATCH_THREAD_JOIN_SECONDS = 2.0


class WatchRuntime:
    def __init__(self, settings: WatchSettings, pager=None, manager: WatchManager | None = None) -> None:
        self.settings = settings
        self.pager = pager
        self.manager = manager if manager is not None else WatchManager()
        self.event_filter = EventFilter(self.manager.resolve, settings.extension, settings.regex)
        self.supervisor = ProcessSupervisor(CommandTemplate(settings.template), pager=pager)
        self._stop = threading.Event()
        self._watch_thread: threading.Thread | None = None

    def setup(self) -> None:
        """Register watches for every configured root."""
        excluded = DEFAULT_EXCLUDED_NAMES + tuple(self.settings.exclude)
        rules = [
            IgnoreRules(root, excluded_names=excluded, use_gitignore=self.settings.gitignore)
            for root in self.settings.roots
        ]
        table = self.manager.initialize(self.settings.roots, rules)
        logger.info("watching %d directories", len(table))

    def process_event(self, event) -> Classification:
        self.manager.reconcile(event)
        decision = self.event_filter.classify(event)
        if isinstance(decision, WatchDir):
            self.manager.extend(decision.path)
        elif isinstance(decision, Trigger):
            self.supervisor.submit(decision.path)
        return decision

    def watch_loop(self) -> None:
        for event in self.manager.read_events(self._stop):
            self.process_event(event)

    def _watch_worker(self) -> None:
        try:
            self.watch_loop()
        except Exception:
            logger.exception("watch loop stopped")

    def run(self) -> None:
        """Run until the pager exits or, without a pager, until Ctrl-C."""
        self.supervisor.start()
        try:
            if self.pager is None:
                self.watch_loop()
            else:
                self._watch_thread = threading.Thread(
                    target=self._watch_worker,
                    name="fwatch-watch",
                    daemon=True,
                )
                self._watch_thread.start()
                self.pager.run()
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop the watch loop and supervisor, killing the current run."""
        self._stop.set()
        if self._watch_thread is not None:
            self._watch_thread.join(WATCH_THREAD_JOIN_SECONDS)
        self.supervisor.stop()
        self.manager.close()
