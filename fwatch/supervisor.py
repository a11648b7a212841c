"""Serialized command execution with preemption of stale runs.

``ProcessSupervisor`` owns the single "current process" slot. Triggers arrive
through a FIFO queue and are handled on one monitor thread, so terminating the
previous run and recording the new one never race with each other.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from queue import Queue

from .relay import OutputRelay

logger = logging.getLogger(__name__)

PLACEHOLDER = "{}"
KILL_WAIT_SECONDS = 5.0


class CommandTemplate:
    """Immutable argv template; every ``{}`` is replaced by the trigger path."""

    def __init__(self, args: Sequence[str]) -> None:
        if not args:
            raise ValueError("empty command template")
        self.args: tuple[str, ...] = tuple(args)

    @property
    def executable(self) -> str:
        return self.args[0]

    def argv(self, path: Path | str) -> list[str]:
        """Substitute ``path`` verbatim into each argument (no shell quoting)."""
        text = str(path)
        return [arg.replace(PLACEHOLDER, text) for arg in self.args]

    def __repr__(self) -> str:
        return f"CommandTemplate({list(self.args)!r})"


class ProcessSupervisor:
    """Run the templated command for each trigger, killing the previous run.

    When ``pager`` is given, each run's stdout and stderr share one pipe that
    an ``OutputRelay`` drains into the pager; otherwise children inherit the
    terminal.
    """

    def __init__(
        self,
        template: CommandTemplate,
        pager=None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    ) -> None:
        self.template = template
        self.pager = pager
        self._popen = popen
        self.current: subprocess.Popen | None = None
        self._queue: Queue[Path | None] = Queue()
        self._thread: threading.Thread | None = None

    def submit(self, path: Path) -> None:
        """Queue a trigger for the monitor thread."""
        self._queue.put(path)

    def spawn(self, path: Path) -> subprocess.Popen:
        """Start the command for ``path``; raises ``OSError`` if it cannot start."""
        argv = self.template.argv(path)
        if self.pager is None:
            proc = self._popen(argv)
        else:
            proc = self._popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
            # The buffer belongs to the current run until a replacement has started.
            generation = self.pager.reset()
            OutputRelay(proc.stdout, self.pager, generation).start()
        logger.debug("started pid %d: %s", proc.pid, argv)
        return proc

    def _reap(self, proc: subprocess.Popen) -> None:
        returncode = proc.wait()
        logger.debug("pid %d exited with status %s", proc.pid, returncode)

    def _terminate(self, proc: subprocess.Popen) -> None:
        if proc.poll() is not None:
            return
        try:
            proc.kill()
        except OSError as exc:
            logger.warning("could not kill pid %d: %s", proc.pid, exc)
        try:
            proc.wait(timeout=KILL_WAIT_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("pid %d did not exit after kill; moving on", proc.pid)
        except OSError as exc:
            logger.warning("could not wait for pid %d: %s", proc.pid, exc)

    def on_trigger(self, path: Path) -> subprocess.Popen | None:
        """Start a run for ``path`` and make it current.

        A failed spawn leaves the current process running and returns ``None``.
        """
        try:
            proc = self.spawn(path)
        except OSError as exc:
            logger.error("%s changed; could not start %s: %s", path, self.template.executable, exc)
            return None
        logger.info("%s changed", path)

        threading.Thread(
            target=self._reap,
            args=(proc,),
            name=f"fwatch-reaper-{proc.pid}",
            daemon=True,
        ).start()

        previous = self.current
        if previous is not None:
            self._terminate(previous)
        self.current = proc
        return proc

    def run(self) -> None:
        """Consume triggers until the stop sentinel arrives."""
        while True:
            path = self._queue.get()
            if path is None:
                return
            try:
                self.on_trigger(path)
            except Exception:
                logger.exception("unexpected error handling %s", path)

    def start(self) -> threading.Thread:
        worker = threading.Thread(target=self.run, name="fwatch-supervisor", daemon=True)
        worker.start()
        self._thread = worker
        return worker

    def stop(self, timeout: float | None = None) -> None:
        """Stop the monitor thread, then kill and reap the current run."""
        self._queue.put(None)
        if self._thread is not None:
            self._thread.join(timeout)
        current = self.current
        if current is not None:
            self._terminate(current)
