"""Background relay from a child's merged output pipe into the pager."""

from __future__ import annotations

import threading
from typing import IO

END_OF_OUTPUT_LINE = "-- end of output --"


def _strip_newline(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n"):
        return line[:-1]
    return line


class OutputRelay:
    """Push one decoded line at a time from ``stream`` into ``pager``.

    ``generation`` is the pager run token handed out by ``Pager.reset``; lines
    tagged with an older token are dropped by the pager.
    """

    def __init__(self, stream: IO[bytes], pager, generation: int | None = None) -> None:
        self.stream = stream
        self.pager = pager
        self.generation = generation
        self._thread: threading.Thread | None = None

    def run(self) -> None:
        try:
            while True:
                try:
                    raw = self.stream.readline()
                except (OSError, ValueError) as exc:
                    self.pager.append(f"-- error reading output: {exc} --", generation=self.generation)
                    return
                if not raw:
                    self.pager.append(END_OF_OUTPUT_LINE, generation=self.generation)
                    return
                line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                self.pager.append(_strip_newline(line), generation=self.generation)
        finally:
            try:
                self.stream.close()
            except OSError:
                pass

    def start(self) -> threading.Thread:
        worker = threading.Thread(target=self.run, name="fwatch-output-relay", daemon=True)
        worker.start()
        self._thread = worker
        return worker

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
