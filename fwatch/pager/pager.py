"""Scrollable pager fed by a background output relay.

The line buffer and scroll offset are updated from the relay thread while the
input loop reads keys on the main thread. Each sits behind its own
reader/writer lock (always taken buffer first, offset second); terminal writes
are serialized by a plain mutex.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable

from ..rwlock import RWLock
from .ansi import ANSI_ESCAPE_RE, clip_ansi_line, sanitize_line
from .input import read_key
from .keys import handle_key
from .modes import ExitMode, FreeMode, InputMode, SearchPrompt
from .terminal import TerminalController, terminal_size

STATUS_STYLE = "\033[30;43m"
RESET = "\033[0m"


def clamp(value: int, low: int, high: int) -> int:
    if value < low:
        return low
    if value > high:
        return high
    return value


class Pager:
    """Append-only line buffer with a clamped viewport and key-driven loop.

    ``size`` returns ``(columns, rows)``; the last row is the status line so
    the viewport is ``rows - 1`` lines tall.
    """

    def __init__(
        self,
        terminal: TerminalController | None = None,
        size: Callable[[], tuple[int, int]] = terminal_size,
    ) -> None:
        self.terminal = terminal
        self._size = size
        self._lines: list[str] = []
        self._lines_lock = RWLock()
        self._generation = 0
        self._offset = 0
        self._offset_lock = RWLock()
        self._mode: InputMode = FreeMode()
        self._mode_lock = RWLock()
        self._output_lock = threading.Lock()
        self._active = False

    def viewport_height(self) -> int:
        _cols, rows = self._size()
        return max(1, rows - 1)

    def _max_offset(self, total: int, viewport: int) -> int:
        return max(0, total - viewport)

    @property
    def lines(self) -> list[str]:
        with self._lines_lock.read():
            return list(self._lines)

    @property
    def offset(self) -> int:
        with self._offset_lock.read():
            return self._offset

    @property
    def generation(self) -> int:
        with self._lines_lock.read():
            return self._generation

    @property
    def mode(self) -> InputMode:
        with self._mode_lock.read():
            return self._mode

    def set_mode(self, mode: InputMode) -> None:
        with self._mode_lock.write():
            self._mode = mode

    def append(self, line: str, generation: int | None = None) -> None:
        """Add one line, following the tail if the view was at the bottom.

        Lines tagged with a stale ``generation`` belong to a superseded run and
        are dropped.
        """
        line = sanitize_line(line)
        viewport = self.viewport_height()
        with self._lines_lock.write():
            if generation is not None and generation != self._generation:
                return
            with self._offset_lock.write():
                at_bottom = self._offset >= self._max_offset(len(self._lines), viewport)
                self._lines.append(line)
                new_max = self._max_offset(len(self._lines), viewport)
                self._offset = new_max if at_bottom else clamp(self._offset, 0, new_max)
        self.draw()

    def reset(self) -> int:
        """Clear the buffer and offset; return the new run generation."""
        with self._lines_lock.write():
            self._lines.clear()
            self._generation += 1
            generation = self._generation
            with self._offset_lock.write():
                self._offset = 0
        self.draw()
        return generation

    def scroll(self, delta: int) -> int:
        """Move the viewport by ``delta`` lines and return the new offset."""
        viewport = self.viewport_height()
        with self._lines_lock.read():
            total = len(self._lines)
            with self._offset_lock.write():
                self._offset = clamp(self._offset + delta, 0, self._max_offset(total, viewport))
                return self._offset

    def page(self, up: bool) -> int:
        amount = max(1, self.viewport_height() // 2)
        return self.scroll(-amount if up else amount)

    def scroll_to_top(self) -> int:
        with self._offset_lock.write():
            self._offset = 0
            return 0

    def scroll_to_bottom(self) -> int:
        viewport = self.viewport_height()
        with self._lines_lock.read():
            total = len(self._lines)
            with self._offset_lock.write():
                self._offset = self._max_offset(total, viewport)
                return self._offset

    def find(self, term: str, forward: bool = True, skip_current: bool = False) -> bool:
        """Scroll to the next line containing ``term`` as plain text."""
        if not term:
            return False
        viewport = self.viewport_height()
        with self._lines_lock.read():
            total = len(self._lines)
            with self._offset_lock.write():
                start = self._offset
                if forward:
                    first = start + 1 if skip_current else start
                    candidates = range(first, total)
                else:
                    first = start - 1 if skip_current else start
                    candidates = range(min(first, total - 1), -1, -1)
                for idx in candidates:
                    if term in ANSI_ESCAPE_RE.sub("", self._lines[idx]):
                        self._offset = clamp(idx, 0, self._max_offset(total, viewport))
                        return True
        return False

    def render(self) -> str:
        """Compose one full frame: visible lines, status indicator, prompt."""
        cols, rows = self._size()
        viewport = max(1, rows - 1)
        with self._lines_lock.read():
            total = len(self._lines)
            with self._offset_lock.write():
                # Terminal may have been resized since the last clamp.
                self._offset = clamp(self._offset, 0, self._max_offset(total, viewport))
                offset = self._offset
            visible = self._lines[offset : offset + viewport]
        mode = self.mode

        out: list[str] = ["\033[H\033[2J"]
        for row, line in enumerate(visible, start=1):
            out.append(f"\033[{row};1H")
            out.append(clip_ansi_line(line, cols))
            if "\033" in line:
                out.append(RESET)

        status = f"{offset}/{total}"[-cols:]
        out.append(f"\033[{rows};{max(1, cols - len(status) + 1)}H")
        out.append(f"{STATUS_STYLE}{status}{RESET}")

        if isinstance(mode, SearchPrompt):
            room = max(0, cols - len(status) - 1)
            out.append(f"\033[{rows};1H")
            out.append(f"{mode.prefix}{mode.text}"[:room])
        return "".join(out)

    def draw(self) -> None:
        """Write a fresh frame if the input loop currently owns the terminal."""
        with self._output_lock:
            if not self._active or self.terminal is None:
                return
            self.terminal.write(self.render())

    def run(self) -> None:
        """Own the terminal in raw mode and process keys until exit.

        The terminal is restored however the loop ends.
        """
        if self.terminal is None:
            self.terminal = TerminalController(sys.stdin.fileno(), sys.stdout.fileno())
        with self.terminal.raw_mode():
            with self._output_lock:
                self._active = True
            try:
                self.draw()
                while True:
                    key = read_key(self.terminal.stdin_fd)
                    if not key:
                        break
                    next_mode = handle_key(self, self.mode, key)
                    self.set_mode(next_mode)
                    if isinstance(next_mode, ExitMode):
                        break
                    self.draw()
            finally:
                with self._output_lock:
                    self._active = False
