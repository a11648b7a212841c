"""Raw-mode ownership for the pager's terminal.

``TerminalController`` captures the tty state once and restores it, together
with the main screen and cursor visibility, whenever ``raw_mode`` exits.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import termios
import tty

ENTER_SEQUENCE = b"\x1b[?1049h\x1b[?25l"
LEAVE_SEQUENCE = b"\x1b[?25h\x1b[?1049l"


def terminal_size() -> tuple[int, int]:
    """Return ``(columns, rows)``, at least one column and two rows."""
    term = shutil.get_terminal_size((80, 24))
    return max(1, term.columns), max(2, term.lines)


class TerminalController:
    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)

    def enable_raw_mode(self) -> None:
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        # Alternate screen, hidden cursor.
        os.write(self.stdout_fd, ENTER_SEQUENCE)

    def disable_raw_mode(self) -> None:
        # Cursor back on, main screen restored.
        os.write(self.stdout_fd, LEAVE_SEQUENCE)
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def write(self, data: str) -> None:
        os.write(self.stdout_fd, data.encode("utf-8", errors="replace"))

    @contextlib.contextmanager
    def raw_mode(self):
        """Bracket a block with raw-mode entry and guaranteed restoration."""
        try:
            self.enable_raw_mode()
            yield self
        finally:
            self.disable_raw_mode()
