"""ANSI-aware shaping of child output lines for the pager.

Command output often carries color codes. Colors are kept, but anything that
would move the cursor or clear the screen is stripped, and stray control bytes
are made visible, so one output line always occupies exactly one screen row.
"""

from __future__ import annotations

import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")
TAB_STOP = 8


def char_display_width(ch: str, col: int) -> int:
    """Return terminal column width for one character at visual column ``col``."""
    if ch == "\t":
        return TAB_STOP - (col % TAB_STOP)
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def sanitize_line(line: str) -> str:
    """Keep SGR color sequences, drop other CSI sequences, escape control bytes."""
    if "\x1b" not in line and _CONTROL_RE.search(line) is None:
        return line

    out: list[str] = []
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == "\x1b":
            match = ANSI_ESCAPE_RE.match(line, i)
            if match is not None:
                seq = match.group(0)
                if seq.endswith("m"):
                    out.append(seq)
                i = match.end()
                continue
        code = ord(ch)
        if ch != "\t" and (code < 32 or code == 127 or 0x80 <= code <= 0x9F):
            # A bare carriage return is progress-bar redraw noise; drop it.
            if ch != "\r":
                out.append(f"\\x{code:02x}")
            i += 1
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Trim a styled line to at most ``max_cols`` display columns.

    Escape sequences are kept verbatim and take no width; tabs become spaces.
    """
    if max_cols <= 0 or not text:
        return ""

    out: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n and col < max_cols:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                out.append(match.group(0))
                i = match.end()
                continue
        ch = text[i]
        w = char_display_width(ch, col)
        if col + w > max_cols:
            break
        out.append(" " * w if ch == "\t" else ch)
        col += w
        i += 1

    return "".join(out)
