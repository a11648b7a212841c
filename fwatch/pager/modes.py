"""Input modes for the pager's key state machine.

Exactly one mode is active at a time. Modes are immutable; key handlers
return the next mode instead of mutating the current one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class FreeMode:
    """Normal navigation. ``search`` is the last committed search term."""

    search: str | None = None


@dataclass(frozen=True)
class SearchPrompt:
    """Editing a search query; ``previous`` is restored on cancel."""

    previous: FreeMode
    prefix: str = "/"
    text: str = ""
    cursor: int = 0

    def insert(self, ch: str) -> SearchPrompt:
        text = self.text[: self.cursor] + ch + self.text[self.cursor :]
        return replace(self, text=text, cursor=self.cursor + len(ch))

    def delete_back(self) -> SearchPrompt:
        if self.cursor == 0:
            return self
        text = self.text[: self.cursor - 1] + self.text[self.cursor :]
        return replace(self, text=text, cursor=self.cursor - 1)

    def move(self, delta: int) -> SearchPrompt:
        return replace(self, cursor=max(0, min(len(self.text), self.cursor + delta)))


@dataclass(frozen=True)
class ExitMode:
    """Terminal state; the input loop stops."""


InputMode = FreeMode | SearchPrompt | ExitMode

EXIT = ExitMode()
