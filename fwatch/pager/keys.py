"""Per-mode key handlers for the pager input loop."""

from __future__ import annotations

from .modes import EXIT, ExitMode, FreeMode, InputMode, SearchPrompt

EXIT_KEYS = frozenset({"q", "CTRL_C"})


def is_printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


def handle_free_key(pager, mode: FreeMode, key: str) -> InputMode:
    """Handle navigation keys; unknown keys leave the mode unchanged."""
    if key == "/":
        return SearchPrompt(previous=mode, prefix="/")
    if key in EXIT_KEYS:
        return EXIT
    if key in {"j", "DOWN"}:
        pager.scroll(1)
    elif key in {"k", "UP"}:
        pager.scroll(-1)
    elif key == "PAGE_UP":
        pager.page(up=True)
    elif key == "PAGE_DOWN":
        pager.page(up=False)
    elif key in {"g", "HOME"}:
        pager.scroll_to_top()
    elif key in {"G", "END"}:
        pager.scroll_to_bottom()
    elif key == "n" and mode.search:
        pager.find(mode.search, forward=True, skip_current=True)
    elif key == "N" and mode.search:
        pager.find(mode.search, forward=False, skip_current=True)
    return mode


def handle_search_key(pager, prompt: SearchPrompt, key: str) -> InputMode:
    """Edit the prompt; enter commits, anything unrecognised cancels."""
    if key == "ENTER":
        if not prompt.text:
            return prompt.previous
        pager.find(prompt.text, forward=True, skip_current=False)
        return FreeMode(search=prompt.text)
    if key == "BACKSPACE":
        return prompt.delete_back()
    if key == "LEFT":
        return prompt.move(-1)
    if key == "RIGHT":
        return prompt.move(1)
    if is_printable(key):
        return prompt.insert(key)
    return prompt.previous


def handle_key(pager, mode: InputMode, key: str) -> InputMode:
    if isinstance(mode, SearchPrompt):
        return handle_search_key(pager, mode, key)
    if isinstance(mode, FreeMode):
        return handle_free_key(pager, mode, key)
    if isinstance(mode, ExitMode):
        return mode
    raise TypeError(f"unknown input mode: {mode!r}")
