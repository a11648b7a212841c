"""Built-in scrollable pager for command output."""

from .modes import EXIT, ExitMode, FreeMode, InputMode, SearchPrompt
from .pager import Pager

__all__ = [
    "EXIT",
    "ExitMode",
    "FreeMode",
    "InputMode",
    "Pager",
    "SearchPrompt",
]
