"""Persistent JSON config and resolved watch settings.

The config file supplies defaults for options that are tedious to repeat on
every invocation. All access is defensive: malformed or missing config falls
back to built-in defaults.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

from .logs import LEVELS

APP_NAME = "fwatch"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON; failures are ignored."""
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError:
        pass


def _load_bool(data: dict[str, object], key: str, default: bool) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else default


def load_pager_default() -> bool:
    return _load_bool(load_config(), "pager", False)


def load_gitignore_default() -> bool:
    return _load_bool(load_config(), "gitignore", True)


def load_excluded_names() -> tuple[str, ...]:
    """Extra directory names to skip during the walk.

    Non-string and blank entries are dropped.
    """
    value = load_config().get("exclude")
    if not isinstance(value, list):
        return ()
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


def load_log_level() -> str:
    value = load_config().get("log_level")
    if isinstance(value, str) and value.lower() in LEVELS:
        return value.lower()
    return "info"


@dataclass(frozen=True)
class WatchSettings:
    """Fully resolved options for one watch session."""

    roots: tuple[Path, ...]
    template: tuple[str, ...]
    extension: str | None = None
    regex: re.Pattern[str] | None = None
    pager: bool = False
    gitignore: bool = True
    exclude: tuple[str, ...] = ()
