"""Public package surface for fwatch.

Exports ``main`` for programmatic CLI invocation.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import the CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)

__all__ = ["main"]
