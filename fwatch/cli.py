"""Command-line front door for fwatch.

Parses options, validates setup inputs, and hands a resolved
``WatchSettings`` to the runtime. Setup problems exit non-zero with a short
message before any watching starts.
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from collections.abc import Sequence
from pathlib import Path

from . import config
from .completions import SHELLS, completion_script
from .config import WatchSettings
from .events import normalize_extension
from .logs import LEVELS, configure_logging
from .pager import Pager
from .runtime import WatchRuntime

COMMAND_SEPARATOR = "--"


def split_command(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split ``argv`` at the first ``--`` into options and the command template."""
    argv = list(argv)
    if COMMAND_SEPARATOR not in argv:
        return argv, []
    idx = argv.index(COMMAND_SEPARATOR)
    return argv[:idx], argv[idx + 1 :]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fwatch",
        description="Re-run a command whenever a file under the watched directories is written.",
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True, metavar="COMMAND")

    watch = subparsers.add_parser(
        "watch",
        help="watch directories and run a command on changes",
        usage="%(prog)s [options] DIR [DIR ...] -- COMMAND [ARG ...]",
        description="Run COMMAND for every written file; '{}' in COMMAND is replaced by the file path.",
    )
    watch.add_argument("dirs", nargs="+", type=Path, metavar="DIR", help="Directory trees to watch.")
    watch.add_argument("-e", "--ext", metavar="EXT", help="Only trigger for files with this extension.")
    watch.add_argument("--regex", metavar="PATTERN", help="Only trigger for paths matching this regex.")
    watch.add_argument(
        "-p",
        "--pager",
        dest="pager",
        action="store_true",
        default=None,
        help="Show command output in the built-in pager.",
    )
    watch.add_argument(
        "--no-pager",
        dest="pager",
        action="store_false",
        help="Let commands write to the terminal directly.",
    )
    watch.add_argument(
        "--no-gitignore",
        dest="gitignore",
        action="store_false",
        default=None,
        help="Watch directories even if .gitignore excludes them.",
    )
    verbosity = watch.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log debug details.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")

    completions = subparsers.add_parser("completions", help="print a shell completion script")
    completions.add_argument("shell", choices=SHELLS, help="Target shell.")
    return parser


def resolve_settings(args: argparse.Namespace, template: Sequence[str]) -> WatchSettings:
    """Validate parsed options and merge them with config defaults."""
    if not template:
        raise SystemExit("fwatch: no command given; put it after '--'")
    if not args.dirs:
        raise SystemExit("fwatch: no directories given")

    roots: list[Path] = []
    for directory in args.dirs:
        if not directory.is_dir():
            raise SystemExit(f"fwatch: not a directory: {directory}")
        roots.append(directory.resolve())

    regex: re.Pattern[str] | None = None
    if args.regex is not None:
        try:
            regex = re.compile(args.regex)
        except re.error as exc:
            raise SystemExit(f"fwatch: invalid regex {args.regex!r}: {exc}") from exc

    return WatchSettings(
        roots=tuple(roots),
        template=tuple(template),
        extension=normalize_extension(args.ext),
        regex=regex,
        pager=config.load_pager_default() if args.pager is None else args.pager,
        gitignore=config.load_gitignore_default() if args.gitignore is None else args.gitignore,
        exclude=config.load_excluded_names(),
    )


def _log_level(args: argparse.Namespace) -> int:
    if args.verbose:
        return logging.DEBUG
    if args.quiet:
        return logging.WARNING
    return LEVELS[config.load_log_level()]


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments and run the requested subcommand."""
    options, template = split_command(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(options)

    if args.subcommand == "completions":
        sys.stdout.write(completion_script(args.shell, parser))
        return

    settings = resolve_settings(args, template)
    if settings.pager and not (sys.stdin.isatty() and sys.stdout.isatty()):
        raise SystemExit("fwatch: --pager needs an interactive terminal")

    pager = Pager() if settings.pager else None
    configure_logging(_log_level(args), pager)
    try:
        runtime = WatchRuntime(settings, pager)
    except OSError as exc:
        raise SystemExit(f"fwatch: could not start inotify: {exc}") from exc
    runtime.setup()
    runtime.run()


if __name__ == "__main__":
    main()
