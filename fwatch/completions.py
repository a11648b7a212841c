"""Shell completion scripts generated from the argparse parser.

Only subcommand names, option flags, shell names, and directory arguments are
completed; anything after ``--`` is left to the shell's default completion.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass

SHELLS: tuple[str, ...] = ("bash", "zsh", "fish")


@dataclass(frozen=True)
class OptionSpec:
    flags: tuple[str, ...]
    help: str
    takes_value: bool


@dataclass(frozen=True)
class SubcommandSpec:
    name: str
    help: str
    options: tuple[OptionSpec, ...]


def describe_parser(parser: argparse.ArgumentParser) -> list[SubcommandSpec]:
    """Collect subcommands and their option flags from ``parser``."""
    out: list[SubcommandSpec] = []
    for action in parser._actions:
        if not isinstance(action, argparse._SubParsersAction):
            continue
        helps = {choice.dest: choice.help or "" for choice in action._choices_actions}
        for name, subparser in action.choices.items():
            options = tuple(
                OptionSpec(
                    flags=tuple(sub_action.option_strings),
                    help=sub_action.help or "",
                    takes_value=sub_action.nargs != 0,
                )
                for sub_action in subparser._actions
                if sub_action.option_strings
            )
            out.append(SubcommandSpec(name=name, help=helps.get(name, ""), options=options))
    return out


def _flags(spec: SubcommandSpec) -> str:
    return " ".join(flag for option in spec.options for flag in option.flags)


def _bash_script(prog: str, specs: list[SubcommandSpec]) -> str:
    names = " ".join(spec.name for spec in specs)
    cases: list[str] = []
    for spec in specs:
        if spec.name == "completions":
            values = f'compgen -W "{" ".join(SHELLS)} {_flags(spec)}" -- "$cur"'
        else:
            values = f'[[ "$cur" == -* ]] && compgen -W "{_flags(spec)}" -- "$cur" || compgen -d -- "$cur"'
        cases.append(f"        {spec.name}) COMPREPLY=($({values})) ;;")
    func = f"_{prog.replace('-', '_')}"
    return "\n".join(
        [
            f"{func}() {{",
            '    local cur="${COMP_WORDS[COMP_CWORD]}"',
            "    local i",
            "    for (( i = 1; i < COMP_CWORD; i++ )); do",
            '        [[ "${COMP_WORDS[i]}" == "--" ]] && return 0',
            "    done",
            "    if (( COMP_CWORD == 1 )); then",
            f'        COMPREPLY=($(compgen -W "{names}" -- "$cur"))',
            "        return 0",
            "    fi",
            '    case "${COMP_WORDS[1]}" in',
            *cases,
            "    esac",
            "}",
            f"complete -o filenames -F {func} {prog}",
            "",
        ]
    )


def _zsh_quote(text: str) -> str:
    return text.replace("'", "'\\''").replace(":", "\\:")


def _zsh_script(prog: str, specs: list[SubcommandSpec]) -> str:
    described = " ".join(f"'{spec.name}:{_zsh_quote(spec.help)}'" for spec in specs)
    cases: list[str] = []
    for spec in specs:
        if spec.name == "completions":
            body = f"compadd -- {' '.join(SHELLS)} {_flags(spec)}"
        else:
            body = f"if [[ $PREFIX == -* ]]; then compadd -- {_flags(spec)}; else _files -/; fi"
        cases.append(f"        {spec.name}) {body} ;;")
    func = f"_{prog.replace('-', '_')}"
    return "\n".join(
        [
            f"#compdef {prog}",
            "",
            f"{func}() {{",
            "    local -a subcommands",
            f"    subcommands=({described})",
            "    (( ${words[(I)--]} && ${words[(I)--]} < CURRENT )) && return 0",
            "    if (( CURRENT == 2 )); then",
            "        _describe 'command' subcommands",
            "        return",
            "    fi",
            "    case $words[2] in",
            *cases,
            "    esac",
            "}",
            "",
            f'{func} "$@"',
            "",
        ]
    )


def _fish_quote(text: str) -> str:
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _fish_script(prog: str, specs: list[SubcommandSpec]) -> str:
    lines = [f"complete -c {prog} -f"]
    for spec in specs:
        lines.append(
            f"complete -c {prog} -n __fish_use_subcommand -a {spec.name} -d {_fish_quote(spec.help)}"
        )
    for spec in specs:
        condition = f"'__fish_seen_subcommand_from {spec.name}'"
        for option in spec.options:
            parts = [f"complete -c {prog} -n {condition}"]
            for flag in option.flags:
                if flag.startswith("--"):
                    parts.append(f"-l {flag[2:]}")
                else:
                    parts.append(f"-s {flag[1:]}")
            if option.takes_value:
                parts.append("-r")
            parts.append(f"-d {_fish_quote(option.help)}")
            lines.append(" ".join(parts))
        if spec.name == "completions":
            lines.append(f"complete -c {prog} -n {condition} -a '{' '.join(SHELLS)}'")
        else:
            lines.append(f"complete -c {prog} -n {condition} -a '(__fish_complete_directories)'")
    lines.append("")
    return "\n".join(lines)


def completion_script(shell: str, parser: argparse.ArgumentParser) -> str:
    """Return the completion script text for ``shell``."""
    specs = describe_parser(parser)
    prog = parser.prog
    if shell == "bash":
        return _bash_script(prog, specs)
    if shell == "zsh":
        return _zsh_script(prog, specs)
    if shell == "fish":
        return _fish_script(prog, specs)
    raise ValueError(f"unsupported shell: {shell}")
