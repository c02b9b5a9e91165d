#!/usr/bin/env python3
"""Entry point for the ``photopicks`` command.

Every public module next to this one is a subcommand; ``copy_filtered.py``
is invoked as ``photopicks copy-filtered``. Anything that is not a known
subcommand is handed to the ``gui`` command, so ``photopicks ~/Pictures``
just opens the triage window.
"""

import ast
import importlib.util
import re
import sys
from pathlib import Path

CLI_DIR = Path(__file__).resolve().parent
DEFAULT_COMMAND = "gui"
_FLAG_RE = re.compile(r"--[a-z][-a-z0-9]*")


def _discover_commands() -> dict[str, Path]:
    here = Path(__file__).resolve()
    return {
        script.stem.replace("_", "-"): script
        for script in sorted(CLI_DIR.glob("*.py"))
        if not script.name.startswith("_") and script != here
    }


def _module_tree(path: Path):
    try:
        return ast.parse(path.read_text())
    except (OSError, SyntaxError):
        return None


def _summary(path: Path) -> str:
    tree = _module_tree(path)
    doc = ast.get_docstring(tree) if tree is not None else None
    return doc.splitlines()[0].strip() if doc else ""


def _flags(path: Path) -> list[str]:
    """Completion words for one subcommand.

    A module-level ``__completions__`` list wins; without one the source is
    grepped for long options.
    """
    tree = _module_tree(path)
    if tree is None:
        return []
    for node in tree.body:
        if not isinstance(node, ast.Assign):
            continue
        names = [t.id for t in node.targets if isinstance(t, ast.Name)]
        if "__completions__" in names:
            try:
                declared = ast.literal_eval(node.value)
            except ValueError:
                declared = None
            if isinstance(declared, list):
                return declared
    return sorted(set(_FLAG_RE.findall(path.read_text())))


def resolve_command(argv: list[str], commands: dict[str, Path]) -> tuple[str, list[str]]:
    """Split *argv* into (subcommand, its arguments), defaulting to the GUI."""
    if argv:
        name = argv[0].replace("_", "-")
        if name in commands:
            return name, argv[1:]
    return DEFAULT_COMMAND, list(argv)


def _usage(commands: dict[str, Path]) -> str:
    lines = ["usage: photopicks [command] [args ...]", "", "commands:"]
    lines += [f"  {name:20s} {_summary(path)}" for name, path in commands.items()]
    lines += ["", f"Unrecognised arguments are passed to '{DEFAULT_COMMAND}'."]
    return "\n".join(lines)


def _completions(argv: list[str], commands: dict[str, Path]) -> list[str]:
    if not argv:
        return [*commands, "--help"]
    script = commands.get(argv[0].replace("_", "-"))
    return _flags(script) if script else []


def _run(script: Path, args: list[str]) -> None:
    sys.argv = [str(script), *args]
    loader_spec = importlib.util.spec_from_file_location("__main__", script)
    if loader_spec is None or loader_spec.loader is None:
        sys.exit(f"photopicks: cannot load {script.name}")
    module = importlib.util.module_from_spec(loader_spec)
    loader_spec.loader.exec_module(module)


def main() -> None:
    commands = _discover_commands()
    argv = sys.argv[1:]

    if argv[:1] == ["--complete"]:
        words = _completions(argv[1:], commands)
        if words:
            print("\n".join(words))
        sys.exit(0)
    if argv[:1] in (["-h"], ["--help"]):
        print(_usage(commands))
        sys.exit(0)

    name, args = resolve_command(argv, commands)
    _run(commands[name], args)


if __name__ == "__main__":
    main()
