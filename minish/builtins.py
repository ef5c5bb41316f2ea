"""Commands the shell runs itself instead of starting a program."""

from __future__ import annotations

import os
import string
from typing import Callable, Sequence, TextIO

from minish.env import Environment, ShellState

BUILTIN_NAMES = ("echo", "cd", "pwd", "export", "unset", "env", "exit", "var")

_LETTERS = frozenset(string.ascii_letters)
_EQUALS_ERROR = "bash: export: `=': not a valid identifier\n"


class ExitRequested(Exception):
    """Raised by the ``exit`` builtin; ``status`` is the code to exit with."""

    def __init__(self, status: int = 0) -> None:
        super().__init__(status)
        self.status = status


def is_builtin(name: str) -> bool:
    """Tell whether ``name`` is one of the shell's own commands."""
    return name in BUILTIN_NAMES


def is_identifier(text: str) -> bool:
    """Tell whether ``text`` is made only of ASCII letters."""
    return all(char in _LETTERS for char in text)


def _split_assignment(text: str) -> tuple[str, str]:
    """Split ``NAME=value``; empty pieces between ``=`` signs are dropped."""
    pieces = [piece for piece in text.split("=") if piece]
    name = pieces[0] if pieces else ""
    value = pieces[1] if len(pieces) > 1 else ""
    return name, value


def _fail(state: ShellState, out: TextIO, message: str) -> int:
    out.write(message)
    state.status = 1
    return state.status


def echo(state: ShellState, args: Sequence[str], out: TextIO) -> int:
    """Print the arguments after ``args[0]``; a leading ``-n`` drops the newline."""
    words = list(args)[1:]
    if not words:
        out.write("\n")
    elif words[0] == "-n":
        if len(words) == 1:
            return state.status
        out.write(" ".join(words[1:]))
    else:
        out.write(" ".join(words) + "\n")
    state.status = 0
    return state.status


def pwd(state: ShellState, out: TextIO) -> int:
    """Print the working directory."""
    try:
        cwd = os.getcwd()
    except OSError:
        pass
    else:
        out.write(cwd + "\n")
    state.status = 0
    return state.status


def cd(state: ShellState, target: str | None, out: TextIO) -> int:
    """Change directory; no target means HOME, and a leading ``~`` is HOME."""
    home = state.environ.get("HOME")
    if home is None:
        return _fail(state, out, "bash: cd: HOME not set\n")
    home += "/"
    if target is None:
        target = home
    if target.startswith("~/"):
        destination = home + target[2:]
    elif target.startswith("~"):
        destination = home + target[1:]
    else:
        destination = target
    try:
        os.chdir(destination)
    except OSError:
        return _fail(
            state, out, f"cd: {destination}: No such file or directory\n"
        )
    state.status = 0
    return state.status


def _print_table(table: Environment, out: TextIO, prefix: str = "") -> bool:
    if not len(table):
        return False
    for name, value in table.items():
        out.write(f"{prefix}{name}={value}\n")
    return True


def env(state: ShellState, out: TextIO) -> int:
    """Print the exported variables as ``NAME=value`` lines."""
    if _print_table(state.environ, out):
        state.status = 0
    return state.status


def export(state: ShellState, args: Sequence[str], out: TextIO) -> int:
    """Export ``NAME=value`` arguments, or list the environment with none.

    Processing stops at the first argument without ``=``; such an argument
    is reported when it is not a valid identifier.
    """
    names = list(args)[1:]
    if not names:
        if _print_table(state.environ, out, "declare -x "):
            state.status = 0
        return state.status
    for arg in names:
        if arg.startswith("="):
            return _fail(state, out, _EQUALS_ERROR)
        if "=" not in arg:
            if not is_identifier(arg):
                out.write(f"bash: export: `{arg}': not a valid identifier\n")
            return state.status
        name, value = _split_assignment(arg)
        state.environ.set(name, value)
    return state.status


def unset(state: ShellState, args: Sequence[str], out: TextIO) -> int:
    """Remove the variable named by ``args[1]``, exported ones first.

    The first entry whose name starts with the argument is removed.
    """
    if len(args) < 2:
        return state.status
    name = args[1]
    if "=" in name:
        return _fail(state, out, f"bash: unset: `{name}': not a valid identifier\n")
    if not state.environ.remove(name):
        state.variables.remove(name)
    return state.status


def show_variables(state: ShellState, out: TextIO) -> int:
    """Print the shell's local variables as ``NAME=value`` lines."""
    _print_table(state.variables, out)
    return state.status


def _exit(state: ShellState, args: Sequence[str], out: TextIO) -> int:
    raise ExitRequested(0)


_DISPATCH: dict[str, Callable[[ShellState, Sequence[str], TextIO], int]] = {
    "echo": echo,
    "pwd": lambda state, args, out: pwd(state, out),
    "cd": lambda state, args, out: cd(state, args[1] if len(args) > 1 else None, out),
    "env": lambda state, args, out: env(state, out),
    "exit": _exit,
    "export": export,
    "unset": unset,
    "var": lambda state, args, out: show_variables(state, out),
}


def run_builtin(state: ShellState, args: Sequence[str], out: TextIO) -> int:
    """Run the builtin named by ``args[0]`` and return the shell's status."""
    if not args:
        raise ValueError("no command given")
    handler = _DISPATCH.get(args[0])
    if handler is None:
        raise ValueError(f"not a builtin: {args[0]}")
    return handler(state, args, out)