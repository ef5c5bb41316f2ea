"""Turn token lists into runnable commands: sequences, pipelines, redirections."""

from __future__ import annotations

import itertools
import os
import string
from dataclasses import dataclass, field
from typing import Iterable, Sequence, TextIO

from minish.builtins import is_builtin
from minish.env import ShellState
from minish.lexer import REDIRECTIONS, Kind, Token

FILE_MODE = 0o644
NOT_FOUND_STATUS = 127

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_BOUNDARIES = frozenset({Kind.PIPE, Kind.SEMICOL})
_OUTPUTS = frozenset({Kind.REDOUT, Kind.DOUBLEREDOUT})


class CommandError(Exception):
    """A command that cannot be prepared; ``status`` is the shell's new status."""

    def __init__(self, message: str, status: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


def _create(path: str, flags: int) -> int:
    return os.open(path, flags, FILE_MODE)


@dataclass(frozen=True)
class Redirection:
    """A ``<``, ``>`` or ``>>`` applied to a file."""

    kind: Kind
    path: str

    @property
    def is_input(self) -> bool:
        return self.kind is Kind.REDIN

    def open(self) -> TextIO:
        """Open the file the way the redirection asks for."""
        if self.kind is Kind.REDIN:
            return open(self.path, "r", encoding="utf-8")
        mode = "w" if self.kind is Kind.REDOUT else "a"
        return open(self.path, mode, encoding="utf-8", opener=_create)


@dataclass
class SimpleCommand:
    """An argument vector with the redirections that apply to it."""

    argv: list[str]
    redirections: list[Redirection] = field(default_factory=list)

    @property
    def stdin(self) -> Redirection | None:
        """The input redirection that wins: the last one given."""
        inputs = [r for r in self.redirections if r.is_input]
        return inputs[-1] if inputs else None

    @property
    def stdout(self) -> Redirection | None:
        """The output redirection that wins: the last one given."""
        outputs = [r for r in self.redirections if not r.is_input]
        return outputs[-1] if outputs else None


def _fail(state: ShellState, out: TextIO, message: str, status: int = 1) -> None:
    out.write(message + "\n")
    state.status = status
    raise CommandError(message, status)


def split_sequences(tokens: Iterable[Token]) -> list[list[Token]]:
    """Cut tokens at ``;``; empty pieces are left out."""
    sequences: list[list[Token]] = []
    current: list[Token] = []
    for token in tokens:
        if token.kind is Kind.SEMICOL:
            if current:
                sequences.append(current)
            current = []
        else:
            current.append(token)
    if current:
        sequences.append(current)
    return sequences


def split_pipeline(tokens: Iterable[Token]) -> list[list[Token]]:
    """Cut tokens at ``|`` up to the first ``;``; empty stages are kept."""
    stages: list[list[Token]] = [[]]
    for token in tokens:
        if token.kind is Kind.SEMICOL:
            break
        if token.kind is Kind.PIPE:
            stages.append([])
        else:
            stages[-1].append(token)
    return stages


def resolve_path(state: ShellState, name: str, out: TextIO) -> str:
    """Find the program to run for ``name``.

    Builtins and names that exist as given are returned unchanged; otherwise
    each directory of PATH is tried in turn.
    """
    if is_builtin(name):
        return name
    try:
        os.stat(name)
    except (OSError, ValueError):
        pass
    else:
        return name
    search = state.environ.get("PATH")
    if search is None:
        _fail(
            state, out, f"bash: {name}: No such file or directory", NOT_FOUND_STATUS
        )
    for directory in filter(None, search.split(":")):
        candidate = f"{directory}/{name}"
        try:
            os.stat(candidate)
        except (OSError, ValueError):
            continue
        return candidate
    _fail(state, out, f"bash: {name}: command not found")
    raise AssertionError("unreachable")


def _is_assignment(word: str) -> bool:
    return bool(word) and word[0] != "=" and "=" in word


def _split_assignment(word: str) -> tuple[str, str]:
    pieces = [piece for piece in word.split("=") if piece]
    name = pieces[0] if pieces else ""
    value = pieces[1] if len(pieces) > 1 else ""
    return name, value


def _same_direction(redirection: Redirection, token: Token | None) -> bool:
    if token is None:
        return False
    if redirection.is_input:
        return token.kind is Kind.REDIN
    return token.kind in _OUTPUTS


def _redirect(
    state: ShellState, token: Token, lookahead: Sequence[Token], out: TextIO
) -> Redirection:
    """Check and open the file of one redirection, creating output files."""
    target = lookahead[0] if lookahead else None
    following = lookahead[1] if len(lookahead) > 1 else None
    if target is None:
        _fail(state, out, "bash: syntax error near unexpected token `newline'")
    if target.kind in REDIRECTIONS:
        _fail(state, out, f"bash: syntax error near unexpected token `{target.text}'")
    redirection = Redirection(token.kind, target.text)
    try:
        with redirection.open():
            pass
    except (OSError, ValueError):
        # A failure is only reported when no redirection of the same
        # direction comes right after to replace this one.
        if not _same_direction(redirection, following):
            _fail(state, out, f"bash: {target.text}: No such file or directory")
    return redirection


def build_command(
    state: ShellState, tokens: Iterable[Token], out: TextIO
) -> SimpleCommand | None:
    """Prepare the command at the start of ``tokens``, up to ``|`` or ``;``.

    Output files are created and input files checked on the way. The command
    word is lower-cased and looked up on PATH; a ``NAME=value`` command word
    is stored as a local variable instead. Words after a redirection are
    dropped. Returns None when there is nothing to run; errors are written
    to ``out`` and raised as CommandError.
    """
    items = list(itertools.takewhile(lambda t: t.kind not in _BOUNDARIES, tokens))
    argv: list[str] = []
    redirections: list[Redirection] = []
    started = redirected = closed = False
    skip_target = False
    for index, token in enumerate(items):
        if skip_target:
            skip_target = False
            continue
        if token.kind in REDIRECTIONS:
            redirections.append(
                _redirect(state, token, items[index + 1:index + 3], out)
            )
            redirected = True
            closed = closed or started
            skip_target = True
            continue
        is_command = token.kind is Kind.COMMAND or (not started and redirected)
        started = True
        if is_command:
            word = token.text.translate(_ASCII_LOWER)
            if _is_assignment(word):
                state.variables.set(*_split_assignment(word))
                return None
            resolved = resolve_path(state, word, out)
            if not closed:
                argv.append(resolved)
        elif not redirected:
            argv.append(token.text)
    if not argv:
        return None
    return SimpleCommand(argv, redirections)