"""Split a command line into typed tokens and check them for syntax errors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Iterable

_OPERATORS = "|;<>"
_BLANKS = (" ", "\t")

SYNTAX_ERROR_STATUS = 258


class Kind(enum.Enum):
    """The role a token plays on a command line."""

    COMMAND = "COMMAND"
    STRING = "STRING"
    PIPE = "PIPE"
    SEMICOL = "SEMICOL"
    REDIN = "REDIN"
    REDOUT = "REDOUT"
    DOUBLEREDOUT = "DOUBLEREDOUT"


REDIRECTIONS = frozenset({Kind.REDIN, Kind.REDOUT, Kind.DOUBLEREDOUT})


@dataclass
class Token:
    """One word or operator of a command line.

    ``redin_redout`` marks a ``<`` that was written directly before ``>``.
    """

    text: str
    kind: Kind
    redin_redout: bool = False


class ShellSyntaxError(Exception):
    """A command line that cannot be run; ``status`` is the exit status."""

    status = SYNTAX_ERROR_STATUS

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _is_blank(char: str) -> bool:
    return char in _BLANKS


class _Lexer:
    """Scanner state for a single command line."""

    def __init__(self, line: str) -> None:
        self.text = line.strip(" \t")
        self.start = 0
        self.pos = 0
        self.is_cmd = False
        self.quoted = False
        self.escaped = False
        self.tokens: list[Token] = []

    def char(self, index: int) -> str:
        if 0 <= index < len(self.text):
            return self.text[index]
        return ""

    def flush(self) -> None:
        """Emit the pending word and move past the blanks that follow."""
        word = self.text[self.start:self.pos].strip(" \t")
        if word:
            if word[0] not in _OPERATORS:
                kind = Kind.STRING if self.is_cmd else Kind.COMMAND
                self.tokens.append(Token(word, kind))
            self.is_cmd = True
        self.start = self.pos
        while _is_blank(self.char(self.pos)):
            self.pos += 1

    def word_here(self) -> str:
        """Take the blank-delimited word starting at the current position."""
        end = self.pos
        while end < len(self.text) and not _is_blank(self.text[end]):
            end += 1
        word = self.text[self.pos:end]
        self.pos = end - 1
        return word

    def toggle_quote(self) -> None:
        self.quoted = not self.quoted
        if self.escaped and self.char(self.pos - 1) == "\\":
            self.quoted = False
            self.escaped = False

    def separator(self) -> None:
        """Handle ``|``, ``<`` or ``;`` outside quotes."""
        char = self.text[self.pos]
        self.flush()
        self.is_cmd = False
        if char == "|":
            if self.escaped:
                self.is_cmd = True
                token = Token(self.word_here(), Kind.STRING)
            else:
                token = Token("|", Kind.PIPE)
        elif char == "<":
            before_out = self.char(self.pos + 1) == ">"
            if self.escaped:
                token = Token(self.word_here(), Kind.STRING, before_out)
            else:
                self.is_cmd = True
                token = Token("<", Kind.REDIN, before_out)
        else:
            if self.escaped:
                self.is_cmd = True
                token = Token(self.word_here(), Kind.STRING)
            else:
                token = Token(";", Kind.SEMICOL)
        self.tokens.append(token)
        self.escaped = False
        self.start = self.pos + 1

    def redirect_out(self) -> None:
        """Handle ``>`` or ``>>`` outside quotes."""
        self.flush()
        if self.char(self.pos + 1) == ">":
            self.pos += 1
            if self.escaped:
                if self.tokens:
                    self.tokens.append(Token(">", Kind.STRING))
                token = Token(">>", Kind.REDOUT)
            else:
                token = Token(">>", Kind.DOUBLEREDOUT)
        elif self.escaped:
            self.escaped = False
            token = Token(self.word_here(), Kind.STRING)
        else:
            token = Token(">", Kind.REDOUT)
        self.tokens.append(token)
        self.start = self.pos + 1

    def run(self) -> list[Token]:
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if _is_blank(char) and not self.quoted:
                self.flush()
                char = self.char(self.pos)
            if char in ("'", '"'):
                self.toggle_quote()
            if char in ("|", "<", ";") and not self.quoted:
                self.separator()
            elif char == ">" and not self.quoted:
                self.redirect_out()
            char = self.char(self.pos)
            if char == "\\" and self.char(self.pos + 1) != " ":
                self.escaped = not self.escaped
            if char == "":
                break
            self.pos += 1
        self.flush()
        return self.tokens


def tokenize(line: str) -> list[Token]:
    """Split ``line`` into tokens; quotes are kept in the token text."""
    return _Lexer(line).run()


def _merge_escaped_operators(tokens: Iterable[Token]) -> list[Token]:
    merged: list[Token] = []
    can_absorb = False
    for token in tokens:
        token = replace(token)
        starts_with_operator = not token.text or token.text[0] in _OPERATORS
        if can_absorb and token.kind is Kind.STRING and starts_with_operator:
            merged[-1].text += token.text
            can_absorb = False
            continue
        merged.append(token)
        can_absorb = token.kind is Kind.STRING
    return merged


def check_syntax(tokens: Iterable[Token]) -> list[Token]:
    """Return the tokens with escaped operators rejoined, or raise ShellSyntaxError."""
    tokens = list(tokens)
    redin_redout = any(token.redin_redout for token in tokens)
    merged = _merge_escaped_operators(tokens)
    followers: list[Token | None] = [*merged[1:], None]
    for token, following in zip(merged, followers):
        if token.kind in REDIRECTIONS and (
            following is None or following.kind is not Kind.STRING
        ):
            if following is None or redin_redout:
                raise ShellSyntaxError(
                    "bash: syntax error nearunexpected token `newline'"
                )
            raise ShellSyntaxError(
                f"bash: syntax error near unexpected token `{following.text}'"
            )
        if (
            token.kind is Kind.PIPE
            and following is not None
            and following.kind is Kind.PIPE
        ):
            raise ShellSyntaxError("bash: syntax error near unexpected token `||'")
    return merged


def format_tokens(tokens: Iterable[Token]) -> str:
    """Render tokens as a human-readable listing for debugging."""
    parts = []
    for token in tokens:
        parts.append(f"\nnode = [{token.text}] index = {token.kind.name}")
        if token.kind is not Kind.DOUBLEREDOUT:
            parts.append("\n")
    parts.append("\n")
    return "".join(parts)