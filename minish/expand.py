"""Quote removal, backslash handling and ``$`` expansion of words."""

from __future__ import annotations

import string
from dataclasses import replace
from typing import Iterable

from minish.env import ShellState
from minish.lexer import Token

PROGRAM_NAME = "./minishell"
UNTERMINATED_MESSAGE = "Multi line detected..!!!"

_DIGITS = frozenset(string.digits)
_NAME_CHARS = frozenset(string.ascii_letters + string.digits + "_?")
_QUOTES = ("'", '"')
_DOUBLE_QUOTE_ESCAPES = ("\\", '"', "$")


class UnterminatedQuoteError(Exception):
    """A quote was opened and never closed."""

    status = 255

    def __init__(self, message: str = UNTERMINATED_MESSAGE) -> None:
        super().__init__(message)
        self.message = message


def expand_dollar(text: str, pos: int, state: ShellState) -> tuple[str, int]:
    """Expand the ``$`` at ``text[pos]``.

    Returns the replacement and the index just past the variable name.
    """
    if text[pos:pos + 1] != "$":
        raise ValueError(f"no '$' at position {pos}")
    end = pos + 1
    while end < len(text) and text[end] in _NAME_CHARS:
        end += 1
        if text[end - 1] in _DIGITS:
            break
    name = text[pos + 1:end]
    if name == "":
        return "$", end
    if name == "?":
        return str(state.status), end
    if name == "0":
        return PROGRAM_NAME, end
    return state.lookup(name), end


class _WordExpander:
    def __init__(self, word: str, state: ShellState) -> None:
        self.text = word
        self.state = state
        self.pos = 0
        self.out: list[str] = []

    def at(self, index: int) -> str:
        if 0 <= index < len(self.text):
            return self.text[index]
        return ""

    def run(self) -> str:
        while self.pos < len(self.text):
            if self.step():
                break
            self.pos += 1
        return "".join(self.out)

    def step(self) -> bool:
        """Handle the character at ``pos``; True means stop scanning."""
        char = self.text[self.pos]
        if char == "'":
            self.single_quoted()
        elif char == '"':
            self.double_quoted()
        elif char == "$":
            self.dollar()
        elif char == "\\":
            self.backslashes()
            return self.at(self.pos) == ""
        else:
            self.out.append(char)
        return False

    def dollar(self) -> None:
        value, end = expand_dollar(self.text, self.pos, self.state)
        self.out.extend(value)
        self.pos = end - 1

    def single_quoted(self) -> None:
        end = self.text.find("'", self.pos + 1)
        if end < 0:
            raise UnterminatedQuoteError()
        self.out.extend(self.text[self.pos + 1:end])
        self.pos = end

    def double_quoted(self) -> None:
        self.pos += 1
        while True:
            char = self.at(self.pos)
            if char == "":
                raise UnterminatedQuoteError()
            if char == '"':
                return
            following = self.at(self.pos + 1)
            if char == "\\" and following in _DOUBLE_QUOTE_ESCAPES:
                self.out.append(following)
                self.pos += 1
            elif char == "$":
                self.dollar()
            else:
                self.out.append(char)
            self.pos += 1

    def backslashes(self) -> None:
        """Process an unquoted stretch that begins with a backslash."""
        slashes = 0
        skip_next = False
        while (char := self.at(self.pos)) and char not in " \t":
            if char == "\\":
                while self.at(self.pos) == "\\":
                    if not skip_next:
                        self.out.append("\\")
                    self.pos += 1
                    skip_next = not skip_next
                    slashes += 1
                if slashes % 2 == 1 and self.out:
                    self.out.pop()
                self.pos -= 1
            elif char == "$" and slashes % 2 == 0:
                self.pos -= 1
                return
            else:
                if char in _QUOTES and slashes % 2 == 0:
                    self.pos -= 1
                    return
                self.out.append(char)
                slashes = 0
                if char in _QUOTES and self.at(self.pos + 1) == char:
                    return
            if self.at(self.pos) == "":
                return
            self.pos += 1


def expand_word(word: str, state: ShellState) -> str:
    """Remove quotes, resolve backslashes and expand variables in ``word``."""
    if word == "\\":
        return " "
    return _WordExpander(word, state).run()


def expand_tokens(tokens: Iterable[Token], state: ShellState) -> list[Token]:
    """Return copies of ``tokens`` with their text expanded."""
    return [replace(token, text=expand_word(token.text, state)) for token in tokens]