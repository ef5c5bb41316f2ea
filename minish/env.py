"""Shell variable tables: the exported environment and local variables."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator


def _split_entry(entry: str) -> tuple[str, str]:
    name, _, value = entry.partition("=")
    return name, value


class Environment:
    """An ordered table of ``NAME=value`` pairs.

    Updates and removals pick the first entry whose name begins with the
    given name, and an update renames that entry to the given name.
    """

    def __init__(self, entries: Iterable[tuple[str, str]] = ()) -> None:
        self._entries: list[list[str]] = [[name, value] for name, value in entries]

    @classmethod
    def from_strings(cls, entries: Iterable[str]) -> "Environment":
        """Build a table from ``NAME=value`` strings."""
        return cls(_split_entry(entry) for entry in entries)

    def _find_prefixed(self, name: str) -> int | None:
        for index, entry in enumerate(self._entries):
            if entry[0].startswith(name):
                return index
        return None

    def get(self, name: str) -> str | None:
        """Return the value of the variable called exactly ``name``, or None."""
        for entry_name, value in self._entries:
            if entry_name == name:
                return value
        return None

    def set(self, name: str, value: str) -> None:
        """Replace the first entry whose name starts with ``name``, or append one."""
        index = self._find_prefixed(name)
        if index is None:
            self._entries.append([name, value])
        else:
            self._entries[index] = [name, value]

    def remove(self, name: str) -> bool:
        """Drop the first entry whose name starts with ``name``; report success."""
        index = self._find_prefixed(name)
        if index is None:
            return False
        del self._entries[index]
        return True

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield ``(name, value)`` pairs in insertion order."""
        for name, value in self._entries:
            yield name, value

    def to_strings(self) -> list[str]:
        """Render the table as ``NAME=value`` strings."""
        return [f"{name}={value}" for name, value in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return any(entry[0] == name for entry in self._entries)

    def __repr__(self) -> str:
        return f"Environment({list(self.items())!r})"


@dataclass
class ShellState:
    """Everything a running shell keeps between commands."""

    environ: Environment = field(default_factory=Environment)
    variables: Environment = field(default_factory=Environment)
    status: int = 0

    def lookup(self, name: str) -> str:
        """Return a variable's value, exported ones first; empty if unset."""
        value = self.environ.get(name)
        if value is None:
            value = self.variables.get(name)
        return "" if value is None else value