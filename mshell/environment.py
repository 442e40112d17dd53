"""The shell's ordered environment list."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping


@dataclass
class EnvEntry:
    """One environment line, split into its name and value.

    ``value`` is ``None`` when the line holds no ``=``. That is a variable
    that is declared but never assigned.
    """

    line: str
    name: str
    value: str | None

    @classmethod
    def parse(cls, line: str) -> "EnvEntry":
        name, sep, value = line.partition("=")
        return cls(line, name, value if sep else None)

    @property
    def has_value(self) -> bool:
        return self.value is not None


class Environment:
    """Environment variables kept in insertion order, as ``NAME=value`` lines."""

    def __init__(self, entries: Iterable[str] = ()) -> None:
        self._entries: list[EnvEntry] = [EnvEntry.parse(line) for line in entries]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "Environment":
        return cls(f"{name}={value}" for name, value in mapping.items())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EnvEntry]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"Environment({self.to_list()!r})"

    def index_of_assignment(self, line: str) -> int | None:
        """Return the position of the assigned entry named like ``line``.

        Only entries that carry an ``=`` match.
        """
        name = line.partition("=")[0]
        for position, entry in enumerate(self._entries):
            if entry.line.startswith(name) and entry.line[len(name):len(name) + 1] == "=":
                return position
        return None

    def index_of_name(self, name: str) -> int | None:
        """Return the position of the entry named ``name``, assigned or not."""
        for position, entry in enumerate(self._entries):
            if entry.line.startswith(name) and entry.line[len(name):len(name) + 1] in ("=", ""):
                return position
        return None

    def get(self, name: str) -> str | None:
        """Return the value of ``name``, or ``None`` if it is unset or has no value."""
        for entry in self._entries:
            if entry.name == name:
                return entry.value
        return None

    def add(self, line: str) -> None:
        """Append ``line`` as a new entry."""
        self._entries.append(EnvEntry.parse(line))

    def update(self, line: str) -> None:
        """Set the variable that ``line`` names, or append it if it is new.

        An empty environment stays unchanged. A line with no ``=`` leaves an
        existing assigned entry as it is.
        """
        if not self._entries:
            return
        position = self.index_of_assignment(line)
        if position is None:
            self.add(line)
        elif "=" in line:
            self._entries[position] = EnvEntry.parse(line)

    def remove_at(self, index: int) -> EnvEntry:
        """Remove the entry at ``index`` and return it.

        Raises ``IndexError`` when no entry sits at ``index``.
        """
        if not -len(self._entries) <= index < len(self._entries):
            raise IndexError(f"no environment entry at position {index}")
        return self._entries.pop(index)

    def to_list(self) -> list[str]:
        """Return the entries as raw lines, in order."""
        return [entry.line for entry in self._entries]

    def to_dict(self) -> dict[str, str]:
        """Return the assigned variables as a mapping from name to value."""
        return {entry.name: entry.value for entry in self._entries if entry.value is not None}