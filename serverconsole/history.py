"""Bounded history of submitted console lines."""

from dataclasses import dataclass, field

from serverconsole.config import HISTORY_CAPACITY


@dataclass
class CommandHistory:
    """Ordered ring of past submitted lines.

    Holds at most ``capacity`` entries; adding to a full ring drops the
    oldest entry first.
    """

    capacity: int = HISTORY_CAPACITY

    _entries: list[str] = field(default_factory=list)

    def add(self, line: str) -> None:
        """Append a line, evicting the oldest entries beyond capacity."""
        while len(self._entries) >= self.capacity:
            self._entries.pop(0)
        self._entries.append(line)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    @property
    def entries(self) -> list[str]:
        """Copy of the entries, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> str:
        return self._entries[index]
