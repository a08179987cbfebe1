"""Shared fixtures: an in-memory terminal and a recording sink."""

import queue

import pytest

from serverconsole.commands import CommandTree
from serverconsole.console import LocalConsole
from serverconsole.errors import TerminalUnavailableError
from serverconsole.levels import Level
from serverconsole.terminal import KeyPress, decode_char

KEY_TIMEOUT = 5


class FakeTerminal:
    """Character grid terminal with scripted input.

    Writing into the last column wraps straight to the next row, and a
    newline on the bottom row scrolls the grid. Cursor setters reject
    out-of-range positions like a real console driver.

    Scripted input items are KeyPress objects, or callables run when the
    reader reaches them (to interleave output with keystrokes).
    """

    def __init__(self, width: int = 80, height: int = 25) -> None:
        self.width = width
        self.height = height
        self.screen = [[" "] * width for _ in range(height)]
        self.row = 0
        self.col = 0
        self.color: str | None = None
        self.writes: list[tuple[str, str | None]] = []
        self.cleared = 0
        self.keys: queue.Queue = queue.Queue()

    # --- TerminalDriver ---

    @property
    def cursor_row(self) -> int:
        return self.row

    @property
    def cursor_col(self) -> int:
        return self.col

    @property
    def buffer_width(self) -> int:
        return self.width

    @property
    def buffer_height(self) -> int:
        return self.height

    def set_cursor_row(self, row: int) -> None:
        if not 0 <= row < self.height:
            raise ValueError(f"row {row} out of range")
        self.row = row

    def set_cursor_col(self, col: int) -> None:
        if not 0 <= col < self.width:
            raise ValueError(f"column {col} out of range")
        self.col = col

    def write(self, text: str) -> None:
        self.writes.append((text, self.color))
        for ch in text:
            if ch == "\n":
                self._newline()
                continue
            if 0 <= self.row < len(self.screen) and 0 <= self.col < self.width:
                self.screen[self.row][self.col] = ch
            self.col += 1
            if self.width and self.col >= self.width:
                self._newline()

    def write_line(self, text: str = "") -> None:
        self.write(text + "\n")

    def set_foreground_color(self, color: str) -> None:
        self.color = color

    def reset_color(self) -> None:
        self.color = None

    def read_key(self) -> KeyPress:
        while True:
            item = self.keys.get(timeout=KEY_TIMEOUT)
            if item is None:
                raise TerminalUnavailableError("input closed")
            if callable(item):
                item()
                continue
            return item

    def clear_screen(self) -> None:
        self.screen = [[" "] * self.width for _ in range(self.height)]
        self.row = 0
        self.col = 0
        self.cleared += 1

    # --- Test helpers ---

    def _newline(self) -> None:
        self.col = 0
        self.row += 1
        if self.row >= self.height:
            self.screen.pop(0)
            self.screen.append([" "] * self.width)
            self.row = self.height - 1

    def feed(self, *items) -> None:
        """Queue input: strings are typed char by char, Key constants and
        KeyPress objects are pressed, callables run in the reader thread."""
        for item in items:
            if isinstance(item, KeyPress) or callable(item) or item is None:
                self.keys.put(item)
            elif item.startswith("key_"):
                self.keys.put(KeyPress(key=item))
            else:
                for ch in item:
                    self.keys.put(decode_char(ch))

    def line_text(self, row: int) -> str:
        return "".join(self.screen[row]).rstrip()

    def screen_lines(self) -> list[str]:
        return [self.line_text(row) for row in range(self.height)]


class RecordingSink:
    """LogSink keeping every record in memory."""

    def __init__(self) -> None:
        self.records: list[tuple[Level, str]] = []

    def record(self, level: Level, text: str) -> None:
        self.records.append((level, text))

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.records]


@pytest.fixture
def terminal():
    return FakeTerminal()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def commands():
    tree = CommandTree()
    tree.ran = []
    tree.add_command("show uptime", "show uptime", "Time since start", lambda args: tree.ran.append(args))
    tree.add_command("show threads", "show threads", "List threads", lambda args: tree.ran.append(args))
    tree.add_command("set motd", "set motd <text>", "Set the welcome text", lambda args: tree.ran.append(args))
    return tree


@pytest.fixture
def console(terminal, sink, commands):
    return LocalConsole(terminal, commands, sink)
