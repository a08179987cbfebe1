"""Terminal driver protocol and the ANSI terminal driver.

The console only talks to a terminal through the TerminalDriver protocol:
absolute cursor positioning in rows and columns, colored writes, and a
blocking single-key read. AnsiTerminal implements it for VT100-capable Unix
terminals, writing through a rich Console and reading keys in cbreak mode.
"""

import atexit
import codecs
import logging
import os
import re
import sys
from dataclasses import dataclass
from typing import Protocol, TextIO

from rich.cells import cell_len
from rich.console import Console
from rich.control import Control
from rich.style import Style

from serverconsole.errors import TerminalUnavailableError

_IS_WINDOWS = os.name == "nt"

if not _IS_WINDOWS:
    import select
    import termios

logger = logging.getLogger(__name__)


# =============================================================================
# Keys
# =============================================================================


class Key:
    """Named constants for special keys."""

    UP = "key_up"
    DOWN = "key_down"
    LEFT = "key_left"
    RIGHT = "key_right"
    HOME = "key_home"
    END = "key_end"
    BACKSPACE = "key_backspace"
    DELETE = "key_delete"
    TAB = "key_tab"
    ENTER = "key_enter"
    ESCAPE = "key_escape"


@dataclass(frozen=True)
class KeyPress:
    """One keystroke.

    Attributes:
        char: The character produced, empty for keys without one.
        key: Key constant for named keys, or the letter for Ctrl combinations.
        ctrl: True when the Control modifier was held.

    """

    char: str = ""
    key: str | None = None
    ctrl: bool = False

    @property
    def is_control(self) -> bool:
        return self.key is not None or not self.char.isprintable()


class TerminalDriver(Protocol):
    """Protocol for terminal drivers used by the console.

    Rows and columns are zero-based. Any method may raise one of
    serverconsole.errors.TERMINAL_ERRORS on a detached or redirected terminal.
    """

    @property
    def cursor_row(self) -> int: ...

    @property
    def cursor_col(self) -> int: ...

    def set_cursor_row(self, row: int) -> None: ...

    def set_cursor_col(self, col: int) -> None: ...

    @property
    def buffer_width(self) -> int: ...

    @property
    def buffer_height(self) -> int: ...

    def write(self, text: str) -> None: ...

    def write_line(self, text: str = "") -> None: ...

    def set_foreground_color(self, color: str) -> None: ...

    def reset_color(self) -> None: ...

    def read_key(self) -> KeyPress: ...

    def clear_screen(self) -> None: ...


# =============================================================================
# Escape sequence trie for input parsing
# =============================================================================

# Multiple entries per key to handle terminal variants (xterm, rxvt, tmux,
# application mode).
_ESCAPE_SEQUENCES = {
    "\x1b[A": Key.UP,
    "\x1bOA": Key.UP,
    "\x1b[B": Key.DOWN,
    "\x1bOB": Key.DOWN,
    "\x1b[C": Key.RIGHT,
    "\x1bOC": Key.RIGHT,
    "\x1b[D": Key.LEFT,
    "\x1bOD": Key.LEFT,
    "\x1b[H": Key.HOME,
    "\x1bOH": Key.HOME,
    "\x1b[1~": Key.HOME,
    "\x1b[7~": Key.HOME,
    "\x1b[F": Key.END,
    "\x1bOF": Key.END,
    "\x1b[4~": Key.END,
    "\x1b[8~": Key.END,
    "\x1b[3~": Key.DELETE,
}


def _build_trie(sequences: dict[str, str]) -> dict:
    """Build a trie (nested dict) from an escape sequence table."""
    root: dict = {}
    for seq, key in sequences.items():
        node = root
        for ch in seq[:-1]:
            node = node.setdefault(ch, {})
        node[seq[-1]] = key
    return root


_ESCAPE_TRIE = _build_trie(_ESCAPE_SEQUENCES)

_CURSOR_REPORT = re.compile(r"\x1b\[(\d+);(\d+)R")

# Milliseconds to wait for the rest of an escape sequence
_ESCAPE_TIMEOUT_MS = 25

_CURSOR_QUERY_TIMEOUT_MS = 200


def decode_char(ch: str) -> KeyPress:
    """Translate a single input character into a KeyPress."""
    if ch in ("\x7f", "\x08"):
        return KeyPress(key=Key.BACKSPACE)
    # On Unix ICRNL is cleared for raw input, so Enter arrives as CR
    if ch in ("\r", "\n"):
        return KeyPress(char="\n", key=Key.ENTER)
    if ch == "\t":
        return KeyPress(char="\t", key=Key.TAB)
    if ch == "\x1b":
        return KeyPress(char=ch, key=Key.ESCAPE)
    if ord(ch) < 0x20:
        # Ctrl-A is 0x01, Ctrl-Z is 0x1a
        return KeyPress(char=ch, key=chr(ord(ch) + 0x60), ctrl=True)
    return KeyPress(char=ch)


# =============================================================================
# AnsiTerminal
# =============================================================================


class AnsiTerminal:
    """TerminalDriver for VT100-capable Unix terminals.

    VT100 terminals cannot be asked for the cursor position cheaply, so the
    driver keeps a shadow cursor: seeded from a cursor position report when
    opened, then advanced by every write using the terminal's own wrapping
    (a write into the last column leaves a pending wrap) and scrolling rules.
    All output must go through this driver for the shadow to stay accurate.

    Args:
        console: Optional rich Console to write through.
        stdin: Input stream, defaults to sys.stdin.

    Usage:
        with AnsiTerminal() as terminal:
            console = LocalConsole(terminal)
            ...

    """

    def __init__(self, console: Console | None = None, stdin: TextIO | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._stdin = stdin or sys.stdin
        self._fd = -1
        self._row = 0
        self._col = 0
        self._wrap_pending = False
        self._style: Style | None = None
        self._old_termios: list | None = None
        self._poller = None
        self._decoder = codecs.getincrementaldecoder("utf-8")("replace")
        self._esc_buf: list[str] = []
        self._esc_node: dict | None = None
        self._pending: list[KeyPress] = []

    # --- Lifecycle ---

    def open(self) -> "AnsiTerminal":
        """Switch the terminal to cbreak mode and locate the cursor.

        Raises:
            TerminalUnavailableError: If stdin or stdout is not a terminal.

        """
        if _IS_WINDOWS:
            raise TerminalUnavailableError("Windows consoles are not supported")
        try:
            self._fd = self._stdin.fileno()
        except (AttributeError, OSError, ValueError) as e:
            raise TerminalUnavailableError(f"stdin has no file descriptor: {e}") from e
        if not os.isatty(self._fd):
            raise TerminalUnavailableError("stdin is not a terminal")
        if not self._console.is_terminal:
            raise TerminalUnavailableError("stdout is not a terminal")

        self._old_termios = termios.tcgetattr(self._fd)
        self._set_cbreak()
        self._poller = select.poll()
        self._poller.register(self._fd, select.POLLIN)
        atexit.register(self.close)

        self._row, self._col = self._query_cursor()
        logger.debug("Terminal opened at row %d col %d", self._row, self._col)
        return self

    def close(self) -> None:
        """Restore the terminal settings saved by open()."""
        if self._old_termios is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._old_termios)
            self._old_termios = None
            atexit.unregister(self.close)

    def __enter__(self) -> "AnsiTerminal":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _set_cbreak(self) -> None:
        """Apply cbreak terminal settings: no echo, no canonical mode."""
        new = termios.tcgetattr(self._fd)
        # LFLAG: clear ICANON, ECHO, IEXTEN; keep ISIG for Ctrl-C
        new[3] &= ~(termios.ICANON | termios.ECHO | termios.IEXTEN)
        # IFLAG: clear IXON, IXOFF, ICRNL, INLCR, IGNCR
        new[1] &= ~(
            termios.IXON | termios.IXOFF | termios.ICRNL | termios.INLCR | termios.IGNCR
        )
        new[6][termios.VMIN] = 1
        new[6][termios.VTIME] = 0
        termios.tcsetattr(self._fd, termios.TCSANOW, new)

    def _query_cursor(self) -> tuple[int, int]:
        """Ask the terminal for the cursor position (DSR 6).

        Falls back to the bottom-left corner when the terminal does not
        answer in time.
        """
        fallback = (max(0, self.buffer_height - 1), 0)
        self._console.file.write("\x1b[6n")
        self._console.file.flush()

        reply = ""
        while self._poller.poll(_CURSOR_QUERY_TIMEOUT_MS):
            data = os.read(self._fd, 64)
            if not data:
                break
            reply += data.decode("ascii", "replace")
            match = _CURSOR_REPORT.search(reply)
            if match:
                # Keys typed before the report arrived are kept for read_key
                for ch in reply[:match.start()]:
                    self._pending.append(decode_char(ch))
                return int(match.group(1)) - 1, int(match.group(2)) - 1
        logger.debug("No cursor position report, assuming bottom row")
        return fallback

    # --- Geometry ---

    @property
    def cursor_row(self) -> int:
        return self._row

    @property
    def cursor_col(self) -> int:
        return self._col

    @property
    def buffer_width(self) -> int:
        return self._console.size.width

    @property
    def buffer_height(self) -> int:
        return self._console.size.height

    def set_cursor_row(self, row: int) -> None:
        if not 0 <= row < self.buffer_height:
            raise ValueError(f"cursor row {row} outside 0..{self.buffer_height - 1}")
        self._row = row
        self._wrap_pending = False
        self._console.control(Control.move_to(self._col, self._row))

    def set_cursor_col(self, col: int) -> None:
        if not 0 <= col < self.buffer_width:
            raise ValueError(f"cursor column {col} outside 0..{self.buffer_width - 1}")
        self._col = col
        self._wrap_pending = False
        self._console.control(Control.move_to(self._col, self._row))

    # --- Output ---

    def write(self, text: str) -> None:
        self._console.print(
            text,
            style=self._style,
            end="",
            soft_wrap=True,
            markup=False,
            highlight=False,
            emoji=False,
        )
        self._advance(text)

    def write_line(self, text: str = "") -> None:
        self.write(text + "\n")

    def set_foreground_color(self, color: str) -> None:
        self._style = Style(color=color)

    def reset_color(self) -> None:
        self._style = None

    def clear_screen(self) -> None:
        self._console.clear()
        self._row = 0
        self._col = 0
        self._wrap_pending = False

    def _newline(self) -> None:
        # Past the bottom row the terminal scrolls and the cursor stays put
        self._row = min(self._row + 1, max(0, self.buffer_height - 1))
        self._col = 0
        self._wrap_pending = False

    def _advance(self, text: str) -> None:
        """Move the shadow cursor the way the terminal moved the real one."""
        width = self.buffer_width
        for ch in text:
            if ch == "\n":
                self._newline()
            elif ch == "\r":
                self._col = 0
                self._wrap_pending = False
            else:
                cells = cell_len(ch)
                if not cells:
                    continue
                if self._wrap_pending or self._col + cells > width:
                    self._newline()
                self._col += cells
                if self._col >= width:
                    self._col = width - 1
                    self._wrap_pending = True

    # --- Input ---

    def read_key(self) -> KeyPress:
        """Block until a key is pressed.

        Raises:
            TerminalUnavailableError: If input reached end of file or the
                terminal was never opened.

        """
        if self._pending:
            return self._pending.pop(0)
        if self._poller is None:
            raise TerminalUnavailableError("terminal is not open")

        while True:
            try:
                data = os.read(self._fd, 1024)
            except InterruptedError:
                continue
            if not data:
                raise TerminalUnavailableError("input closed")

            for ch in self._decoder.decode(data):
                key = self._feed_escape(ch)
                if key is not None:
                    self._pending.append(key)

            # A lone ESC only counts once no sequence follows it
            if self._esc_buf and not self._poller.poll(_ESCAPE_TIMEOUT_MS):
                self._pending.append(self._flush_escape())

            if self._pending:
                return self._pending.pop(0)

    def _feed_escape(self, ch: str) -> KeyPress | None:
        """Feed a character to the escape sequence parser.

        Returns a KeyPress once a complete key was parsed, or None if more
        input is needed.
        """
        if self._esc_node is not None:
            if ch not in self._esc_node:
                # Dead end: queue the ESC, then treat ch on its own
                self._pending.append(self._flush_escape())
                return self._feed_escape(ch)

            val = self._esc_node[ch]
            if isinstance(val, dict):
                self._esc_buf.append(ch)
                self._esc_node = val
                return None

            self._esc_buf = []
            self._esc_node = None
            return KeyPress(key=val)

        if ch == "\x1b":
            self._esc_buf = [ch]
            self._esc_node = _ESCAPE_TRIE["\x1b"]
            return None
        return decode_char(ch)

    def _flush_escape(self) -> KeyPress:
        """Drop a partial escape sequence, reporting the ESC key."""
        self._esc_buf = []
        self._esc_node = None
        return decode_char("\x1b")
