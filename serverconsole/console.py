"""LocalConsole: line editor and output multiplexer for a server terminal.

One thread sits in read_line() turning keystrokes into edits of the input
line while any number of other threads call output(). Both sides share one
reentrant lock. An output call blanks the line being edited, prints its
text where the line was, and redraws the prompt and buffer underneath, so log
lines never tear through what the operator is typing.

Cursor geometry is absolute: the console remembers the terminal row where the
prompt starts and derives the cursor row and column from the prompt length,
the cursor offset and the terminal width, scrolling the terminal when the
wrapped line would run past the bottom.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from serverconsole.colorize import ConsoleColor, render_lines
from serverconsole.commands import CommandTree, tokenize
from serverconsole.config import (
    CLEAR_CONSOLE_COMMAND,
    COMMAND_HELP_PREFIX,
    CONSOLE_NAME,
    DEFAULT_PROMPT,
    HISTORY_CAPACITY,
    MAX_LINE_LENGTH,
    NO_OPTIONS_MESSAGE,
    ConsoleConfig,
)
from serverconsole.errors import TERMINAL_ERRORS
from serverconsole.history import CommandHistory
from serverconsole.levels import Level
from serverconsole.linestate import NO_EDIT, LineEditState, PromptOptionCycle
from serverconsole.logsink import LoggingSink, LogSink
from serverconsole.terminal import Key, KeyPress, TerminalDriver

logger = logging.getLogger(__name__)


class LocalConsole:
    """Interactive console on a local terminal.

    Args:
        terminal: Driver for the terminal the console draws on.
        commands: Command tree for context help and command resolution.
            Without one, ``?`` and Tab are plain input.
        sink: Transcript sink receiving every output call.
        history_capacity: Maximum number of history entries.
        max_line_length: Longest line the editor accepts.

    Usage:
        console = LocalConsole(terminal, commands)
        threading.Thread(target=worker, args=(console,)).start()
        while True:
            console.read_line("Region (root) # ")

    """

    name = CONSOLE_NAME

    def __init__(
        self,
        terminal: TerminalDriver,
        commands: CommandTree | None = None,
        sink: LogSink | None = None,
        history_capacity: int = HISTORY_CAPACITY,
        max_line_length: int = MAX_LINE_LENGTH,
    ) -> None:
        self._terminal = terminal
        self.commands = commands
        self._sink = sink or LoggingSink()
        self._history = CommandHistory(capacity=history_capacity)
        self.max_line_length = max_line_length
        self.default_prompt = DEFAULT_PROMPT
        self._line = LineEditState()
        self._options: PromptOptionCycle | None = None
        self._lock = threading.RLock()

    def initialize(self, config: ConsoleConfig | None) -> bool:
        """Apply configuration if it selects this console.

        Registers the built-in ``help`` command on the command tree.

        Returns:
            False if there is no configuration or it names another console.

        """
        if config is None or config.console != self.name:
            return False

        self.default_prompt = config.prompt
        self.max_line_length = config.max_line_length
        self._history = CommandHistory(capacity=config.history_capacity)
        if self.commands is not None and not self.commands.has_command("help"):
            self.commands.add_command("help", "help", "Get a general command list", self._show_help)
        return True

    def _show_help(self, args: list[str]) -> None:
        self.output("\n".join(self.commands.help_lines()), Level.INFO)

    @property
    def history(self) -> list[str]:
        """Submitted lines, oldest first."""
        return self._history.entries

    @property
    def line(self) -> LineEditState:
        """The current edit state."""
        return self._line

    # =========================================================================
    # Terminal access
    # =========================================================================

    def _set_cursor_row(self, row: int) -> int:
        """Move to ``row``, clamped to the terminal height.

        A height of zero, seen while a terminal is being resized, skips the
        clamp.

        Returns:
            The row actually requested from the driver.

        """
        # Fix an out-of-range column first, drivers may reject the move otherwise
        col = self._terminal.cursor_col
        width = self._terminal.buffer_width
        if col < 0:
            self._terminal.set_cursor_col(0)
        elif width > 0 and col >= width:
            self._terminal.set_cursor_col(width - 1)

        if row < 0:
            row = 0
        else:
            height = self._terminal.buffer_height
            if height > 0 and row >= height:
                row = height - 1
        self._terminal.set_cursor_row(row)
        return row

    def _set_cursor_col(self, col: int) -> int:
        """Move to ``col``, clamped to the terminal width.

        Returns:
            The column actually requested from the driver.

        """
        row = self._terminal.cursor_row
        height = self._terminal.buffer_height
        if row < 0:
            self._terminal.set_cursor_row(0)
        elif height > 0 and row >= height:
            self._terminal.set_cursor_row(height - 1)

        if col < 0:
            col = 0
        else:
            width = self._terminal.buffer_width
            if width > 0 and col >= width:
                col = width - 1
        self._terminal.set_cursor_col(col)
        return col

    def _write_color_text(self, color: ConsoleColor, text: str) -> None:
        try:
            self._terminal.set_foreground_color(color.value)
        except TERMINAL_ERRORS:
            # No color support, write it plain
            self._terminal.write(text)
            return
        try:
            self._terminal.write(text)
        finally:
            self._terminal.reset_color()

    def _write_local_text(self, text: str, level: Level) -> None:
        """Record ``text`` to the sink and print it colored, ending the line."""
        self._sink.record(level, text)
        try:
            lines = render_lines(text, level)
            for index, segments in enumerate(lines):
                for segment in segments:
                    self._write_color_text(segment.color, segment.text)
                if index < len(lines) - 1:
                    self._terminal.write_line()
            self._terminal.write_line()
        except TERMINAL_ERRORS:
            logger.debug("Terminal unavailable, output went to the transcript only", exc_info=True)

    # =========================================================================
    # Redraw
    # =========================================================================

    def _blank_line(self) -> None:
        """Overwrite the rendered prompt and buffer with spaces.

        Leaves the cursor at the start of the baseline row.
        """
        line = self._line
        line.row = self._set_cursor_row(line.row)
        self._set_cursor_col(0)
        self._terminal.write(" " * line.rendered_width)
        line.row = self._set_cursor_row(line.row)
        self._set_cursor_col(0)

    def _show(self) -> None:
        """Draw the prompt and buffer at the baseline row and place the cursor."""
        with self._lock:
            line = self._line
            if not line.active:
                return
            try:
                self._draw()
            except TERMINAL_ERRORS:
                logger.debug("Redraw failed", exc_info=True)

    def _draw(self) -> None:
        line = self._line
        width = self._terminal.buffer_width
        height = self._terminal.buffer_height
        if width <= 0:
            return

        xc = len(line.prompt) + line.cursor
        new_col = xc % width
        new_row = line.row + xc // width
        end_row = line.row + line.rendered_width // width
        if end_row - line.row + 1 > line.height:
            line.height = end_row - line.row + 1

        if height > 0 and end_row >= height:
            # The line runs past the bottom: scroll everything up one row
            line.row -= 1
            new_row -= 1
            self._set_cursor_col(0)
            self._set_cursor_row(height - 1)
            self._terminal.write_line(" ")

        line.row = self._set_cursor_row(line.row)
        self._set_cursor_col(0)
        self._terminal.write(line.rendered)

        self._set_cursor_row(new_row)
        self._set_cursor_col(new_col)

    def _redraw_shrunk(self, old_width: int) -> None:
        """Redraw after the line got shorter, blanking the stale tail."""
        line = self._line
        try:
            self._set_cursor_col(0)
            line.row = self._set_cursor_row(line.row)
            if line.echo:
                tail = " " * max(1, old_width - line.rendered_width)
                self._terminal.write(line.rendered + tail)
            else:
                self._terminal.write(line.prompt)
        except TERMINAL_ERRORS:
            logger.debug("Redraw failed", exc_info=True)

    # =========================================================================
    # Output
    # =========================================================================

    def output(self, text: str, level: Level = Level.DEBUG) -> None:
        """Print a line from any thread without disturbing the edit line.

        Args:
            text: Text to print. Line breaks split it into several lines.
            level: Severity, selects the colors.

        """
        with self._lock:
            line = self._line
            if not line.active:
                self._write_local_text(text, level)
                return

            try:
                self._blank_line()
            except TERMINAL_ERRORS:
                logger.debug("Could not blank the edit line", exc_info=True)

            self._write_local_text(text, level)

            try:
                line.row = self._terminal.cursor_row
            except TERMINAL_ERRORS:
                logger.debug("Could not read the cursor row", exc_info=True)
            self._show()

    def lock_output(self) -> None:
        """Take the output lock and blank the edit line.

        Must be paired with unlock_output(); prefer locked_output().
        """
        self._lock.acquire()
        if self._line.active:
            try:
                self._blank_line()
            except TERMINAL_ERRORS:
                logger.debug("Could not blank the edit line", exc_info=True)

    def unlock_output(self) -> None:
        """Redraw the edit line where the cursor now is and release the lock."""
        try:
            if self._line.active:
                try:
                    self._line.row = self._terminal.cursor_row
                except TERMINAL_ERRORS:
                    logger.debug("Could not read the cursor row", exc_info=True)
                self._show()
        finally:
            self._lock.release()

    @contextmanager
    def locked_output(self) -> Iterator[None]:
        """Context manager holding the output lock with the edit line blanked.

        Example:
            with console.locked_output():
                terminal.write_line("first")
                terminal.write_line("second")

        """
        self.lock_output()
        try:
            yield
        finally:
            self.unlock_output()

    # =========================================================================
    # Prompt options
    # =========================================================================

    def set_prompt_options(self, options: list[str], default: str = "") -> None:
        """Arm Left/Right cycling through ``options`` for the next reads."""
        index = options.index(default) if default in options else 0
        self._options = PromptOptionCycle(list(options), index)

    def clear_prompt_options(self) -> None:
        self._options = None

    def prompt(self, question: str, default: str = "", options: list[str] | None = None) -> str:
        """Ask a question and return the answer.

        With ``options``, Left/Right cycle through them and the question is
        asked again until the answer is one of them.

        Args:
            question: Question text.
            default: Answer returned for an empty line.
            options: Accepted answers.

        Returns:
            The answer, or ``default`` if the line was empty.

        """
        text = question
        if options:
            text += f" ({', '.join(options)})"
        if default:
            text += f" [{default}]"
        text += ": "

        if options:
            self.set_prompt_options(options, default)
        try:
            while True:
                answer = self.read_line(text, is_command=False, echo=True) or default
                if not options or answer in options:
                    return answer
                self.output(f"Valid options are {', '.join(options)}", Level.WARN)
        finally:
            if options:
                self.clear_prompt_options()

    def password_prompt(self, question: str) -> str:
        """Read a line without echoing it. The answer is kept out of history."""
        return self.read_line(f"{question}: ", is_command=False, echo=False)

    # =========================================================================
    # Read loop
    # =========================================================================

    def read_line(self, prompt: str | None = None, is_command: bool = True, echo: bool = True) -> str:
        """Read one line from the operator.

        Blocks until Enter. In command mode the line is resolved and run
        through the command tree and the result is empty; otherwise the line
        itself is returned.

        Args:
            prompt: Prompt text, defaults to the configured prompt.
            is_command: True for command entry (context help, resolution).
            echo: False to hide typed characters.

        Returns:
            The entered line, or an empty string in command mode.

        Raises:
            TerminalUnavailableError: If the terminal input is gone.

        """
        line = self._line
        with self._lock:
            line.reset(self.default_prompt if prompt is None else prompt, echo)
            try:
                line.row = self._terminal.cursor_row
            except TERMINAL_ERRORS:
                line.row = 0

        history_line = len(self._history)
        try:
            while True:
                self._show()
                key = self._terminal.read_key()
                if key.key == Key.ENTER:
                    return self._submit(is_command)
                with self._lock:
                    if key.is_control:
                        history_line = self._handle_control(key, history_line)
                    else:
                        self._handle_char(key.char, is_command)
        finally:
            with self._lock:
                line.row = NO_EDIT

    def _handle_char(self, char: str, is_command: bool) -> None:
        line = self._line
        if len(line.buffer) >= self.max_line_length:
            return
        if char == "?" and is_command and self._context_help():
            return
        line.insert(char)

    def _handle_control(self, key: KeyPress, history_line: int) -> int:
        """Apply one control key. Returns the updated history position."""
        line = self._line

        if key.key == Key.BACKSPACE or key.key == Key.DELETE:
            old_width = line.rendered_width
            if key.key == Key.BACKSPACE:
                changed = line.backspace()
            else:
                changed = line.delete()
            if changed:
                self._redraw_shrunk(old_width)
        elif key.ctrl and key.key == "a":
            line.selected = True
        elif key.key == Key.HOME:
            line.home()
        elif key.key == Key.END:
            line.end()
        elif key.key == Key.UP:
            if history_line > 0:
                line.selected = False
                history_line -= 1
                with self.locked_output():
                    line.replace(self._history[history_line])
        elif key.key == Key.DOWN:
            if history_line < len(self._history):
                line.selected = False
                history_line += 1
                with self.locked_output():
                    if history_line == len(self._history):
                        line.replace("")
                    else:
                        line.replace(self._history[history_line])
        elif key.key in (Key.LEFT, Key.RIGHT):
            self._handle_arrow(key.key)
            line.selected = False
        elif key.key == Key.TAB:
            self._context_help()
            line.selected = False
        else:
            line.selected = False
        return history_line

    def _handle_arrow(self, key: str) -> None:
        line = self._line
        options = self._options
        if options is None or not options.options:
            line.move(-1 if key == Key.LEFT else 1)
            return

        last = options.current
        if key == Key.LEFT:
            options.previous()
        else:
            options.next()
        current = options.current
        padded = current + " " * max(0, len(last) - len(current))

        with self.locked_output():
            line.replace(current, line.cursor)
            try:
                self._set_cursor_col(0)
                self._terminal.write(line.prompt + padded)
            except TERMINAL_ERRORS:
                logger.debug("Could not draw prompt option", exc_info=True)

    def _submit(self, is_command: bool) -> str:
        line = self._line
        with self._lock:
            line.selected = False
            try:
                self._set_cursor_col(0)
                line.row = self._set_cursor_row(line.row)
                self._terminal.write_line(line.rendered)
            except TERMINAL_ERRORS:
                logger.debug("Could not echo the submitted line", exc_info=True)
            line.row = NO_EDIT
        text = line.text

        if is_command:
            if text == CLEAR_CONSOLE_COMMAND:
                self._history.clear()
                try:
                    self._terminal.clear_screen()
                except TERMINAL_ERRORS:
                    logger.debug("Could not clear the screen", exc_info=True)
                return ""
            if text and line.echo:
                self._history.add(text)
            if text and self.commands is not None:
                self._run_command(text)
            return ""

        # Lines typed without echo are secrets and stay out of history
        if line.echo and text:
            self._history.add(text)
        return text

    def _run_command(self, text: str) -> None:
        """Resolve and run a command line, reporting handler failures."""
        try:
            self.commands.resolve(tokenize(text))
        except Exception as e:
            logger.debug("Command %r failed", text, exc_info=True)
            self.output(f"[CONSOLE] Command failed: {e}", Level.ERROR)

    def _context_help(self) -> bool:
        """Show what may follow the current line.

        Returns:
            False if ``?`` should be inserted instead: there is no command
            tree, or the last word looks like a URI being typed.

        """
        if self.commands is None:
            return False
        text = self._line.text
        words = tokenize(text)
        if words and words[-1].startswith("http") and not text.endswith(" "):
            return False

        options = self.commands.find_next_options(words)
        if not options:
            self.output(NO_OPTIONS_MESSAGE)
        elif options[0].startswith(COMMAND_HELP_PREFIX):
            self.output(options[0])
        else:
            self.output("Options: " + "\n".join(options))
        return True
