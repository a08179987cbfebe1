"""Line edit state and prompt option cycling.

The edit operations here are pure bookkeeping on the buffer and cursor. The
console decides when to take its lock and redraw around them.
"""

from dataclasses import dataclass, field

from serverconsole.config import DEFAULT_PROMPT

# Baseline row value while no read_line call is in progress
NO_EDIT = -1


@dataclass
class LineEditState:
    """The in-progress input line.

    Attributes:
        buffer: Characters typed so far.
        cursor: Insertion offset into ``buffer``, 0..len(buffer).
        row: Terminal row where the prompt starts, or NO_EDIT.
        height: Rows consumed by the rendered prompt and buffer.
        prompt: Prompt text drawn before the buffer.
        echo: False hides typed characters (secrets).
        selected: Whole-buffer selection armed by select-all.

    """

    buffer: list[str] = field(default_factory=list)
    cursor: int = 0
    row: int = NO_EDIT
    height: int = 1
    prompt: str = DEFAULT_PROMPT
    echo: bool = True
    selected: bool = False

    @property
    def active(self) -> bool:
        return self.row != NO_EDIT

    @property
    def text(self) -> str:
        return "".join(self.buffer)

    @property
    def rendered(self) -> str:
        """Prompt plus buffer as drawn on screen."""
        if self.echo:
            return self.prompt + self.text
        return self.prompt

    @property
    def rendered_width(self) -> int:
        """Cells to blank when erasing the line."""
        return len(self.prompt) + len(self.buffer)

    def reset(self, prompt: str, echo: bool) -> None:
        """Start a fresh edit with an empty buffer."""
        self.buffer.clear()
        self.cursor = 0
        self.height = 1
        self.prompt = prompt
        self.echo = echo
        self.selected = False

    def insert(self, char: str) -> None:
        self.buffer.insert(self.cursor, char)
        self.cursor += 1

    def backspace(self) -> bool:
        """Remove the character before the cursor, or everything if selected.

        Returns:
            False if the cursor was at the start and nothing changed.

        """
        if self.cursor == 0:
            return False
        if self.selected:
            self.clear()
        else:
            del self.buffer[self.cursor - 1]
            self.cursor -= 1
        return True

    def delete(self) -> bool:
        """Remove the character at the cursor, or everything if selected.

        The cursor steps back one place after a single-character delete,
        never past the start of the line.

        Returns:
            False if the cursor was at the end and nothing changed.

        """
        if self.cursor >= len(self.buffer) or self.cursor < 0:
            return False
        if self.selected:
            self.clear()
        else:
            del self.buffer[self.cursor]
            self.cursor = max(0, self.cursor - 1)
        return True

    def clear(self) -> None:
        self.buffer.clear()
        self.cursor = 0
        self.selected = False

    def replace(self, text: str, cursor: int | None = None) -> None:
        """Swap in new buffer contents.

        Args:
            text: New buffer contents.
            cursor: New cursor offset, clamped to the buffer. None moves
                the cursor to the end.

        """
        self.buffer[:] = text
        if cursor is None:
            cursor = len(self.buffer)
        self.cursor = max(0, min(cursor, len(self.buffer)))

    def move(self, offset: int) -> None:
        """Move the cursor by ``offset``, clamped to the buffer."""
        self.cursor = max(0, min(self.cursor + offset, len(self.buffer)))

    def home(self) -> None:
        self.cursor = 0
        self.selected = False

    def end(self) -> None:
        self.cursor = len(self.buffer)
        self.selected = False


@dataclass
class PromptOptionCycle:
    """Candidate answers navigable with Left/Right while a prompt is armed."""

    options: list[str]
    index: int = 0

    def __post_init__(self) -> None:
        if self.options:
            self.index = max(0, min(self.index, len(self.options) - 1))

    @property
    def current(self) -> str:
        return self.options[self.index]

    def previous(self) -> bool:
        """Step back one option. Returns True if the index moved."""
        if self.index > 0:
            self.index -= 1
            return True
        return False

    def next(self) -> bool:
        """Step forward one option. Returns True if the index moved."""
        if self.index < len(self.options) - 1:
            self.index += 1
            return True
        return False
