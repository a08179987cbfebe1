"""Severity and bracket-aware coloring of console output.

Text outside square brackets takes the color of its severity level. Text
inside brackets, typically a subsystem tag like ``[SCENE]``, takes a color
picked from a fixed palette by the length of the tag, so the same tag always
renders in the same color.
"""

import re
from dataclasses import dataclass
from enum import Enum

from rich.style import Style
from rich.text import Text

from serverconsole.levels import Level


class ConsoleColor(Enum):
    """Foreground colors used by the console. Values are rich color names."""

    GRAY = "white"
    WHITE = "bright_white"
    RED = "bright_red"
    YELLOW = "bright_yellow"
    MAGENTA = "bright_magenta"
    GREEN = "bright_green"
    BLUE = "bright_blue"
    CYAN = "bright_cyan"
    DARK_CYAN = "cyan"
    DARK_MAGENTA = "magenta"
    DARK_YELLOW = "yellow"


# Colors for bracketed tags. No dark blue/green or grays: invisible on
# black-background terminals like putty.
TAG_PALETTE = (
    ConsoleColor.DARK_CYAN,
    ConsoleColor.DARK_MAGENTA,
    ConsoleColor.DARK_YELLOW,
    ConsoleColor.GREEN,
    ConsoleColor.BLUE,
    ConsoleColor.MAGENTA,
    ConsoleColor.RED,
    ConsoleColor.YELLOW,
    ConsoleColor.CYAN,
)

_LINE_BREAK = re.compile(r"[\r\n]+")


@dataclass(frozen=True)
class Segment:
    """A run of text drawn in one color."""

    text: str
    color: ConsoleColor


def level_color(level: Level) -> ConsoleColor:
    """Color for opening brackets and for text outside any bracket."""
    if level is Level.ALERT:
        return ConsoleColor.MAGENTA
    if level.is_at_least(Level.FATAL):
        return ConsoleColor.WHITE
    if level.is_at_least(Level.ERROR):
        return ConsoleColor.RED
    if level.is_at_least(Level.WARN):
        return ConsoleColor.YELLOW
    return ConsoleColor.GRAY


def closing_bracket_color(level: Level) -> ConsoleColor:
    """Color for closing brackets."""
    if level is Level.ERROR:
        return ConsoleColor.RED
    if level is Level.WARN:
        return ConsoleColor.YELLOW
    if level is Level.ALERT:
        return ConsoleColor.MAGENTA
    return ConsoleColor.GRAY


def tag_color(tag: str) -> ConsoleColor:
    """Palette color for bracketed text, derived from its length only."""
    return TAG_PALETTE[abs(len(tag.upper())) % len(TAG_PALETTE)]


def split_lines(text: str) -> list[str]:
    """Split on line breaks, dropping empty lines."""
    return [line for line in _LINE_BREAK.split(text) if line]


def render_line(line: str, level: Level) -> list[Segment]:
    """Color one line of text.

    Unbalanced closing brackets push the depth below zero; anything at
    depth zero or below is treated as outside brackets.
    """
    outside = level_color(level)
    segments: list[Segment] = []
    depth = 0
    run: list[str] = []

    def flush() -> None:
        if run:
            chunk = "".join(run)
            color = tag_color(chunk) if depth > 0 else outside
            segments.append(Segment(chunk, color))
            run.clear()

    for char in line:
        if char == "[":
            flush()
            segments.append(Segment(char, outside))
            depth += 1
        elif char == "]":
            flush()
            segments.append(Segment(char, closing_bracket_color(level)))
            depth -= 1
        else:
            run.append(char)
    flush()
    return segments


def render_lines(text: str, level: Level) -> list[list[Segment]]:
    """Color every line of ``text``. The caller writes the line breaks."""
    return [render_line(line, level) for line in split_lines(text)]


def to_rich_text(text: str, level: Level) -> Text:
    """Render ``text`` as a rich Text with the same colors the console uses."""
    result = Text()
    lines = render_lines(text, level)
    for index, segments in enumerate(lines):
        for segment in segments:
            result.append(segment.text, style=Style(color=segment.color.value))
        if index < len(lines) - 1:
            result.append("\n")
    return result
