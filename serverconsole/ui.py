"""Rich output helpers used outside a console session.

The banner and error panels are printed with a plain rich Console before
the terminal driver takes over, or after it has been released.
"""

import pyfiglet
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

from serverconsole.colorize import to_rich_text
from serverconsole.levels import Level

BANNER_COLORS = {
    "start": "#8BE9FD",
    "end": "#BD93F9",
    "red": "#FF5555",
    "dim": "#6272A4",
}


def create_console() -> Console:
    """Create a Rich Console for banner and error output."""
    return Console(highlight=False)


def _interpolate_color(color1: str, color2: str, t: float) -> str:
    """Interpolate between two hex colors.

    Args:
        color1: Starting hex color (e.g., "#8BE9FD").
        color2: Ending hex color (e.g., "#BD93F9").
        t: Interpolation factor (0.0 = color1, 1.0 = color2).

    Returns:
        Interpolated hex color string.

    """
    r1, g1, b1 = int(color1[1:3], 16), int(color1[3:5], 16), int(color1[5:7], 16)
    r2, g2, b2 = int(color2[1:3], 16), int(color2[3:5], 16), int(color2[5:7], 16)
    r = int(r1 + (r2 - r1) * t)
    g = int(g1 + (g2 - g1) * t)
    b = int(b1 + (b2 - b1) * t)
    return f"#{r:02x}{g:02x}{b:02x}"


def render_banner(text: str, tagline: str = "") -> Text:
    """Render ``text`` as figlet art with a left-to-right color gradient."""
    try:
        art = pyfiglet.figlet_format(text, font="slant")
    except pyfiglet.FigletError:
        art = pyfiglet.figlet_format(text, font="standard")

    lines = art.rstrip("\n").split("\n")
    max_width = max((len(line) for line in lines), default=1) or 1

    banner = Text()
    for line_idx, line in enumerate(lines):
        for char_idx, char in enumerate(line):
            if char == " ":
                banner.append(char)
            else:
                color = _interpolate_color(BANNER_COLORS["start"], BANNER_COLORS["end"], char_idx / max_width)
                banner.append(char, style=Style(color=color, bold=True))
        if line_idx < len(lines) - 1:
            banner.append("\n")

    if tagline:
        banner.append("\n")
        banner.append(f"  {tagline}", style=Style(color=BANNER_COLORS["dim"]))
    return banner


def print_banner(console: Console, text: str, tagline: str = "") -> None:
    """Print the startup banner.

    Args:
        console: Rich Console instance for output.
        text: Text rendered as figlet art.
        tagline: Optional dim line under the art.

    """
    console.print(render_banner(text, tagline))
    console.print()


def print_error(console: Console, title: str, message: str) -> None:
    """Print an error panel, the message colored like console ERROR output.

    Args:
        console: Rich Console instance for output.
        title: Error title text.
        message: Detailed error message.

    """
    panel = Panel(
        to_rich_text(message, Level.ERROR),
        title=title,
        title_align="left",
        box=box.DOUBLE_EDGE,
        border_style=Style(color=BANNER_COLORS["red"]),
        padding=(0, 1),
    )
    console.print(panel)
