"""Configuration constants for serverconsole.

Provide centralized configuration values used throughout the serverconsole
package, plus the INI loader for the ``[Console]`` section of a server's
configuration file.

Exports:
    HISTORY_CAPACITY: int - Maximum number of submitted lines kept in history.
    MAX_LINE_LENGTH: int - Longest line the editor accepts.
    DEFAULT_PROMPT: str - Prompt used when none is configured.
    CLEAR_CONSOLE_COMMAND: str - Command line that wipes history and screen.
    COMMAND_HELP_PREFIX: str - Prefix marking a verbatim help string.
    ConsoleConfig: Dataclass holding console settings.
    load_config: Read a ConsoleConfig from an INI file.
"""

import configparser
from dataclasses import dataclass
from pathlib import Path

from serverconsole.errors import ConsoleError

# Name this console answers to in the [Console] section
CONSOLE_NAME = "LocalConsole"

# History ring capacity
HISTORY_CAPACITY = 100

# Characters beyond this are dropped while typing
MAX_LINE_LENGTH = 318

DEFAULT_PROMPT = "# "

CLEAR_CONSOLE_COMMAND = "clear console"

# Options returned by the command tree starting with this are shown verbatim
COMMAND_HELP_PREFIX = "Command help:"

NO_OPTIONS_MESSAGE = "No options."

CONFIG_SECTION = "Console"


@dataclass
class ConsoleConfig:
    """Settings for a console session.

    Attributes:
        console: Name of the console implementation the server should use.
        prompt: Prompt shown for command entry.
        history_capacity: Maximum number of history entries.
        max_line_length: Longest line accepted by the editor.
        log_file: Optional path of the output transcript.
        log_level: Minimum logging level routed to the console.

    """

    console: str = CONSOLE_NAME
    prompt: str = DEFAULT_PROMPT
    history_capacity: int = HISTORY_CAPACITY
    max_line_length: int = MAX_LINE_LENGTH
    log_file: str | None = None
    log_level: str = "INFO"


def _get_int(section: configparser.SectionProxy, key: str, default: int) -> int:
    raw = section.get(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConsoleError(f"[{CONFIG_SECTION}] {key} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConsoleError(f"[{CONFIG_SECTION}] {key} must be positive, got {value}")
    return value


def load_config(path: str | Path | None) -> ConsoleConfig:
    """Load console settings from the [Console] section of an INI file.

    Args:
        path: Path to the INI file. None or a missing file yields defaults.

    Returns:
        ConsoleConfig populated from the file.

    Raises:
        ConsoleError: If a numeric setting is not a positive integer.

    """
    config = ConsoleConfig()
    if path is None or not Path(path).is_file():
        return config

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding="utf-8")
    if not parser.has_section(CONFIG_SECTION):
        return config

    section = parser[CONFIG_SECTION]
    config.console = section.get("Console", config.console)
    prompt = section.get("Prompt")
    if prompt is not None:
        # INI values lose trailing whitespace unless quoted
        config.prompt = prompt.strip('"')
    config.history_capacity = _get_int(section, "HistoryCapacity", config.history_capacity)
    config.max_line_length = _get_int(section, "MaxLineLength", config.max_line_length)
    config.log_file = section.get("LogFile", config.log_file)
    config.log_level = section.get("LogLevel", config.log_level).upper()
    return config
