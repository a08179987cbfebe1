"""CLI entry point for serverconsole.

Runs a demo server console: a command tree with a few status commands and,
optionally, a background thread logging status lines while the operator
types.
"""

import argparse
import logging
import random
import sys
import threading
import time
from dataclasses import dataclass, field

from serverconsole import __version__
from serverconsole.commands import CommandTree
from serverconsole.config import ConsoleConfig, load_config
from serverconsole.console import LocalConsole
from serverconsole.errors import ConsoleError, TerminalUnavailableError
from serverconsole.levels import Level
from serverconsole.logsink import (
    TRANSCRIPT_LOGGER_NAME,
    ConsoleLogHandler,
    LoggingSink,
    configure_transcript,
)
from serverconsole.terminal import AnsiTerminal
from serverconsole.ui import create_console, print_banner, print_error

logger = logging.getLogger(__name__)

CHATTER_MESSAGES = [
    (logging.DEBUG, "[HEARTBEAT] %d agents, %d prims"),
    (logging.INFO, "[SCENE] Region tick took %d ms, %d updates"),
    (logging.INFO, "[ASSETS] Cached %d assets, %d misses"),
    (logging.WARNING, "[PHYSICS] Frame overran by %d ms with %d bodies"),
    (logging.ERROR, "[CLIENT] Lost %d packets from %d viewers"),
]


@dataclass
class CliOptions:
    """Options for a serverconsole run.

    Attributes:
        config: Console configuration, from file and command line.
        chatter: Seconds between background status lines, 0 to disable.
        banner: Print the startup banner.

    """

    config: ConsoleConfig = field(default_factory=ConsoleConfig)
    chatter: float = 0.0
    banner: bool = True


@dataclass
class ServerState:
    """State shared between the command handlers and the run loop."""

    started: float = field(default_factory=time.monotonic)
    stop: threading.Event = field(default_factory=threading.Event)


def _parse_args(argv: list[str] | None = None) -> CliOptions:
    """Parse command line arguments and return CliOptions.

    Raises:
        SystemExit: On invalid arguments or an unreadable config file.

    """
    parser = argparse.ArgumentParser(
        prog="serverconsole",
        description="Interactive server console demo",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        metavar="FILE",
        help="INI file with a [Console] section",
    )
    parser.add_argument(
        "--prompt",
        default=None,
        help="Command prompt (default: from config, or '# ')",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        dest="log_file",
        metavar="FILE",
        help="Append a transcript of all console output to FILE",
    )
    parser.add_argument(
        "--chatter",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="Log a background status line every SECONDS (default: off)",
    )
    parser.add_argument(
        "--no-banner",
        action="store_false",
        dest="banner",
        help="Skip the startup banner",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)

    if args.chatter < 0:
        parser.error("--chatter must not be negative")

    try:
        config = load_config(args.config)
    except ConsoleError as e:
        parser.error(str(e))
    if args.prompt is not None:
        config.prompt = args.prompt
    if args.log_file is not None:
        config.log_file = args.log_file
    if not isinstance(logging.getLevelName(config.log_level), int):
        parser.error(f"Unknown log level: {config.log_level!r}")

    return CliOptions(config=config, chatter=args.chatter, banner=args.banner)


def build_commands(console: LocalConsole, state: ServerState, handler: logging.Handler) -> CommandTree:
    """Register the demo commands on the console's command tree."""
    commands = console.commands

    def show_uptime(args: list[str]) -> None:
        elapsed = int(time.monotonic() - state.started)
        hours, rest = divmod(elapsed, 3600)
        minutes, seconds = divmod(rest, 60)
        console.output(f"[UPTIME] {hours:d}:{minutes:02d}:{seconds:02d}", Level.INFO)

    def show_threads(args: list[str]) -> None:
        names = sorted(thread.name for thread in threading.enumerate())
        console.output(f"[THREADS] {len(names)} running\n" + "\n".join(names), Level.INFO)

    def show_history(args: list[str]) -> None:
        entries = console.history
        if not entries:
            console.output("History is empty.", Level.INFO)
            return
        console.output("\n".join(f"{i:3d}  {entry}" for i, entry in enumerate(entries, 1)), Level.INFO)

    def set_log_level(args: list[str]) -> None:
        if len(args) < 4:
            console.output("Usage: set log level <debug|info|warning|error|critical>", Level.WARN)
            return
        level = logging.getLevelName(args[3].upper())
        if not isinstance(level, int):
            console.output(f"[CONSOLE] Unknown log level {args[3]}", Level.ERROR)
            return
        handler.setLevel(level)
        console.output(f"[CONSOLE] Log level set to {args[3].upper()}", Level.INFO)

    def quit_server(args: list[str]) -> None:
        answer = console.prompt("Shut down the server?", "no", ["yes", "no"])
        if answer == "yes":
            state.stop.set()

    commands.add_command("show uptime", "show uptime", "Time since the console started", show_uptime)
    commands.add_command("show threads", "show threads", "List running threads", show_threads)
    commands.add_command("show history", "show history", "List the command history", show_history)
    commands.add_command(
        "set log level", "set log level <level>", "Change the level of log lines shown", set_log_level
    )
    commands.add_command("quit", "quit", "Shut down the server", quit_server)
    return commands


def _chatter(interval: float, stop: threading.Event) -> None:
    """Log random status lines until stopped."""
    chatter_logger = logging.getLogger("serverconsole.demo")
    while not stop.wait(interval):
        level, message = random.choice(CHATTER_MESSAGES)
        chatter_logger.log(level, message, random.randint(1, 500), random.randint(1, 50))


def run(terminal: AnsiTerminal, options: CliOptions) -> int:
    """Run the console until the operator quits.

    Returns:
        Exit code, 0 on a normal shutdown.

    """
    config = options.config
    transcript = logging.getLogger(TRANSCRIPT_LOGGER_NAME)
    transcript.propagate = False
    if config.log_file:
        configure_transcript(config.log_file)

    console = LocalConsole(terminal, CommandTree(), LoggingSink(transcript))
    console.initialize(config)

    state = ServerState()
    handler = ConsoleLogHandler(console, logging.getLevelName(config.log_level))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    build_commands(console, state, handler)

    if options.chatter:
        threading.Thread(
            target=_chatter,
            args=(options.chatter, state.stop),
            name="chatter",
            daemon=True,
        ).start()

    console.output(f"[CONSOLE] serverconsole {__version__} ready, type ? for options", Level.INFO)
    try:
        while not state.stop.is_set():
            console.read_line(config.prompt)
    finally:
        state.stop.set()
        logger.info("Shutting down")
        root.removeHandler(handler)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Run the CLI entry point.

    Raises:
        SystemExit: Always raised with exit code 0 on success, 130 on keyboard
            interrupt, or 1 when no terminal is available.

    """
    options = _parse_args(argv)
    rich_console = create_console()
    if options.banner:
        print_banner(rich_console, "serverconsole", "operator console")

    try:
        with AnsiTerminal() as terminal:
            exit_code = run(terminal, options)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        rich_console.print()
        sys.exit(130)
    except TerminalUnavailableError as e:
        print_error(rich_console, "No Terminal", str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
