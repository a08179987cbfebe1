"""Tests for the serverconsole CLI."""

import logging

import pytest

from conftest import FakeTerminal
from serverconsole import __version__, cli
from serverconsole.cli import CliOptions, ServerState, _parse_args, build_commands, run
from serverconsole.commands import CommandTree
from serverconsole.config import ConsoleConfig
from serverconsole.console import LocalConsole
from serverconsole.levels import Level
from serverconsole.logsink import TRANSCRIPT_LOGGER_NAME, ConsoleLogHandler
from serverconsole.terminal import Key

ENTER = "\r"


@pytest.fixture
def restore_logging():
    """Undo the root and transcript logger changes made by run()."""
    root = logging.getLogger()
    transcript = logging.getLogger(TRANSCRIPT_LOGGER_NAME)
    saved = (root.level, list(root.handlers), transcript.propagate)
    yield
    root.setLevel(saved[0])
    for handler in list(root.handlers):
        if handler not in saved[1]:
            root.removeHandler(handler)
    transcript.propagate = saved[2]


@pytest.fixture
def demo(terminal, sink):
    """A console with the demo commands registered."""
    console = LocalConsole(terminal, CommandTree(), sink)
    state = ServerState()
    handler = ConsoleLogHandler(console, logging.INFO)
    build_commands(console, state, handler)
    return console, state, handler


class TestParseArgs:
    """Tests for command line parsing."""

    def test_defaults(self):
        """No arguments gives the default configuration."""
        options = _parse_args([])
        assert options == CliOptions(config=ConsoleConfig(), chatter=0.0, banner=True)

    def test_overrides(self, tmp_path):
        """Command line values override the config file."""
        path = tmp_path / "server.ini"
        path.write_text('[Console]\nPrompt = "Region # "\nLogFile = region.log\nHistoryCapacity = 5\n')
        options = _parse_args(
            ["-c", str(path), "--prompt", "$ ", "--chatter", "2.5", "--no-banner"]
        )
        assert options.config.prompt == "$ "
        assert options.config.log_file == "region.log"
        assert options.config.history_capacity == 5
        assert options.chatter == 2.5
        assert options.banner is False

    def test_negative_chatter(self):
        """A negative chatter interval is rejected."""
        with pytest.raises(SystemExit):
            _parse_args(["--chatter", "-1"])

    def test_bad_config_value(self, tmp_path):
        """An invalid config file is reported as a usage error."""
        path = tmp_path / "server.ini"
        path.write_text("[Console]\nMaxLineLength = wide\n")
        with pytest.raises(SystemExit):
            _parse_args(["--config", str(path)])

    def test_unknown_log_level(self, tmp_path):
        """An unknown log level is reported as a usage error."""
        path = tmp_path / "server.ini"
        path.write_text("[Console]\nLogLevel = chatty\n")
        with pytest.raises(SystemExit):
            _parse_args(["--config", str(path)])

    def test_version(self, capsys):
        """--version prints the package version."""
        with pytest.raises(SystemExit):
            _parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestDemoCommands:
    """Tests for the demo command handlers."""

    def test_show_uptime(self, demo, terminal, sink):
        """Uptime is printed as hours, minutes and seconds."""
        console, _, _ = demo
        terminal.feed("show uptime", ENTER)
        console.read_line("# ")
        assert sink.records[-1][0] is Level.INFO
        assert sink.texts[-1].startswith("[UPTIME] 0:00:0")

    def test_show_threads(self, demo, terminal, sink):
        """The thread list includes the main thread."""
        console, _, _ = demo
        terminal.feed("sh th", ENTER)
        console.read_line("# ")
        assert "MainThread" in sink.texts[-1]

    def test_show_history(self, demo, terminal, sink):
        """History lists submitted lines with their numbers."""
        console, _, _ = demo
        terminal.feed("show uptime", ENTER, "show history", ENTER)
        console.read_line("# ")
        console.read_line("# ")
        assert sink.texts[-1] == "  1  show uptime\n  2  show history"

    def test_set_log_level(self, demo, terminal, sink):
        """The handler level follows the command."""
        console, _, handler = demo
        terminal.feed("set log level debug", ENTER)
        console.read_line("# ")
        assert handler.level == logging.DEBUG
        assert sink.texts[-1] == "[CONSOLE] Log level set to DEBUG"

    def test_set_log_level_unknown(self, demo, terminal, sink):
        """Unknown level names are reported and ignored."""
        console, _, handler = demo
        terminal.feed("set log level loud", ENTER)
        console.read_line("# ")
        assert handler.level == logging.INFO
        assert sink.records[-1] == (Level.ERROR, "[CONSOLE] Unknown log level loud")

    def test_set_log_level_usage(self, demo, terminal, sink):
        """Without a level the usage is printed."""
        console, _, _ = demo
        terminal.feed("set log level", ENTER)
        console.read_line("# ")
        assert sink.records[-1][0] is Level.WARN

    def test_quit_declined(self, demo, terminal):
        """Answering no keeps the server running."""
        console, state, _ = demo
        terminal.feed("quit", ENTER, ENTER)
        console.read_line("# ")
        assert not state.stop.is_set()

    def test_quit_confirmed(self, demo, terminal):
        """Answering yes stops the server."""
        console, state, _ = demo
        terminal.feed("quit", ENTER, "yes", ENTER)
        console.read_line("# ")
        assert state.stop.is_set()


class TestRun:
    """Tests for the console run loop."""

    def test_runs_until_quit(self, restore_logging):
        """The loop reads commands until quit is confirmed."""
        terminal = FakeTerminal(width=80, height=40)
        terminal.feed("show uptime", ENTER, "quit", ENTER, Key.LEFT, ENTER)
        options = CliOptions(config=ConsoleConfig(prompt="Region # "), banner=False)

        assert run(terminal, options) == 0
        screen = terminal.screen_lines()
        assert screen[0] == f"[CONSOLE] serverconsole {__version__} ready, type ? for options"
        assert screen[1] == "Region # show uptime"
        assert screen[2].startswith("[UPTIME]")
        assert screen[4] == "Shut down the server? (yes, no) [no]: yes"
        assert screen[5] == "[serverconsole.cli] Shutting down"

    def test_log_records_reach_console(self, restore_logging):
        """Records logged while running are printed on the terminal."""
        terminal = FakeTerminal(width=80, height=40)

        def log_something():
            logging.getLogger("serverconsole.tests.run").warning("[PHYSICS] slow frame")

        terminal.feed(log_something, "quit", ENTER, "yes", ENTER)
        run(terminal, CliOptions(banner=False))
        assert "[serverconsole.tests.run] [PHYSICS] slow frame" in terminal.screen_lines()

    def test_command_failure_is_reported(self, restore_logging, monkeypatch):
        """A failing command is reported and the loop keeps going."""
        def boom(args):
            raise RuntimeError("disk on fire")

        def build_with_crash(console, state, handler):
            commands = build_commands(console, state, handler)
            commands.add_command("crash", "crash", "Fail loudly", boom)
            return commands

        monkeypatch.setattr(cli, "build_commands", build_with_crash)
        terminal = FakeTerminal(width=80, height=40)
        terminal.feed("crash", ENTER, "quit", ENTER, "yes", ENTER)
        assert run(terminal, CliOptions(banner=False)) == 0
        assert "[CONSOLE] Command failed: disk on fire" in terminal.screen_lines()

    def test_transcript_file(self, restore_logging, tmp_path):
        """Console output is appended to the transcript file."""
        path = tmp_path / "console.log"
        terminal = FakeTerminal(width=80, height=40)
        terminal.feed("quit", ENTER, "yes", ENTER)
        transcript = logging.getLogger(TRANSCRIPT_LOGGER_NAME)
        try:
            run(terminal, CliOptions(config=ConsoleConfig(log_file=str(path)), banner=False))
        finally:
            for handler in list(transcript.handlers):
                if isinstance(handler, logging.FileHandler):
                    transcript.removeHandler(handler)
                    handler.close()
        assert "ready, type ? for options" in path.read_text()

