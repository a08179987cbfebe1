"""Tests for the transcript sink and the logging bridge."""

import logging

import pytest

from serverconsole.console import LocalConsole
from serverconsole.levels import Level
from serverconsole.logsink import (
    TRANSCRIPT_LOGGER_NAME,
    ConsoleLogHandler,
    LoggingSink,
    configure_transcript,
)


@pytest.fixture
def app_logger():
    """A private logger with the console handler attached."""
    log = logging.getLogger("serverconsole.tests.app")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    yield log
    for handler in list(log.handlers):
        log.removeHandler(handler)


class TestLoggingSink:
    """Tests for LoggingSink."""

    def test_records_at_level(self, caplog):
        """Output is logged with the matching level number."""
        sink = LoggingSink(logging.getLogger("serverconsole.tests.sink"))
        with caplog.at_level(logging.DEBUG, logger="serverconsole.tests.sink"):
            sink.record(Level.WARN, "[SCENE] slow tick")
            sink.record(Level.ALERT, "region restarting")
        assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
            (logging.WARNING, "[SCENE] slow tick"),
            (45, "region restarting"),
        ]

    def test_default_logger(self):
        """Without a logger the transcript logger is used."""
        assert LoggingSink().logger.name == TRANSCRIPT_LOGGER_NAME


class TestConfigureTranscript:
    """Tests for the transcript file."""

    def test_writes_file(self, tmp_path):
        """Transcript lines land in the file and do not propagate."""
        path = tmp_path / "console.log"
        handler = configure_transcript(path)
        transcript = logging.getLogger(TRANSCRIPT_LOGGER_NAME)
        try:
            LoggingSink().record(Level.ERROR, "disk full")
            handler.flush()
            assert "ERROR disk full" in path.read_text()
            assert transcript.propagate is False
        finally:
            transcript.removeHandler(handler)
            handler.close()
            transcript.propagate = True


class TestConsoleLogHandler:
    """Tests for routing log records into the console."""

    def test_records_are_printed(self, app_logger, terminal, sink):
        """A record is formatted with its logger name and printed."""
        console = LocalConsole(terminal, sink=sink)
        app_logger.addHandler(ConsoleLogHandler(console))
        app_logger.error("lost %d packets", 3)
        assert sink.records == [(Level.ERROR, "[serverconsole.tests.app] lost 3 packets")]
        assert terminal.line_text(0) == "[serverconsole.tests.app] lost 3 packets"

    def test_handler_level(self, app_logger, terminal, sink):
        """Records below the handler level are skipped."""
        console = LocalConsole(terminal, sink=sink)
        app_logger.addHandler(ConsoleLogHandler(console, logging.WARNING))
        app_logger.info("chatty")
        app_logger.warning("careful")
        assert sink.texts == ["[serverconsole.tests.app] careful"]

    def test_transcript_records_ignored(self, terminal, sink):
        """The console's own transcript is not printed back into it."""
        handler = ConsoleLogHandler(LocalConsole(terminal, sink=sink))
        record = logging.LogRecord(TRANSCRIPT_LOGGER_NAME, logging.INFO, __file__, 1, "echo", None, None)
        assert not handler.filter(record)

    def test_reentrant_records_dropped(self, app_logger, terminal):
        """Logging from inside the console while printing does not recurse."""
        class LoggingBackSink:
            def __init__(self):
                self.records = []

            def record(self, level, text):
                self.records.append(text)
                app_logger.warning("recorded %s", text)

        sink = LoggingBackSink()
        console = LocalConsole(terminal, sink=sink)
        app_logger.addHandler(ConsoleLogHandler(console))
        app_logger.warning("first")
        assert sink.records == ["[serverconsole.tests.app] first"]
