"""Transcript sink and the logging bridge into the console.

Two directions meet here. LoggingSink receives every line the console prints
and records it to the transcript logger. ConsoleLogHandler goes the other
way: it is attached to application loggers so records emitted from any
thread are printed through the console without tearing the edit line.
"""

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from serverconsole.levels import Level

if TYPE_CHECKING:
    from serverconsole.console import LocalConsole

TRANSCRIPT_LOGGER_NAME = "serverconsole.transcript"

TRANSCRIPT_FORMAT = "%(asctime)s %(levelname)s %(message)s"

# Without a handler a non-propagating transcript would fall back to stderr
logging.getLogger(TRANSCRIPT_LOGGER_NAME).addHandler(logging.NullHandler())


class LogSink(Protocol):
    """Receives the unmodified text of every console output call."""

    def record(self, level: Level, text: str) -> None: ...


class LoggingSink:
    """LogSink that records to the transcript logger.

    Args:
        logger: Logger to record to. Defaults to the transcript logger.

    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(TRANSCRIPT_LOGGER_NAME)

    def record(self, level: Level, text: str) -> None:
        self.logger.log(level.value, text)


def configure_transcript(path: str | Path, level: int = logging.DEBUG) -> logging.Handler:
    """Write the transcript logger to a file.

    The transcript logger stops propagating so console output is not
    routed back into the console by a ConsoleLogHandler on the root logger.

    Args:
        path: File to append the transcript to.
        level: Minimum level recorded.

    Returns:
        The attached file handler.

    """
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(TRANSCRIPT_FORMAT))
    transcript = logging.getLogger(TRANSCRIPT_LOGGER_NAME)
    transcript.addHandler(handler)
    transcript.setLevel(level)
    transcript.propagate = False
    return handler


class ConsoleLogHandler(logging.Handler):
    """Logging handler printing records through a LocalConsole.

    Records from the transcript logger are ignored, those are the console's
    own output on its way to the sink. Records logged while this handler is
    already printing on the same thread are dropped.

    Args:
        console: Console to print through.
        level: Minimum level handled.

    """

    def __init__(self, console: "LocalConsole", level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.console = console
        self.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
        self._local = threading.local()

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == TRANSCRIPT_LOGGER_NAME or record.name.startswith(TRANSCRIPT_LOGGER_NAME + "."):
            return False
        return super().filter(record)

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            message = self.format(record)
            self.console.output(message, Level.from_logging(record.levelno))
        except Exception:
            self.handleError(record)
        finally:
            self._local.busy = False
