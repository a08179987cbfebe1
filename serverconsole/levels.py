"""Severity levels attached to console output."""

import logging
from enum import Enum

ALERT_LEVEL_NUM = 45

logging.addLevelName(ALERT_LEVEL_NUM, "ALERT")


class Level(Enum):
    """Severity of one output call.

    Values are stdlib logging level numbers so a level can be handed straight
    to a logger. ALERT has its own number but is never compared by magnitude.
    """

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR
    FATAL = logging.CRITICAL
    ALERT = ALERT_LEVEL_NUM

    def is_at_least(self, other: "Level") -> bool:
        """Return True if this level is at least as severe as ``other``.

        Always False when either side is ALERT.
        """
        if self is Level.ALERT or other is Level.ALERT:
            return False
        return self.value >= other.value

    @classmethod
    def from_logging(cls, levelno: int) -> "Level":
        """Map a logging record level number to the nearest Level."""
        if levelno == ALERT_LEVEL_NUM:
            return cls.ALERT
        if levelno >= logging.CRITICAL:
            return cls.FATAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARN
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG
