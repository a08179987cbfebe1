"""Error types for the console."""


class ConsoleError(Exception):
    """Base class for console errors."""


class TerminalUnavailableError(ConsoleError):
    """No usable terminal: not a TTY, input closed, or output disposed."""


# Failures a terminal driver may raise on a detached, redirected or resized
# terminal. The console tolerates these around individual driver calls.
TERMINAL_ERRORS = (OSError, ValueError, TerminalUnavailableError)
