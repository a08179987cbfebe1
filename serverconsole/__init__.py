"""Serverconsole - Interactive operator console for long-running server processes.

Let an operator type commands into a running server while background threads
keep emitting log and status lines. The console multiplexes both streams onto a
single terminal so a log line never tears through the line being edited: output
blanks the edit line, prints, and redraws the prompt underneath.

Exports:
    __version__: str - The current version of the serverconsole package.

Submodules:
    cli: Demo console entry point with a small command tree.
    colorize: Severity and bracket-aware coloring of output lines.
    commands: Command tree used for context help and command resolution.
    config: Configuration constants and INI loading.
    console: LocalConsole, the line editor and output multiplexer.
    errors: Exception types and the tolerated terminal error set.
    history: Bounded ring of submitted lines.
    levels: Severity levels.
    linestate: Line edit state and prompt option cycling.
    logsink: Transcript sink and the logging bridge into the console.
    terminal: Terminal driver protocol and the ANSI driver.
    ui: Banner and error panels printed outside a console session.
"""

__version__ = "0.3.0"
