"""Command tree used for context help and command resolution.

Commands are registered as space-separated word paths ("show uptime") with a
handler. The console asks the tree for the options that can follow a partial
line (context help on ``?`` or Tab) and hands it submitted lines to resolve
and run.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from serverconsole.config import COMMAND_HELP_PREFIX

logger = logging.getLogger(__name__)

CommandHandler = Callable[[list[str]], None]

_TOKEN = re.compile(r'"([^"]*)"?|(\S+)')


def tokenize(line: str) -> list[str]:
    """Split a command line on whitespace, keeping double-quoted runs whole.

    An unterminated quote runs to the end of the line.

    Examples:
        >>> tokenize('set motd "hello there"')
        ['set', 'motd', 'hello there']

    """
    return [bare or quoted for quoted, bare in _TOKEN.findall(line)]


def quote(token: str) -> str:
    """Wrap a token in double quotes if it contains whitespace."""
    if any(ch.isspace() for ch in token):
        return f'"{token}"'
    return token


@dataclass
class CommandNode:
    """One word in the command tree.

    Attributes:
        children: Next words, keyed by word.
        handler: Callable run when the command ends at this word.
        help_text: Usage line, e.g. "show uptime".
        long_help: One-line description.

    """

    children: dict[str, "CommandNode"] = field(default_factory=dict)
    handler: CommandHandler | None = None
    help_text: str = ""
    long_help: str = ""

    @property
    def is_command(self) -> bool:
        return self.handler is not None


class CommandTree:
    """Registry of console commands addressed by word paths."""

    def __init__(self) -> None:
        self._root = CommandNode()

    def add_command(
        self,
        command: str,
        help_text: str,
        long_help: str,
        handler: CommandHandler,
    ) -> None:
        """Register a command.

        Args:
            command: Space-separated words naming the command.
            help_text: Usage line shown in help.
            long_help: Description shown by context help.
            handler: Called with the full token list when the command runs.

        Raises:
            ValueError: If ``command`` has no words.

        """
        words = command.split()
        if not words:
            raise ValueError("command must contain at least one word")
        node = self._root
        for word in words:
            node = node.children.setdefault(word, CommandNode())
        node.handler = handler
        node.help_text = help_text
        node.long_help = long_help

    def has_command(self, command: str) -> bool:
        node = self._root
        for word in command.split():
            node = node.children.get(word)
            if node is None:
                return False
        return node.is_command

    def _match(self, node: CommandNode, word: str) -> tuple[str, CommandNode] | None:
        """Find the child matching ``word`` exactly or by unique prefix."""
        if word in node.children:
            return word, node.children[word]
        candidates = [name for name in node.children if name.startswith(word)]
        if len(candidates) == 1:
            return candidates[0], node.children[candidates[0]]
        return None

    def find_next_options(self, tokens: list[str]) -> list[str]:
        """List what may follow ``tokens``.

        Returns:
            A single help string starting with COMMAND_HELP_PREFIX when the
            tokens name a complete command, otherwise the candidate next
            words, or an empty list when the tokens match nothing. A last
            token that is not a whole word is completed as a prefix.

        """
        node = self._root
        for index, token in enumerate(tokens):
            is_last = index == len(tokens) - 1
            if is_last and token not in node.children:
                return sorted(name for name in node.children if name.startswith(token))
            match = self._match(node, token)
            if match is None:
                return []
            node = match[1]
            if node.is_command and not node.children:
                return [f"{COMMAND_HELP_PREFIX} {node.help_text} - {node.long_help}"]

        if node.is_command:
            return [f"{COMMAND_HELP_PREFIX} {node.help_text} - {node.long_help}"]
        return sorted(node.children)

    def resolve(self, tokens: list[str]) -> list[str]:
        """Resolve and run the command named by ``tokens``.

        Words may be abbreviated to any unique prefix. Tokens past the
        deepest matched command are passed through as arguments.

        Returns:
            The matched command words followed by the arguments, each quoted
            if it contains whitespace. Empty if no command matched.

        """
        node = self._root
        words: list[str] = []
        command: tuple[list[str], CommandNode] | None = None
        for index, token in enumerate(tokens):
            match = self._match(node, token)
            if match is None:
                break
            words.append(match[0])
            node = match[1]
            if node.is_command:
                command = (words + tokens[index + 1:], node)

        if command is None:
            return []

        resolved, node = command
        logger.debug("Running command %r", resolved)
        node.handler(resolved)
        return [quote(token) for token in resolved]

    def help_lines(self) -> list[str]:
        """Usage line and description of every command, sorted by usage."""
        lines: list[str] = []

        def walk(node: CommandNode) -> None:
            if node.is_command:
                lines.append(f"{node.help_text} - {node.long_help}")
            for child in node.children.values():
                walk(child)

        walk(self._root)
        return sorted(lines)
