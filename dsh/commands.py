"""Command-line parsing for the dsh shell: tokenising, pipelines and built-ins."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

EXE_MAX = 64
ARG_MAX = 256
CMD_MAX = 8
CMD_ARGV_MAX = CMD_MAX + 1
SH_CMD_MAX = EXE_MAX + ARG_MAX

SPACE_CHAR = " "
PIPE_CHAR = "|"
PIPE_STRING = "|"

SH_PROMPT = "dsh4> "
EXIT_CMD = "exit"

CMD_WARN_NO_CMD = "warning: no commands provided"
CMD_ERR_PIPE_LIMIT = "error: piping limited to {} commands"

_WHITESPACE = frozenset(" \t\n\v\f\r")


class ShellError(Exception):
    """Base class for errors raised while parsing a command line."""

    code = -1

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return "shell error"


class NoCommandsError(ShellError):
    """The command line, or one stage of it, held no command."""

    code = -1

    @classmethod
    def default_message(cls) -> str:
        return CMD_WARN_NO_CMD


class TooManyCommandsError(ShellError):
    """More pipeline stages, or arguments, than the shell allows."""

    code = -2

    @classmethod
    def default_message(cls) -> str:
        return CMD_ERR_PIPE_LIMIT.format(CMD_MAX)


class CommandTooBigError(ShellError):
    """A pipeline stage could not be parsed into a command."""

    code = -3

    @classmethod
    def default_message(cls) -> str:
        return "error: command or arguments too big"


class BuiltIn(enum.Enum):
    """Kinds of built-in commands and the results of running them."""

    EXIT = "exit"
    DRAGON = "dragon"
    CD = "cd"
    RC = "rc"
    STOP_SVR = "stop-server"
    NOT_BI = "not-built-in"
    EXECUTED = "executed"


@dataclass
class Command:
    """One parsed command: the program name followed by its arguments."""

    argv: list[str] = field(default_factory=list)

    @property
    def name(self) -> str | None:
        return self.argv[0] if self.argv else None


def parse_command(line: str) -> Command:
    """Split one command into arguments, honouring double quotes.

    Quotes group words and are removed; empty tokens are dropped.
    """
    text = line[: SH_CMD_MAX - 1]
    stripped = text.lstrip("".join(_WHITESPACE))
    if not stripped:
        raise NoCommandsError()

    argv: list[str] = []
    current: list[str] = []
    in_quotes = False

    def flush() -> None:
        if current:
            if len(argv) >= CMD_MAX:
                raise TooManyCommandsError()
            argv.append("".join(current))
            current.clear()

    for char in stripped:
        if char == '"':
            in_quotes = not in_quotes
        elif char in _WHITESPACE and not in_quotes:
            flush()
        else:
            current.append(char)
    flush()
    return Command(argv)


def parse_pipeline(line: str) -> list[Command]:
    """Split a command line on pipes and parse each stage."""
    if not line:
        raise NoCommandsError()

    text = line[: SH_CMD_MAX - 1]
    commands: list[Command] = []
    for stage in (part for part in text.split(PIPE_STRING) if part):
        if len(commands) >= CMD_MAX:
            raise TooManyCommandsError()
        stage = stage.lstrip(SPACE_CHAR)
        if not stage:
            raise NoCommandsError()
        try:
            commands.append(parse_command(stage))
        except ShellError as exc:
            raise CommandTooBigError() from exc
    return commands


def match_command(name: str | None) -> BuiltIn:
    """Return the built-in a command name refers to, or BuiltIn.NOT_BI."""
    if name is None:
        return BuiltIn.NOT_BI
    if name == EXIT_CMD:
        return BuiltIn.EXIT
    if name == "dragon":
        return BuiltIn.DRAGON
    if name == "cd":
        return BuiltIn.CD
    return BuiltIn.NOT_BI