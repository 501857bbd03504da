"""Command-line entry point: run the shell locally, as a client or as a server."""

from __future__ import annotations

import enum
import re
import sys
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from .client import exec_remote_cmd_loop
from .local import exec_local_cmd_loop
from .protocol import (
    RDSH_DEF_CLI_CONNECT,
    RDSH_DEF_PORT,
    RDSH_DEF_SVR_INTFACE,
    RdshError,
)
from .server import start_server

PROGNAME = "dsh"
EXIT_FAILURE = 1
IP_MAX = 15

# Option letters and whether each takes an argument.
_OPTIONS = {"c": False, "s": False, "i": True, "p": True, "x": False, "h": False}
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class Mode(enum.Enum):
    """Which way the shell runs."""

    LOCAL = 0
    CLIENT = 1
    SERVER = 2


@dataclass
class CliArgs:
    """Startup settings taken from the command line."""

    mode: Mode = Mode.LOCAL
    ip: str = ""
    port: int = RDSH_DEF_PORT
    threaded_server: bool = False
    show_help: bool = False


class UsageError(Exception):
    """The command-line options were used in a way that is not allowed."""


def usage(progname: str = PROGNAME) -> str:
    """Return the help text for the command."""
    return (
        f"Usage: {progname} [-c | -s] [-i IP] [-p PORT] [-x] [-h]\n"
        f"  Default is to run {progname} in local mode\n"
        "  -c            Run as client\n"
        "  -s            Run as server\n"
        "  -i IP         Set IP/Interface address (only valid with -c or -s)\n"
        "  -p PORT       Set port number (only valid with -c or -s)\n"
        "  -x            Enable threaded mode (only valid with -s)\n"
        "  -h            Show this help message\n"
    )


def _atoi(text: str) -> int:
    """Read a leading decimal integer as atoi does; 0 if there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _scan(args: Iterable[str]) -> Iterator[tuple[str, str | None]]:
    """Yield (letter, value) for each option in order; letter '?' marks an error.

    Non-option words are skipped and ``--`` ends option processing.
    """
    tokens = iter(args)
    for token in tokens:
        if token == "--":
            return
        if not token.startswith("-") or token == "-":
            continue
        body = token[1:]
        while body:
            letter, body = body[0], body[1:]
            if letter not in _OPTIONS:
                print(f"{PROGNAME}: invalid option -- '{letter}'", file=sys.stderr)
                yield "?", letter
                return
            if not _OPTIONS[letter]:
                yield letter, None
                continue
            value = body if body else next(tokens, None)
            if value is None:
                print(
                    f"{PROGNAME}: option requires an argument -- '{letter}'",
                    file=sys.stderr,
                )
                yield "?", letter
                return
            yield letter, value
            break


def parse_args(argv: Sequence[str]) -> CliArgs:
    """Parse the options (without the program name) into CliArgs.

    Raises UsageError when options conflict or a port is invalid. A help
    request or an unrecognised option sets ``show_help``.
    """
    args = CliArgs()
    for letter, value in _scan(argv):
        if letter == "c":
            if args.mode is not Mode.LOCAL:
                raise UsageError("Error: Cannot use both -c and -s")
            args.mode = Mode.CLIENT
            args.ip = RDSH_DEF_CLI_CONNECT
        elif letter == "s":
            if args.mode is not Mode.LOCAL:
                raise UsageError("Error: Cannot use both -c and -s")
            args.mode = Mode.SERVER
            args.ip = RDSH_DEF_SVR_INTFACE
        elif letter == "i":
            if args.mode is Mode.LOCAL:
                raise UsageError("Error: -i can only be used with -c or -s")
            args.ip = (value or "")[:IP_MAX]
        elif letter == "p":
            if args.mode is Mode.LOCAL:
                raise UsageError("Error: -p can only be used with -c or -s")
            args.port = _atoi(value or "")
            if args.port <= 0:
                raise UsageError("Error: Invalid port number")
        elif letter == "x":
            if args.mode is not Mode.SERVER:
                raise UsageError("Error: -x can only be used with -s")
            args.threaded_server = True
        else:
            args.show_help = True
            return args

    if args.threaded_server and args.mode is not Mode.SERVER:
        raise UsageError("Error: -x can only be used with -s")
    return args


def main(argv: Sequence[str] | None = None) -> int:
    """Run the shell in the mode chosen on the command line."""
    argv = sys.argv[1:] if argv is None else list(argv)
    try:
        args = parse_args(argv)
    except UsageError as exc:
        print(exc, file=sys.stderr)
        return EXIT_FAILURE

    if args.show_help:
        sys.stdout.write(usage(PROGNAME))
        return 0

    if args.mode is Mode.LOCAL:
        print("local mode")
        rc = exec_local_cmd_loop()
    elif args.mode is Mode.CLIENT:
        print(f"socket client mode:  addr:{args.ip}:{args.port}")
        try:
            rc = exec_remote_cmd_loop(args.ip, args.port)
        except RdshError as exc:
            print(exc, file=sys.stderr)
            rc = exc.code
    else:
        print(f"socket server mode:  addr:{args.ip}:{args.port}")
        if args.threaded_server:
            print("-> Multi-Threaded Mode")
        else:
            print("-> Single-Threaded Mode")
        rc = start_server(args.ip, args.port, args.threaded_server)

    print(f"cmd loop returned {rc}")
    return 0


if __name__ == "__main__":
    sys.exit(main())