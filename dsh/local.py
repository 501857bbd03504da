"""Running commands and pipelines for the local interactive shell."""

from __future__ import annotations

import io
import os
import subprocess
import sys
from typing import IO, Iterable

from .commands import (
    EXIT_CMD,
    SH_CMD_MAX,
    SH_PROMPT,
    BuiltIn,
    Command,
    NoCommandsError,
    ShellError,
    match_command,
    parse_pipeline,
)

OK = 0
OK_EXIT = -7
EXIT_FAILURE = 1


class ShellExit(Exception):
    """Raised by the exit built-in to end the shell."""

    def __init__(self, code: int = OK_EXIT) -> None:
        super().__init__(f"shell exited with code {code}")
        self.code = code


def exec_built_in(command: Command, out: IO[str] | None = None) -> BuiltIn:
    """Run a built-in command; return BuiltIn.EXECUTED or BuiltIn.NOT_BI."""
    out = sys.stdout if out is None else out
    if not command.argv:
        return BuiltIn.NOT_BI

    kind = match_command(command.argv[0])
    if kind is BuiltIn.EXIT:
        out.write("exiting...\n")
        raise ShellExit(OK_EXIT)
    if kind is BuiltIn.DRAGON:
        out.write("🐉 Drexel Dragon!\n")
        return BuiltIn.EXECUTED
    if kind is BuiltIn.CD:
        if len(command.argv) > 1:
            try:
                os.chdir(command.argv[1])
            except OSError as exc:
                print(f"cd: {exc.strerror}", file=sys.stderr)
        return BuiltIn.EXECUTED
    return BuiltIn.NOT_BI


def _output_fd(out: IO[str]) -> int | None:
    """Return a file descriptor for out, or None if it has none."""
    try:
        fd = out.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None
    out.flush()
    return fd


def run_command(command: Command, out: IO[str] | None = None) -> int:
    """Run one command, built-in or external, and return its exit status."""
    out = sys.stdout if out is None else out
    if not command.argv:
        raise NoCommandsError()

    if exec_built_in(command, out) is BuiltIn.EXECUTED:
        return OK

    fd = _output_fd(out)
    try:
        if fd is not None:
            return subprocess.run(command.argv, stdout=fd, check=False).returncode
        result = subprocess.run(
            command.argv, stdout=subprocess.PIPE, text=True, check=False
        )
    except OSError as exc:
        print(f"execvp: {exc.strerror}", file=sys.stderr)
        return EXIT_FAILURE
    out.write(result.stdout)
    return result.returncode


def run_pipeline(commands: Iterable[Command]) -> list[int]:
    """Run commands connected by pipes and return each one's exit status.

    The first command reads the shell's standard input and the last writes
    to its standard output. A command that cannot be started counts as
    failed and the next stage reads end of file.
    """
    stages = list(commands)
    last = len(stages) - 1
    sys.stdout.flush()

    started: list[subprocess.Popen | None] = []
    upstream = None
    for index, command in enumerate(stages):
        if index == 0:
            stdin = None
        else:
            stdin = upstream if upstream is not None else subprocess.DEVNULL
        stdout = subprocess.PIPE if index < last else None
        try:
            proc = subprocess.Popen(command.argv, stdin=stdin, stdout=stdout)
        except OSError:
            proc = None
        if upstream is not None:
            upstream.close()
        upstream = proc.stdout if proc is not None else None
        started.append(proc)

    return [EXIT_FAILURE if proc is None else proc.wait() for proc in started]


def exec_local_cmd_loop(
    stdin: IO[str] | None = None, stdout: IO[str] | None = None
) -> int:
    """Prompt for command lines and run them until exit or end of input."""
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout

    while True:
        stdout.write(SH_PROMPT)
        stdout.flush()
        line = stdin.readline(SH_CMD_MAX - 1)
        if not line:
            break
        line = line.split("\n", 1)[0]
        if line == EXIT_CMD:
            break
        try:
            pipeline = parse_pipeline(line)
        except ShellError:
            continue
        run_pipeline(pipeline)

    return OK