"""The remote shell server: accept clients and run their command lines."""

from __future__ import annotations

import enum
import os
import socket
import subprocess
import sys
from typing import Iterable

from .commands import BuiltIn, Command, ShellError, parse_pipeline
from .local import EXIT_FAILURE, OK, OK_EXIT
from .protocol import (
    CMD_ERR_RDSH_EXEC,
    RDSH_COMM_BUFF_SZ,
    RDSH_EOF_CHAR,
    CommunicationError,
    RdshError,
)

EXIT_SC = 100
LISTEN_BACKLOG = 20


class ClientOutcome(enum.Enum):
    """How a client conversation ended."""

    EXIT = OK
    STOP = OK_EXIT


def boot_server(ifaces: str, port: int) -> socket.socket:
    """Create a listening TCP socket bound to an IPv4 interface and port."""
    try:
        socket.inet_pton(socket.AF_INET, ifaces)
    except OSError as exc:
        raise CommunicationError(f"invalid interface address: {ifaces}") from exc

    try:
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    except OSError as exc:
        raise CommunicationError(f"socket: {exc.strerror or exc}") from exc

    try:
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind((ifaces, port))
        server.listen(LISTEN_BACKLOG)
    except OSError as exc:
        server.close()
        raise CommunicationError(f"bind/listen: {exc.strerror or exc}") from exc
    return server


def start_server(ifaces: str, port: int, is_threaded: bool = False) -> int:
    """Run the server until a client stops it; return the server's status code.

    Returns OK_EXIT when a client sent ``stop-server``, otherwise the code of
    the error that ended the server. ``is_threaded`` is accepted but clients
    are always served one at a time.
    """
    del is_threaded
    try:
        with boot_server(ifaces, port) as server:
            process_cli_requests(server)
    except RdshError as exc:
        print(exc, file=sys.stderr)
        return exc.code
    return OK_EXIT


def process_cli_requests(server_socket: socket.socket) -> ClientOutcome:
    """Accept clients one after another until one asks the server to stop.

    Raises CommunicationError if accepting fails or a conversation breaks.
    """
    while True:
        try:
            connection, _ = server_socket.accept()
        except OSError as exc:
            raise CommunicationError(f"accept: {exc.strerror or exc}") from exc
        with connection:
            outcome = exec_client_requests(connection)
        if outcome is ClientOutcome.STOP:
            return outcome


def exec_client_requests(client_socket: socket.socket) -> ClientOutcome:
    """Receive and run command lines from one client until it exits or stops the server.

    Every command's output is followed by the end-of-message marker. Raises
    CommunicationError if receiving fails or the client goes away.
    """
    while True:
        try:
            data = client_socket.recv(RDSH_COMM_BUFF_SZ)
        except OSError as exc:
            raise CommunicationError(f"recv: {exc.strerror or exc}") from exc
        if not data:
            raise CommunicationError("client disconnected")

        line = data.decode("utf-8", errors="replace")
        if line == "exit":
            return ClientOutcome.EXIT
        if line == "stop-server":
            return ClientOutcome.STOP

        try:
            pipeline = parse_pipeline(line)
        except ShellError:
            send_message_string(client_socket, CMD_ERR_RDSH_EXEC)
        else:
            execute_remote_pipeline(client_socket, pipeline)
        send_message_eof(client_socket)


def send_message_eof(sock: socket.socket) -> None:
    """Send the end-of-message marker; raise CommunicationError on failure."""
    try:
        sent = sock.send(RDSH_EOF_CHAR)
    except OSError as exc:
        raise CommunicationError(f"send: {exc.strerror or exc}") from exc
    if sent != len(RDSH_EOF_CHAR):
        raise CommunicationError("could not send end-of-message marker")


def send_message_string(sock: socket.socket, message: str) -> None:
    """Send a text message followed by the end-of-message marker."""
    try:
        sock.sendall(message.encode("utf-8"))
    except OSError as exc:
        raise CommunicationError(f"send: {exc.strerror or exc}") from exc
    send_message_eof(sock)


def _exit_status(returncode: int) -> int:
    """Exit status as the shell sees it; a process killed by a signal counts as 0."""
    if returncode < 0:
        return 0
    return returncode & 0xFF


def _report_exec_failure(sock: socket.socket | None, exc: OSError) -> None:
    message = f"execvp: {exc.strerror or exc}\n"
    if sock is None:
        sys.stderr.write(message)
        return
    try:
        sock.sendall(message.encode("utf-8"))
    except OSError:
        pass


def execute_remote_pipeline(sock: socket.socket, commands: Iterable[Command]) -> int:
    """Run a pipeline whose ends are attached to a client connection.

    The first stage reads from the socket; the last writes its output and
    errors to it. Returns the last stage's exit status, or EXIT_SC if any
    stage exited with that status.
    """
    stages = list(commands)
    if not stages:
        return OK

    fd = sock.fileno()
    last = len(stages) - 1
    processes: list[subprocess.Popen | None] = []
    upstream = None
    for index, command in enumerate(stages):
        is_last = index == last
        if index == 0:
            stdin = fd
        else:
            stdin = upstream if upstream is not None else subprocess.DEVNULL
        try:
            proc = subprocess.Popen(
                command.argv,
                stdin=stdin,
                stdout=fd if is_last else subprocess.PIPE,
                stderr=fd if is_last else None,
            )
        except OSError as exc:
            _report_exec_failure(sock if is_last else None, exc)
            proc = None
        if upstream is not None:
            upstream.close()
        upstream = proc.stdout if proc is not None and not is_last else None
        processes.append(proc)

    statuses = [
        EXIT_FAILURE if proc is None else _exit_status(proc.wait())
        for proc in processes
    ]
    if EXIT_SC in statuses:
        return EXIT_SC
    return statuses[-1]


def match_remote_command(name: str | None) -> BuiltIn:
    """Return the built-in a command name refers to on the server."""
    return {
        "exit": BuiltIn.EXIT,
        "dragon": BuiltIn.DRAGON,
        "cd": BuiltIn.CD,
        "stop-server": BuiltIn.STOP_SVR,
        "rc": BuiltIn.RC,
    }.get(name or "", BuiltIn.NOT_BI)


def remote_built_in(command: Command) -> BuiltIn:
    """Handle a server-side built-in.

    ``cd`` is run here and gives BuiltIn.EXECUTED; ``exit``, ``stop-server``
    and ``rc`` are returned for the caller to act on; anything else gives
    BuiltIn.NOT_BI.
    """
    kind = match_remote_command(command.name)
    if kind is BuiltIn.CD:
        if len(command.argv) > 1:
            try:
                os.chdir(command.argv[1])
            except OSError:
                pass
        return BuiltIn.EXECUTED
    if kind in (BuiltIn.EXIT, BuiltIn.STOP_SVR, BuiltIn.RC):
        return kind
    return BuiltIn.NOT_BI