"""The remote shell client: send command lines and print the server's replies."""

from __future__ import annotations

import codecs
import socket
import sys
from typing import IO

from .protocol import (
    CLIENT_PROMPT,
    RDSH_COMM_BUFF_SZ,
    ClientError,
    CommunicationError,
    is_eof,
)

OK = 0


def start_client(address: str, port: int) -> socket.socket:
    """Connect to the server at an IPv4 address and port and return the socket."""
    try:
        socket.inet_pton(socket.AF_INET, address)
    except OSError as exc:
        raise ClientError(f"invalid server address: {address}") from exc

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((address, port))
    except OSError as exc:
        sock.close()
        raise ClientError(f"connect: {exc.strerror or exc}") from exc
    return sock


def receive_response(sock: socket.socket, out: IO[str] | None = None) -> str:
    """Copy one response from the server to out, up to and including the EOF marker.

    Returns the text received. Raises CommunicationError if receiving fails
    or the server closes the connection first.
    """
    out = sys.stdout if out is None else out
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parts: list[str] = []
    while True:
        try:
            chunk = sock.recv(RDSH_COMM_BUFF_SZ)
        except OSError as exc:
            raise CommunicationError(f"recv: {exc.strerror or exc}") from exc
        if not chunk:
            raise CommunicationError("Server disconnected")
        text = decoder.decode(chunk, final=is_eof(chunk))
        out.write(text)
        parts.append(text)
        if is_eof(chunk):
            break
    out.flush()
    return "".join(parts)


def exec_remote_cmd_loop(
    address: str,
    port: int,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
) -> int:
    """Prompt for commands, run each on the server and print its output.

    Ends on end of input or the ``exit`` command and returns 0. Raises
    ClientError if the connection cannot be made and CommunicationError
    if the conversation with the server fails.
    """
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout

    with start_client(address, port) as sock:
        while True:
            stdout.write(CLIENT_PROMPT)
            stdout.flush()
            line = stdin.readline(RDSH_COMM_BUFF_SZ - 1)
            if not line or line == "exit\n":
                break
            try:
                sock.sendall(line.encode("utf-8"))
            except OSError as exc:
                raise CommunicationError(f"send: {exc.strerror or exc}") from exc
            receive_response(sock, stdout)
    return OK