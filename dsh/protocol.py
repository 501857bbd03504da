"""Constants, errors and framing helpers shared by the remote shell client and server."""

from __future__ import annotations

RDSH_DEF_PORT = 1234
RDSH_DEF_SVR_INTFACE = "0.0.0.0"
RDSH_DEF_CLI_CONNECT = "127.0.0.1"

RDSH_COMM_BUFF_SZ = 1024 * 64
STOP_SERVER_SC = 200

# End-of-message marker: TCP is a stream, so each response ends with ASCII EOT.
RDSH_EOF_CHAR = b"\x04"

ERR_RDSH_COMMUNICATION = -50
ERR_RDSH_SERVER = -51
ERR_RDSH_CLIENT = -52
ERR_RDSH_CMD_EXEC = -53
WARN_RDSH_NOT_IMPL = -99

CMD_ERR_RDSH_COMM = "rdsh-error: communications error\n"
CMD_ERR_RDSH_EXEC = "rdsh-error: command execution error\n"
CMD_ERR_RDSH_ITRNL = "rdsh-error: internal server error - {}\n"
CMD_ERR_RDSH_SEND = "rdsh-error: partial send.  Sent {}, expected to send {}\n"
RCMD_SERVER_EXITED = "server appeared to terminate - exiting\n"

RCMD_MSG_CLIENT_EXITED = "client exited: getting next connection...\n"
RCMD_MSG_SVR_STOP_REQ = "client requested server to stop, stopping...\n"
RCMD_MSG_SVR_EXEC_REQ = "rdsh-exec:  {}\n"
RCMD_MSG_SVR_RC_CMD = "rdsh-exec:  rc = {}\n"

CLIENT_PROMPT = "rdsh> "


class RdshError(Exception):
    """Base class for remote shell errors; ``code`` is the shell's status code."""

    code = ERR_RDSH_SERVER

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return "rdsh error"


class CommunicationError(RdshError):
    """A send or receive on the connection failed, or the peer went away."""

    code = ERR_RDSH_COMMUNICATION

    @classmethod
    def default_message(cls) -> str:
        return CMD_ERR_RDSH_COMM.rstrip("\n")


class ClientError(RdshError):
    """The client could not create its socket or connect to the server."""

    code = ERR_RDSH_CLIENT

    @classmethod
    def default_message(cls) -> str:
        return "rdsh-error: client could not connect"


class ServerError(RdshError):
    """A general failure inside the server."""

    code = ERR_RDSH_SERVER

    @classmethod
    def default_message(cls) -> str:
        return "rdsh-error: server error"


class CommandExecError(RdshError):
    """A command sent to the server could not be executed."""

    code = ERR_RDSH_CMD_EXEC

    @classmethod
    def default_message(cls) -> str:
        return CMD_ERR_RDSH_EXEC.rstrip("\n")


def is_eof(chunk: bytes) -> bool:
    """Return True if a received chunk ends with the end-of-message marker."""
    return bool(chunk) and chunk[-1:] == RDSH_EOF_CHAR