import os
import socket
import threading
import time

import pytest

from dsh.commands import BuiltIn, Command
from dsh.local import EXIT_FAILURE, OK_EXIT
from dsh.protocol import (
    CMD_ERR_RDSH_EXEC,
    ERR_RDSH_COMMUNICATION,
    RDSH_EOF_CHAR,
    CommunicationError,
    is_eof,
)
from dsh.server import (
    EXIT_SC,
    ClientOutcome,
    boot_server,
    exec_client_requests,
    execute_remote_pipeline,
    match_remote_command,
    process_cli_requests,
    remote_built_in,
    send_message_eof,
    send_message_string,
    start_server,
)


def _read_until(sock, suffix, timeout=10.0):
    sock.settimeout(timeout)
    data = b""
    while not data.endswith(suffix):
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def _run_in_thread(func, *args):
    result = {}

    def target():
        try:
            result["value"] = func(*args)
        except Exception as exc:  # noqa: BLE001
            result["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread, result


def _start_thread(func):
    thread = threading.Thread(target=func, daemon=True)
    thread.start()
    return thread


@pytest.fixture
def pair():
    server_end, client_end = socket.socketpair()
    yield server_end, client_end
    server_end.close()
    client_end.close()


def test_send_message_eof_sends_marker(pair):
    server_end, client_end = pair
    send_message_eof(server_end)
    received = _read_until(client_end, RDSH_EOF_CHAR)
    assert is_eof(received) is True
    assert received == b"\x04"


def test_send_message_string_appends_marker(pair):
    server_end, client_end = pair
    send_message_string(server_end, "hi\n")
    received = _read_until(client_end, RDSH_EOF_CHAR)
    assert is_eof(received) is True
    assert received == b"hi\n\x04"


def test_send_on_closed_socket_raises():
    sock, other = socket.socketpair()
    other.close()
    sock.close()
    with pytest.raises(CommunicationError):
        send_message_eof(sock)
    with pytest.raises(CommunicationError):
        send_message_string(sock, "hello")


def test_client_exit_returns_exit(pair):
    server_end, client_end = pair
    client_end.sendall(b"exit")
    assert exec_client_requests(server_end) is ClientOutcome.EXIT


def test_client_stop_server_returns_stop(pair):
    server_end, client_end = pair
    client_end.sendall(b"stop-server")
    assert exec_client_requests(server_end) is ClientOutcome.STOP


def test_client_disconnect_raises(pair):
    server_end, client_end = pair
    client_end.close()
    with pytest.raises(CommunicationError):
        exec_client_requests(server_end)


def test_command_output_followed_by_eof(pair):
    server_end, client_end = pair
    responses = []

    def client():
        client_end.sendall(b"echo hello\n")
        responses.append(_read_until(client_end, RDSH_EOF_CHAR))
        client_end.sendall(b"exit")

    thread = _start_thread(client)
    outcome = exec_client_requests(server_end)
    thread.join(10)
    assert outcome is ClientOutcome.EXIT
    assert responses == [b"hello\n\x04"]


def test_unparsable_command_sends_error(pair):
    server_end, client_end = pair
    thread, result = _run_in_thread(exec_client_requests, server_end)
    client_end.sendall(b"\n")
    response = _read_until(client_end, RDSH_EOF_CHAR * 2)
    client_end.sendall(b"stop-server")
    thread.join(10)
    assert response == CMD_ERR_RDSH_EXEC.encode() + b"\x04\x04"
    assert result.get("value") is ClientOutcome.STOP


def test_pipeline_single_command_output(pair):
    server_end, client_end = pair
    status = execute_remote_pipeline(server_end, [Command(["echo", "hi"])])
    assert status == 0
    assert _read_until(client_end, b"\n") == b"hi\n"


def test_pipeline_connects_stages(pair):
    server_end, client_end = pair
    status = execute_remote_pipeline(
        server_end, [Command(["echo", "hello"]), Command(["tr", "a-z", "A-Z"])]
    )
    assert status == 0
    assert _read_until(client_end, b"\n") == b"HELLO\n"


def test_pipeline_returns_last_exit_status(pair):
    server_end, _ = pair
    status = execute_remote_pipeline(server_end, [Command(["sh", "-c", "exit 3"])])
    assert status == 3


def test_pipeline_exit_sc_wins(pair):
    server_end, _ = pair
    status = execute_remote_pipeline(
        server_end,
        [Command(["sh", "-c", "exit 100"]), Command(["true"])],
    )
    assert status == EXIT_SC


def test_pipeline_missing_program_reports_failure(pair):
    server_end, client_end = pair
    status = execute_remote_pipeline(
        server_end, [Command(["no-such-program-for-dsh-tests"])]
    )
    assert status == EXIT_FAILURE
    assert _read_until(client_end, b"\n").startswith(b"execvp:")


def test_empty_pipeline_is_ok(pair):
    server_end, _ = pair
    assert execute_remote_pipeline(server_end, []) == 0


def test_boot_server_listens():
    with boot_server("127.0.0.1", 0) as server:
        host, port = server.getsockname()
        assert host == "127.0.0.1"
        assert port > 0
        with socket.create_connection((host, port), timeout=5) as client:
            conn, _ = server.accept()
            with conn:
                client.sendall(b"x")
                assert conn.recv(1) == b"x"


def test_boot_server_rejects_bad_address():
    with pytest.raises(CommunicationError):
        boot_server("not-an-address", 0)


def test_process_cli_requests_serves_until_stop():
    with boot_server("127.0.0.1", 0) as server:
        port = server.getsockname()[1]
        thread, result = _run_in_thread(process_cli_requests, server)

        with socket.create_connection(("127.0.0.1", port), timeout=5) as first:
            first.sendall(b"exit")
            first.settimeout(5)
            assert first.recv(1) == b""

        with socket.create_connection(("127.0.0.1", port), timeout=5) as second:
            second.sendall(b"stop-server")
        thread.join(10)
    assert result.get("value") is ClientOutcome.STOP


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def test_start_server_stops_on_request():
    port = _free_port()
    connected = []

    def client():
        for _ in range(100):
            try:
                conn = socket.create_connection(("127.0.0.1", port), timeout=5)
            except OSError:
                time.sleep(0.05)
                continue
            with conn:
                conn.sendall(b"stop-server")
            connected.append(True)
            return

    thread = _start_thread(client)
    rc = start_server("127.0.0.1", port, False)
    thread.join(10)
    assert connected == [True]
    assert rc == OK_EXIT


def test_start_server_bad_interface_returns_error_code():
    assert start_server("bad-interface", 0, False) == ERR_RDSH_COMMUNICATION


@pytest.mark.parametrize(
    "name, expected",
    [
        ("exit", BuiltIn.EXIT),
        ("dragon", BuiltIn.DRAGON),
        ("cd", BuiltIn.CD),
        ("stop-server", BuiltIn.STOP_SVR),
        ("rc", BuiltIn.RC),
        ("ls", BuiltIn.NOT_BI),
        (None, BuiltIn.NOT_BI),
    ],
)
def test_match_remote_command(name, expected):
    assert match_remote_command(name) is expected


@pytest.mark.parametrize(
    "argv, expected",
    [
        (["exit"], BuiltIn.EXIT),
        (["stop-server"], BuiltIn.STOP_SVR),
        (["rc"], BuiltIn.RC),
        (["dragon"], BuiltIn.NOT_BI),
        (["ls", "-l"], BuiltIn.NOT_BI),
    ],
)
def test_remote_built_in_kinds(argv, expected):
    assert remote_built_in(Command(argv)) is expected


def test_remote_built_in_cd_changes_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(os.getcwd())
    target = tmp_path / "sub"
    target.mkdir()
    assert remote_built_in(Command(["cd", str(target)])) is BuiltIn.EXECUTED
    assert os.path.realpath(os.getcwd()) == os.path.realpath(target)


def test_remote_built_in_cd_missing_directory_is_ignored(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    before = os.getcwd()
    result = remote_built_in(Command(["cd", str(tmp_path / "missing")]))
    assert result is BuiltIn.EXECUTED
    assert os.getcwd() == before