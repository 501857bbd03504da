# dsh

`dsh` is a small command shell. It reads command lines, splits them on `|`
into a pipeline and runs each stage as a separate program. It runs in one
of three modes:

- **local mode**: prompts with `dsh4> ` and runs pipelines on this machine.
- **server mode**: listens on a TCP port and runs the command lines that
  clients send. The first stage reads from the connection. The last stage
  writes its output and errors to the connection. Each reply ends with an
  end-of-transmission byte (`0x04`).
- **client mode**: prompts with `rdsh> `, sends each line to a server and
  prints the reply up to the `0x04` byte.

## Installing

```
pip install .
```

## Running

Local shell:

```
dsh
```

Start a server. By default it listens on all interfaces, port 1234:

```
dsh -s
dsh -s -i 127.0.0.1 -p 5678
```

Connect a client. By default it connects to 127.0.0.1, port 1234:

```
dsh -c
dsh -c -i 127.0.0.1 -p 5678
```

Options:

| Option    | Meaning                                                  |
|-----------|----------------------------------------------------------|
| `-c`      | run as client                                            |
| `-s`      | run as server                                            |
| `-i IP`   | IPv4 address to bind or connect to (with `-c` or `-s`)   |
| `-p PORT` | port number, must be positive (with `-c` or `-s`)        |
| `-x`      | request threaded mode (with `-s` only)                   |
| `-h`      | print help and exit                                      |

Using `-c` and `-s` together is an error. So is using `-i` or `-p` without
one of them, or `-x` without `-s`. Any of these errors is reported on
standard error and the command exits with status 1. An unknown option
prints the help text.

## Command lines

- Whitespace separates arguments. Double quotes keep spaces inside one
  argument, and the quotes themselves are removed: `echo "a   b"`.
- `|` joins up to 8 commands into a pipeline, each with at most 8 words.
- In local mode, the line `exit` ends the shell. Input ends the shell too.
  A line that cannot be parsed is skipped.
- In client mode, the line `exit` closes the connection and ends the client.
  Nothing is sent to the server for that line.

## Using it as a library

```python
from dsh.commands import parse_command, parse_pipeline, match_command

parse_command('grep "hello world" notes.txt').argv
# ['grep', 'hello world', 'notes.txt']

[c.argv for c in parse_pipeline("ls -l | wc -l")]
# [['ls', '-l'], ['wc', '-l']]

match_command("cd")
# BuiltIn.CD
```

Parsing failures raise subclasses of `dsh.commands.ShellError`:
`NoCommandsError`, `TooManyCommandsError` and `CommandTooBigError`.

The other modules are as follows:

- `dsh.local`
  - `run_command(command, out)` runs one command. The built-ins `exit`,
    `cd DIR` and `dragon` run inside the shell. `exit` raises `ShellExit`.
    Any other command runs as a program, and the call returns its exit
    status.
  - `run_pipeline(commands)` runs a pipeline and returns every stage's exit
    status.
  - `exec_local_cmd_loop(stdin, stdout)` is the interactive loop.
- `dsh.server`
  - `boot_server`, `start_server` and `process_cli_requests` run the
    network server.
  - `exec_client_requests` serves one connection.
  - `execute_remote_pipeline` runs a pipeline attached to a socket.
- `dsh.client`
  - `start_client` connects to a server.
  - `receive_response` reads one reply.
  - `exec_remote_cmd_loop` is the interactive client.
- `dsh.protocol` holds the shared constants, the `RdshError` exceptions
  and `is_eof`.

## What it does not do

- The interactive local loop treats only `exit` specially. It runs every
  other stage, including `cd` and `dragon`, as an external program.
  Built-ins run only through `dsh.local.run_command` and
  `dsh.local.exec_built_in`.
- The server serves one client at a time. `-x` is accepted but changes
  nothing.
- The server stops only when one message holds exactly `stop-server`, with
  no trailing newline. It ends a conversation when a message holds exactly
  `exit`. The interactive client sends each line with its newline, so it
  cannot stop the server this way.
- The package has no input or output redirection (`<`, `>`), no variables
  and no job control.

## Running the tests

```
pip install ".[test]"
pytest
```