"""Running external programs, pipelines and here-documents."""

from __future__ import annotations

import copy
import io
import os
import signal
import subprocess
import sys
import threading
from typing import Callable, Iterable, TextIO

from mshell.builtins import SHELL_NAME, is_builtin, run_builtin
from mshell.environment import Environment
from mshell.state import Command, Shell, ShellExit


def wait_status_to_exit_value(status: int) -> int | None:
    """Turn a raw wait status into the shell's exit value.

    A child killed by SIGPIPE counts as a success; any other signal gives
    128 plus its number. Returns None for a status that is neither.
    """
    if os.WIFEXITED(status):
        return os.WEXITSTATUS(status)
    if os.WIFSIGNALED(status):
        number = os.WTERMSIG(status)
        if number == signal.SIGPIPE:
            return 0
        value = number
        if value != 131:
            value += 128
        return value
    return None


def _returncode_to_exit_value(returncode: int) -> int:
    status = returncode << 8 if returncode >= 0 else -returncode
    value = wait_status_to_exit_value(status)
    return value if value is not None else returncode


def find_command_path(cmd: str, path: str | None) -> str | None:
    """Return the first ``dir/cmd`` along ``path`` that exists and is executable."""
    if path is None:
        return None
    for directory in filter(None, path.split(":")):
        candidate = f"{directory}/{cmd}"
        if os.access(candidate, os.F_OK | os.X_OK):
            return candidate
    return None


def has_path_variable(environment: Environment) -> bool:
    """Tell whether the environment assigns PATH."""
    return any(line.startswith("PATH=") for line in environment.to_list())


def _check_runnable(shell: Shell, command: Command, err: TextIO) -> int | None:
    """Return None if ``command`` may start, else the exit value to report."""
    if command.cmd is None:
        if not any(token.type.is_redirection for token in shell.tokens):
            err.write("error, no command entered\n")
        return shell.exit_value
    if not has_path_variable(shell.environment):
        err.write(f"{SHELL_NAME}: {command.cmd}: No such file or directory\n")
        return 127
    return None


def _candidates(cmd: str) -> Iterable[str]:
    if os.access(cmd, os.X_OK):
        yield cmd
    found = find_command_path(cmd, os.environ.get("PATH"))
    if found is not None:
        yield found


def _spawn(
    shell: Shell,
    command: Command,
    stdin: int | None,
    stdout: int | None,
) -> subprocess.Popen | None:
    """Start ``command``; return None when no executable could be started."""
    assert command.cmd is not None
    environment = shell.environment.to_dict()
    argv = command.args or [command.cmd]
    sys.stdout.flush()
    for executable in _candidates(command.cmd):
        try:
            return subprocess.Popen(
                argv,
                executable=executable,
                stdin=stdin,
                stdout=stdout,
                env=environment,
            )
        except OSError:
            continue
    return None


def run_command(shell: Shell, command: Command) -> int:
    """Run one external command and wait for it; return the new exit value."""
    err = sys.stderr
    failure = _check_runnable(shell, command, err)
    if failure is not None:
        shell.exit_value = failure
        return shell.exit_value
    if command.redirection_failed:
        return shell.exit_value
    stdin = command.infile if command.infile > -1 else None
    stdout = command.outfile if command.outfile > -1 else None
    process = _spawn(shell, command, stdin, stdout)
    if process is None:
        err.write(f"{SHELL_NAME}: {command.cmd} command not found\n")
        shell.exit_value = 127
        return shell.exit_value
    shell.exit_value = _returncode_to_exit_value(process.wait())
    return shell.exit_value


def _write_async(fd: int, data: bytes) -> threading.Thread:
    """Write ``data`` to ``fd`` in the background, then close it."""

    def write() -> None:
        try:
            view = memoryview(data)
            while view:
                written = os.write(fd, view)
                view = view[written:]
        except OSError:
            pass
        finally:
            os.close(fd)

    thread = threading.Thread(target=write, daemon=True)
    thread.start()
    return thread


def _pipeline_stage(
    shell: Shell,
    command: Command,
    stdin: int | None,
    pipe_out: int | None,
    err: TextIO,
    writers: list[threading.Thread],
) -> subprocess.Popen | int:
    """Start one stage of a pipeline; return its process or its final status."""
    if is_builtin(command.cmd):
        child = copy.deepcopy(shell)
        capture = pipe_out is not None and command.outfile <= -1
        buffer = io.StringIO() if capture else None
        try:
            run_builtin(child, command, buffer, err)
            status = child.exit_value
        except ShellExit as stop:
            status = stop.code
        if capture and buffer is not None and pipe_out is not None:
            writers.append(_write_async(os.dup(pipe_out), buffer.getvalue().encode()))
        else:
            sys.stdout.flush()
        return status
    if command.cmd is None:
        return shell.exit_value
    failure = _check_runnable(shell, command, err)
    if failure is not None:
        return failure
    stdout = command.outfile if command.outfile > -1 else pipe_out
    process = _spawn(shell, command, stdin, stdout)
    if process is None:
        err.write(f"{command.cmd}: command not found\n")
        return 127
    return process


def run_pipeline(shell: Shell, commands: Iterable[Command]) -> int:
    """Run commands connected by pipes; the last one gives the exit value.

    Builtins run on a copy of the shell, so they never change its state.
    """
    commands = list(commands)
    err = sys.stderr
    stages: list[subprocess.Popen | int] = []
    writers: list[threading.Thread] = []
    upstream: int | None = None
    for position, command in enumerate(commands):
        last = position == len(commands) - 1
        read_end: int | None = None
        write_end: int | None = None
        if not last:
            read_end, write_end = os.pipe()
        stdin = command.infile if command.infile > -1 else upstream
        try:
            stages.append(_pipeline_stage(shell, command, stdin, write_end, err, writers))
        finally:
            if upstream is not None:
                os.close(upstream)
            if write_end is not None:
                os.close(write_end)
        upstream = read_end
    if upstream is not None:
        os.close(upstream)
    statuses = [
        stage if isinstance(stage, int) else _returncode_to_exit_value(stage.wait())
        for stage in stages
    ]
    for writer in writers:
        writer.join()
    if statuses:
        shell.exit_value = statuses[-1]
    return shell.exit_value


def _prompt(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def read_heredoc(
    delimiter: str,
    read_line: Callable[[str], str | None] | None = None,
    err: TextIO | None = None,
) -> str:
    """Read lines until ``delimiter`` and return them joined with newlines.

    ``read_line`` returns None at end of input, which ends the document
    with a warning.
    """
    reader = read_line if read_line is not None else _prompt
    err = err if err is not None else sys.stderr
    lines: list[str] = []
    while True:
        line = reader("> ")
        if line is None:
            err.write(
                f"{SHELL_NAME}: warning: here-document delimited by "
                f"end-of-file (wanted '{delimiter}')\n"
            )
            break
        if line == delimiter:
            break
        lines.append(line + "\n")
    return "".join(lines)


def launch_line(shell: Shell) -> int:
    """Run the commands of the current line; return the new exit value."""
    if not shell.commands or shell.commands[0].cmd is None:
        return shell.exit_value
    if shell.pipe_in_tokens():
        return run_pipeline(shell, shell.commands)
    for command in shell.commands:
        if is_builtin(command.cmd):
            run_builtin(shell, command)
        else:
            run_command(shell, command)
    return shell.exit_value