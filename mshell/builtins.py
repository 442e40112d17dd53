"""Commands that the shell runs itself, without starting another program."""

from __future__ import annotations

import contextlib
import os
import string
import sys
from typing import Callable, Iterable, TextIO

from mshell.environment import Environment
from mshell.state import Command, Shell

SHELL_NAME = "mshell"

BUILTINS = frozenset({"cd", "echo", "env", "exit", "export", "pwd", "unset"})

_WHITESPACE = " \t\n\v\f\r"
_NAME_START = set(string.ascii_letters + "_")
_NAME_CHARS = set(string.ascii_letters + string.digits + "_")

_GETCWD_ERROR = (
    "pwd: error retrieving current directory: "
    "getcwd: cannot access parent directories: "
    "No such file or directory\n"
)


def _stream(given: TextIO | None, default: TextIO) -> TextIO:
    return given if given is not None else default


def is_builtin(name: str | None) -> bool:
    """Tell whether ``name`` is run by the shell itself."""
    return name in BUILTINS


def is_echo_n_flag(arg: str | None) -> bool:
    """Tell whether ``arg`` is an ``-n`` option of echo, such as ``-nnn``."""
    if arg is None:
        return True
    return len(arg) >= 2 and arg[0] == "-" and set(arg[1:]) == {"n"}


def echo(shell: Shell, args: list[str], out: TextIO | None = None) -> int:
    """Write the arguments separated by spaces, with a newline unless ``-n``."""
    out = _stream(out, sys.stdout)
    words = args[1:]
    newline = True
    while words and is_echo_n_flag(words[0]):
        newline = False
        words = words[1:]
    out.write(" ".join(words))
    if newline:
        out.write("\n")
    shell.exit_value = 0
    return 0


def _cd_error(shell: Shell, target: str, err: TextIO) -> int:
    err.write(f"{SHELL_NAME}: cd: {target}: No such file or directory\n")
    shell.exit_value = 1
    return 1


def _update_oldpwd(environment: Environment) -> None:
    for entry in environment:
        if entry.line.startswith("PWD="):
            environment.update("OLD" + entry.line)
            break


def _update_pwd(shell: Shell, err: TextIO) -> None:
    _update_oldpwd(shell.environment)
    try:
        cwd = os.getcwd()
    except OSError:
        shell.exit_value = 1
        err.write(_GETCWD_ERROR)
        return
    shell.environment.update(f"PWD={cwd}")


def _cd_home(shell: Shell, err: TextIO) -> int:
    home = shell.environment.get("HOME")
    if home is None:
        shell.exit_value = 1
        err.write(f"{SHELL_NAME}: cd: HOME not set\n")
        return 1
    try:
        os.chdir(home)
    except OSError:
        return _cd_error(shell, home, err)
    _update_pwd(shell, err)
    shell.exit_value = 0
    return 0


def cd(shell: Shell, args: list[str], err: TextIO | None = None) -> int:
    """Change the working directory and keep PWD and OLDPWD in step."""
    err = _stream(err, sys.stderr)
    if len(args) == 1:
        return _cd_home(shell, err)
    if len(args) == 2:
        target = args[1]
        try:
            os.chdir(target)
        except OSError:
            if not os.access(target, os.R_OK | os.W_OK | os.X_OK) and os.access(target, os.F_OK):
                err.write(f"cd: Permission denied: {target}\n")
                shell.exit_value = 1
                return 1
            return _cd_error(shell, target, err)
        _update_pwd(shell, err)
        shell.exit_value = 0
        return 0
    shell.exit_value = 1
    err.write(f"{SHELL_NAME}: cd: too many arguments\n")
    return 1


def pwd(shell: Shell, out: TextIO | None = None, err: TextIO | None = None) -> int:
    """Write the current working directory."""
    out = _stream(out, sys.stdout)
    err = _stream(err, sys.stderr)
    try:
        cwd = os.getcwd()
    except OSError:
        shell.exit_value = 1
        err.write(_GETCWD_ERROR)
        return 1
    out.write(cwd + "\n")
    shell.exit_value = 0
    return 0


def env(shell: Shell, out: TextIO | None = None) -> int:
    """Write every assigned variable as ``NAME=value``."""
    out = _stream(out, sys.stdout)
    if not len(shell.environment):
        return 1
    for entry in shell.environment:
        if entry.has_value:
            out.write(entry.line + "\n")
    shell.exit_value = 0
    return 0


def sorted_environment(entries: Iterable[str]) -> list[str]:
    """Return environment lines in byte order."""
    return sorted(entries)


def export_listing(environment: Environment, out: TextIO | None = None) -> None:
    """Write the environment sorted, in ``declare -x`` form."""
    out = _stream(out, sys.stdout)
    for line in sorted_environment(environment.to_list()):
        name, sep, value = line.partition("=")
        if sep:
            out.write(f'declare -x {name}="{value}"\n')
        else:
            out.write(f"declare -x {name}\n")


def is_valid_export_name(word: str) -> bool:
    """Tell whether the name part of ``word`` is a valid identifier."""
    if not word or word[0] not in _NAME_START:
        return False
    name = word.partition("=")[0]
    return all(char in _NAME_CHARS for char in name)


def export(
    shell: Shell,
    args: list[str],
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Set variables, or list them all when no argument is given."""
    err = _stream(err, sys.stderr)
    if len(args) < 2:
        if len(shell.environment):
            export_listing(shell.environment, out)
        return 0
    for word in args[1:]:
        if not is_valid_export_name(word):
            err.write(f"{SHELL_NAME}: export: '{word}': invalid identifier\n")
            shell.exit_value = 1
            return 1
        shell.environment.update(word)
    shell.exit_value = 0
    return 0


def is_valid_unset_name(word: str | None, out: TextIO | None = None) -> bool:
    """Tell whether ``word`` names a variable; complain on ``out`` if not."""
    out = _stream(out, sys.stdout)
    valid = (
        bool(word)
        and word[0] in _NAME_START
        and all(char in _NAME_CHARS for char in word)
    )
    if not valid:
        out.write(f"{SHELL_NAME}: unset: `{word}': not a valid identifier\n")
    return valid


def unset(shell: Shell, args: list[str], out: TextIO | None = None) -> int:
    """Remove the named variables; unknown names are ignored."""
    shell.exit_value = 0
    for word in args[1:]:
        if not is_valid_unset_name(word, out):
            continue
        position = shell.environment.index_of_name(word)
        if position is not None:
            shell.environment.remove_at(position)
    return 0


def parse_exit_status(text: str) -> int:
    """Turn an exit argument into a status between 0 and 255.

    Raises ValueError when the argument is not a number or is too long.
    """
    body = text[1:] if text[:1] in ("-", "+") else text
    if any(char not in _WHITESPACE and char not in string.digits for char in body):
        raise ValueError(f"numeric argument required: {text!r}")
    rest = text.lstrip(_WHITESPACE)
    negative = rest[:1] == "-"
    if rest[:1] in ("-", "+"):
        rest = rest[1:]
    digits = ""
    for char in rest:
        if char not in string.digits:
            break
        digits += char
    length = len(rest)
    if length > (20 if negative else 19):
        raise ValueError(f"numeric argument required: {text!r}")
    value = int(digits) if digits else 0
    return (-value if negative else value) % 256


def exit_shell(
    shell: Shell,
    args: list[str],
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """End the session, optionally with a given status.

    Raises ShellExit, except when given too many arguments.
    """
    err = _stream(err, sys.stderr)
    if len(args) == 1:
        if shell.pipe_in_tokens():
            shell.exit(False, out)
    elif len(args) == 2:
        try:
            shell.exit_value = parse_exit_status(args[1])
        except ValueError:
            shell.exit_value = 2
            if not shell.pipe_in_tokens():
                err.write("exit\n")
            err.write(f"{SHELL_NAME}: exit: {args[1]}: numeric argument required\n")
            shell.exit(False, out)
    else:
        shell.exit_value = 1
        err.write(f"{SHELL_NAME}: exit: too many arguments\n")
        return 1
    shell.exit(True, out)
    return shell.exit_value


def run_builtin(
    shell: Shell,
    command: Command,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Run ``command`` as a builtin, honouring its output redirection."""
    if command.redirection_failed:
        return shell.exit_value
    err = _stream(err, sys.stderr)
    with contextlib.ExitStack() as stack:
        if command.outfile > -1:
            out = stack.enter_context(open(command.outfile, "w", closefd=False))
        out = _stream(out, sys.stdout)
        args = command.args
        handlers: dict[str, Callable[[], int]] = {
            "cd": lambda: cd(shell, args, err),
            "echo": lambda: echo(shell, args, out),
            "env": lambda: env(shell, out),
            "exit": lambda: exit_shell(shell, args, out, err),
            "export": lambda: export(shell, args, out, err),
            "pwd": lambda: pwd(shell, out, err),
            "unset": lambda: unset(shell, args, out),
        }
        handler = handlers.get(command.cmd or "")
        if handler is not None:
            handler()
        out.flush()
    return shell.exit_value