"""Tokens, commands and the state that one shell session carries."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TextIO

from mshell.environment import Environment


class TokenType(IntEnum):
    """Kinds of token found on a command line."""

    INPUT = 1
    HEREDOC = 2
    APPEND = 3
    OUTPUT = 4
    PIPE = 5
    CMD = 6
    ARG = 7

    @property
    def is_redirection(self) -> bool:
        return self in (TokenType.INPUT, TokenType.HEREDOC, TokenType.APPEND, TokenType.OUTPUT)


@dataclass
class Token:
    """One word of the command line and its kind."""

    text: str
    index: int
    type: TokenType


@dataclass
class Command:
    """A simple command with its arguments and redirected descriptors.

    ``infile`` and ``outfile`` are -1 when not redirected. Anything below -1
    means that a redirection failed.
    """

    cmd: str | None = None
    args: list[str] = field(default_factory=list)
    path: str | None = None
    infile: int = -1
    outfile: int = -1
    filename: str | None = None

    @property
    def redirection_failed(self) -> bool:
        return self.infile < -1 or self.outfile < -1


class ShellExit(Exception):
    """Raised to end the shell with the given exit code."""

    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = code


@dataclass
class Shell:
    """Everything that one shell session keeps between command lines."""

    environment: Environment = field(default_factory=Environment)
    line: str = ""
    exit_value: int = 0
    tokens: list[Token] = field(default_factory=list)
    commands: list[Command] = field(default_factory=list)

    def pipe_in_tokens(self) -> bool:
        """Tell whether the current line holds a pipe."""
        return any(token.type is TokenType.PIPE for token in self.tokens)

    def exit(self, announce: bool = True, out: TextIO | None = None) -> None:
        """End the session with the last exit value.

        Prints ``exit`` first when ``announce`` is set and the line is not a
        pipeline.
        """
        if announce and not self.pipe_in_tokens():
            (out if out is not None else sys.stdout).write("exit\n")
        self.commands.clear()
        self.tokens.clear()
        self.line = ""
        raise ShellExit(self.exit_value)