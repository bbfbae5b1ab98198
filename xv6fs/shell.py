"""Command-line parser for the shell: pipes, lists, background jobs, redirection."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, TextIO, Union

from .layout import OpenFlag
from .textutils import read_line

MAXARGS = 10
WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"

END = ""
WORD = "a"
APPEND = "+"


class ShellSyntaxError(ValueError):
    """The command line cannot be parsed."""

    def __init__(self, message: str, leftover: Optional[str] = None) -> None:
        super().__init__(message)
        self.leftover = leftover


@dataclass
class ExecCmd:
    argv: List[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    cmd: "Command"
    file: str
    mode: OpenFlag
    fd: int


@dataclass
class PipeCmd:
    left: "Command"
    right: "Command"


@dataclass
class ListCmd:
    left: "Command"
    right: "Command"


@dataclass
class BackCmd:
    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


class Token(NamedTuple):
    kind: str
    text: str


class Tokenizer:
    """Splits a command line into words and operator symbols."""

    def __init__(self, text: str) -> None:
        self.text = text.split("\0", 1)[0]
        self.pos = 0

    @property
    def rest(self) -> str:
        return self.text[self.pos:]

    def _skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    def peek(self, tokens: str) -> bool:
        """Skip blanks and say whether the next character is one of tokens."""
        self._skip_space()
        return self.pos < len(self.text) and self.text[self.pos] in tokens

    def next_token(self) -> Token:
        """Consume the next token; its kind is END, WORD, APPEND or the symbol itself."""
        self._skip_space()
        start = self.pos
        if self.pos >= len(self.text):
            kind = END
        else:
            c = self.text[self.pos]
            if c in "|();&<":
                self.pos += 1
                kind = c
            elif c == ">":
                self.pos += 1
                if self.pos < len(self.text) and self.text[self.pos] == ">":
                    self.pos += 1
                    kind = APPEND
                else:
                    kind = ">"
            else:
                kind = WORD
                while (self.pos < len(self.text)
                       and self.text[self.pos] not in WHITESPACE
                       and self.text[self.pos] not in SYMBOLS):
                    self.pos += 1
        token = Token(kind, self.text[start:self.pos])
        self._skip_space()
        return token


def parse_command(line: str) -> Command:
    """Parse one command line into a command tree."""
    tokens = Tokenizer(line)
    cmd = _parse_line(tokens)
    tokens.peek("")
    if tokens.rest:
        raise ShellSyntaxError("syntax", leftover=tokens.rest)
    return cmd


def _parse_line(tokens: Tokenizer) -> Command:
    cmd = _parse_pipe(tokens)
    while tokens.peek("&"):
        tokens.next_token()
        cmd = BackCmd(cmd)
    if tokens.peek(";"):
        tokens.next_token()
        cmd = ListCmd(cmd, _parse_line(tokens))
    return cmd


def _parse_pipe(tokens: Tokenizer) -> Command:
    cmd = _parse_exec(tokens)
    if tokens.peek("|"):
        tokens.next_token()
        cmd = PipeCmd(cmd, _parse_pipe(tokens))
    return cmd


def _parse_redirs(cmd: Command, tokens: Tokenizer) -> Command:
    while tokens.peek("<>"):
        op = tokens.next_token()
        target = tokens.next_token()
        if target.kind != WORD:
            raise ShellSyntaxError("missing file for redirection")
        if op.kind == "<":
            cmd = RedirCmd(cmd, target.text, OpenFlag.RDONLY, 0)
        else:
            cmd = RedirCmd(cmd, target.text, OpenFlag.WRONLY | OpenFlag.CREATE, 1)
    return cmd


def _parse_block(tokens: Tokenizer) -> Command:
    if not tokens.peek("("):
        raise ShellSyntaxError("parseblock")
    tokens.next_token()
    cmd = _parse_line(tokens)
    if not tokens.peek(")"):
        raise ShellSyntaxError("syntax - missing )")
    tokens.next_token()
    return _parse_redirs(cmd, tokens)


def _parse_exec(tokens: Tokenizer) -> Command:
    if tokens.peek("("):
        return _parse_block(tokens)
    ecmd = ExecCmd()
    cmd = _parse_redirs(ecmd, tokens)
    while not tokens.peek("|)&;"):
        token = tokens.next_token()
        if token.kind == END:
            break
        if token.kind != WORD:
            raise ShellSyntaxError("syntax")
        ecmd.argv.append(token.text)
        if len(ecmd.argv) >= MAXARGS:
            raise ShellSyntaxError("too many args")
        cmd = _parse_redirs(cmd, tokens)
    return cmd


def read_command(stream: TextIO, limit: int = 100) -> Optional[str]:
    """Prompt on stderr and read one line; None at end of input."""
    sys.stderr.write("$ ")
    line = read_line(stream, limit)
    return line or None