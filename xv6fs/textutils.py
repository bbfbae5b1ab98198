"""Small text tools: number parsing, line reading, wc, cat, echo and ls."""

from __future__ import annotations

import os
import stat
import sys
from dataclasses import dataclass
from typing import AnyStr, IO, Iterable, Iterator, TextIO, Union

from .layout import DIRSIZ, FileType

_CHUNK = 512
_WHITESPACE = " \r\t\n\v\0"  # a NUL byte also ends a word
_LINE_ENDS = ("\n", "\r", b"\n", b"\r")
_LS_BUFSIZE = 512

Chunk = Union[str, bytes]


@dataclass
class WordCount:
    """Line, word and character counts of one input."""

    lines: int
    words: int
    chars: int
    name: str = ""

    def __str__(self) -> str:
        return f"{self.lines} {self.words} {self.chars} {self.name}"


def atoi(text: str) -> int:
    """Value of the leading decimal digits of text; 0 when there are none."""
    n = 0
    for ch in text:
        if not "0" <= ch <= "9":
            break
        n = n * 10 + ord(ch) - ord("0")
    return n


def read_line(stream: IO[AnyStr], limit: int) -> AnyStr:
    """Read at most limit-1 characters, stopping after a newline or carriage return."""
    pieces = []
    empty = ""
    for _ in range(max(limit - 1, 0)):
        c = stream.read(1)
        empty = c[:0]
        if not c:
            break
        pieces.append(c)
        if c in _LINE_ENDS:
            break
    return empty.join(pieces)


def _chunks(stream: IO[AnyStr], size: int = _CHUNK) -> Iterator[AnyStr]:
    while True:
        chunk = stream.read(size)
        if not chunk:
            return
        yield chunk


def count_words(chunks: Iterable[Chunk]) -> WordCount:
    """Count lines, words and characters across a sequence of chunks."""
    lines = words = chars = 0
    in_word = False
    for chunk in chunks:
        text = chunk.decode("latin-1") if isinstance(chunk, bytes) else chunk
        for ch in text:
            chars += 1
            if ch == "\n":
                lines += 1
            if ch in _WHITESPACE:
                in_word = False
            elif not in_word:
                words += 1
                in_word = True
    return WordCount(lines, words, chars)


def wc(stream: IO[AnyStr], name: str = "") -> WordCount:
    """Counts for everything left in stream, labelled with name."""
    counts = count_words(_chunks(stream))
    counts.name = name
    return counts


def cat(streams: Iterable[IO[AnyStr]], out: IO[AnyStr]) -> None:
    """Copy each stream to out in turn."""
    for stream in streams:
        for chunk in _chunks(stream):
            out.write(chunk)


def echo(args: Iterable[str]) -> str:
    """The arguments separated by spaces and ended by a newline."""
    words = list(args)
    if not words:
        return ""
    return " ".join(words) + "\n"


def fmtname(path: str) -> str:
    """Last path component, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _kind(mode: int) -> FileType:
    if stat.S_ISDIR(mode):
        return FileType.DIR
    if stat.S_ISREG(mode):
        return FileType.FILE
    return FileType.DEV


def _entry_line(path: str, st: os.stat_result) -> str:
    return f"{fmtname(path)} {int(_kind(st.st_mode))} {st.st_ino} {st.st_size}\n"


def ls(path: str, out: TextIO) -> None:
    """List a file, or every entry of a directory, as: name type inode size."""
    try:
        st = os.stat(path)
    except OSError:
        sys.stderr.write(f"ls: cannot open {path}\n")
        return

    kind = _kind(st.st_mode)
    if kind is FileType.FILE:
        out.write(_entry_line(path, st))
    elif kind is FileType.DIR:
        if len(path) + 1 + DIRSIZ + 1 > _LS_BUFSIZE:
            out.write("ls: path too long\n")
            return
        try:
            names = [".", ".."] + sorted(os.listdir(path))
        except OSError:
            sys.stderr.write(f"ls: cannot open {path}\n")
            return
        for name in names:
            entry = f"{path}/{name}"
            try:
                entry_st = os.stat(entry)
            except OSError:
                out.write(f"ls: cannot stat {entry}\n")
                continue
            out.write(_entry_line(entry, entry_st))