"""Line filter with a tiny regular expression matcher (^ . * $)."""

from __future__ import annotations

import sys
from typing import Iterator, List, Optional, TextIO

_BUFSIZE = 1024


def match(pattern: str, text: str) -> bool:
    """Whether pattern matches anywhere in text."""
    if pattern.startswith("^"):
        return _match_here(pattern, 1, text, 0)
    return any(_match_here(pattern, 0, text, i) for i in range(len(text) + 1))


def _match_here(pattern: str, pi: int, text: str, ti: int) -> bool:
    while True:
        if pi == len(pattern):
            return True
        if pi + 1 < len(pattern) and pattern[pi + 1] == "*":
            return _match_star(pattern[pi], pattern, pi + 2, text, ti)
        if pattern[pi] == "$" and pi + 1 == len(pattern):
            return ti == len(text)
        if ti < len(text) and pattern[pi] in (".", text[ti]):
            pi += 1
            ti += 1
            continue
        return False


def _match_star(c: str, pattern: str, pi: int, text: str, ti: int) -> bool:
    while True:
        if _match_here(pattern, pi, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
            continue
        return False


def grep(pattern: str, stream: TextIO) -> Iterator[str]:
    """Yield the newline-terminated lines of stream that match pattern.

    Input is buffered 1024 characters at a time; buffered text that holds
    no newline is dropped, as is a final line without one.
    """
    pending = ""
    while True:
        chunk = stream.read(_BUFSIZE - len(pending))
        if not chunk:
            return
        pending += chunk
        *lines, rest = pending.split("\n")
        if not lines:
            pending = ""
            continue
        for line in lines:
            if match(pattern, line):
                yield line + "\n"
        pending = rest


def main(argv: Optional[List[str]] = None) -> int:
    """grep pattern [file ...]"""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = args[0], args[1:]
    if not paths:
        sys.stdout.writelines(grep(pattern, sys.stdin))
        return 0
    for path in paths:
        try:
            stream = open(path, encoding="utf-8", errors="surrogateescape", newline="")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with stream:
            sys.stdout.writelines(grep(pattern, stream))
    return 0