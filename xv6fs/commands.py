"""File and process commands: ln, mkdir, rm and kill."""

from __future__ import annotations

import os
import signal
import sys
from typing import List, Optional

from .textutils import atoi


def _args(argv: Optional[List[str]]) -> List[str]:
    return sys.argv[1:] if argv is None else list(argv)


def ln_main(argv: Optional[List[str]] = None) -> int:
    """ln old new: give an existing file a second name."""
    args = _args(argv)
    if len(args) != 2:
        sys.stderr.write("Usage: ln old new\n")
        return 1
    old, new = args
    try:
        os.link(old, new)
    except OSError:
        sys.stderr.write(f"link {old} {new}: failed\n")
        return 1
    return 0


def mkdir_main(argv: Optional[List[str]] = None) -> int:
    """mkdir dirs...: create each directory, stopping at the first failure."""
    args = _args(argv)
    if not args:
        sys.stderr.write("Usage: mkdir files...\n")
        return 1
    for path in args:
        try:
            os.mkdir(path)
        except OSError:
            sys.stderr.write(f"mkdir: {path} failed to create\n")
            return 1
    return 0


def _unlink(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        os.rmdir(path)
    else:
        os.unlink(path)


def rm_main(argv: Optional[List[str]] = None) -> int:
    """rm files...: remove each file or empty directory, stopping at the first failure."""
    args = _args(argv)
    if not args:
        sys.stderr.write("Usage: rm files...\n")
        return 1
    for path in args:
        try:
            _unlink(path)
        except OSError:
            sys.stderr.write(f"rm: {path} failed to delete\n")
            return 1
    return 0


def kill_main(argv: Optional[List[str]] = None) -> int:
    """kill pid...: terminate each process; unknown pids are ignored."""
    for arg in _args(argv):
        pid = atoi(arg)
        if pid <= 0:
            continue
        try:
            os.kill(pid, signal.SIGTERM)
        except OSError:
            pass
    return 0