"""Minimal formatted output understanding %d, %x, %p, %s, %c and %%."""

from __future__ import annotations

from typing import Any, Iterator, TextIO

_DIGITS = "0123456789ABCDEF"
_MASK32 = 0xFFFFFFFF


def _format_int(value: Any, base: int, signed: bool) -> str:
    x = int(value) & _MASK32
    negative = signed and bool(x & 0x80000000)
    if negative:
        x = -x & _MASK32
    digits = []
    while True:
        x, rem = divmod(x, base)
        digits.append(_DIGITS[rem])
        if x == 0:
            break
    if negative:
        digits.append("-")
    return "".join(reversed(digits))


def format_message(fmt: str, *args: Any) -> str:
    """Render fmt with args; unknown % sequences are printed as they are."""
    pending: Iterator[Any] = iter(args)

    def take() -> Any:
        try:
            return next(pending)
        except StopIteration:
            raise TypeError(f"not enough arguments for format {fmt!r}") from None

    out = []
    escaped = False
    for c in fmt:
        if not escaped:
            if c == "%":
                escaped = True
            else:
                out.append(c)
            continue
        escaped = False
        if c == "d":
            out.append(_format_int(take(), 10, True))
        elif c in ("x", "p"):
            out.append(_format_int(take(), 16, False))
        elif c == "s":
            text = take()
            out.append("(null)" if text is None else str(text))
        elif c == "c":
            char = take()
            out.append(char if isinstance(char, str) else chr(int(char) & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def fprintf(stream: TextIO, fmt: str, *args: Any) -> None:
    """Write the formatted message to a text stream."""
    stream.write(format_message(fmt, *args))