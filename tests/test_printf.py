import io

import pytest

from xv6fs.printf import format_message, fprintf


@pytest.mark.parametrize("n", [0, 7, -1, 123456, -2147483648, 2147483647])
def test_decimal_matches_str(n):
    assert format_message("%d", n) == str(n)


def test_decimal_wraps_to_32_bits():
    assert format_message("%d", 0xFFFFFFFF) == str(-1)


@pytest.mark.parametrize("n", [0, 1, 255, 0xDEADBEEF, -1])
def test_hex_is_unsigned_uppercase(n):
    text = format_message("%x", n)
    assert int(text, 16) == n & 0xFFFFFFFF
    assert text == text.upper()
    assert format_message("%p", n) == text


def test_string_and_null():
    assert format_message("cat: cannot open %s\n", "x") == "cat: cannot open x\n"
    assert format_message("%s", None) == "(null)"


def test_char():
    assert format_message("%c%c", ord("h"), "i") == "hi"


def test_percent_and_unknown():
    assert format_message("100%%") == "100%"
    assert format_message("%q") == "%q"


def test_trailing_percent_dropped():
    assert format_message("abc%") == "abc"


def test_mixed_arguments():
    line = format_message("%d %d %d %s\n", 1, 2, 3, "file")
    assert line == "1 2 3 file\n"


def test_missing_argument():
    with pytest.raises(TypeError):
        format_message("%d %d", 1)


def test_fprintf_writes_to_stream():
    out = io.StringIO()
    fprintf(out, "pid %d %s\n", 3, "sh")
    fprintf(out, "%s", "more")
    assert out.getvalue() == format_message("pid %d %s\n", 3, "sh") + "more"