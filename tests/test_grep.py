import io

import pytest

from xv6fs.grep import grep, main, match


@pytest.mark.parametrize(
    "pattern, text, expected",
    [
        ("^ab", "abc", True),
        ("^ab", "cab", False),
        ("a.c", "xabcx", True),
        ("ab*c", "ac", True),
        ("ab*c", "abbbc", True),
        ("c$", "abc", True),
        ("c$", "cab", False),
        ("", "anything", True),
        ("^$", "", True),
        ("^$", "x", False),
        ("x", "abc", False),
        ("^.*z$", "abcz", True),
    ],
)
def test_match(pattern, text, expected):
    assert match(pattern, text) is expected


def test_grep_yields_matching_lines():
    stream = io.StringIO("foo\nbar\nfood\n")
    assert list(grep("foo", stream)) == ["foo\n", "food\n"]


def test_grep_drops_unterminated_last_line():
    stream = io.StringIO("foo\nfoo tail")
    assert list(grep("foo", stream)) == ["foo\n"]


def test_grep_handles_lines_across_buffer_boundary():
    lines = [f"line {i} " + "x" * 50 + "\n" for i in range(100)]
    result = list(grep("^line", io.StringIO("".join(lines))))
    assert result == lines


def test_main_reads_files(tmp_path, capsys):
    target = tmp_path / "f.txt"
    target.write_text("alpha\nbeta\nalphabet\n")
    assert main(["alph", str(target)]) == 0
    assert capsys.readouterr().out == "alpha\nalphabet\n"


def test_main_usage(capsys):
    assert main([]) == 1
    assert capsys.readouterr().err == "usage: grep pattern [file ...]\n"


def test_main_missing_file(tmp_path, capsys):
    missing = str(tmp_path / "missing")
    assert main(["x", missing]) == 1
    assert capsys.readouterr().out == f"grep: cannot open {missing}\n"