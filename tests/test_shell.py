import io

import pytest

from xv6fs.layout import OpenFlag
from xv6fs.shell import (
    APPEND,
    END,
    MAXARGS,
    WORD,
    BackCmd,
    ExecCmd,
    ListCmd,
    PipeCmd,
    RedirCmd,
    ShellSyntaxError,
    Tokenizer,
    parse_command,
    read_command,
)

WRITE = OpenFlag.WRONLY | OpenFlag.CREATE


def test_simple_command():
    assert parse_command("echo hello world\n") == ExecCmd(["echo", "hello", "world"])


def test_empty_line():
    assert parse_command("\n") == ExecCmd([])


def test_redirections_wrap_in_order():
    cmd = parse_command("cat < in > out")
    assert cmd == RedirCmd(
        RedirCmd(ExecCmd(["cat"]), "in", OpenFlag.RDONLY, 0), "out", WRITE, 1)


def test_append_redirection_writes():
    assert parse_command("ls >> log") == RedirCmd(ExecCmd(["ls"]), "log", WRITE, 1)


def test_redirection_before_command():
    assert parse_command("< in cat") == RedirCmd(ExecCmd(["cat"]), "in", OpenFlag.RDONLY, 0)


def test_pipe_is_right_associative():
    cmd = parse_command("a | b | c")
    assert cmd == PipeCmd(ExecCmd(["a"]), PipeCmd(ExecCmd(["b"]), ExecCmd(["c"])))


def test_list_and_background():
    assert parse_command("a ; b") == ListCmd(ExecCmd(["a"]), ExecCmd(["b"]))
    assert parse_command("a &") == BackCmd(ExecCmd(["a"]))
    assert parse_command("a & ; b") == ListCmd(BackCmd(ExecCmd(["a"])), ExecCmd(["b"]))


def test_block_with_redirection():
    cmd = parse_command("(a ; b) > f")
    assert cmd == RedirCmd(ListCmd(ExecCmd(["a"]), ExecCmd(["b"])), "f", WRITE, 1)


def test_symbols_split_words():
    assert parse_command("a|b") == PipeCmd(ExecCmd(["a"]), ExecCmd(["b"]))


def test_leftovers_are_reported():
    with pytest.raises(ShellSyntaxError) as info:
        parse_command("a )")
    assert str(info.value) == "syntax"
    assert info.value.leftover == ")"


def test_text_after_block_is_leftover():
    with pytest.raises(ShellSyntaxError) as info:
        parse_command("(a) b")
    assert info.value.leftover == "b"


def test_missing_close_paren():
    with pytest.raises(ShellSyntaxError, match="missing \\)"):
        parse_command("(a")


def test_missing_redirection_file():
    with pytest.raises(ShellSyntaxError, match="missing file for redirection"):
        parse_command("a >")


def test_paren_inside_arguments():
    with pytest.raises(ShellSyntaxError, match="^syntax$"):
        parse_command("a (b")


def test_argument_limit():
    words = [f"w{i}" for i in range(MAXARGS - 1)]
    assert parse_command(" ".join(words)) == ExecCmd(words)
    with pytest.raises(ShellSyntaxError, match="too many args"):
        parse_command(" ".join(words + ["extra"]))


def test_nul_ends_the_line():
    assert parse_command("a\0 | b") == ExecCmd(["a"])


def test_tokenizer_kinds():
    tokens = Tokenizer("  ls >> x & ")
    assert tokens.next_token() == (WORD, "ls")
    assert tokens.next_token() == (APPEND, ">>")
    assert tokens.next_token() == (WORD, "x")
    assert tokens.peek("&")
    assert tokens.next_token() == ("&", "&")
    assert tokens.next_token().kind == END


def test_tokenizer_peek_skips_blanks():
    tokens = Tokenizer("   |")
    assert not tokens.peek("&")
    assert tokens.peek("|")
    assert tokens.rest == "|"


def test_read_command_lines_and_eof(capsys):
    stream = io.StringIO("ls\nnext")
    assert read_command(stream) == "ls\n"
    assert read_command(stream) == "next"
    assert read_command(stream) is None
    assert capsys.readouterr().err == "$ $ $ "


def test_read_command_limit():
    assert read_command(io.StringIO("abcdef\n"), 4) == "abc"