"""Tests for the CLI module: arg parsing, exit codes, end-to-end commands."""

from __future__ import annotations

from pathlib import Path

import pytest

from blocedit.cli import CliOptions, build_parser, main, resolve_options, run_command
from blocedit.config import Settings

# ---------------------------------------------------------------------------
# Arg parsing via build_parser
# ---------------------------------------------------------------------------


class TestArgParsing:
    def test_indent(self) -> None:
        p = build_parser()
        ns = p.parse_args(["indent", "a.bloc"])
        assert ns.command == "indent"
        assert ns.input == "a.bloc"
        assert ns.output is None
        assert ns.width is None

    def test_indent_flags(self) -> None:
        p = build_parser()
        ns = p.parse_args(["indent", "a.bloc", "-o", "out.bloc", "--width", "2"])
        assert ns.output == "out.bloc"
        assert ns.width == 2

    def test_match_requires_offset(self) -> None:
        p = build_parser()
        with pytest.raises(SystemExit):
            p.parse_args(["match", "a.bloc"])

    def test_close_offset(self) -> None:
        p = build_parser()
        ns = p.parse_args(["close", "a.bloc", "--offset", "12"])
        assert ns.offset == 12

    def test_check_flags(self) -> None:
        p = build_parser()
        ns = p.parse_args(["check", "a.bloc", "--linter", "lint {file}", "--timeout", "3"])
        assert ns.linter == "lint {file}"
        assert ns.timeout == 3.0

    def test_common_flags(self) -> None:
        p = build_parser()
        ns = p.parse_args(["tokens", "a.bloc", "--comment", "#", "-v"])
        assert ns.comment == "#"
        assert ns.verbose is True

    def test_command_required(self) -> None:
        p = build_parser()
        with pytest.raises(SystemExit):
            p.parse_args([])


class TestResolveOptions:
    def test_defaults(self, tmp_path: Path) -> None:
        doc = tmp_path / "a.bloc"
        ns = build_parser().parse_args(["indent", str(doc)])
        opts = resolve_options(ns)
        assert opts.input_file == doc
        assert opts.settings == Settings()

    def test_linter_split(self, tmp_path: Path) -> None:
        ns = build_parser().parse_args(
            ["check", str(tmp_path / "a.bloc"), "--linter", "lint --strict {file}"]
        )
        opts = resolve_options(ns)
        assert opts.settings.linter_command == ["lint", "--strict", "{file}"]

    def test_bad_width(self, tmp_path: Path) -> None:
        import argparse

        ns = build_parser().parse_args(["indent", str(tmp_path / "a.bloc"), "--width", "0"])
        with pytest.raises(argparse.ArgumentTypeError):
            resolve_options(ns)


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class TestExitCodes:
    def test_success(self, tmp_path: Path) -> None:
        doc = tmp_path / "ok.bloc"
        doc.write_text("while a\n  x\nnext\n")
        assert main(["indent", str(doc)]) == 0

    def test_missing_input_returns_2(self, tmp_path: Path) -> None:
        assert main(["indent", str(tmp_path / "missing.bloc")]) == 2

    def test_bad_width_returns_2(self, tmp_path: Path) -> None:
        doc = tmp_path / "ok.bloc"
        doc.write_text("x\n")
        assert main(["indent", str(doc), "--width", "-1"]) == 2

    def test_no_enclosing_returns_1(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "top.bloc"
        doc.write_text("x = 1\n")
        assert main(["close", str(doc), "--offset", "3"]) == 1
        err = capsys.readouterr().err
        assert "no enclosing construct" in err
        assert f"{doc}:1:4" in err

    def test_mismatch_returns_1(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "bad.bloc"
        source = "while x\n  begin a\n  end b\n"
        doc.write_text(source)
        assert main(["close", str(doc), "--offset", str(len(source))]) == 1
        assert "'end b' does not close 'begin a'" in capsys.readouterr().err

    def test_missing_linter_returns_2(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("x\n")
        linter = str(tmp_path / "no-such-linter")
        assert main(["check", str(doc), "--linter", linter]) == 2
        assert "not found" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Commands end to end
# ---------------------------------------------------------------------------


class TestCommands:
    def test_indent_to_stdout(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("while a\nx\nnext\n")
        assert main(["indent", str(doc)]) == 0
        assert capsys.readouterr().out == "while a\n    x\nnext\n"

    def test_indent_to_file(self, tmp_path: Path) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("gsave\nx\ngrestore\n")
        out = tmp_path / "out.bloc"
        assert main(["indent", str(doc), "--width", "2", "-o", str(out)]) == 0
        assert out.read_text() == "gsave\n  x\ngrestore\n"

    def test_indent_width_from_config(self, tmp_path: Path, capsys) -> None:
        (tmp_path / "blocedit.toml").write_text("[indent]\nwidth = 3\n")
        doc = tmp_path / "a.bloc"
        doc.write_text("gsave\nx\ngrestore\n")
        assert main(["indent", str(doc)]) == 0
        assert capsys.readouterr().out == "gsave\n   x\ngrestore\n"

    def test_comment_marker(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("if a then # note\ny\nend if\n")
        assert main(["indent", str(doc), "--comment", "#"]) == 0
        assert capsys.readouterr().out == "if a then # note\n    y\nend if\n"

    def test_match(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("while a\n  x\nnext\n")
        assert main(["match", str(doc), "--offset", "0"]) == 0
        assert capsys.readouterr().out == "12\n"

    def test_match_none(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("x = 1\n")
        assert main(["match", str(doc), "--offset", "0"]) == 1
        assert capsys.readouterr().out == ""

    def test_close(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        source = "for i = 1 to 3\n  x\n"
        doc.write_text(source)
        assert main(["close", str(doc), "--offset", str(len(source))]) == 0
        assert capsys.readouterr().out == "next i\n"

    def test_highlight(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("begin box\n")
        assert main(["highlight", str(doc)]) == 0
        assert capsys.readouterr().out == "0-5 KEYWORD begin\n6-9 TYPE box\n"

    def test_tokens(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("while x\nnext\n")
        assert main(["tokens", str(doc)]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "1:1 WHILE 'while'"
        assert lines[1] == "  1:7 EXP 'x'"
        assert lines[3] == "2:1 NEXT 'next'"

    def test_check_structural(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("begin a\nend b\n")
        assert main(["check", str(doc)]) == 1
        out = capsys.readouterr().out
        assert out == f"{doc}:2:5: warning: 'end b' should be 'end a'\n"

    def test_check_clean(self, tmp_path: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("begin a\nend a\n")
        assert main(["check", str(doc)]) == 0
        assert capsys.readouterr().out == ""

    def test_check_with_linter(self, tmp_path: Path, linter_script: Path, capsys) -> None:
        doc = tmp_path / "a.bloc"
        doc.write_text("x = 1\ncall oops\n")
        assert main(["check", str(doc), "--linter", f"{linter_script} {{file}}"]) == 1
        assert capsys.readouterr().out == f"{doc}:2:6: error: oops found\n"


class TestRunCommand:
    def test_returns_text_and_code(self, tmp_path: Path) -> None:
        opts = CliOptions(
            command="close",
            input_file=tmp_path / "a.bloc",
            output_file=None,
            offset=8,
            settings=Settings(),
            verbose=False,
        )
        assert run_command(opts, "gsave\n  x\n") == ("grestore\n", 0)
