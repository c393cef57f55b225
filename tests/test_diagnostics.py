"""Test linter report parsing and buffer mapping."""

import logging

from blocedit.diagnostics import (
    Report,
    Severity,
    line_offset,
    parse_report,
    resolve,
    resolve_all,
    structural_diagnostics,
)

RECORD = """\
File "drawing.bloc", line 2, near "foo"
    call foo(1)
error: undefined sub foo
"""


class TestParseReport:
    def test_full_record(self):
        [report] = parse_report(RECORD)
        assert report == Report(2, "foo", Severity.ERROR, "undefined sub foo")

    def test_without_excerpt(self):
        [report] = parse_report('File "a", line 7\nwarning: unused variable\n')
        assert report.line == 7
        assert report.excerpt is None
        assert report.severity is Severity.WARNING

    def test_doubled_quote_in_excerpt(self):
        [report] = parse_report('File "a", line 1, near "say ""hi"""\nerror: bad\n')
        assert report.excerpt == 'say "hi"'

    def test_several_records(self):
        text = RECORD + 'File "a", line 4\nnote: consider gsave\n'
        reports = parse_report(text)
        assert [r.line for r in reports] == [2, 4]
        assert reports[1].severity is Severity.INFO

    def test_severity_words(self):
        assert Severity.from_word("Fatal") is Severity.ERROR
        assert Severity.from_word("hint") is Severity.HINT
        assert Severity.from_word("bogus") is None

    def test_trailing_spaces_ignored(self):
        [report] = parse_report('File "a", line 1   \nerror: bad   \n')
        assert report.message == "bad"

    def test_unknown_kind_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="blocedit.diagnostics"):
            assert parse_report('File "a", line 1\nbogus: x\n') == []
        assert "unknown kind" in caplog.text

    def test_garbage_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="blocedit.diagnostics"):
            reports = parse_report("garbage\n" + RECORD)
        assert len(reports) == 1
        assert "unparseable" in caplog.text

    def test_header_without_result_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="blocedit.diagnostics"):
            reports = parse_report('File "a", line 1\n' + RECORD)
        assert [r.line for r in reports] == [2]
        assert "without result line" in caplog.text

    def test_truncated_record_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="blocedit.diagnostics"):
            assert parse_report('File "a", line 1, near "x"\n    x\n') == []
        assert "truncated" in caplog.text

    def test_empty_output(self):
        assert parse_report("") == []


class TestResolve:
    SOURCE = "x = 1\n  call foo(1)\n"

    def test_excerpt_located(self):
        diag = resolve(self.SOURCE, Report(2, "foo", Severity.ERROR, "m"))
        assert diag is not None
        assert self.SOURCE[diag.start : diag.end] == "foo"
        assert diag.message == "m"

    def test_missing_excerpt_falls_back_to_first_word(self):
        diag = resolve(self.SOURCE, Report(2, "zzz", Severity.ERROR, "m"))
        assert diag is not None
        assert self.SOURCE[diag.start : diag.end] == "call"

    def test_no_excerpt(self):
        diag = resolve(self.SOURCE, Report(1, None, Severity.WARNING, "m"))
        assert diag is not None
        assert (diag.start, diag.end) == (0, 1)

    def test_blank_line(self):
        source = "x\n\ny\n"
        diag = resolve(source, Report(2, None, Severity.ERROR, "m"))
        assert diag is not None
        assert (diag.start, diag.end) == (2, 2)

    def test_past_end(self):
        assert resolve(self.SOURCE, Report(9, None, Severity.ERROR, "m")) is None

    def test_generation_carried(self):
        diag = resolve(self.SOURCE, Report(1, None, Severity.ERROR, "m"), generation=4)
        assert diag is not None
        assert diag.generation == 4

    def test_line_offset(self):
        assert line_offset("a\nbc\nd", 3) == 5
        assert line_offset("a\nbc\nd", 0) is None
        assert line_offset("a", 2) is None


class TestResolveAll:
    def test_maps_records(self):
        source = "x = 1\ncall foo(1)\n"
        [diag] = resolve_all(source, RECORD, generation=2)
        assert source[diag.start : diag.end] == "foo"
        assert diag.generation == 2

    def test_drops_lines_past_end(self, caplog):
        with caplog.at_level(logging.WARNING, logger="blocedit.diagnostics"):
            assert resolve_all("x\n", 'File "a", line 9\nerror: m\n') == []
        assert "past end" in caplog.text


class TestStructuralDiagnostics:
    def test_mismatched_begin_end(self):
        source = "begin a\nend b\n"
        [diag] = structural_diagnostics(source)
        assert diag.severity is Severity.WARNING
        assert source[diag.start : diag.end] == "b"
        assert diag.message == "'end b' should be 'end a'"

    def test_mismatched_next(self):
        source = "for i = 1 to 3\nnext j\n"
        [diag] = structural_diagnostics(source)
        assert diag.message == "'next j' should be 'next i'"

    def test_consistent_buffer(self):
        assert structural_diagnostics("begin a\n  for i = 1 to 2\n  next i\nend a\n") == []

    def test_wrong_family_closer(self):
        source = "while a\n  x\nend\n"
        [diag] = structural_diagnostics(source)
        assert diag.severity is Severity.WARNING
        assert source[diag.start : diag.end] == "end"
        assert diag.message == "'end' should be 'next'"

    def test_grestore_expected(self):
        [diag] = structural_diagnostics("gsave\n  x\nnext\n")
        assert diag.message == "'next' should be 'grestore'"
