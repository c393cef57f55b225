"""Linter report parsing and mapping of reports onto buffer ranges.

The linter prints one record per problem::

    File "drawing.bloc", line 3, near "foo"
        call foo(1)
    error: undefined sub foo

The ``near`` clause is optional and a doubled quote inside it stands for a
single quote.  Context lines are indented and ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum, auto

from blocedit.engine import closer_text, named_blocks
from blocedit.tokens import line_end

logger = logging.getLogger(__name__)

_HEADER = re.compile(
    r'^File "(?P<path>[^"]*)", line (?P<line>\d+)'
    r'(?:, near "(?P<excerpt>(?:[^"]|"")*)")?\s*$'
)
_RESULT = re.compile(r"^(?P<kind>[A-Za-z]+): (?P<message>.*?)\s*$")
_NON_BLANK = re.compile(r"\S+")


class Severity(Enum):
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    HINT = auto()

    @classmethod
    def from_word(cls, word: str) -> Severity | None:
        return _SEVERITY_WORDS.get(word.lower())


_SEVERITY_WORDS = {
    "error": Severity.ERROR,
    "fatal": Severity.ERROR,
    "warning": Severity.WARNING,
    "note": Severity.INFO,
    "info": Severity.INFO,
    "hint": Severity.HINT,
}


@dataclass(frozen=True, slots=True)
class Report:
    """One parsed linter record, still in the linter's terms."""

    line: int
    excerpt: str | None
    severity: Severity
    message: str


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A problem mapped onto [start, end) offsets of a buffer."""

    start: int
    end: int
    severity: Severity
    message: str
    generation: int = 0


def parse_report(text: str) -> list[Report]:
    """Parse linter output into Reports, dropping records that do not parse."""
    reports: list[Report] = []
    header: re.Match[str] | None = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        if not raw.strip():
            continue

        m = _HEADER.match(raw)
        if m is not None:
            if header is not None:
                logger.warning("dropping linter record without result line: %r", header.group(0))
            header = m
            continue

        if raw[0] in " \t":
            if header is None:
                logger.debug("ignoring context line %d outside a record", lineno)
            continue

        m = _RESULT.match(raw)
        if m is None or header is None:
            logger.warning("dropping unparseable linter output at line %d: %r", lineno, raw)
            header = None
            continue

        severity = Severity.from_word(m.group("kind"))
        if severity is None:
            logger.warning("dropping linter record with unknown kind %r", m.group("kind"))
            header = None
            continue

        excerpt = header.group("excerpt")
        reports.append(
            Report(
                line=int(header.group("line")),
                excerpt=excerpt.replace('""', '"') if excerpt else None,
                severity=severity,
                message=m.group("message"),
            )
        )
        header = None

    if header is not None:
        logger.warning("dropping truncated linter record: %r", header.group(0))
    return reports


def line_offset(source: str, line: int) -> int | None:
    """Offset of the start of 1-based line, or None past the end."""
    if line < 1:
        return None
    offset = 0
    for _ in range(line - 1):
        nl = source.find("\n", offset)
        if nl < 0:
            return None
        offset = nl + 1
    return offset


def resolve(source: str, report: Report, generation: int = 0) -> Diagnostic | None:
    """Map a Report onto the buffer; None if its line does not exist."""
    start = line_offset(source, report.line)
    if start is None:
        return None
    text = source[start : line_end(source, start)]

    if report.excerpt:
        idx = text.find(report.excerpt)
        if idx >= 0:
            return Diagnostic(
                start + idx,
                start + idx + len(report.excerpt),
                report.severity,
                report.message,
                generation,
            )

    m = _NON_BLANK.search(text)
    if m is None:
        return Diagnostic(start, start, report.severity, report.message, generation)
    return Diagnostic(
        start + m.start(), start + m.end(), report.severity, report.message, generation
    )


def resolve_all(source: str, text: str, generation: int = 0) -> list[Diagnostic]:
    """Parse linter output and map every record onto source."""
    diagnostics = []
    for report in parse_report(text):
        diag = resolve(source, report, generation)
        if diag is None:
            logger.warning("linter reported line %d past end of buffer", report.line)
            continue
        diagnostics.append(diag)
    return diagnostics


def structural_diagnostics(source: str, comment_start: str = "//") -> list[Diagnostic]:
    """Warnings for blocks closed by the wrong keyword or name (begin a / end b)."""
    diagnostics = []
    for block in named_blocks(source, comment_start):
        if block.consistent:
            continue
        start, end = block.closer_name or (block.closer.start, block.closer.end)
        diagnostics.append(
            Diagnostic(
                start,
                end,
                Severity.WARNING,
                f"'{block.closer.text}' should be '{closer_text(block.opener)}'",
            )
        )
    return diagnostics
