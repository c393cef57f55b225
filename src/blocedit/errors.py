"""Error types with formatted source context."""

from __future__ import annotations

from blocedit.tokens import Token, offset_to_position


class BlocError(Exception):
    """Base class for all blocedit errors."""


class SourceError(BlocError):
    """An error tied to a [start, end) range of a buffer."""

    def __init__(self, message: str, start: int, end: int, source: str) -> None:
        self.message = message
        self.start = start
        self.end = max(end, start)
        self.source = source
        super().__init__(self.format())

    def format(self, filename: str = "<buffer>") -> str:
        start = offset_to_position(self.source, self.start)
        end = offset_to_position(self.source, self.end)
        lines = self.source.splitlines(keepends=True)
        line_idx = start.line - 1
        col = start.column

        if 0 <= line_idx < len(lines):
            source_line = lines[line_idx].rstrip("\n").rstrip("\r")
        else:
            source_line = ""

        # Underline the full range when on one line, otherwise to end of line
        if end.line == start.line:
            underline_len = max(1, end.column - col)
        else:
            underline_len = max(1, len(source_line) - col + 1)

        pad = " " * (col - 1)
        carets = "^" * underline_len

        line_num = str(start.line)
        gutter_width = len(line_num) + 1

        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_num:>{gutter_width - 1}} |"

        return (
            f"error: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{start.line}:{col}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}{carets}"
        )


class NoEnclosingConstruct(SourceError):
    """Raised by closing_text when point is not inside any open block."""

    def __init__(self, pos: int, source: str) -> None:
        super().__init__("no enclosing construct", pos, pos, source)


class BlockMismatch(SourceError):
    """Raised when a closer does not agree with the opener it closes."""

    def __init__(self, opener: Token, closer: Token, source: str) -> None:
        self.opener = opener
        self.closer = closer
        super().__init__(
            f"'{closer.text}' does not close '{opener.text}'",
            closer.start,
            closer.end,
            source,
        )


class GrammarError(BlocError):
    """Raised when a block grammar yields conflicting precedence relations."""


class KeywordTreeError(BlocError):
    """Raised when a keyword tree cannot be compiled unambiguously."""


class LinterError(BlocError):
    """Raised when the external linter cannot be run."""


class LinterNotFound(LinterError):
    """The configured linter executable does not exist."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"linter executable not found: {command}")


class LinterTimeout(LinterError):
    """The linter did not finish within the configured timeout."""

    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"linter '{command}' timed out after {timeout}s")
