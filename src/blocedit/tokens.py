"""Token kinds, data structures, and character classification helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class SyntaxClass(Enum):
    WORD = auto()  # letters, digits, _ $
    SYMBOL = auto()  # operators and punctuation
    WHITESPACE = auto()  # spaces/tabs
    NEWLINE = auto()  # \n or \r
    SEPARATOR = auto()  # ;
    STRING_QUOTE = auto()  # " or '
    COMMENT_START = auto()  # configured marker, see Classifier


class TokenKind(Enum):
    SEPARATOR = auto()  # ; or newline

    # Openers
    BEGIN = auto()  # begin <name>
    FOR = auto()
    IF_BLOCK = auto()  # if ... then<eol>
    IF_LINE = auto()  # if ... then stmt
    SUB = auto()
    UNTIL = auto()
    WHILE = auto()
    GSAVE = auto()

    # Closers
    END_THING = auto()  # end [<word>]
    NEXT = auto()
    NEXT_VAR = auto()  # next <var>
    GRESTORE = auto()

    # Else variants
    ELSE_LINE = auto()  # else if
    ELSE_BLOC = auto()  # else

    EXP = auto()  # opaque expression lexeme
    VAR = auto()  # assignment target
    EOB = auto()


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Token:
    """A structural token: kind, exact source text, and [start, end) offsets.

    ``name`` carries the word attached to the keyword, if any: the block
    name of ``begin``/``end``, the loop variable of ``for``/``next``, or
    the routine name of ``sub``.
    """

    kind: TokenKind
    text: str
    start: int
    end: int
    name: str | None = None


# Keywords that open a scan decision in the tokenizer
KEYWORDS = frozenset(
    {"begin", "else", "end", "for", "grestore", "gsave", "if", "next", "sub", "until", "while"}
)

_SIMPLE_KEYWORDS = {
    "until": TokenKind.UNTIL,
    "while": TokenKind.WHILE,
    "gsave": TokenKind.GSAVE,
    "grestore": TokenKind.GRESTORE,
}


def simple_keyword(word: str) -> TokenKind | None:
    """Return the kind of a keyword that needs no context to classify."""
    return _SIMPLE_KEYWORDS.get(word)


def is_word_char(ch: str) -> bool:
    """Return True if ch can appear in a word."""
    return ch.isalpha() or ch.isdigit() or ch in "_$"


_CLASS_TABLE = {
    " ": SyntaxClass.WHITESPACE,
    "\t": SyntaxClass.WHITESPACE,
    "\f": SyntaxClass.WHITESPACE,
    "\n": SyntaxClass.NEWLINE,
    "\r": SyntaxClass.NEWLINE,
    ";": SyntaxClass.SEPARATOR,
    '"': SyntaxClass.STRING_QUOTE,
    "'": SyntaxClass.STRING_QUOTE,
}


def classify_char(ch: str) -> SyntaxClass:
    """Return the lexical class of a single character."""
    cls = _CLASS_TABLE.get(ch)
    if cls is not None:
        return cls
    if is_word_char(ch):
        return SyntaxClass.WORD
    return SyntaxClass.SYMBOL


class Classifier:
    """Character classification with a configurable comment marker."""

    def __init__(self, comment_start: str = "//") -> None:
        if not comment_start:
            raise ValueError("comment marker must not be empty")
        self.comment_start = comment_start

    def is_comment_at(self, source: str, pos: int) -> bool:
        return source.startswith(self.comment_start, pos)

    def class_at(self, source: str, pos: int) -> SyntaxClass:
        if self.is_comment_at(source, pos):
            return SyntaxClass.COMMENT_START
        return classify_char(source[pos])


def line_start(source: str, pos: int) -> int:
    """Offset of the first character of the line containing pos."""
    return source.rfind("\n", 0, pos) + 1


def line_end(source: str, pos: int) -> int:
    """Offset of the newline ending the line containing pos (or len)."""
    idx = source.find("\n", pos)
    if idx < 0:
        return len(source)
    # \r\n: the line's content stops before the \r
    if idx > 0 and source[idx - 1] == "\r" and idx - 1 >= pos:
        return idx - 1
    return idx


def offset_to_position(source: str, offset: int) -> Position:
    """Convert a 0-based offset into a 1-based line/column Position."""
    offset = max(0, min(offset, len(source)))
    line = source.count("\n", 0, offset) + 1
    column = offset - line_start(source, offset) + 1
    return Position(line, column, offset)
