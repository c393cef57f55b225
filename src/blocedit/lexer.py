"""Bidirectional tokenizer: structural tokens on demand around a position.

Scanning forward works directly on the text.  Scanning backward tokenizes
the affected physical line forward from its start, so an ambiguous keyword
(``if``, ``else``, ``end``, ``next``) gets the same classification
whichever direction reached it.  Strings and comments never span lines,
so the start of a line is always a clean lexer state.  A Tokenizer keeps
each line's tokens once they are scanned; it lives for a single query.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterator

from blocedit.tokens import (
    KEYWORDS,
    Classifier,
    SyntaxClass,
    Token,
    TokenKind,
    classify_char,
    line_end,
    line_start,
    simple_keyword,
)

_BLANKS = " \t\f"


class Tokenizer:
    """Produce structural tokens from source text, forward or backward."""

    def __init__(self, source: str, comment_start: str = "//") -> None:
        self._source = source
        self._classifier = Classifier(comment_start)
        self._lines: dict[int, tuple[Token, ...]] = {}

    @property
    def source(self) -> str:
        return self._source

    # ------------------------------------------------------------------
    # Public scanning API
    # ------------------------------------------------------------------

    def forward(self, pos: int) -> Token:
        """Return the first token starting at or after pos."""
        src = self._source
        pos = self._skip_blanks(max(pos, 0))
        if pos >= len(src):
            return Token(TokenKind.EOB, "", len(src), len(src))

        ch = src[pos]
        if ch == "\n":
            return Token(TokenKind.SEPARATOR, "\n", pos, pos + 1)
        if ch == "\r":
            # _skip_blanks only stops on a \r that starts \r\n
            return Token(TokenKind.SEPARATOR, "\r\n", pos, pos + 2)
        if ch == ";":
            return Token(TokenKind.SEPARATOR, ";", pos, pos + 1)

        return self._lex_statement_token(pos)

    def backward(self, pos: int) -> Token:
        """Return the last token ending at or before pos."""
        pos = min(max(pos, 0), len(self._source))
        start = line_start(self._source, pos)
        while True:
            tokens = self.line_tokens(start)
            i = bisect_right(tokens, pos, key=lambda tok: tok.end)
            if i:
                return tokens[i - 1]
            if start == 0:
                return Token(TokenKind.EOB, "", 0, 0)
            start = line_start(self._source, start - 1)

    def iter_backward(self, pos: int) -> Iterator[Token]:
        """Yield the tokens ending at or before pos, nearest first."""
        pos = min(max(pos, 0), len(self._source))
        start = line_start(self._source, pos)
        while True:
            for tok in reversed(self.line_tokens(start)):
                if tok.end <= pos:
                    yield tok
            if start == 0:
                return
            start = line_start(self._source, start - 1)

    def line_tokens(self, start: int) -> tuple[Token, ...]:
        """Tokens of the physical line beginning at start, newline included."""
        found = self._lines.get(start)
        if found is not None:
            return found
        tokens = []
        cur = start
        while True:
            tok = self.forward(cur)
            if tok.kind is TokenKind.EOB:
                break
            tokens.append(tok)
            if tok.kind is TokenKind.SEPARATOR and tok.text != ";":
                break
            cur = tok.end
        found = self._lines[start] = tuple(tokens)
        return found

    def token_at(self, pos: int) -> Token:
        """Return the token covering pos, or the next one after it."""
        cur = line_start(self._source, min(max(pos, 0), len(self._source)))
        while True:
            tok = self.forward(cur)
            if tok.kind is TokenKind.EOB or tok.end > pos:
                return tok
            cur = tok.end

    def tokens_between(self, start: int, end: int) -> list[Token]:
        """Forward-scan all tokens starting in [start, end)."""
        tokens = []
        cur = start
        while True:
            tok = self.forward(cur)
            if tok.kind is TokenKind.EOB or tok.start >= end:
                return tokens
            tokens.append(tok)
            cur = tok.end

    def string_start_before(self, pos: int) -> int | None:
        """Find the opening quote of a string whose closing quote is at pos - 1.

        A doubled quote is taken as an escaped quote inside the string.
        Two adjacent empty strings (``"" ""`` written without the space)
        are indistinguishable from one string holding a quote; this is the
        same one-character rule the forward scan uses.
        """
        src = self._source
        if pos <= 0 or classify_char(src[pos - 1]) is not SyntaxClass.STRING_QUOTE:
            return None
        quote = src[pos - 1]
        floor = line_start(src, pos - 1)
        i = pos - 2
        while i >= floor:
            if src[i] == "\n":
                break
            if src[i] == quote:
                if i - 1 >= floor and src[i - 1] == quote:
                    i -= 2
                    continue
                return i
            i -= 1
        return None

    # ------------------------------------------------------------------
    # Line helpers
    # ------------------------------------------------------------------

    def _skip_blanks(self, pos: int) -> int:
        src = self._source
        while pos < len(src):
            ch = src[pos]
            if self._classifier.is_comment_at(src, pos):
                pos = line_end(src, pos)
                continue
            if ch in _BLANKS:
                pos += 1
            elif ch == "\r" and not src.startswith("\n", pos + 1):
                pos += 1
            else:
                break
        return pos

    def _skip_spaces(self, pos: int) -> int:
        src = self._source
        while pos < len(src) and src[pos] in _BLANKS:
            pos += 1
        return pos

    def _at_line_break(self, pos: int) -> bool:
        src = self._source
        return (
            pos >= len(src)
            or src[pos] == "\n"
            or src.startswith("\r\n", pos)
            or self._classifier.is_comment_at(src, pos)
        )

    # ------------------------------------------------------------------
    # Lexemes
    # ------------------------------------------------------------------

    def _lexeme_end(self, pos: int) -> int:
        """End of the lexeme (word, symbol run, or string) starting at pos."""
        src = self._source
        cls = classify_char(src[pos])
        if cls is SyntaxClass.STRING_QUOTE:
            return self._string_end(pos)
        end = pos + 1
        while end < len(src) and classify_char(src[end]) is cls:
            if cls is SyntaxClass.SYMBOL and self._classifier.is_comment_at(src, end):
                break
            end += 1
        return end

    def _string_end(self, pos: int) -> int:
        """End of a string literal; unterminated strings stop at line end."""
        src = self._source
        quote = src[pos]
        i = pos + 1
        while i < len(src):
            ch = src[i]
            if ch == "\n" or src.startswith("\r\n", i):
                return i
            if ch == quote:
                if src.startswith(quote, i + 1):
                    i += 2
                    continue
                return i + 1
            i += 1
        return i

    def _next_lexeme(self, pos: int) -> tuple[int, int] | None:
        """The next lexeme on the same line after pos, if any."""
        start = self._skip_spaces(pos)
        if self._at_line_break(start):
            return None
        return start, self._lexeme_end(start)

    def _next_word(self, pos: int) -> tuple[int, int] | None:
        lexeme = self._next_lexeme(pos)
        if lexeme is None:
            return None
        if classify_char(self._source[lexeme[0]]) is not SyntaxClass.WORD:
            return None
        return lexeme

    def _then_ends_line(self, pos: int) -> bool:
        """True if the last lexeme on this line after pos is ``then``."""
        last = None
        cur = pos
        while True:
            lexeme = self._next_lexeme(cur)
            if lexeme is None:
                break
            last = lexeme
            cur = lexeme[1]
        return last is not None and self._source[last[0] : last[1]] == "then"

    def _followed_by_assign(self, pos: int) -> bool:
        src = self._source
        i = self._skip_spaces(pos)
        return src.startswith("=", i) and not src.startswith("==", i)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _lex_statement_token(self, pos: int) -> Token:
        src = self._source
        end = self._lexeme_end(pos)
        text = src[pos:end]

        if classify_char(src[pos]) is not SyntaxClass.WORD:
            return Token(TokenKind.EXP, text, pos, end)

        if text == "if":
            kind = TokenKind.IF_BLOCK if self._then_ends_line(end) else TokenKind.IF_LINE
            return Token(kind, text, pos, end)

        if text == "else":
            nxt = self._next_lexeme(end)
            if nxt is not None and src[nxt[0] : nxt[1]] == "if":
                return Token(TokenKind.ELSE_LINE, src[pos : nxt[1]], pos, nxt[1])
            return Token(TokenKind.ELSE_BLOC, text, pos, end)

        if text in ("end", "next", "begin"):
            word = self._next_word(end)
            if text == "end":
                kind = TokenKind.END_THING
            elif text == "begin":
                kind = TokenKind.BEGIN
            else:
                kind = TokenKind.NEXT if word is None else TokenKind.NEXT_VAR
            if word is None:
                return Token(kind, text, pos, end)
            return Token(kind, src[pos : word[1]], pos, word[1], src[word[0] : word[1]])

        if text in ("for", "sub"):
            kind = TokenKind.FOR if text == "for" else TokenKind.SUB
            word = self._next_word(end)
            name = src[word[0] : word[1]] if word is not None else None
            return Token(kind, text, pos, end, name)

        kind = simple_keyword(text)
        if kind is not None:
            return Token(kind, text, pos, end)

        if text not in KEYWORDS and self._followed_by_assign(end):
            return Token(TokenKind.VAR, text, pos, end)
        return Token(TokenKind.EXP, text, pos, end)


def tokenize(source: str, comment_start: str = "//") -> list[Token]:
    """Convenience function: scan the whole source forward, EOB-terminated."""
    tokenizer = Tokenizer(source, comment_start)
    tokens = []
    pos = 0
    while True:
        tok = tokenizer.forward(pos)
        tokens.append(tok)
        if tok.kind is TokenKind.EOB:
            return tokens
        pos = tok.end


def classify(source: str, pos: int, comment_start: str = "//") -> Token:
    """Return the token covering pos (or the next token after it)."""
    return Tokenizer(source, comment_start).token_at(pos)
