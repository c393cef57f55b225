"""Structural queries over a buffer: matching, indentation, and closing.

Every query builds a fresh Tokenizer over the text it is given and walks
tokens outward from the position of interest, keeping a stack of the
blocks it skips over.  Nothing is remembered between calls.  ``reindent``
instead makes a single pass from the top, carrying the open blocks along.
"""

from __future__ import annotations

from dataclasses import dataclass

from blocedit.errors import BlockMismatch, NoEnclosingConstruct
from blocedit.grammar import GRAMMAR
from blocedit.lexer import Tokenizer
from blocedit.tokens import Token, TokenKind, line_end, line_start

_ELSE_KINDS = (TokenKind.ELSE_BLOC, TokenKind.ELSE_LINE)
_CHAIN_KINDS = (TokenKind.IF_LINE, TokenKind.ELSE_LINE)

@dataclass(frozen=True, slots=True)
class BlockMatch:
    """An opener and the token that closes it (or, for ``else``, the else)."""

    opener: Token
    closer: Token
    consistent: bool = True


@dataclass(frozen=True, slots=True)
class NamedBlock:
    """A matched pair of named tokens and the spans of their names."""

    opener: Token
    closer: Token
    opener_name: tuple[int, int] | None
    closer_name: tuple[int, int] | None
    consistent: bool


# ----------------------------------------------------------------------
# Pairing rules
# ----------------------------------------------------------------------


def names_agree(opener: Token, closer: Token) -> bool:
    """Check that the word carried by a closer fits its opener."""
    if closer.kind is TokenKind.END_THING:
        if opener.kind is TokenKind.BEGIN:
            return opener.name == closer.name
        if opener.kind is TokenKind.IF_BLOCK:
            return closer.name in (None, "if")
        if opener.kind is TokenKind.SUB:
            return closer.name in (None, "sub")
        return False
    if closer.kind is TokenKind.NEXT_VAR:
        return opener.name is None or opener.name == closer.name
    return True


def closer_text(opener: Token) -> str:
    """The text that closes the block begun by opener."""
    kind = opener.kind
    if kind in (TokenKind.WHILE, TokenKind.UNTIL):
        return "next"
    if kind is TokenKind.IF_BLOCK:
        return "end if"
    if kind is TokenKind.SUB:
        return "end sub"
    if kind is TokenKind.FOR:
        return f"next {opener.name}" if opener.name else "next"
    if kind is TokenKind.BEGIN:
        return f"end {opener.name}" if opener.name else "end"
    if kind is TokenKind.GSAVE:
        return "grestore"
    raise ValueError(f"{kind.name} does not open a block")


# ----------------------------------------------------------------------
# Scans
# ----------------------------------------------------------------------


def _enclosing(tokenizer: Tokenizer, pos: int, strict: bool = False) -> Token | None:
    """Innermost opener before pos that is not closed before pos.

    With strict=True, a skipped-over block whose closer does not fit its
    opener raises BlockMismatch.
    """
    pending: list[Token] = []
    for tok in tokenizer.iter_backward(pos):
        if tok.kind in GRAMMAR.closers:
            pending.append(tok)
        elif tok.kind in GRAMMAR.openers:
            if not pending:
                return tok
            closer = pending.pop()
            if strict and not (GRAMMAR.closes(tok.kind, closer.kind) and names_agree(tok, closer)):
                raise BlockMismatch(tok, closer, tokenizer.source)
    return None


def _in_line_chain(tokenizer: Tokenizer, tok: Token) -> bool:
    """True if an ``else`` belongs to a chain begun by a single-line ``if``.

    Such an else has no block role: ``if a then x`` / ``else y`` inside an
    ``if ... then`` block must not pair with the outer ``if``.
    """
    source = tokenizer.source
    start = line_start(source, tok.start)
    leading = False
    for prev in tokenizer.line_tokens(start):
        if prev.start >= tok.start:
            break
        if prev.kind in _CHAIN_KINDS:
            return True
        if prev.kind is not TokenKind.SEPARATOR:
            leading = True
    if leading:
        return False
    while start > 0:
        start = line_start(source, start - 1)
        tokens = tokenizer.line_tokens(start)
        if not tokens or tokens[0].kind is TokenKind.SEPARATOR:
            continue
        if tokens[0].kind is TokenKind.IF_LINE:
            return True
        if tokens[0].kind is not TokenKind.ELSE_LINE:
            return False
    return False


def _match_backward(tokenizer: Tokenizer, end: Token) -> BlockMatch | None:
    if end.kind in GRAMMAR.middles:
        if _in_line_chain(tokenizer, end):
            return None
        owners = GRAMMAR.middles[end.kind]
    else:
        owners = GRAMMAR.families.get(end.kind, frozenset())
    opener = _enclosing(tokenizer, end.start)
    if opener is None or opener.kind not in owners:
        return None
    if end.kind in GRAMMAR.middles:
        return BlockMatch(opener, end)
    return BlockMatch(opener, end, names_agree(opener, end))


def _match_forward(tokenizer: Tokenizer, opener: Token) -> BlockMatch | None:
    pending: list[Token] = []
    cur = opener.end
    while True:
        tok = tokenizer.forward(cur)
        if tok.kind is TokenKind.EOB:
            return None
        cur = tok.end
        if tok.kind in GRAMMAR.openers:
            pending.append(tok)
        elif tok.kind in GRAMMAR.closers:
            if pending:
                pending.pop()
                continue
            if not GRAMMAR.closes(opener.kind, tok.kind):
                return None
            return BlockMatch(opener, tok, names_agree(opener, tok))


# ----------------------------------------------------------------------
# Public queries
# ----------------------------------------------------------------------


def find_match(source: str, pos: int, comment_start: str = "//") -> BlockMatch | None:
    """Pair the structural token at pos with its partner, if any."""
    tokenizer = Tokenizer(source, comment_start)
    tok = tokenizer.token_at(pos)
    if tok.start > pos:
        return None
    if tok.kind in GRAMMAR.openers:
        return _match_forward(tokenizer, tok)
    if tok.kind in GRAMMAR.closers or tok.kind in GRAMMAR.middles:
        return _match_backward(tokenizer, tok)
    return None


def matching_boundary(source: str, pos: int, comment_start: str = "//") -> int | None:
    """Start offset of the token pairing with the structural token at pos."""
    match = find_match(source, pos, comment_start)
    if match is None:
        return None
    if match.opener.start <= pos < match.opener.end:
        return match.closer.start
    return match.opener.start


def enclosing_opener(source: str, pos: int, comment_start: str = "//") -> Token | None:
    """Innermost block opener that is still open at pos."""
    return _enclosing(Tokenizer(source, comment_start), pos)


def closing_text(source: str, pos: int, comment_start: str = "//") -> str:
    """Text that closes the innermost block open at pos.

    Raises NoEnclosingConstruct at top level and BlockMismatch when a block
    between the opener and pos is closed by the wrong keyword or name.
    """
    opener = _enclosing(Tokenizer(source, comment_start), pos, strict=True)
    if opener is None:
        raise NoEnclosingConstruct(pos, source)
    return closer_text(opener)


def line_units(source: str, pos: int, width: int = 4, tab_width: int = 8) -> int:
    """Current indentation of the line containing pos, in units of width."""
    column = 0
    for ch in source[line_start(source, pos) :]:
        if ch == " ":
            column += 1
        elif ch == "\t":
            column += tab_width - column % tab_width
        else:
            break
    return column // width


def indent_of(
    source: str,
    pos: int,
    width: int = 4,
    tab_width: int = 8,
    comment_start: str = "//",
) -> int:
    """Indentation, in units, that the line containing pos should have."""
    tokenizer = Tokenizer(source, comment_start)
    start = line_start(source, pos)
    first = tokenizer.forward(start)
    opener = _enclosing(tokenizer, start)
    if opener is None:
        return 0
    chained = first.kind in _ELSE_KINDS and _in_line_chain(tokenizer, first)
    units = line_units(source, opener.start, width, tab_width)
    return _units_inside(opener, units, first, chained)


def _units_inside(opener: Token, units: int, first: Token, chained: bool) -> int:
    """Units for a line starting with first, inside opener's block at units."""
    if first.kind in GRAMMAR.closers and GRAMMAR.closes(opener.kind, first.kind):
        return units
    if (
        first.kind in _ELSE_KINDS
        and not chained
        and opener.kind in GRAMMAR.middles[TokenKind.ELSE_BLOC]
    ):
        return units
    return units + 1


def reindent(
    source: str,
    width: int = 4,
    tab_width: int = 8,
    comment_start: str = "//",
) -> str:
    """Reindent every line with spaces, in one pass from the top.

    The stack holds each open opener with the units its line was given.
    """
    tokenizer = Tokenizer(source, comment_start)
    stack: list[tuple[Token, int]] = []
    chained = False  # previous statement line was part of a single-line if chain
    pieces: list[str] = []
    pos = 0
    while True:
        end = line_end(source, pos)
        body = source[pos:end].lstrip(" \t")
        tokens = tokenizer.line_tokens(pos)
        first = tokens[0] if tokens else Token(TokenKind.EOB, "", end, end)

        units = 0
        if body and stack:
            opener, opener_units = stack[-1]
            in_chain = chained and first.kind in _ELSE_KINDS
            units = _units_inside(opener, opener_units, first, in_chain)
        if body:
            body = " " * (units * width) + body
        pieces.append(body)

        if tokens and first.kind is not TokenKind.SEPARATOR:
            chained = first.kind is TokenKind.IF_LINE or (
                chained and first.kind is TokenKind.ELSE_LINE
            )
        for tok in tokens:
            if tok.kind in GRAMMAR.openers:
                stack.append((tok, units))
            elif tok.kind in GRAMMAR.closers and stack:
                stack.pop()

        nl = source.find("\n", end)
        if nl < 0:
            pieces.append(source[end:])
            return "".join(pieces)
        pieces.append(source[end : nl + 1])
        pos = nl + 1


# ----------------------------------------------------------------------
# Named-span index
# ----------------------------------------------------------------------


def _name_span(source: str, tok: Token) -> tuple[int, int] | None:
    if tok.name is None:
        return None
    # begin/end/next carry their word inside the token text
    if tok.kind in (TokenKind.BEGIN, TokenKind.END_THING, TokenKind.NEXT_VAR):
        return tok.end - len(tok.name), tok.end
    idx = source.find(tok.name, tok.end, line_end(source, tok.end))
    if idx < 0:
        return None
    return idx, idx + len(tok.name)


def named_blocks(source: str, comment_start: str = "//") -> list[NamedBlock]:
    """Recompute the named pairs of the whole buffer.

    Also records every pair whose closer belongs to another family
    (``while ... end``), named or not, as inconsistent.
    """
    tokenizer = Tokenizer(source, comment_start)
    blocks: list[NamedBlock] = []
    pending: list[Token] = []
    cur = 0
    while True:
        tok = tokenizer.forward(cur)
        if tok.kind is TokenKind.EOB:
            break
        cur = tok.end
        if tok.kind in GRAMMAR.openers:
            pending.append(tok)
        elif tok.kind in GRAMMAR.closers and pending:
            opener = pending.pop()
            family = GRAMMAR.closes(opener.kind, tok.kind)
            named = opener.kind in (TokenKind.BEGIN, TokenKind.FOR) or tok.name is not None
            if named or not family:
                blocks.append(
                    NamedBlock(
                        opener=opener,
                        closer=tok,
                        opener_name=_name_span(source, opener),
                        closer_name=_name_span(source, tok),
                        consistent=family and names_agree(opener, tok),
                    )
                )
    blocks.sort(key=lambda b: b.opener.start)
    return blocks


def partner_name_span(
    source: str, pos: int, comment_start: str = "//"
) -> tuple[int, int] | None:
    """For a block name under pos, the span of the name at the other end."""
    for block in named_blocks(source, comment_start):
        spans = (block.opener_name, block.closer_name)
        for mine, other in (spans, spans[::-1]):
            if mine is not None and mine[0] <= pos <= mine[1]:
                return other
    return None
