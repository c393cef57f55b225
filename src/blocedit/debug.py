"""Token stream dump for the ``tokens`` command."""

from __future__ import annotations

import sys
from typing import TextIO

from blocedit.grammar import GRAMMAR
from blocedit.tokens import Token, TokenKind, offset_to_position


def dump_tokens(tokens: list[Token], source: str, *, file: TextIO = sys.stderr) -> None:
    """Print one token per line, indented by block depth, to *file*."""
    depth = 0
    for tok in tokens:
        if tok.kind is TokenKind.EOB:
            break
        if tok.kind in GRAMMAR.closers or tok.kind in GRAMMAR.middles:
            depth = max(0, depth - 1)
        pos = offset_to_position(source, tok.start)
        line = f"{_indent(depth)}{pos.line}:{pos.column} {tok.kind.name} {tok.text!r}"
        if tok.name is not None:
            line += f" name={tok.name!r}"
        file.write(line + "\n")
        if tok.kind in GRAMMAR.openers or tok.kind in GRAMMAR.middles:
            depth += 1


def _indent(depth: int) -> str:
    return "  " * depth
