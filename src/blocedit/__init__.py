"""Structural editing engine for block-structured, line-oriented scripts."""

from __future__ import annotations

from blocedit.engine import closing_text, indent_of, matching_boundary, reindent
from blocedit.lexer import classify, tokenize

__version__ = "0.1.0"

__all__ = [
    "classify",
    "closing_text",
    "indent_of",
    "matching_boundary",
    "reindent",
    "tokenize",
]
