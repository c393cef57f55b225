"""Keyword-tree compiler for one-pass highlighting.

A keyword tree says which words start a line, which words may follow each
of them, and so on.  ``compile_rules`` folds every level into a single
alternation regex with one named group per literal, plus a table from group
name to the highlight class and the compiled matcher for the words that may
come next.  Highlighting is purely textual and independent of the
structural tokenizer.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, auto
from functools import cache
from types import MappingProxyType
from typing import Any, Union

from blocedit.errors import KeywordTreeError
from blocedit.tokens import line_end, line_start


class HighlightClass(Enum):
    KEYWORD = auto()
    BUILTIN = auto()
    FUNCTION = auto()
    TYPE = auto()
    CONSTANT = auto()
    VARIABLE = auto()
    WARNING = auto()


Entry = Union[str, tuple[str, "Rule"]]


@dataclass(frozen=True)
class Rule:
    """One level of a keyword tree.

    ``keywords`` holds plain literals and ``(literal, Rule)`` pairs whose
    rule describes what may follow the literal.  With ``anywhere`` set the
    level's words are searched for along the rest of the line instead of
    being expected right at the cursor.
    """

    highlight: HighlightClass
    keywords: tuple[Entry, ...]
    anywhere: bool = False


@dataclass(frozen=True, slots=True)
class Span:
    start: int
    end: int
    highlight: HighlightClass


_WORD_END = r"(?![\w$])"
_WORD_START = r"(?<![\w$])"


@dataclass(frozen=True)
class CompiledMatcher:
    """Alternation regex plus dispatch from group name to what follows."""

    pattern: re.Pattern[str]
    dispatch: Mapping[str, tuple[HighlightClass, CompiledMatcher | None]]
    anywhere: bool = False

    def highlight(self, source: str, start: int = 0, end: int | None = None) -> list[Span]:
        """Highlight every line that starts in [start, end)."""
        if end is None:
            end = len(source)
        spans: list[Span] = []
        pos = line_start(source, start)
        while True:
            limit = line_end(source, pos)
            self._run(source, pos, limit, spans)
            nl = source.find("\n", limit)
            if nl < 0 or nl + 1 >= end:
                return spans
            pos = nl + 1

    def _run(self, source: str, pos: int, limit: int, spans: list[Span]) -> int:
        if not self.anywhere:
            after = self._step(self.pattern.match(source, pos, limit), source, limit, spans)
            return pos if after is None else after
        while True:
            after = self._step(self.pattern.search(source, pos, limit), source, limit, spans)
            if after is None or after <= pos:
                return pos
            pos = after

    def _step(
        self,
        m: re.Match[str] | None,
        source: str,
        limit: int,
        spans: list[Span],
    ) -> int | None:
        if m is None:
            return None
        name = m.lastgroup
        highlight, child = self.dispatch[name]
        spans.append(Span(m.start(name), m.end(name), highlight))
        if child is None:
            return m.end()
        return child._run(source, m.end(), limit, spans)


def compile_rules(rule: Rule) -> CompiledMatcher:
    """Compile a keyword tree, children first, into a CompiledMatcher."""
    seen: set[str] = set()
    entries: list[tuple[str, CompiledMatcher | None]] = []
    for entry in rule.keywords:
        if isinstance(entry, str):
            literal, child = entry, None
        else:
            literal, sub = entry
            child = compile_rules(sub)
        if not literal:
            raise KeywordTreeError("empty keyword literal")
        if literal in seen:
            raise KeywordTreeError(f"duplicate keyword {literal!r} at the same level")
        seen.add(literal)
        entries.append((literal, child))

    if not entries:
        raise KeywordTreeError("keyword level has no keywords")

    # Longest first, so no literal is shadowed by one of its prefixes
    entries.sort(key=lambda e: -len(e[0]))
    dispatch: dict[str, tuple[HighlightClass, CompiledMatcher | None]] = {}
    alternatives = []
    for i, (literal, child) in enumerate(entries):
        group = f"k{i}"
        dispatch[group] = (rule.highlight, child)
        alternatives.append(f"(?P<{group}>{re.escape(literal)})")

    lead = _WORD_START if rule.anywhere else r"[ \t]*"
    pattern = re.compile(f"{lead}(?:{'|'.join(alternatives)}){_WORD_END}")
    return CompiledMatcher(
        pattern=pattern,
        dispatch=MappingProxyType(dispatch),
        anywhere=rule.anywhere,
    )


def rule_from_tree(
    tree: Any,
    highlight: HighlightClass = HighlightClass.KEYWORD,
    anywhere: bool = False,
) -> Rule:
    """Build a Rule from nested dict/list data.

    ``{"begin": [{"box": ["fill", "add"]}, "clip"]}`` means ``begin`` may be
    followed by ``box`` or ``clip``, and ``box`` by ``fill`` or ``add``.  A
    Rule may appear anywhere in the data to change the class of a subtree.
    """
    if isinstance(tree, Rule):
        return tree
    return Rule(highlight, tuple(_entries(tree, highlight)), anywhere)


def _entries(tree: Any, highlight: HighlightClass) -> list[Entry]:
    if isinstance(tree, str):
        return [tree]
    if isinstance(tree, Mapping):
        result: list[Entry] = []
        for literal, sub in tree.items():
            if sub is None or (isinstance(sub, (Sequence, Mapping)) and not sub):
                result.append(literal)
            else:
                result.append((literal, rule_from_tree(sub, highlight)))
        return result
    if isinstance(tree, Sequence):
        result = []
        for item in tree:
            result.extend(_entries(item, highlight))
        return result
    raise KeywordTreeError(f"unsupported keyword tree node: {tree!r}")


_CONDITION = Rule(HighlightClass.KEYWORD, ("then", "and", "or", "not"), anywhere=True)
_BLOCK_NAMES = ("box", "clip", "group", "path", "layer")
_DRAWING = ("fill", "stroke", "line", "move", "text")

DEFAULT_RULES = Rule(
    HighlightClass.KEYWORD,
    (
        ("if", _CONDITION),
        ("else", Rule(HighlightClass.KEYWORD, (("if", _CONDITION),))),
        ("for", Rule(HighlightClass.KEYWORD, ("to", "step"), anywhere=True)),
        ("while", _CONDITION),
        ("until", _CONDITION),
        ("begin", Rule(HighlightClass.TYPE, _BLOCK_NAMES)),
        ("end", Rule(HighlightClass.TYPE, _BLOCK_NAMES + ("if", "sub"))),
        ("call", Rule(HighlightClass.BUILTIN, _DRAWING)),
        "next",
        "sub",
        "return",
        "gsave",
        "grestore",
        "print",
    ),
)


@cache
def default_matcher() -> CompiledMatcher:
    return compile_rules(DEFAULT_RULES)
