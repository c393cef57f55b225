"""Block grammar and the operator-precedence table derived from it.

The grammar is authored as BNF-like data over TokenKind terminals and string
nonterminals.  ``build_grammar`` turns it into the classic relations between
adjacent terminals:

* ``a EQUAL b``    a and b belong to the same production (``begin ... end``)
* ``a LESS b``     b starts a phrase nested to the right of a
* ``a GREATER b``  a ends a phrase nested to the left of b

Openers, closers, middle tokens (``else``), and which openers each closer
can close are all read off that table.  The result is built once at import
time and never mutated.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType

from blocedit.errors import GrammarError
from blocedit.tokens import TokenKind

Symbol = TokenKind | str
Rules = Mapping[str, Sequence[Sequence[Symbol]]]

K = TokenKind

# The header of ``for``/``while``/``until`` (``for i = 1 to n step 2``) is an
# ordinary statement followed by a separator, so it is folded into the body.
BLOCK_GRAMMAR: Rules = {
    "inst": (
        ("inst", K.SEPARATOR, "inst"),
        (K.BEGIN, "inst", K.END_THING),
        (K.IF_BLOCK, "inst-else-inst", K.END_THING),
        (K.SUB, "inst", K.END_THING),
        (K.FOR, "inst", K.NEXT_VAR),
        (K.UNTIL, "inst", K.NEXT),
        (K.WHILE, "inst", K.NEXT),
        (K.GSAVE, "inst", K.GRESTORE),
        ("exp",),
    ),
    "inst-else-inst": (
        ("inst",),
        ("inst", K.ELSE_BLOC, "inst"),
    ),
    "exp": (
        (K.EXP,),
        (K.EXP, "exp"),
        (K.VAR, "exp"),
        (K.IF_LINE, "exp"),
        (K.ELSE_LINE, "exp"),
    ),
}


class Relation(Enum):
    LESS = auto()
    EQUAL = auto()
    GREATER = auto()


class Associativity(Enum):
    LEFT = auto()
    RIGHT = auto()


@dataclass(frozen=True)
class Grammar:
    """Immutable precedence table plus the structural sets derived from it."""

    relations: Mapping[tuple[TokenKind, TokenKind], Relation]
    openers: frozenset[TokenKind]
    closers: frozenset[TokenKind]
    families: Mapping[TokenKind, frozenset[TokenKind]]  # closer -> openers
    middles: Mapping[TokenKind, frozenset[TokenKind]]  # middle -> owning openers
    neutral: frozenset[TokenKind]  # terminals with no block role

    def relation(self, left: TokenKind, right: TokenKind) -> Relation | None:
        return self.relations.get((left, right))

    def closes(self, opener: TokenKind, closer: TokenKind) -> bool:
        return opener in self.families.get(closer, frozenset())

    def is_structural(self, kind: TokenKind) -> bool:
        return kind in self.openers or kind in self.closers or kind in self.middles


def _is_terminal(symbol: Symbol) -> bool:
    return isinstance(symbol, TokenKind)


def _edge_sets(rules: Rules, first: bool) -> dict[str, set[TokenKind]]:
    """FIRSTOP (first=True) or LASTOP sets of every nonterminal, by fixpoint."""
    sets: dict[str, set[TokenKind]] = {name: set() for name in rules}
    changed = True
    while changed:
        changed = False
        for name, productions in rules.items():
            for rhs in productions:
                seq = rhs if first else tuple(reversed(rhs))
                found: set[TokenKind] = set()
                head = seq[0]
                if _is_terminal(head):
                    found.add(head)
                else:
                    found |= sets[head]
                    if len(seq) > 1 and _is_terminal(seq[1]):
                        found.add(seq[1])
                if not found <= sets[name]:
                    sets[name] |= found
                    changed = True
    return sets


def build_grammar(
    rules: Rules,
    start: str = "inst",
    separator: TokenKind = TokenKind.SEPARATOR,
    associativity: Associativity = Associativity.LEFT,
) -> Grammar:
    """Compile block grammar rules into a Grammar."""
    for name, productions in rules.items():
        for rhs in productions:
            if not rhs:
                raise GrammarError(f"empty production for {name!r}")
            for a, b in zip(rhs, rhs[1:]):
                if not _is_terminal(a) and not _is_terminal(b):
                    raise GrammarError(f"adjacent nonterminals {a!r} {b!r} in {name!r}")
            for symbol in rhs:
                if not _is_terminal(symbol) and symbol not in rules:
                    raise GrammarError(f"undefined nonterminal {symbol!r} in {name!r}")

    firstop = _edge_sets(rules, first=True)
    lastop = _edge_sets(rules, first=False)
    relations: dict[tuple[TokenKind, TokenKind], Relation] = {}

    def add(left: TokenKind, right: TokenKind, rel: Relation) -> None:
        if left == right == separator:
            rel = Relation.GREATER if associativity is Associativity.LEFT else Relation.LESS
        old = relations.get((left, right))
        if old is not None and old is not rel:
            raise GrammarError(
                f"precedence conflict between {left.name} and {right.name}: "
                f"{old.name} vs {rel.name}"
            )
        relations[(left, right)] = rel

    for productions in rules.values():
        for rhs in productions:
            for i, symbol in enumerate(rhs):
                if i + 1 >= len(rhs):
                    break
                nxt = rhs[i + 1]
                if _is_terminal(symbol) and _is_terminal(nxt):
                    add(symbol, nxt, Relation.EQUAL)
                elif _is_terminal(symbol):
                    for t in firstop[nxt]:
                        add(symbol, t, Relation.LESS)
                    if i + 2 < len(rhs) and _is_terminal(rhs[i + 2]):
                        add(symbol, rhs[i + 2], Relation.EQUAL)
                else:
                    for t in lastop[symbol]:
                        add(t, nxt, Relation.GREATER)

    families: dict[TokenKind, set[TokenKind]] = {}
    for (left, right), rel in relations.items():
        if rel is Relation.EQUAL and left in firstop[start]:
            families.setdefault(right, set()).add(left)
    openers = frozenset(o for group in families.values() for o in group)
    closers = frozenset(families)

    # Middles sit strictly inside a block: never at a statement's edge
    edges = firstop[start] | lastop[start]
    middles: dict[TokenKind, frozenset[TokenKind]] = {}
    for (left, right), rel in relations.items():
        if rel is Relation.LESS and left in openers and right not in edges:
            middles[right] = middles.get(right, frozenset()) | {left}

    terminals = {
        symbol
        for productions in rules.values()
        for rhs in productions
        for symbol in rhs
        if _is_terminal(symbol)
    }
    return Grammar(
        relations=MappingProxyType(relations),
        openers=openers,
        closers=closers,
        families=MappingProxyType({k: frozenset(v) for k, v in families.items()}),
        middles=MappingProxyType(middles),
        neutral=frozenset(terminals - openers - closers - set(middles)),
    )


GRAMMAR = build_grammar(BLOCK_GRAMMAR)
