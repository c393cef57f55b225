"""Shared test fixtures and helpers."""

from __future__ import annotations

import stat
import sys
import textwrap
from pathlib import Path

import pytest

from blocedit.lexer import tokenize
from blocedit.tokens import Token, TokenKind

# A tiny linter: flags every line containing "oops", reading the buffer from
# the file named on the command line or from stdin.  Lines containing "slow"
# make it sleep first.
LINTER_SCRIPT = """\
import sys
import time

data = open(sys.argv[1]).read() if len(sys.argv) > 1 else sys.stdin.read()
if "slow" in data:
    time.sleep(5)
for n, line in enumerate(data.splitlines(), 1):
    if "oops" in line:
        print(f'File "buffer", line {n}, near "oops"')
        print("    " + line)
        print("error: oops found")
"""


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOB)."""

    def _lex(source: str, comment_start: str = "//") -> list[Token]:
        tokens = tokenize(source, comment_start)
        # Strip trailing EOB for convenience
        return [t for t in tokens if t.kind != TokenKind.EOB]

    return _lex


@pytest.fixture
def make_script(tmp_path: Path):
    """Return a helper that writes an executable Python script into tmp_path."""

    def _make(name: str, body: str) -> Path:
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IEXEC)
        return path

    return _make


@pytest.fixture
def linter_script(make_script) -> Path:
    return make_script("fake-linter", LINTER_SCRIPT)


def kinds(tokens: list[Token]) -> list[TokenKind]:
    return [t.kind for t in tokens]


def assert_kinds(tokens: list[Token], expected: list[TokenKind]) -> None:
    """Assert that the token kinds match the expected list."""
    actual = kinds(tokens)
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_texts(tokens: list[Token], expected: list[str]) -> None:
    """Assert that the token texts match the expected list."""
    actual = [t.text for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def find_kind(tokens: list[Token], kind: TokenKind) -> list[Token]:
    """Return all tokens of the given kind."""
    return [t for t in tokens if t.kind == kind]
