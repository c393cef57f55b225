"""Command-line interface for blocedit."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, replace
from io import StringIO
from pathlib import Path

from blocedit.config import Settings, load_config, settings_from_config
from blocedit.errors import BlockMismatch, LinterError, NoEnclosingConstruct


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    command: str
    input_file: Path
    output_file: Path | None
    offset: int | None
    settings: Settings
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("input", help="Input source file")
    common.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover blocedit.toml)",
    )
    common.add_argument("--comment", metavar="MARKER", help="Comment start marker")
    common.add_argument("-v", "--verbose", action="store_true", help="Log to stderr")

    p = argparse.ArgumentParser(
        prog="blocedit",
        description="Structural editing tools for block-structured scripts",
    )
    sub = p.add_subparsers(dest="command", required=True)

    indent = sub.add_parser("indent", parents=[common], help="Reindent a file")
    indent.add_argument("-o", "--output", help="Output file (default: stdout)")
    indent.add_argument("--width", type=int, metavar="N", help="Indent width in columns")

    sub.add_parser("tokens", parents=[common], help="Dump the structural token stream")

    for name, text in (
        ("match", "Print the offset of the matching block boundary"),
        ("close", "Print the text that closes the enclosing block"),
    ):
        q = sub.add_parser(name, parents=[common], help=text)
        q.add_argument("--offset", type=int, required=True, metavar="N", help="Buffer offset")

    sub.add_parser("highlight", parents=[common], help="Print keyword highlight spans")

    check = sub.add_parser("check", parents=[common], help="Run the linter and report problems")
    check.add_argument(
        "--linter",
        metavar="CMD",
        help="Linter command line ({file} is replaced by a temp copy of the input)",
    )
    check.add_argument("--timeout", type=float, metavar="SECS", help="Linter timeout")
    return p


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    settings = settings_from_config(load_config(config_path, input_dir))

    if args.comment:
        settings = replace(settings, comment_start=args.comment)
    width = getattr(args, "width", None)
    if width is not None:
        if width <= 0:
            raise argparse.ArgumentTypeError(f"invalid indent width: {width}")
        settings = replace(settings, indent_width=width)
    linter = getattr(args, "linter", None)
    if linter:
        settings = replace(settings, linter_command=linter.split())
    timeout = getattr(args, "timeout", None)
    if timeout is not None:
        settings = replace(settings, linter_timeout=timeout)

    output = getattr(args, "output", None)
    return CliOptions(
        command=args.command,
        input_file=input_file,
        output_file=Path(output) if output else None,
        offset=getattr(args, "offset", None),
        settings=settings,
        verbose=args.verbose,
    )


def run_command(options: CliOptions, source: str) -> tuple[str, int]:
    """Run one command over source; return (stdout text, exit code)."""
    from blocedit.debug import dump_tokens
    from blocedit.diagnostics import structural_diagnostics
    from blocedit.engine import closing_text, matching_boundary, reindent
    from blocedit.keywords import default_matcher
    from blocedit.lexer import tokenize
    from blocedit.linter import LintSession
    from blocedit.tokens import offset_to_position

    settings = options.settings
    comment = settings.comment_start

    if options.command == "indent":
        text = reindent(source, settings.indent_width, settings.tab_width, comment)
        return text, 0

    if options.command == "tokens":
        out = StringIO()
        dump_tokens(tokenize(source, comment), source, file=out)
        return out.getvalue(), 0

    if options.command == "match":
        found = matching_boundary(source, options.offset or 0, comment)
        if found is None:
            return "", 1
        return f"{found}\n", 0

    if options.command == "close":
        return closing_text(source, options.offset or 0, comment) + "\n", 0

    if options.command == "highlight":
        lines = []
        for span in default_matcher().highlight(source):
            word = source[span.start : span.end]
            lines.append(f"{span.start}-{span.end} {span.highlight.name} {word}\n")
        return "".join(lines), 0

    if options.command == "check":
        found = structural_diagnostics(source, comment)
        if settings.linter_command:
            session = LintSession(list(settings.linter_command), timeout=settings.linter_timeout)
            found.extend(session.check(source) or [])
        found.sort(key=lambda d: d.start)
        lines = []
        for d in found:
            pos = offset_to_position(source, d.start)
            lines.append(
                f"{options.input_file}:{pos.line}:{pos.column}: "
                f"{d.severity.name.lower()}: {d.message}\n"
            )
        return "".join(lines), 1 if found else 0

    raise ValueError(f"unknown command: {options.command}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = resolve_options(args)
    except argparse.ArgumentTypeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if options.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        source = options.input_file.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    try:
        text, code = run_command(options, source)
    except (NoEnclosingConstruct, BlockMismatch) as exc:
        print(exc.format(str(options.input_file)), file=sys.stderr)
        return 1
    except LinterError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if options.output_file:
        options.output_file.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)

    return code
