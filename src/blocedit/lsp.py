"""Language server: linter and block-name diagnostics, reindent formatting."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    TEXT_DOCUMENT_FORMATTING,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    DocumentFormattingParams,
    MessageType,
    Position,
    PublishDiagnosticsParams,
    Range,
    ShowMessageParams,
    TextDocumentSyncKind,
    TextEdit,
)
from pygls.lsp.server import LanguageServer

from blocedit import diagnostics as diag
from blocedit.config import Settings, load_config, settings_from_config
from blocedit.engine import reindent
from blocedit.errors import LinterError, LinterNotFound
from blocedit.linter import LintSession
from blocedit.tokens import offset_to_position

logger = logging.getLogger(__name__)

_SEVERITIES = {
    diag.Severity.ERROR: DiagnosticSeverity.Error,
    diag.Severity.WARNING: DiagnosticSeverity.Warning,
    diag.Severity.INFO: DiagnosticSeverity.Information,
    diag.Severity.HINT: DiagnosticSeverity.Hint,
}


class BlocLanguageServer(LanguageServer):
    """LanguageServer holding settings and one LintSession per document."""

    def __init__(self, *args: Any, settings: Settings | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.settings = settings or Settings()
        self.sessions: dict[str, LintSession] = {}

    def session_for(self, uri: str) -> LintSession | None:
        if not self.settings.linter_command:
            return None
        session = self.sessions.get(uri)
        if session is None:
            session = LintSession(
                list(self.settings.linter_command), timeout=self.settings.linter_timeout
            )
            self.sessions[uri] = session
        return session

    def drop_session(self, uri: str) -> None:
        session = self.sessions.pop(uri, None)
        if session is not None:
            session.close()


server = BlocLanguageServer(
    "blocedit-lsp", "0.1.0", text_document_sync_kind=TextDocumentSyncKind.Full
)


def _range(source: str, start: int, end: int) -> Range:
    s = offset_to_position(source, start)
    e = offset_to_position(source, end)
    return Range(
        start=Position(line=s.line - 1, character=s.column - 1),
        end=Position(line=e.line - 1, character=e.column - 1),
    )


def _to_lsp(source: str, found: list[diag.Diagnostic], origin: str) -> list[Diagnostic]:
    return [
        Diagnostic(
            range=_range(source, d.start, d.end),
            message=d.message,
            severity=_SEVERITIES[d.severity],
            source=origin,
        )
        for d in found
    ]


def _publish(ls: BlocLanguageServer, uri: str, diagnostics: list[Diagnostic]) -> None:
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


def _report_linter_error(ls: BlocLanguageServer, exc: LinterError) -> None:
    if isinstance(exc, LinterNotFound):
        ls.window_show_message(ShowMessageParams(type=MessageType.Error, message=str(exc)))
    else:
        logger.warning("%s", exc)


async def _validate_async(ls: BlocLanguageServer, uri: str) -> None:
    """Publish diagnostics for a document; a newer edit cancels its linter run."""
    source = ls.workspace.get_text_document(uri).source
    diagnostics = _to_lsp(
        source, diag.structural_diagnostics(source, ls.settings.comment_start), "blocedit"
    )

    session = ls.session_for(uri)
    if session is None:
        _publish(ls, uri, diagnostics)
        return

    try:
        found = await asyncio.wrap_future(session.check_async(source))
    except LinterError as exc:
        _report_linter_error(ls, exc)
        _publish(ls, uri, diagnostics)
        return
    if found is None:
        return
    _publish(ls, uri, diagnostics + _to_lsp(source, found, "linter"))


@server.feature(TEXT_DOCUMENT_DID_OPEN)
async def did_open(ls: BlocLanguageServer, params: DidOpenTextDocumentParams) -> None:
    await _validate_async(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
async def did_change(ls: BlocLanguageServer, params: DidChangeTextDocumentParams) -> None:
    await _validate_async(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
async def did_save(ls: BlocLanguageServer, params: DidSaveTextDocumentParams) -> None:
    await _validate_async(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: BlocLanguageServer, params: DidCloseTextDocumentParams) -> None:
    ls.drop_session(params.text_document.uri)


def _format(ls: BlocLanguageServer, uri: str) -> list[TextEdit]:
    source = ls.workspace.get_text_document(uri).source
    settings = ls.settings
    result = reindent(
        source, settings.indent_width, settings.tab_width, settings.comment_start
    )
    if result == source:
        return []
    return [TextEdit(range=_range(source, 0, len(source)), new_text=result)]


@server.feature(TEXT_DOCUMENT_FORMATTING)
def formatting(ls: BlocLanguageServer, params: DocumentFormattingParams) -> list[TextEdit]:
    return _format(ls, params.text_document.uri)


def main() -> None:
    server.settings = settings_from_config(load_config(None, Path.cwd()))
    server.start_io()
