"""Minimal LSP server for spritesass: diagnostics only."""

from __future__ import annotations

from pathlib import Path

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from spritesass import __version__, tokens
from spritesass.cache import BuildCache
from spritesass.context import Context
from spritesass.errors import (
    ImageDecodeError,
    ImageExportError,
    ImportNotFound,
    LexError,
    ParseError,
)

server = LanguageServer(
    "spritesass-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full
)

# Edits are not on disk yet, so the server keeps its own cache
_cache = BuildCache()


def _range(span: tokens.Span, line: int | None = None) -> Range:
    """Convert a 1-based span to an LSP range, optionally moved to start on *line*."""
    start, end = span.start, span.end
    shift = 0 if line is None else line - start.line
    end_col = end.column
    if end.line == start.line and end_col <= start.column:
        end_col = start.column + 1
    return Range(
        start=Position(line=start.line + shift - 1, character=start.column - 1),
        end=Position(line=end.line + shift - 1, character=end_col - 1),
    )


def _top() -> Range:
    return Range(start=Position(line=0, character=0), end=Position(line=0, character=1))


def _diagnostic(rng: Range, message: str, severity: DiagnosticSeverity) -> Diagnostic:
    return Diagnostic(range=rng, message=message, severity=severity, source="spritesass")


def _located(
    main_file: str,
    file: str,
    line: int,
    span: tokens.Span,
    message: str,
) -> Diagnostic:
    """Place a diagnostic on *span* when it is in this document, else at the top."""
    if file == main_file:
        return _diagnostic(_range(span, line), message, DiagnosticSeverity.Error)
    return _diagnostic(_top(), f"{file}:{line}: {message}", DiagnosticSeverity.Error)


def diagnose(source: str, path: str, cache: BuildCache | None = None) -> list[Diagnostic]:
    """Preprocess *source* as the file at *path* and report any failure."""
    ctx = Context(main_file=path, export_sprites=False, cache=cache or _cache)
    pkgdir = Path(path).parent

    try:
        ctx.preprocess(source, pkgdir)
    except LexError as exc:
        file, line = exc.origin or (exc.filename, exc.position.line)
        span = tokens.Span(exc.position, exc.position)
        return [_located(path, file, line, span, exc.message)]
    except ParseError as exc:
        file, line = exc.origin or (exc.filename, exc.span.start.line)
        return [_located(path, file, line, exc.span, exc.message)]
    except ImportNotFound as exc:
        if exc.span is not None and exc.importer == path:
            rng = _range(exc.span)
        else:
            rng = _top()
        return [_diagnostic(rng, str(exc), DiagnosticSeverity.Error)]
    except (ImageDecodeError, ImageExportError) as exc:
        return [_diagnostic(_top(), str(exc), DiagnosticSeverity.Error)]
    return []


def _validate(ls: LanguageServer, uri: str) -> None:
    """Run the preprocessing pipeline and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    diagnostics = diagnose(doc.source, doc.path)
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def invalidate_saved(path: str, cache: BuildCache | None = None) -> set[str]:
    """Evict a saved file from the cache and return every file that imports it."""
    cache = cache or _cache
    importers = cache.graph.dependents(path)
    cache.invalidate(path)
    return importers


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: LanguageServer, params: DidSaveTextDocumentParams) -> None:
    doc = ls.workspace.get_text_document(params.text_document.uri)
    importers = invalidate_saved(doc.path)
    _validate(ls, doc.uri)
    # Open documents that import the saved partial see its new content
    for other in list(ls.workspace.text_documents.values()):
        if other.path in importers:
            _validate(ls, other.uri)


def main() -> None:
    server.start_io()
