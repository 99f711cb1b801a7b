"""Recursively splices @import'ed partials into one buffer."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from spritesass.cache import BuildCache
from spritesass.errors import ImportNotFound, ParseError
from spritesass.lexer import Lexer
from spritesass.provenance import ProvenanceTable
from spritesass.tokens import Span, Token, TokenType

logger = logging.getLogger(__name__)

# Third-party imports that may be absent on disk without failing the build
DEFAULT_IGNORABLE: tuple[str, ...] = (r"compass/?", r"^images$")

# Plain CSS imports are left for the downstream compiler
_CSS_IMPORT = re.compile(r"^(?:https?:)?//|\.css$")


@dataclass(frozen=True, slots=True)
class ResolvedImport:
    """Result of resolving one import name."""

    name: str
    path: Path | None
    directory: Path
    content: str


@dataclass(frozen=True, slots=True)
class Expansion:
    """Fully expanded source with its tokens and line provenance."""

    tokens: list[Token]
    text: str
    provenance: ProvenanceTable


def ignored_marker(name: str) -> str:
    return f'/* @import "{name}" skipped */'


class Importer:
    """Resolve and expand imports for one compile.

    Remembers every file it has spliced so a second import of the same
    canonical path contributes nothing.
    """

    def __init__(
        self,
        cache: BuildCache,
        include_paths: Iterable[Path] = (),
        ignorable: Iterable[str] = DEFAULT_IGNORABLE,
    ) -> None:
        self._cache = cache
        self._include_paths = [Path(p) for p in include_paths]
        self._ignorable = [re.compile(p) for p in ignorable]
        self._imported: set[Path] = set()

    def mark_imported(self, path: Path) -> None:
        """Treat *path* as already spliced (used for the main file)."""
        self._imported.add(path.resolve())

    def candidates(self, directory: Path, name: str) -> list[Path]:
        """Candidate file paths for *name*, in lookup order, without duplicates."""
        rel = Path(name)
        if rel.suffix not in (".scss", ".sass"):
            rel = rel.with_name(rel.name + ".scss")
        partial = rel.with_name("_" + rel.name) if not rel.name.startswith("_") else rel

        result: list[Path] = []
        for root in (directory, *self._include_paths):
            for cand in (partial, rel):
                path = Path(os.path.abspath(root / cand))
                if path not in result:
                    result.append(path)
        return result

    def resolve(
        self,
        directory: Path,
        name: str,
        importer: str = "string",
        owner: str | None = None,
        span: Span | None = None,
    ) -> ResolvedImport:
        """Find and read the file an import *name* refers to."""
        tried = self.candidates(directory, name)
        for path in tried:
            if not path.is_file():
                continue
            canonical = path.resolve()
            if canonical in self._imported:
                logger.debug("skipping repeated import of %s", path)
                return ResolvedImport(name, path, path.parent, "")
            self._imported.add(canonical)
            self._cache.graph.add(owner or importer, str(path))
            data = self._cache.files.read(path)
            return ResolvedImport(name, path, path.parent, data.decode("utf-8"))

        if any(p.search(name) for p in self._ignorable):
            logger.debug("ignoring unresolved import %s", name)
            return ResolvedImport(name, None, directory, ignored_marker(name))

        raise ImportNotFound(name, tried, importer, span)

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def expand(
        self,
        directory: Path,
        filename: str,
        text: str,
        owner: str | None = None,
    ) -> Expansion:
        """Recursively splice every import in *text*.

        Returned token positions refer to the expanded text. Each imported
        file's lines are recorded in the provenance table against the
        offsets the splice produces.
        """
        owner = owner or filename
        table = ProvenanceTable(filename)
        tokens: list[Token] = []
        out: list[str] = []
        out_len = 0
        out_lines = 0
        pos = 0
        # Distance from an input position to its place in the output
        shift = 0
        line_shift = 0

        stream = iter(Lexer(text, filename))
        for tok in stream:
            if tok.type == TokenType.EOF:
                out.append(text[pos:])
                tokens.append(tok.shifted(shift, line_shift))
                break

            if tok.type != TokenType.IMPORT:
                tokens.append(tok.shifted(shift, line_shift))
                continue

            stmt = self._read_import(tok, stream, text, filename)
            names = _import_names(stmt)
            if names is None:
                # CSS import: keep the statement as written
                tokens.extend(t.shifted(shift, line_shift) for t in stmt)
                continue

            chunk = text[pos : tok.start]
            out.append(chunk)
            out_len += len(chunk)
            out_lines += chunk.count("\n")

            for name_tok in names:
                resolved = self.resolve(directory, name_tok.value, filename, owner, name_tok.span)
                if resolved.path is not None and resolved.content:
                    inner = self.expand(
                        resolved.directory, name_tok.value, resolved.content, str(resolved.path)
                    )
                else:
                    inner = Expansion([], resolved.content, ProvenanceTable(name_tok.value))

                if inner.text:
                    table.splice(out_lines, inner.provenance)
                tokens.extend(
                    t.shifted(out_len, out_lines)
                    for t in inner.tokens
                    if t.type != TokenType.EOF
                )
                out.append(inner.text)
                out_len += len(inner.text)
                out_lines += inner.text.count("\n")

            semi = stmt[-1]
            pos = semi.end
            shift = out_len - pos
            line_shift = out_lines - (semi.span.end.line - 1)
            table.mark(out_lines + 1, filename, semi.span.end.line + 1)

        return Expansion(tokens, "".join(out), table)

    def _read_import(
        self,
        first: Token,
        stream: Iterator[Token],
        text: str,
        filename: str,
    ) -> list[Token]:
        stmt = [first]
        for tok in stream:
            if tok.type == TokenType.EOF:
                break
            stmt.append(tok)
            if tok.type == TokenType.SEMICOLON:
                return stmt
        last = stmt[-1]
        raise ParseError(
            "@import statement must be followed by ';'",
            last.span,
            text,
            expected=";",
            found="end of input",
            filename=filename,
        )


def _import_names(stmt: list[Token]) -> list[Token] | None:
    """Return the string tokens of a Sass import, or None for a CSS import."""
    args = stmt[1:-1]
    names: list[Token] = []
    expect_name = True
    for tok in args:
        if expect_name and tok.type == TokenType.STRING and not _CSS_IMPORT.search(tok.value):
            names.append(tok)
            expect_name = False
        elif not expect_name and tok.type == TokenType.COMMA:
            expect_name = True
        else:
            return None
    if not names or expect_name:
        return None
    return names
