"""Error types with formatted source context."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from spritesass.tokens import Position, Span


class PreprocessError(Exception):
    """Base class for every error that aborts a compile."""


def _context_block(
    message: str,
    source: str,
    line: int,
    col: int,
    underline_len: int | None,
    location: str,
) -> str:
    lines = source.splitlines(keepends=True)
    line_idx = line - 1

    # Build the source line (strip trailing newline for display)
    if 0 <= line_idx < len(lines):
        source_line = lines[line_idx].rstrip("\n").rstrip("\r")
    else:
        source_line = ""

    if underline_len is None:
        underline_len = max(1, min(2, len(source_line) - col + 1))

    pad = " " * (col - 1)
    carets = "^" * underline_len

    line_num = str(line)
    gutter_width = len(line_num) + 1

    blank_gutter = " " * gutter_width + "|"
    line_gutter = f"{line_num:>{gutter_width - 1}} |"

    return (
        f"error: {message}\n"
        f"{' ' * gutter_width}--> {location}\n"
        f"{blank_gutter}\n"
        f"{line_gutter} {source_line}\n"
        f"{blank_gutter} {pad}{carets}"
    )


class LexError(PreprocessError):
    """Raised on the first lexing error, with position and source context."""

    def __init__(
        self,
        message: str,
        position: Position,
        source: str,
        filename: str = "string",
    ) -> None:
        self.message = message
        self.position = position
        self.source = source
        self.filename = filename
        # Original file:line when the source is a flattened buffer
        self.origin: tuple[str, int] | None = None
        super().__init__(message)

    def __str__(self) -> str:
        return self.format()

    def format(self, filename: str | None = None) -> str:
        col = self.position.column
        if self.origin is not None:
            location = f"{self.origin[0]}:{self.origin[1]}:{col}"
        else:
            location = f"{filename or self.filename}:{self.position.line}:{col}"
        return _context_block(
            self.message, self.source, self.position.line, col, None, location
        )


class ParseError(PreprocessError):
    """Raised on the first syntax error, with span and source context."""

    def __init__(
        self,
        message: str,
        span: Span,
        source: str,
        *,
        expected: str | None = None,
        found: str | None = None,
        filename: str = "string",
    ) -> None:
        self.message = message
        self.span = span
        self.source = source
        self.expected = expected
        self.found = found
        self.filename = filename
        self.origin: tuple[str, int] | None = None
        super().__init__(message)

    def __str__(self) -> str:
        return self.format()

    def format(self, filename: str | None = None) -> str:
        col = self.span.start.column
        # Underline the full span when on one line, otherwise to end of line
        if self.span.end.line == self.span.start.line:
            underline_len = max(1, self.span.end.column - col)
        else:
            underline_len = None
        if self.origin is not None:
            location = f"{self.origin[0]}:{self.origin[1]}:{col}"
        else:
            location = f"{filename or self.filename}:{self.span.start.line}:{col}"
        return _context_block(
            self.message, self.source, self.span.start.line, col, underline_len, location
        )


class ImportNotFound(PreprocessError):
    """No candidate file exists for an @import name."""

    def __init__(
        self,
        name: str,
        candidates: list[Path],
        importer: str = "string",
        span: Span | None = None,
    ) -> None:
        self.name = name
        self.candidates = list(candidates)
        self.importer = importer
        self.span = span
        tried = "".join(f"\n  {c}" for c in self.candidates)
        super().__init__(f"could not import '{name}' from {importer}\ntried:{tried}")


class ImageDecodeError(PreprocessError):
    """An image matched by a sprite glob could not be read or decoded."""

    def __init__(self, path: str | Path, cause: object) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"cannot decode image {self.path}: {cause}")


class ImageExportError(PreprocessError):
    """A combined sprite sheet could not be written to disk."""

    def __init__(self, path: str | Path, cause: object) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"cannot write sprite sheet {self.path}: {cause}")


class EngineError(PreprocessError):
    """The downstream stylesheet compiler rejected the rewritten source."""

    def __init__(
        self,
        message: str,
        file: str | None,
        line: int | None,
        backtrace: list[str] | None = None,
    ) -> None:
        self.message = message
        self.file = file
        self.line = line
        self.backtrace = backtrace or []
        super().__init__(message)

    def __str__(self) -> str:
        return self.format()

    def format(self) -> str:
        result = f"error: {self.message}"
        if self.file is not None:
            where = self.file if self.line is None else f"{self.file}:{self.line}"
            result += f"\n  --> {where}"
        if self.backtrace:
            result += "\nbacktrace:" + "".join(f"\n\t{b}" for b in self.backtrace)
        return result


@dataclass(frozen=True, slots=True)
class EngineWarning:
    """A non-fatal problem reported while the downstream compiler ran."""

    message: str
    file: str | None = None
    line: int | None = None
    backtrace: tuple[str, ...] = field(default=())

    def format(self) -> str:
        if self.file is None:
            return f"WARNING: {self.message}"
        where = self.file if self.line is None else f"{self.file}:{self.line}"
        return f"WARNING: {self.message}\n  --> {where}"
