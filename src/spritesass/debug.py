"""--debug dump of the final token stream and line provenance to stderr."""

from __future__ import annotations

import sys
from typing import TextIO

from spritesass.provenance import ProvenanceTable
from spritesass.tokens import Token, TokenType


def dump_tokens(tokens: list[Token], *, file: TextIO | None = None) -> None:
    """Print one line per token: position, type, and value."""
    out = file or sys.stderr
    out.write("Tokens\n")
    for tok in tokens:
        pos = tok.span.start
        value = "" if tok.type == TokenType.EOF else f" {tok.value!r}"
        out.write(f"  {pos.line}:{pos.column} @{pos.offset} {tok.type.name}{value}\n")


def dump_provenance(table: ProvenanceTable, *, file: TextIO | None = None) -> None:
    """Print each provenance segment as ``start -> file:line``."""
    out = file or sys.stderr
    out.write("Provenance\n")
    for seg in table:
        out.write(f"  {seg.start} -> {seg.file}:{seg.first_line}\n")
