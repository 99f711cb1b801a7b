"""Sass preprocessor that packs sprite sheets and hands the result to libsass."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spritesass.context import CompileResult

__version__ = "0.1.0"


def preprocess(source: str, pkgdir: str | Path = ".", filename: str = "string") -> str:
    """Expand imports and sprite directives, returning Sass for the downstream compiler."""
    from spritesass.context import Context

    return Context(main_file=filename).preprocess(source, pkgdir)


def compile(source: str, pkgdir: str | Path = ".", filename: str = "string") -> CompileResult:
    """Preprocess and compile Sass source to CSS."""
    from spritesass.context import Context

    return Context(main_file=filename).compile(source, pkgdir)
