"""Shared test fixtures and helpers."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from spritesass.cache import BuildCache
from spritesass.lexer import tokenize
from spritesass.tokens import Token, TokenType


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str) -> list[Token]:
        tokens = tokenize(source)
        # Strip trailing EOF for convenience
        return [t for t in tokens if t.type != TokenType.EOF]

    return _lex


def assert_types(tokens: list[Token], expected: list[TokenType]) -> None:
    """Assert that the token types match the expected list."""
    actual = [t.type for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_values(tokens: list[Token], expected: list[str]) -> None:
    """Assert that the token values match the expected list."""
    actual = [t.value for t in tokens]
    assert actual == expected, f"Expected {expected}, got {actual}"


def find_tokens(tokens: list[Token], tt: TokenType) -> list[Token]:
    """Return all tokens of the given type."""
    return [t for t in tokens if t.type == tt]


def make_png(path: Path, width: int, height: int, color=(255, 0, 0, 255)) -> Path:
    """Write a solid-colour RGBA PNG, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", (width, height), color).save(path, format="PNG")
    return path


@pytest.fixture
def cache() -> BuildCache:
    """A private build cache so tests never share imported files."""
    return BuildCache()


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    """Image directory holding the three-image set used across sprite tests.

    ``sprites/139.png`` 96x139, ``sprites/140.png`` 96x140,
    ``sprites/pixel.png`` 1x1 in sorted glob order.
    """
    img = tmp_path / "img"
    make_png(img / "sprites" / "139.png", 96, 139, (255, 0, 0, 255))
    make_png(img / "sprites" / "140.png", 96, 140, (0, 255, 0, 255))
    make_png(img / "sprites" / "pixel.png", 1, 1, (0, 0, 255, 255))
    return img


@pytest.fixture
def write_files(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Return a helper that writes {relative path: text} under tmp_path."""

    def _write(files: dict[str, str]) -> Path:
        for name, text in files.items():
            path = tmp_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return tmp_path

    return _write
