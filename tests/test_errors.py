"""Tests for error formatting and the error hierarchy."""

from __future__ import annotations

from pathlib import Path

import pytest

from spritesass.errors import (
    EngineError,
    EngineWarning,
    ImageDecodeError,
    ImageExportError,
    ImportNotFound,
    LexError,
    ParseError,
    PreprocessError,
)
from spritesass.lexer import tokenize
from spritesass.tokens import Position, Span


class TestLexErrorFormat:
    def test_context_block(self) -> None:
        with pytest.raises(LexError) as exc_info:
            tokenize('a "abc')
        text = str(exc_info.value)
        assert text.startswith("error: unterminated string")
        assert "--> string:1:3" in text
        assert '1 | a "abc' in text
        assert "^^" in text

    def test_filename_override(self) -> None:
        with pytest.raises(LexError) as exc_info:
            tokenize('"abc', "main.scss")
        assert "--> main.scss:1:1" in str(exc_info.value)
        assert "--> other.scss:1:1" in exc_info.value.format("other.scss")

    def test_origin_replaces_location(self) -> None:
        with pytest.raises(LexError) as exc_info:
            tokenize('"abc')
        exc = exc_info.value
        exc.origin = ("_partial", 7)
        assert "--> _partial:7:1" in str(exc)


class TestParseErrorFormat:
    def _span(self) -> Span:
        return Span(Position(2, 4, 10), Position(2, 7, 13))

    def test_underlines_span(self) -> None:
        exc = ParseError("expected ':'", self._span(), "a\n$x red;\n", expected=":", found="red")
        text = str(exc)
        assert text.startswith("error: expected ':'")
        assert "--> string:2:4" in text
        assert "2 | $x red;" in text
        assert "   ^^^" in text
        assert exc.expected == ":"
        assert exc.found == "red"

    def test_origin(self) -> None:
        exc = ParseError("bad", self._span(), "a\n$x red;\n", filename="main.scss")
        exc.origin = ("_a", 12)
        assert "--> _a:12:4" in str(exc)


class TestOtherErrors:
    def test_import_not_found_lists_candidates(self) -> None:
        exc = ImportNotFound("nav", [Path("/s/_nav.scss"), Path("/s/nav.scss")], "main.scss")
        text = str(exc)
        assert "could not import 'nav' from main.scss" in text
        assert "\n  /s/_nav.scss" in text
        assert "\n  /s/nav.scss" in text
        assert exc.candidates == [Path("/s/_nav.scss"), Path("/s/nav.scss")]

    def test_image_errors(self) -> None:
        assert "cannot decode image a.png: broken" in str(ImageDecodeError("a.png", "broken"))
        assert "cannot write sprite sheet out.png" in str(ImageExportError("out.png", "denied"))

    def test_engine_error_format(self) -> None:
        exc = EngineError("Undefined variable", "_a", 3, ["main.scss:1"])
        assert exc.format() == (
            "error: Undefined variable\n  --> _a:3\nbacktrace:\n\tmain.scss:1"
        )

    def test_engine_error_without_location(self) -> None:
        assert str(EngineError("boom", None, None)) == "error: boom"

    def test_engine_warning_format(self) -> None:
        warning = EngineWarning("sprite missing", "main.scss")
        assert warning.format() == "WARNING: sprite missing\n  --> main.scss"
        assert EngineWarning("x").format() == "WARNING: x"

    @pytest.mark.parametrize(
        "exc",
        [
            ImportNotFound("a", []),
            ImageDecodeError("a", "b"),
            ImageExportError("a", "b"),
            EngineError("a", None, None),
        ],
    )
    def test_common_base(self, exc: Exception) -> None:
        assert isinstance(exc, PreprocessError)
