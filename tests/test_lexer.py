"""Tests for the stylesheet lexer: token kinds, positions, and lex errors."""

from __future__ import annotations

import pytest

from spritesass.errors import LexError
from spritesass.lexer import Lexer, tokenize
from spritesass.tokens import TokenType

from .conftest import assert_types, assert_values, find_tokens

# ---------------------------------------------------------------------------
# Variables and declarations
# ---------------------------------------------------------------------------


class TestVariables:
    def test_declaration(self, lex):
        tokens = lex("$color: red;")
        assert_types(
            tokens,
            [TokenType.VARIABLE, TokenType.COLON, TokenType.IDENTIFIER, TokenType.SEMICOLON],
        )
        assert tokens[0].value == "$color"

    def test_hyphenated_name(self, lex):
        tokens = lex("$main-color")
        assert_types(tokens, [TokenType.VARIABLE])
        assert tokens[0].value == "$main-color"

    def test_leading_hyphen(self, lex):
        tokens = lex("$-private")
        assert tokens[0].value == "$-private"

    def test_lone_dollar_is_text(self, lex):
        tokens = lex("$ ")
        assert_types(tokens, [TokenType.TEXT])


# ---------------------------------------------------------------------------
# Functions and identifiers
# ---------------------------------------------------------------------------


class TestFunctions:
    def test_function_needs_adjacent_paren(self, lex):
        tokens = lex('sprite-map("*.png")')
        assert_types(
            tokens,
            [TokenType.FUNCTION, TokenType.LPAREN, TokenType.STRING, TokenType.RPAREN],
        )
        assert tokens[0].value == "sprite-map"

    def test_space_before_paren_is_identifier(self, lex):
        tokens = lex("and (")
        assert_types(tokens, [TokenType.IDENTIFIER, TokenType.LPAREN])

    def test_vendor_prefix(self, lex):
        tokens = lex("-webkit-box")
        assert_types(tokens, [TokenType.IDENTIFIER])

    def test_negative_number_is_text(self, lex):
        tokens = lex("-1px")
        assert_types(tokens, [TokenType.TEXT])
        assert tokens[0].value == "-1px"


class TestUrl:
    def test_unquoted_url_read_raw(self, lex):
        tokens = lex("url(http://example.com/a.png)")
        assert_types(
            tokens,
            [TokenType.FUNCTION, TokenType.LPAREN, TokenType.URL, TokenType.RPAREN],
        )
        assert tokens[2].value == "http://example.com/a.png"

    def test_quoted_url(self, lex):
        tokens = lex('url("a.png")')
        assert_types(
            tokens,
            [TokenType.FUNCTION, TokenType.LPAREN, TokenType.STRING, TokenType.RPAREN],
        )

    def test_empty_url(self, lex):
        tokens = lex("url()")
        assert_types(tokens, [TokenType.FUNCTION, TokenType.LPAREN, TokenType.RPAREN])

    def test_unterminated_url(self):
        with pytest.raises(LexError, match="unterminated url"):
            tokenize("url(a.png\n")


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------


class TestStrings:
    def test_double_quoted(self, lex):
        tokens = lex('"a.png"')
        assert_types(tokens, [TokenType.STRING])
        assert tokens[0].value == "a.png"
        assert tokens[0].raw == '"a.png"'

    def test_single_quoted(self, lex):
        tokens = lex("'a.png'")
        assert tokens[0].value == "a.png"

    def test_escaped_quote_kept_in_value(self, lex):
        tokens = lex(r'"a\"b"')
        assert_types(tokens, [TokenType.STRING])
        assert tokens[0].value == r"a\"b"

    def test_interpolation_stays_inside_string(self, lex):
        tokens = lex('"#{$dir}/*.png"')
        assert_types(tokens, [TokenType.STRING])
        assert tokens[0].value == "#{$dir}/*.png"

    def test_unterminated_string(self):
        with pytest.raises(LexError, match="unterminated string") as exc_info:
            tokenize('a "abc')
        assert exc_info.value.position.column == 3

    def test_newline_ends_string(self):
        with pytest.raises(LexError, match="unterminated string"):
            tokenize('"abc\n"')


# ---------------------------------------------------------------------------
# Punctuation, blocks and interpolation
# ---------------------------------------------------------------------------


class TestPunctuation:
    def test_rule(self, lex):
        tokens = lex("a { b: 1px; }")
        assert_types(
            tokens,
            [
                TokenType.IDENTIFIER,
                TokenType.LBRACE,
                TokenType.IDENTIFIER,
                TokenType.COLON,
                TokenType.TEXT,
                TokenType.SEMICOLON,
                TokenType.RBRACE,
            ],
        )

    def test_comma(self, lex):
        tokens = lex('"a", "b"')
        assert_types(tokens, [TokenType.STRING, TokenType.COMMA, TokenType.STRING])

    def test_interpolation(self, lex):
        tokens = lex("#{$x}")
        assert_types(tokens, [TokenType.INTERP, TokenType.VARIABLE, TokenType.RBRACE])

    def test_hex_colour_is_text(self, lex):
        tokens = lex("#fff")
        assert_types(tokens, [TokenType.TEXT])
        assert tokens[0].value == "#fff"

    def test_unterminated_interpolation(self):
        with pytest.raises(LexError, match="unterminated interpolation"):
            tokenize("a-#{$x")


# ---------------------------------------------------------------------------
# At-rules
# ---------------------------------------------------------------------------


class TestAtRules:
    def test_import(self, lex):
        tokens = lex('@import "a";')
        assert_types(tokens, [TokenType.IMPORT, TokenType.STRING, TokenType.SEMICOLON])
        assert tokens[0].value == "@import"

    def test_include(self, lex):
        tokens = lex("@include m;")
        assert tokens[0].type == TokenType.INCLUDE

    def test_other_keyword(self, lex):
        tokens = lex("@mixin m")
        assert_types(tokens, [TokenType.AT_KEYWORD, TokenType.IDENTIFIER])
        assert tokens[0].value == "@mixin"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class TestComments:
    def test_block_comment(self, lex):
        tokens = lex("/* note */ a")
        assert_types(tokens, [TokenType.COMMENT, TokenType.IDENTIFIER])
        assert tokens[0].value == "/* note */"

    def test_line_comment(self, lex):
        tokens = lex("// note\na")
        assert_types(tokens, [TokenType.COMMENT, TokenType.IDENTIFIER])
        assert tokens[0].value == "// note"

    def test_unterminated_block_comment(self):
        with pytest.raises(LexError, match="unterminated comment"):
            tokenize("/* never closed")


# ---------------------------------------------------------------------------
# Positions and stream behaviour
# ---------------------------------------------------------------------------


class TestPositions:
    def test_line_and_column(self, lex):
        tokens = lex("a\n  $b")
        var = find_tokens(tokens, TokenType.VARIABLE)[0]
        assert var.span.start.line == 2
        assert var.span.start.column == 3
        assert var.start == 4
        assert var.end == 6

    def test_eof_is_last(self):
        tokens = tokenize("a b")
        assert tokens[-1].type == TokenType.EOF
        assert tokens[-1].start == 3

    def test_empty_source(self):
        tokens = tokenize("")
        assert_types(tokens, [TokenType.EOF])

    def test_values(self, lex):
        assert_values(lex("$a: b;"), ["$a", ":", "b", ";"])

    def test_stream_is_lazy(self):
        stream = iter(Lexer('a "never closed'))
        assert next(stream).value == "a"
        with pytest.raises(LexError):
            next(stream)

    def test_shifted_moves_offset_and_line(self, lex):
        tok = lex("a")[0]
        moved = tok.shifted(10, 2)
        assert moved.start == 10
        assert moved.span.start.line == 3
        assert moved.span.start.column == tok.span.start.column
        assert tok.shifted(0, 0) is tok
