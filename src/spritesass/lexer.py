"""Stylesheet lexer: converts source text into a lazy stream of positioned tokens."""

from __future__ import annotations

from collections.abc import Iterator

from spritesass.errors import LexError
from spritesass.tokens import (
    SPECIAL_CHARS,
    Position,
    Span,
    Token,
    TokenType,
    is_ident_char,
    is_ident_start,
)

_PUNCTUATION = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ":": TokenType.COLON,
    ";": TokenType.SEMICOLON,
    ",": TokenType.COMMA,
}

_AT_RULES = {
    "import": TokenType.IMPORT,
    "include": TokenType.INCLUDE,
}


class Lexer:
    """Tokenize stylesheet source text.

    Iterating a Lexer produces tokens on demand; the stream ends with a single
    EOF token and cannot be restarted.
    """

    def __init__(self, source: str, filename: str = "string") -> None:
        self._source = source
        self._filename = filename
        self._pos = 0
        self._line = 1
        self._col = 1
        # Open braces: (is_interpolation, start position)
        self._braces: list[tuple[bool, Position]] = []

    def __iter__(self) -> Iterator[Token]:
        while True:
            self._skip_ws()
            if self._pos >= len(self._source):
                break
            yield from self._lex_token()

        for is_interp, start in self._braces:
            if is_interp:
                raise self._error("unterminated interpolation", start)

        pos = self._current_pos()
        yield Token(TokenType.EOF, "", "", Span(pos, pos))

    def tokenize(self) -> list[Token]:
        """Tokenize the full source and return the token list."""
        return list(self)

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _current_pos(self) -> Position:
        return Position(self._line, self._col, self._pos)

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _advance(self) -> str:
        ch = self._source[self._pos]
        self._pos += 1
        if ch == "\n":
            self._line += 1
            self._col = 1
        else:
            self._col += 1
        return ch

    def _make(self, tt: TokenType, value: str, start: Position) -> Token:
        raw = self._source[start.offset : self._pos]
        return Token(tt, value, raw, Span(start, self._current_pos()))

    def _error(self, message: str, pos: Position | None = None) -> LexError:
        if pos is None:
            pos = self._current_pos()
        return LexError(message, pos, self._source, self._filename)

    def _skip_ws(self) -> None:
        while self._pos < len(self._source) and self._peek() in " \t\r\n\f":
            self._advance()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _lex_token(self) -> Iterator[Token]:
        ch = self._peek()
        start = self._current_pos()

        if ch == "/" and self._peek(1) == "*":
            yield self._lex_block_comment()
            return

        if ch == "/" and self._peek(1) == "/":
            yield self._lex_line_comment()
            return

        if ch in "\"'":
            yield self._lex_string()
            return

        if ch == "#" and self._peek(1) == "{":
            self._advance()
            self._advance()
            self._braces.append((True, start))
            yield self._make(TokenType.INTERP, "#{", start)
            return

        if ch == "}":
            self._advance()
            if self._braces:
                self._braces.pop()
            yield self._make(TokenType.RBRACE, "}", start)
            return

        if ch == "{":
            self._advance()
            self._braces.append((False, start))
            yield self._make(TokenType.LBRACE, "{", start)
            return

        if ch in _PUNCTUATION:
            self._advance()
            yield self._make(_PUNCTUATION[ch], ch, start)
            return

        if ch == "$" and (is_ident_start(self._peek(1)) or self._peek(1) == "-"):
            self._advance()
            self._read_ident()
            yield self._make(TokenType.VARIABLE, self._source[start.offset : self._pos], start)
            return

        if ch == "@" and is_ident_start(self._peek(1)):
            self._advance()
            name = self._read_ident()
            tt = _AT_RULES.get(name.lower(), TokenType.AT_KEYWORD)
            yield self._make(tt, "@" + name, start)
            return

        if is_ident_start(ch) or (
            ch == "-" and (is_ident_start(self._peek(1)) or self._peek(1) == "-")
        ):
            yield from self._lex_identifier()
            return

        yield self._lex_text()

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def _lex_block_comment(self) -> Token:
        start = self._current_pos()
        self._advance()
        self._advance()
        while self._pos < len(self._source):
            if self._peek() == "*" and self._peek(1) == "/":
                self._advance()
                self._advance()
                raw = self._source[start.offset : self._pos]
                return self._make(TokenType.COMMENT, raw, start)
            self._advance()
        raise self._error("unterminated comment", start)

    def _lex_line_comment(self) -> Token:
        start = self._current_pos()
        while self._pos < len(self._source) and self._peek() not in "\r\n":
            self._advance()
        return self._make(TokenType.COMMENT, self._source[start.offset : self._pos], start)

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def _lex_string(self) -> Token:
        start = self._current_pos()
        self._scan_string(start)
        value = self._source[start.offset + 1 : self._pos - 1]
        return self._make(TokenType.STRING, value, start)

    def _scan_string(self, start: Position) -> None:
        """Consume a quoted string, including any #{...} it contains."""
        quote = self._advance()
        while self._pos < len(self._source):
            ch = self._peek()
            if ch == quote:
                self._advance()
                return
            if ch == "\\":
                self._advance()
                if self._pos < len(self._source):
                    self._advance()
                continue
            if ch == "\n":
                break
            if ch == "#" and self._peek(1) == "{":
                self._scan_interpolation()
                continue
            self._advance()
        raise self._error("unterminated string", start)

    def _scan_interpolation(self) -> None:
        start = self._current_pos()
        self._advance()
        self._advance()
        depth = 1
        while self._pos < len(self._source):
            ch = self._peek()
            if ch in "\"'":
                self._scan_string(self._current_pos())
                continue
            self._advance()
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return
        raise self._error("unterminated interpolation", start)

    # ------------------------------------------------------------------
    # Identifiers and function names
    # ------------------------------------------------------------------

    def _read_ident(self) -> str:
        begin = self._pos
        while self._pos < len(self._source) and is_ident_char(self._peek()):
            self._advance()
        return self._source[begin : self._pos]

    def _lex_identifier(self) -> Iterator[Token]:
        start = self._current_pos()
        name = self._read_ident()
        if self._peek() != "(":
            yield self._make(TokenType.IDENTIFIER, name, start)
            return

        yield self._make(TokenType.FUNCTION, name, start)
        if name.lower() != "url":
            return

        # url( with an unquoted argument is read raw up to the closing paren,
        # so '//' inside it is not taken for a comment.
        paren = self._current_pos()
        self._advance()
        yield self._make(TokenType.LPAREN, "(", paren)
        self._skip_ws()
        if self._peek() in "\"'" or self._peek() == ")":
            return
        url_start = self._current_pos()
        while self._pos < len(self._source) and self._peek() != ")":
            if self._peek() == "\n":
                break
            self._advance()
        if self._peek() != ")":
            raise self._error("unterminated url()", url_start)
        value = self._source[url_start.offset : self._pos].rstrip()
        yield self._make(TokenType.URL, value, url_start)

    # ------------------------------------------------------------------
    # Everything else
    # ------------------------------------------------------------------

    def _lex_text(self) -> Token:
        start = self._current_pos()
        while self._pos < len(self._source):
            ch = self._peek()
            if ch in SPECIAL_CHARS or ch in " \t\r\n\f" or ch in "{}":
                break
            if ch == "#" and self._peek(1) == "{":
                break
            if ch == "/" and self._peek(1) in "*/":
                break
            self._advance()
        if self._pos == start.offset:
            # Lone character that no other rule claimed (e.g. '$' or '@')
            self._advance()
        return self._make(TokenType.TEXT, self._source[start.offset : self._pos], start)


def tokenize(source: str, filename: str = "string") -> list[Token]:
    """Convenience function: tokenize source text and return token list."""
    return Lexer(source, filename).tokenize()
