"""Token types, data structures, and character classification helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    # Variables and names
    VARIABLE = auto()  # $name
    FUNCTION = auto()  # identifier immediately followed by '('
    IDENTIFIER = auto()  # bare word (property names, keywords, selectors)

    # Literals
    STRING = auto()  # quoted literal; value is the unquoted content
    URL = auto()  # unquoted url(...) content

    # Punctuation
    LPAREN = auto()  # (
    RPAREN = auto()  # )
    LBRACE = auto()  # {
    RBRACE = auto()  # }
    INTERP = auto()  # #{
    COLON = auto()  # :
    SEMICOLON = auto()  # ;
    COMMA = auto()  # ,

    # At-rules
    IMPORT = auto()  # @import
    INCLUDE = auto()  # @include
    AT_KEYWORD = auto()  # any other @rule

    COMMENT = auto()  # /* ... */ or // ...
    TEXT = auto()  # anything else: numbers, operators, selectors

    EOF = auto()


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based character offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token with resolved value and original source text."""

    type: TokenType
    value: str
    raw: str
    span: Span

    @property
    def start(self) -> int:
        return self.span.start.offset

    @property
    def end(self) -> int:
        return self.span.end.offset

    def shifted(self, offset: int, lines: int) -> Token:
        """Return a copy moved forward by *offset* characters and *lines* lines.

        Columns are left as-is; they stay relative to the token's own line.
        """
        if not offset and not lines:
            return self
        s, e = self.span.start, self.span.end
        span = Span(
            Position(s.line + lines, s.column, s.offset + offset),
            Position(e.line + lines, e.column, e.offset + offset),
        )
        return Token(self.type, self.value, self.raw, span)


# Characters that end a TEXT run; each starts some other token.
SPECIAL_CHARS = frozenset("{}();:,$@\"'")


def is_ident_start(ch: str) -> bool:
    """Return True if ch may begin an identifier."""
    if not ch:
        return False
    return ch.isalpha() or ch == "_" or ord(ch) > 0x7F


def is_ident_char(ch: str) -> bool:
    """Return True if ch is a valid identifier character."""
    return bool(ch) and (ch.isalnum() or ch in "-_" or ord(ch) > 0x7F)
