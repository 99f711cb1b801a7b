"""Directive parser. Finds sprite-map calls and literal variables, schedules rewrites.

Only two statement shapes are understood: ``$var: <value>;`` and
``$var: sprite-map(...);``. Everything else (rules, mixins, control
directives) is stepped over and left byte-for-byte for the downstream
compiler.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from spritesass.errors import ParseError
from spritesass.provenance import ProvenanceTable
from spritesass.sprite import SpriteSheet
from spritesass.tokens import Token, TokenType

SPRITE_MAP = "sprite-map"

_OPENERS = {
    TokenType.LPAREN: TokenType.RPAREN,
    TokenType.LBRACE: TokenType.RBRACE,
    TokenType.INTERP: TokenType.RBRACE,
}
_CLOSERS = frozenset(_OPENERS.values())

# Scopes whose variables may shadow globals: parameters, loop variables,
# and @while counters that change on every pass
_PARAMETRIC = frozenset({"@mixin", "@function", "@each", "@for", "@while"})

_FLAGS = re.compile(r"(?:\s*!(?:default|global))+\s*$")
_STRING_INTERP = re.compile(r"#\{\s*(\$[\w-]+)\s*\}")

# (globs, vertical) -> new sheet
SpriteFactory = Callable[[list[str], bool], SpriteSheet]


@dataclass(frozen=True, slots=True)
class Replacement:
    """Replace source[start:end] with text."""

    start: int
    end: int
    text: str


@dataclass
class ParseState:
    """What one compile learned about its source."""

    provenance: ProvenanceTable
    variables: dict[str, str] = field(default_factory=dict)
    sprites: dict[str, SpriteSheet] = field(default_factory=dict)
    # Sheets by their sprite-map arguments, so repeats reuse one sheet
    sheets: dict[tuple[tuple[str, ...], bool], SpriteSheet] = field(default_factory=dict)

    def literal(self, name: str) -> str | None:
        """A stored value usable as plain text, unquoted; None if not literal."""
        value = self.variables.get(name)
        if value is None or "$" in value or "(" in value or "#{" in value:
            return None
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            return value[1:-1]
        return value


def match_delimiter(tokens: Sequence[Token], index: int, source: str = "") -> tuple[int, int]:
    """Find the close matching the opener at *index*.

    Parentheses, blocks and interpolations all count as openers. Returns the
    index just past the matching close and the index of the first opener
    nested inside (0 if there is none).
    """
    if tokens[index].type not in _OPENERS:
        tok = tokens[index]
        raise ParseError(
            f"expected '(' or '#{{', found '{tok.raw}'",
            tok.span,
            source,
            expected="(",
            found=tok.raw,
        )

    stack = [tokens[index]]
    nested = 0
    pos = index + 1
    while stack:
        if pos >= len(tokens) or tokens[pos].type == TokenType.EOF:
            opener = stack[-1]
            raise ParseError(
                f"unclosed '{opener.raw}'",
                opener.span,
                source,
                expected=_OPENERS[opener.type].name.lower(),
                found="end of input",
            )
        tok = tokens[pos]
        if tok.type in _OPENERS:
            if not nested:
                nested = pos
            stack.append(tok)
        elif tok.type in _CLOSERS:
            want = _OPENERS[stack[-1].type]
            if tok.type != want:
                raise ParseError(
                    f"unbalanced '{tok.raw}'", tok.span, source, expected=want.name.lower(), found=tok.raw
                )
            stack.pop()
        pos += 1
    return pos, nested


def apply_replacements(source: str, replacements: Sequence[Replacement]) -> str:
    """Apply non-overlapping replacements in position order."""
    parts: list[str] = []
    pos = 0
    for rep in sorted(replacements, key=lambda r: r.start):
        if rep.start < pos:
            raise ValueError(f"overlapping replacement at offset {rep.start}")
        parts.append(source[pos : rep.start])
        parts.append(rep.text)
        pos = rep.end
    parts.append(source[pos:])
    return "".join(parts)


class Parser:
    """Single left-to-right pass over the final token stream.

    Holds an explicit cursor into an immutable token buffer; statements are
    handled in an iterative loop.
    """

    def __init__(
        self,
        tokens: Sequence[Token],
        source: str,
        state: ParseState,
        sprite_factory: SpriteFactory,
        filename: str = "string",
        export: bool = True,
    ) -> None:
        self._tokens = tuple(tokens)
        self._source = source
        self._state = state
        self._sprite_factory = sprite_factory
        self._filename = filename
        self._export = export
        self._pos = 0
        self._replacements: list[Replacement] = []

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]  # EOF

    def _at_eof(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.type != TokenType.EOF:
            self._pos += 1
        return tok

    def _error(self, message: str, tok: Token, expected: str | None = None) -> ParseError:
        found = tok.raw if tok.type != TokenType.EOF else "end of input"
        return ParseError(
            message,
            tok.span,
            self._source,
            expected=expected,
            found=found,
            filename=self._filename,
        )

    # ------------------------------------------------------------------
    # Statement loop
    # ------------------------------------------------------------------

    def parse(self) -> list[Replacement]:
        """Walk every token and return the scheduled replacements."""
        # One entry per open block: True when inside a mixin, function or loop
        blocks: list[bool] = []
        pending_parametric = False
        paren_depth = 0
        statement_start = True

        while not self._at_eof():
            tok = self._peek()

            if tok.type == TokenType.VARIABLE and statement_start and paren_depth == 0:
                parametric = bool(blocks) and blocks[-1]
                self._parse_declaration(store=not parametric)
                continue

            if tok.type == TokenType.INTERP:
                self._interpolate(bool(blocks) and blocks[-1])
                statement_start = False
                continue

            self._advance()
            if tok.type == TokenType.LBRACE:
                blocks.append(pending_parametric or (bool(blocks) and blocks[-1]))
                pending_parametric = False
                paren_depth = 0
                statement_start = True
            elif tok.type == TokenType.RBRACE:
                if blocks:
                    blocks.pop()
                statement_start = True
            elif tok.type == TokenType.LPAREN:
                paren_depth += 1
            elif tok.type == TokenType.RPAREN:
                paren_depth = max(0, paren_depth - 1)
            elif tok.type == TokenType.SEMICOLON:
                pending_parametric = False
                statement_start = paren_depth == 0
            elif tok.type == TokenType.COMMENT:
                pass
            else:
                if tok.type == TokenType.AT_KEYWORD and tok.value in _PARAMETRIC:
                    pending_parametric = True
                statement_start = False

        return self._replacements

    def _statement_end(self, start: int) -> int:
        """Index of the token ending the value that begins at *start*.

        That is a top-level ';', a '}' closing the enclosing block, or EOF.
        """
        pos = start
        while True:
            tok = self._tokens[pos]
            if tok.type in (TokenType.SEMICOLON, TokenType.RBRACE, TokenType.EOF):
                return pos
            if tok.type in _OPENERS:
                pos, _ = match_delimiter(self._tokens, pos, self._source)
                continue
            if tok.type == TokenType.RPAREN:
                raise self._error("unbalanced ')'", tok)
            pos += 1

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _parse_declaration(self, store: bool) -> None:
        var = self._advance()
        if self._peek().type != TokenType.COLON:
            raise self._error(
                f"expected ':' after variable {var.value}", self._peek(), expected=":"
            )
        self._advance()

        start = self._pos
        end = self._statement_end(start)
        terminator = self._tokens[end]

        first = self._tokens[start]
        if first.type == TokenType.FUNCTION and first.value == SPRITE_MAP:
            self._sprite_map(var, start, end)
        elif store and end > start:
            last = self._tokens[end - 1]
            value = _FLAGS.sub("", self._source[first.start : last.end]).strip()
            if value and value != "()":
                self._state.variables[var.value] = value
        elif not store:
            # May reassign a global (@while counters); its literal is no longer known
            self._state.variables.pop(var.value, None)

        self._pos = end
        if terminator.type == TokenType.SEMICOLON:
            self._advance()

    def _interpolate(self, parametric: bool) -> None:
        """Substitute ``#{$var}`` when $var holds a literal value."""
        index = self._pos
        end, nested = match_delimiter(self._tokens, index, self._source)
        self._pos = end
        if parametric or nested or end - index != 3:
            return
        inner = self._tokens[index + 1]
        if inner.type != TokenType.VARIABLE:
            return
        value = self._state.literal(inner.value)
        if value is not None:
            close = self._tokens[end - 1]
            self._replacements.append(Replacement(self._tokens[index].start, close.end, value))

    # ------------------------------------------------------------------
    # sprite-map(...)
    # ------------------------------------------------------------------

    def _sprite_map(self, var: Token, start: int, end: int) -> None:
        call = self._tokens[start]
        close, nested = match_delimiter(self._tokens, start + 1, self._source)
        if close != end:
            raise self._error(
                "expected ';' after sprite-map(...)", self._tokens[close], expected=";"
            )

        globs: list[str] = []
        vertical = True
        for group in _split_args(self._tokens[start + 2 : close - 1]):
            if len(group) >= 2 and group[0].type == TokenType.VARIABLE and group[1].type == TokenType.COLON:
                key = group[0].value
                if key in ("$layout", "$direction"):
                    vertical = self._layout(group[2:], group[0])
                continue
            value = self._resolve_arg(group, nested)
            if value is not None:
                globs.append(value)

        if not globs:
            raise self._error("sprite-map expects at least one glob string", call)

        key = (tuple(globs), vertical)
        sheet = self._state.sheets.get(key)
        if sheet is None:
            sheet = self._sprite_factory(globs, vertical)
            sheet.combine()
            self._state.sheets[key] = sheet
        self._state.sprites[var.value] = sheet

        terminator = self._tokens[end]
        stop = terminator.end if terminator.type == TokenType.SEMICOLON else self._tokens[end - 1].end
        text = sheet.render_map(var.value)
        if terminator.type != TokenType.SEMICOLON:
            text = text[:-1]
        # Keep the line count so provenance still lines up downstream
        text += "\n" * self._source.count("\n", call.start, stop)
        self._replacements.append(Replacement(call.start, stop, text))
        if self._export:
            sheet.export()

    def _layout(self, group: list[Token], key: Token) -> bool:
        words = [t.value for t in group if t.type in (TokenType.IDENTIFIER, TokenType.STRING)]
        if words == ["horizontal"]:
            return False
        if words == ["vertical"]:
            return True
        raise self._error(
            f"{key.value} must be 'vertical' or 'horizontal'", group[0] if group else key
        )

    def _resolve_arg(self, group: list[Token], nested: int) -> str | None:
        """Evaluate one positional argument to a glob string, if it is one."""
        if len(group) != 1:
            if nested and any(t.type in _OPENERS for t in group):
                raise self._error(
                    "cannot evaluate nested expression in sprite-map argument",
                    next(t for t in group if t.type in _OPENERS),
                )
            return None

        tok = group[0]
        if tok.type == TokenType.STRING:
            return _STRING_INTERP.sub(lambda m: self._variable(m.group(1), tok), tok.value)
        if tok.type == TokenType.VARIABLE:
            return self._variable(tok.value, tok)
        return None

    def _variable(self, name: str, tok: Token) -> str:
        value = self._state.literal(name)
        if value is None:
            raise self._error(f"undefined variable {name} in sprite-map argument", tok)
        return value


def _split_args(tokens: Sequence[Token]) -> list[list[Token]]:
    """Split call arguments on top-level commas."""
    groups: list[list[Token]] = [[]]
    depth = 0
    for tok in tokens:
        if tok.type in _OPENERS:
            depth += 1
        elif tok.type in _CLOSERS:
            depth -= 1
        elif tok.type == TokenType.COMMA and depth == 0:
            groups.append([])
            continue
        if tok.type != TokenType.COMMENT:
            groups[-1].append(tok)
    return [g for g in groups if g]
