"""Registry of the image and sprite functions stylesheets may call.

Helpers are plain Python callables taking the compile context followed by
native argument values (``Number``, ``dict``, ``list``, ``str``, ``bool``,
``None``). The engine bridge marshals to and from the downstream
compiler's value types.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from spritesass.sprite import MISSING

if TYPE_CHECKING:
    from spritesass.context import Context
    from spritesass.sprite import SpriteSheet


@dataclass(frozen=True, slots=True)
class Number:
    """A numeric value with an optional unit."""

    value: float
    unit: str = ""

    def __str__(self) -> str:
        if float(self.value).is_integer():
            return f"{int(self.value)}{self.unit}"
        return f"{self.value}{self.unit}"


class HelperError(Exception):
    """A helper could not produce a value; aborts the compile."""


@dataclass(frozen=True, slots=True)
class HelperWarning:
    """A non-fatal helper result: the warning is reported, *fallback* is used."""

    message: str
    fallback: Any


@dataclass(frozen=True, slots=True)
class HelperDef:
    """One named helper and its declared parameters."""

    name: str
    params: tuple[str, ...]
    fn: Callable[..., Any]

    @property
    def signature(self) -> str:
        return f"{self.name}({', '.join(self.params)})"


class FunctionRegistry:
    """Named helpers available to stylesheets in one compile."""

    def __init__(self, helpers: tuple[HelperDef, ...] | list[HelperDef] = ()) -> None:
        self._helpers: dict[str, HelperDef] = {}
        for helper in helpers:
            self.add(helper)

    def __iter__(self) -> Iterator[HelperDef]:
        return iter(self._helpers.values())

    def __len__(self) -> int:
        return len(self._helpers)

    def __contains__(self, name: object) -> bool:
        return name in self._helpers

    def add(self, helper: HelperDef) -> None:
        self._helpers[helper.name] = helper

    def register(self, name: str, *params: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of ``add``."""

        def wrap(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add(HelperDef(name, params, fn))
            return fn

        return wrap

    def get(self, name: str) -> HelperDef | None:
        return self._helpers.get(name)

    def copy(self) -> FunctionRegistry:
        return FunctionRegistry(list(self._helpers.values()))

    def call(self, name: str, ctx: Context, *args: Any) -> Any:
        helper = self._helpers.get(name)
        if helper is None:
            raise HelperError(f"unknown function {name}()")
        return helper.fn(ctx, *args)


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    if isinstance(value, Number):
        return str(value)
    if isinstance(value, str):
        return value
    raise HelperError(f"expected a string or number, got {value!r}")


def _sheet(ctx: Context, value: Any, fn: str) -> SpriteSheet:
    if not isinstance(value, dict):
        raise HelperError(f"{fn}: first argument must be a sprite map, got {value!r}")
    sheet = ctx.sheet_for(value)
    if sheet is None:
        raise HelperError(f"{fn}: map was not produced by sprite-map()")
    return sheet


def _px(n: int) -> Number:
    return Number(n, "px")


def _missing(sheet: SpriteSheet, name: str, fallback: Any) -> HelperWarning:
    return HelperWarning(f"sprite image not found: {name}; try one of: {sheet}", fallback)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def image_url(ctx: Context, file: Any) -> str:
    rel = os.path.relpath(ctx.image_dir, ctx.build_dir).replace(os.sep, "/")
    return f'url("{rel}/{_text(file)}")'


def sprite(ctx: Context, smap: Any, name: Any) -> Any:
    sheet = _sheet(ctx, smap, "sprite")
    key = _text(name)
    if sheet.lookup(key) == -1:
        return _missing(sheet, key, f'url("{sheet.out_file}") 0px 0px')
    return sheet.css(key)


def sprite_position(ctx: Context, smap: Any, name: Any) -> Any:
    sheet = _sheet(ctx, smap, "sprite-position")
    key = _text(name)
    if sheet.lookup(key) == -1:
        return _missing(sheet, key, "0px 0px")
    return sheet.position(key)


def sprite_width(ctx: Context, smap: Any, name: Any) -> Any:
    sheet = _sheet(ctx, smap, "sprite-width")
    key = _text(name)
    if sheet.lookup(key) == -1:
        return _missing(sheet, key, _px(MISSING))
    return _px(sheet.width_of(key))


def sprite_height(ctx: Context, smap: Any, name: Any) -> Any:
    sheet = _sheet(ctx, smap, "sprite-height")
    key = _text(name)
    if sheet.lookup(key) == -1:
        return _missing(sheet, key, _px(MISSING))
    return _px(sheet.height_of(key))


def sprite_url(ctx: Context, smap: Any) -> str:
    return f'url("{_sheet(ctx, smap, "sprite-url").out_file}")'


def sprite_dimensions(ctx: Context, smap: Any, name: Any) -> Any:
    sheet = _sheet(ctx, smap, "sprite-dimensions")
    key = _text(name)
    if sheet.lookup(key) == -1:
        return _missing(sheet, key, "")
    return sheet.dimensions(key)


def sprite_file(ctx: Context, smap: Any, name: Any) -> Any:
    """Path of one source image of a sheet, usable with image-width()."""
    sheet = _sheet(ctx, smap, "sprite-file")
    key = _text(name)
    pos = sheet.lookup(key)
    if pos == -1:
        return _missing(sheet, key, "")
    return os.path.relpath(sheet.files[pos], ctx.image_dir).replace(os.sep, "/")


def _image_dimension(ctx: Context, fn: str, args: tuple[Any, ...], index: int) -> Any:
    if len(args) == 2:
        # image-width($map, $name) reads through the sheet
        sheet = _sheet(ctx, args[0], fn)
        key = _text(args[1])
        record = sheet.record(key)
        if record is None:
            return _missing(sheet, key, _px(MISSING))
        return _px(int(record["width" if index == 0 else "height"]))
    if len(args) != 1:
        raise HelperError(f"{fn} takes a file or a sprite map and name")
    return _px(ctx.image_size(_text(args[0]))[index])


def image_width(ctx: Context, *args: Any) -> Any:
    return _image_dimension(ctx, "image-width", args, 0)


def image_height(ctx: Context, *args: Any) -> Any:
    return _image_dimension(ctx, "image-height", args, 1)


def inline_image(ctx: Context, file: Any) -> str:
    return ctx.inline_image(_text(file))


DEFAULT_FUNCTIONS: tuple[HelperDef, ...] = (
    HelperDef("image-url", ("$file",), image_url),
    HelperDef("sprite", ("$map", "$name"), sprite),
    HelperDef("sprite-position", ("$map", "$name"), sprite_position),
    HelperDef("sprite-width", ("$map", "$name"), sprite_width),
    HelperDef("sprite-height", ("$map", "$name"), sprite_height),
    HelperDef("sprite-url", ("$map",), sprite_url),
    HelperDef("sprite-dimensions", ("$map", "$name"), sprite_dimensions),
    HelperDef("sprite-file", ("$map", "$name"), sprite_file),
    HelperDef("image-width", ("$args...",), image_width),
    HelperDef("image-height", ("$args...",), image_height),
    HelperDef("inline-image", ("$file",), inline_image),
)


def default_registry() -> FunctionRegistry:
    return FunctionRegistry(DEFAULT_FUNCTIONS)
