"""Bridge to the downstream stylesheet compiler (libsass).

Runs the rewritten text through ``sass.compile``, exposes the helper
registry as custom functions, and maps engine error locations back to the
files they came from.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import sass

from spritesass.errors import EngineError, EngineWarning
from spritesass.functions import FunctionRegistry, HelperDef, HelperError, HelperWarning, Number
from spritesass.provenance import ProvenanceTable

if TYPE_CHECKING:
    from spritesass.context import Context

logger = logging.getLogger(__name__)

# Lines the engine sees before the first line of the flattened buffer
PRELUDE_LINES = 1

_LOCATION = re.compile(r"\b(on|from) line (\d+)(?::(\d+))? of ([^\s,]+)")
_STDIN = "stdin"


# ---------------------------------------------------------------------------
# Value marshaling
# ---------------------------------------------------------------------------


def to_native(value: Any) -> Any:
    """Convert a libsass value into the helper value model."""
    if isinstance(value, sass.SassNumber):
        return Number(value.value, value.unit)
    if isinstance(value, sass.SassMap):
        return {to_native(k): to_native(v) for k, v in value.items()}
    if isinstance(value, sass.SassList):
        return [to_native(v) for v in value.items]
    if isinstance(value, sass.SassColor):
        return f"rgba({value.r:g}, {value.g:g}, {value.b:g}, {value.a:g})"
    return value


def to_sass(value: Any) -> Any:
    """Convert a helper result into a libsass value."""
    if isinstance(value, Number):
        return sass.SassNumber(value.value, value.unit)
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return sass.SassNumber(value, "")
    if isinstance(value, dict):
        return sass.SassMap((to_sass(k), to_sass(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return sass.SassList([to_sass(v) for v in value], sass.SASS_SEPARATOR_COMMA)
    raise TypeError(f"cannot pass {type(value).__name__} to the stylesheet compiler")


# Where a helper warning happened: (file, line), line None when unknown
Locator = Callable[[str, list[Any]], tuple[str, int | None]]


def call_site(text: str, name: str, args: list[Any]) -> int | None:
    """1-based line of the first call to *name* whose line mentions every scalar argument.

    libsass does not tell a custom function where it was called from, so the
    call is found textually. Maps and lists are not used to narrow the search.
    """
    needle = f"{name}("
    hints = [str(a) for a in args if isinstance(a, (str, Number))]
    for number, line in enumerate(text.split("\n"), 1):
        if needle in line and all(h in line for h in hints):
            return number
    return None


def _bridge(
    helper: HelperDef,
    ctx: Context,
    warnings: list[EngineWarning],
    locate: Locator,
) -> Callable[..., Any]:
    variadic = bool(helper.params) and helper.params[-1].endswith("...")

    def call(*args: Any) -> Any:
        native = [to_native(a) for a in args]
        if variadic and native and isinstance(native[-1], list):
            native = native[:-1] + native[-1]
        try:
            result = helper.fn(ctx, *native)
        except HelperError as exc:
            return sass.SassError(f"{helper.name}: {exc}")
        if isinstance(result, HelperWarning):
            logger.warning("%s: %s", helper.name, result.message)
            file, line = locate(helper.name, native)
            warnings.append(EngineWarning(f"{helper.name}: {result.message}", file, line))
            result = result.fallback
        return to_sass(result)

    return call


def custom_functions(
    registry: FunctionRegistry,
    ctx: Context,
    warnings: list[EngineWarning],
    text: str = "",
    provenance: ProvenanceTable | None = None,
) -> list[sass.SassFunction]:
    def locate(name: str, args: list[Any]) -> tuple[str, int | None]:
        line = call_site(text, name, args)
        if line is None or provenance is None:
            return ctx.main_file, None
        return engine_line_origin(line, provenance)

    return [
        sass.SassFunction(helper.name, helper.params, _bridge(helper, ctx, warnings, locate))
        for helper in registry
    ]


# ---------------------------------------------------------------------------
# Error remapping
# ---------------------------------------------------------------------------


def engine_line_origin(line: int, provenance: ProvenanceTable) -> tuple[str, int]:
    """Map a 1-based engine line to (file, line) through the provenance table."""
    return provenance.lookup(line - 1 - PRELUDE_LINES)


def remap_error(message: str, provenance: ProvenanceTable) -> EngineError:
    """Build an EngineError from libsass error text, with locations remapped."""
    lines = message.strip().splitlines()
    summary = lines[0] if lines else "stylesheet compile failed"
    if summary.startswith("Error: "):
        summary = summary[len("Error: ") :]

    file: str | None = None
    line: int | None = None
    backtrace: list[str] = []
    for text in lines[1:]:
        m = _LOCATION.search(text)
        if m is None:
            continue
        where, num, _col, src = m.groups()
        if src == _STDIN:
            origin_file, origin_line = engine_line_origin(int(num), provenance)
        else:
            origin_file, origin_line = src, int(num)
        if where == "on" and file is None:
            file, line = origin_file, origin_line
        else:
            backtrace.append(f"{origin_file}:{origin_line}")
    return EngineError(summary, file, line, backtrace)


# ---------------------------------------------------------------------------
# Compile
# ---------------------------------------------------------------------------


def compile_css(
    text: str,
    ctx: Context,
    registry: FunctionRegistry,
    provenance: ProvenanceTable,
) -> tuple[str, list[EngineWarning]]:
    """Compile rewritten text to CSS. Returns the CSS and any helper warnings."""
    warnings: list[EngineWarning] = []
    try:
        css = sass.compile(
            string=text,
            output_style=ctx.output_style,
            precision=ctx.precision,
            source_comments=ctx.source_comments,
            include_paths=[str(p) for p in ctx.include_paths],
            custom_functions=custom_functions(registry, ctx, warnings, text, provenance),
        )
    except sass.CompileError as exc:
        raise remap_error(str(exc), provenance) from exc
    return css, warnings
