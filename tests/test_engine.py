"""Tests for the libsass bridge: value marshaling, error remapping, and compiles."""

from __future__ import annotations

from pathlib import Path

import pytest
import sass

from spritesass.context import Context
from spritesass.engine import call_site, engine_line_origin, remap_error, to_native, to_sass
from spritesass.errors import EngineError
from spritesass.functions import HelperDef, HelperError, Number
from spritesass.provenance import ProvenanceTable


def _table() -> ProvenanceTable:
    table = ProvenanceTable("main.scss")
    table.mark(1, "_a", 1)
    table.mark(4, "main.scss", 2)
    return table


class TestMarshaling:
    def test_number(self) -> None:
        assert to_native(sass.SassNumber(10, "px")) == Number(10, "px")
        assert to_sass(Number(3, "em")) == sass.SassNumber(3, "em")

    def test_plain_numbers_become_unitless(self) -> None:
        assert to_sass(7) == sass.SassNumber(7, "")

    def test_map(self) -> None:
        value = sass.SassMap([("a", sass.SassNumber(1, ""))])
        assert to_native(value) == {"a": Number(1)}
        back = to_sass({"a": Number(1)})
        assert isinstance(back, sass.SassMap)
        assert back["a"] == sass.SassNumber(1, "")

    def test_list(self) -> None:
        value = sass.SassList([sass.SassNumber(1, "px"), "b"], sass.SASS_SEPARATOR_COMMA)
        assert to_native(value) == [Number(1, "px"), "b"]
        back = to_sass([Number(1, "px")])
        assert list(back.items) == [sass.SassNumber(1, "px")]

    def test_scalars_pass_through(self) -> None:
        assert to_native("abc") == "abc"
        assert to_sass("abc") == "abc"
        assert to_sass(True) is True
        assert to_sass(None) is None

    def test_unsupported(self) -> None:
        with pytest.raises(TypeError, match="cannot pass object"):
            to_sass(object())


class TestRemapError:
    def test_engine_line_skips_prelude(self) -> None:
        # Engine line 4 is flattened line 2, the second line of _a
        assert engine_line_origin(4, _table()) == ("_a", 2)

    def test_primary_location(self) -> None:
        message = (
            'Error: Undefined variable: "$x".\n'
            "        on line 4:10 of stdin\n"
            ">> .x { y: $x; }\n"
        )
        exc = remap_error(message, _table())
        assert exc.message == 'Undefined variable: "$x".'
        assert (exc.file, exc.line) == ("_a", 2)
        assert exc.backtrace == []

    def test_backtrace(self) -> None:
        message = (
            "Error: bad\n"
            "        on line 4:3 of stdin, in mixin `m`\n"
            "        from line 7:3 of stdin\n"
            "        from line 2 of /lib/_x.scss\n"
        )
        exc = remap_error(message, _table())
        assert (exc.file, exc.line) == ("_a", 2)
        assert exc.backtrace == ["main.scss:3", "/lib/_x.scss:2"]

    def test_without_location(self) -> None:
        exc = remap_error("Error: something broke", _table())
        assert (exc.file, exc.line) == (None, None)
        assert str(exc) == "error: something broke"

    def test_empty_message(self) -> None:
        assert remap_error("", _table()).message == "stylesheet compile failed"


class TestCallSite:
    def test_narrows_by_scalar_arguments(self) -> None:
        text = "$rel: \".\";\n.a { w: sprite-width($s, 139); }\n.b { w: sprite-width($s, nope); }\n"
        assert call_site(text, "sprite-width", [{}, "nope"]) == 3
        assert call_site(text, "sprite-width", [{}, Number(139)]) == 2

    def test_first_call_without_hints(self) -> None:
        text = "a\n.x { w: image-url(a); }\n.y { w: image-url(b); }\n"
        assert call_site(text, "image-url", [{}]) == 2

    def test_not_found(self) -> None:
        assert call_site(".a { b: c; }\n", "sprite", ["x"]) is None


class TestCompile:
    def test_plain_stylesheet(self, tmp_path: Path, cache) -> None:
        result = Context(cache=cache).compile(".a { b: c; }\n", tmp_path)
        assert ".a" in result.css
        assert "b: c" in result.css
        assert result.warnings == ()

    def test_rel_variable_visible(self, tmp_path: Path, cache) -> None:
        ctx = Context(build_dir=tmp_path / "build", static_dir=tmp_path / "static", cache=cache)
        result = ctx.compile(".a { b: $rel; }\n", tmp_path)
        assert 'b: "../static"' in result.css

    def test_output_style(self, tmp_path: Path, cache) -> None:
        result = Context(output_style="compressed", cache=cache).compile(".a { b: c; }\n", tmp_path)
        assert result.css.strip() == ".a{b:c}"

    def test_error_in_import_points_at_partial(self, write_files, cache) -> None:
        root = write_files({"_a.scss": "$ok: 1;\n.x { y: $undefined; }\n"})
        ctx = Context(main_file="main.scss", cache=cache)
        with pytest.raises(EngineError) as exc_info:
            ctx.compile('@import "a";\n.b { c: d; }\n', root)
        exc = exc_info.value
        assert "Undefined variable" in exc.message
        assert (exc.file, exc.line) == ("a", 2)

    def test_error_in_main_file(self, tmp_path: Path, cache) -> None:
        ctx = Context(main_file="main.scss", cache=cache)
        with pytest.raises(EngineError) as exc_info:
            ctx.compile(".a { b: c; }\n.b { c: $nope; }\n", tmp_path)
        assert (exc_info.value.file, exc_info.value.line) == ("main.scss", 2)

    def test_error_inside_mixin(self, tmp_path: Path, cache) -> None:
        ctx = Context(main_file="main.scss", cache=cache)
        source = "@mixin m {\n  width: $undefined;\n}\n.a { @include m; }\n"
        with pytest.raises(EngineError) as exc_info:
            ctx.compile(source, tmp_path)
        exc = exc_info.value
        assert (exc.file, exc.line) == ("main.scss", 2)
        assert "main.scss:4" in exc.backtrace

    def test_error_after_multiline_sprite_map(self, image_dir: Path, tmp_path: Path, cache) -> None:
        ctx = Context(main_file="main.scss", image_dir=image_dir, build_dir=tmp_path / "build", cache=cache)
        source = '$s: sprite-map(\n  "sprites/*.png"\n);\n.a { color: $undefined; }\n'
        with pytest.raises(EngineError) as exc_info:
            ctx.compile(source, tmp_path)
        assert (exc_info.value.file, exc_info.value.line) == ("main.scss", 4)

    def test_sprite_helpers(self, image_dir: Path, tmp_path: Path, cache) -> None:
        ctx = Context(image_dir=image_dir, build_dir=tmp_path / "build", cache=cache)
        source = (
            '$s: sprite-map("sprites/*.png");\n'
            ".a { background: sprite($s, 140); width: sprite-width($s, 140); }\n"
            ".b { height: image-height($s, pixel); }\n"
        )
        result = ctx.compile(source, tmp_path)
        assert "0px -139px" in result.css
        assert "width: 96px" in result.css
        assert "height: 1px" in result.css
        assert ctx.sprites["$s"].out_file in result.css
        assert result.warnings == ()

    def test_image_helpers(self, image_dir: Path, tmp_path: Path, cache) -> None:
        ctx = Context(image_dir=image_dir, build_dir=tmp_path / "build", cache=cache)
        source = '.a { width: image-width("sprites/139.png"); background: image-url("x.png"); }\n'
        css = ctx.compile(source, tmp_path).css
        assert "width: 96px" in css
        assert 'url("../img/x.png")' in css

    def test_missing_sprite_warns(self, image_dir: Path, tmp_path: Path, cache) -> None:
        ctx = Context(main_file="main.scss", image_dir=image_dir, build_dir=tmp_path / "build", cache=cache)
        source = '$s: sprite-map("sprites/*.png");\n.a { width: sprite-width($s, nope); }\n'
        result = ctx.compile(source, tmp_path)
        assert "width: -1px" in result.css
        assert len(result.warnings) == 1
        assert (result.warnings[0].file, result.warnings[0].line) == ("main.scss", 2)
        assert "/* WARNING: sprite-width: sprite image not found: nope" in result.output()

    def test_warning_in_partial_points_at_partial(self, write_files, image_dir: Path, cache) -> None:
        root = write_files({"_icons.scss": "$pad: 1px;\n.i { height: sprite-height($s, ghost); }\n"})
        ctx = Context(main_file="main.scss", image_dir=image_dir, build_dir=root / "build", cache=cache)
        source = '$s: sprite-map("sprites/*.png");\n@import "icons";\n'
        result = ctx.compile(source, root)
        assert len(result.warnings) == 1
        assert (result.warnings[0].file, result.warnings[0].line) == ("icons", 2)
        assert "--> icons:2" in result.output()

    def test_helper_error_aborts(self, tmp_path: Path, cache) -> None:
        ctx = Context(cache=cache)

        def fail(ctx):
            raise HelperError("no thanks")

        ctx.functions.add(HelperDef("refuse", (), fail))
        with pytest.raises(EngineError, match="no thanks"):
            ctx.compile(".a { b: refuse(); }\n", tmp_path)
