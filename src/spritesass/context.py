"""Per-compile options and the preprocess/compile pipeline."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from spritesass.cache import BuildCache, shared_cache
from spritesass.errors import EngineWarning, LexError, ParseError
from spritesass.functions import FunctionRegistry, default_registry
from spritesass.importer import DEFAULT_IGNORABLE, Expansion, Importer
from spritesass.lexer import tokenize
from spritesass.parser import ParseState, Parser, apply_replacements
from spritesass.provenance import ProvenanceTable
from spritesass.sprite import SpriteSheet
from spritesass.tokens import Token

logger = logging.getLogger(__name__)

OUTPUT_STYLES = ("nested", "expanded", "compact", "compressed")


@dataclass(frozen=True, slots=True)
class CompileResult:
    """CSS from the downstream compiler plus the warnings raised on the way."""

    css: str
    warnings: tuple[EngineWarning, ...] = ()

    def output(self) -> str:
        """The CSS with each warning echoed as a trailing comment."""
        if not self.warnings:
            return self.css
        notes = "".join(f"/* {w.format()} */\n" for w in self.warnings)
        return self.css + notes


@dataclass
class Context:
    """Options for one compile and the state it leaves behind.

    Unset directories default to the package directory handed to
    ``preprocess``; ``image_dir`` falls back to ``static_dir`` and
    ``gen_image_dir`` to ``build_dir``.
    """

    main_file: str = "string"
    sass_dir: Path | None = None
    build_dir: Path | None = None
    static_dir: Path | None = None
    image_dir: Path | None = None
    gen_image_dir: Path | None = None
    include_paths: list[Path] = field(default_factory=list)
    output_style: str = "nested"
    precision: int = 5
    source_comments: bool = False
    ignorable_imports: tuple[str, ...] = DEFAULT_IGNORABLE
    cache: BuildCache = field(default_factory=shared_cache)
    functions: FunctionRegistry = field(default_factory=default_registry)
    export_sprites: bool = True

    # Filled by preprocess()
    expansion: Expansion | None = field(default=None, init=False, repr=False)
    tokens: list[Token] = field(default_factory=list, init=False, repr=False)
    state: ParseState | None = field(default=None, init=False, repr=False)
    _sheets_by_url: dict[str, SpriteSheet] = field(default_factory=dict, init=False, repr=False)
    _inline: dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _sizes: dict[str, tuple[int, int]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.output_style not in OUTPUT_STYLES:
            raise ValueError(
                f"unknown output style {self.output_style!r}; expected one of {', '.join(OUTPUT_STYLES)}"
            )

    @property
    def provenance(self) -> ProvenanceTable:
        if self.state is None:
            return ProvenanceTable(self.main_file)
        return self.state.provenance

    @property
    def sprites(self) -> dict[str, SpriteSheet]:
        return self.state.sprites if self.state is not None else {}

    def _set_dirs(self, pkgdir: Path) -> None:
        self.build_dir = Path(self.build_dir or pkgdir)
        self.sass_dir = Path(self.sass_dir or pkgdir)
        self.static_dir = Path(self.static_dir or pkgdir)
        self.image_dir = Path(self.image_dir or self.static_dir)
        self.gen_image_dir = Path(self.gen_image_dir or self.build_dir)

    def rel(self) -> str:
        """Static directory relative to the build directory."""
        assert self.static_dir is not None and self.build_dir is not None
        return os.path.normpath(os.path.relpath(self.static_dir, self.build_dir)).replace(os.sep, "/")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def preprocess(self, source: str, pkgdir: str | Path = ".") -> str:
        """Expand imports, evaluate sprite directives, and return the rewritten text.

        The result starts with a ``$rel`` declaration naming the static
        directory relative to the build directory.
        """
        pkgdir = Path(pkgdir)
        self._set_dirs(pkgdir)
        self._sheets_by_url.clear()
        self._inline.clear()
        self._sizes.clear()

        importer = Importer(self.cache, self.include_paths, self.ignorable_imports)
        if self.main_file != "string" and os.path.isfile(self.main_file):
            importer.mark_imported(Path(self.main_file))

        # First pass: splice imports, record provenance against final offsets
        self.expansion = importer.expand(pkgdir, self.main_file, source)
        text = self.expansion.text
        provenance = self.expansion.provenance
        self.state = ParseState(provenance)

        try:
            # Second pass over the stable text
            self.tokens = tokenize(text, self.main_file)
            parser = Parser(
                self.tokens,
                text,
                self.state,
                self._new_sheet,
                self.main_file,
                export=self.export_sprites,
            )
            output = apply_replacements(text, parser.parse())
        except LexError as exc:
            exc.origin = provenance.lookup(exc.position.line - 1)
            raise
        except ParseError as exc:
            exc.origin = provenance.lookup(exc.span.start.line - 1)
            raise

        for sheet in self.state.sheets.values():
            self._sheets_by_url[sheet.out_file] = sheet
        return f'$rel: "{self.rel()}";\n' + output

    def compile(self, source: str, pkgdir: str | Path = ".") -> CompileResult:
        """Preprocess *source* and compile the result to CSS."""
        from spritesass.engine import compile_css

        text = self.preprocess(source, pkgdir)
        css, warnings = compile_css(text, self, self.functions, self.provenance)
        return CompileResult(css, tuple(warnings))

    def _new_sheet(self, globs: list[str], vertical: bool) -> SpriteSheet:
        assert self.image_dir and self.build_dir and self.gen_image_dir
        sheet = SpriteSheet(self.image_dir, self.build_dir, self.gen_image_dir, vertical=vertical)
        sheet.decode(*globs)
        return sheet

    # ------------------------------------------------------------------
    # Lookups used by helper functions
    # ------------------------------------------------------------------

    def sheet_for(self, smap: dict[Any, Any]) -> SpriteSheet | None:
        """Find the sheet a rendered sprite map came from, by its url field."""
        for record in smap.values():
            if isinstance(record, dict) and "url" in record:
                return self._sheets_by_url.get(str(record["url"]))
        return None

    def inline_image(self, file: str) -> str:
        """Data URI of an image under the image directory; decoded once per compile."""
        uri = self._inline.get(file)
        if uri is None:
            uri = self._single(file).inline()
            self._inline[file] = uri
        return uri

    def image_size(self, file: str) -> tuple[int, int]:
        size = self._sizes.get(file)
        if size is None:
            sheet = self._single(file)
            size = (sheet.image_width(0), sheet.image_height(0))
            self._sizes[file] = size
        return size

    def _single(self, file: str) -> SpriteSheet:
        if self.image_dir is None:
            self._set_dirs(Path("."))
        assert self.image_dir and self.build_dir and self.gen_image_dir
        sheet = SpriteSheet(self.image_dir, self.build_dir, self.gen_image_dir)
        sheet.decode(file)
        return sheet
