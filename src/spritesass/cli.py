"""Command-line interface for spritesass."""

from __future__ import annotations

import argparse
import logging
import sys
import time
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from spritesass.cache import BuildCache, shared_cache
from spritesass.context import OUTPUT_STYLES, Context
from spritesass.errors import EngineError, PreprocessError


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_file: Path
    output_file: Path | None
    include_paths: list[Path]
    build_dir: Path | None
    static_dir: Path | None
    image_dir: Path | None
    gen_image_dir: Path | None
    style: str
    precision: int
    comments: bool
    preprocess_only: bool
    watch: bool
    debug: bool
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="spritesass",
        description="Sass preprocessor with sprite sheet generation",
    )
    p.add_argument("input", help="Input .scss file")
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.add_argument(
        "-I",
        "--include",
        action="append",
        default=[],
        metavar="DIR",
        help="Extra import search directory (repeatable)",
    )
    p.add_argument("--build-dir", metavar="DIR", help="Directory the CSS is served from")
    p.add_argument("--static-dir", metavar="DIR", help="Directory of static assets")
    p.add_argument("--image-dir", metavar="DIR", help="Directory sprite globs are matched in")
    p.add_argument(
        "--gen-image-dir", metavar="DIR", help="Directory generated sprite sheets are written to"
    )
    p.add_argument("--style", choices=OUTPUT_STYLES, default=None, help="CSS output style")
    p.add_argument(
        "--precision",
        type=int,
        default=None,
        metavar="N",
        help="Decimal precision of numbers (default: 5)",
    )
    p.add_argument(
        "--comments",
        action="store_true",
        default=None,
        help="Emit source line comments",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover spritesass.toml)",
    )
    p.add_argument(
        "--preprocess-only",
        action="store_true",
        help="Print the rewritten Sass instead of compiling it",
    )
    p.add_argument("--watch", action="store_true", help="Watch for changes and recompile")
    p.add_argument("--debug", action="store_true", help="Dump tokens and line map to stderr")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")
    return p


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / "spritesass.toml"

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def _config_dir(paths: dict[str, Any], key: str, base: Path, cli: str | None) -> Path | None:
    if cli is not None:
        return Path(cli)
    value = paths.get(key)
    if isinstance(value, str):
        return base / value
    return None


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags. Relative paths in the config file
    are taken from the directory holding it.
    """
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)
    base = config_path.parent if config_path is not None else input_dir

    paths = config.get("paths")
    if not isinstance(paths, dict):
        paths = {}
    output = config.get("output")
    if not isinstance(output, dict):
        output = {}

    # Include paths: config < CLI
    include_paths: list[Path] = []
    cfg_includes = paths.get("includes")
    if isinstance(cfg_includes, list):
        include_paths.extend(base / str(p) for p in cfg_includes)
    include_paths.extend(Path(p) for p in args.include)

    style = args.style
    if style is None:
        style = str(output.get("style", "nested"))
    if style not in OUTPUT_STYLES:
        raise argparse.ArgumentTypeError(f"invalid output style in config: {style}")

    precision = args.precision
    if precision is None:
        cfg_precision = output.get("precision")
        precision = cfg_precision if isinstance(cfg_precision, int) else 5

    comments = args.comments
    if comments is None:
        comments = bool(output.get("comments", False))

    output_file = Path(args.output) if args.output else None

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        include_paths=include_paths,
        build_dir=_config_dir(paths, "build", base, args.build_dir),
        static_dir=_config_dir(paths, "static", base, args.static_dir),
        image_dir=_config_dir(paths, "images", base, args.image_dir),
        gen_image_dir=_config_dir(paths, "generated_images", base, args.gen_image_dir),
        style=style,
        precision=precision,
        comments=comments,
        preprocess_only=args.preprocess_only,
        watch=args.watch,
        debug=args.debug,
        verbose=args.verbose,
    )


def make_context(options: CliOptions, cache: BuildCache | None = None) -> Context:
    return Context(
        main_file=str(options.input_file),
        build_dir=options.build_dir,
        static_dir=options.static_dir,
        image_dir=options.image_dir,
        gen_image_dir=options.gen_image_dir,
        include_paths=list(options.include_paths),
        output_style=options.style,
        precision=options.precision,
        source_comments=options.comments,
        cache=cache if cache is not None else shared_cache(),
    )


def compile_file(options: CliOptions, cache: BuildCache | None = None) -> str:
    """Read, preprocess, and compile one stylesheet to CSS."""
    from spritesass.debug import dump_provenance, dump_tokens

    source = options.input_file.read_text(encoding="utf-8")
    pkgdir = options.input_file.parent
    if not pkgdir.parts:
        pkgdir = Path(".")

    ctx = make_context(options, cache)
    if options.preprocess_only:
        result = ctx.preprocess(source, pkgdir)
    else:
        result = ctx.compile(source, pkgdir).output()

    if options.debug:
        dump_tokens(ctx.tokens)
        dump_provenance(ctx.provenance)

    return result


def format_error(exc: PreprocessError) -> str:
    """Render an error for the terminal, always led by 'error:'."""
    text = str(exc)
    if not text.startswith("error:"):
        text = f"error: {text}"
    return text


def _write(options: CliOptions, text: str) -> None:
    if options.output_file:
        options.output_file.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
        sys.stdout.flush()


def _mtimes(paths: list[Path]) -> dict[Path, float]:
    result: dict[Path, float] = {}
    for path in paths:
        try:
            result[path] = path.stat().st_mtime
        except OSError:
            continue
    return result


def watched_files(options: CliOptions, cache: BuildCache) -> list[Path]:
    """The input file plus every file it imported on the last compile."""
    deps = cache.graph.all_dependencies(str(options.input_file))
    return [options.input_file, *sorted(Path(d) for d in deps)]


def watch_loop(options: CliOptions, cache: BuildCache | None = None) -> None:
    """Poll the input and its imports for changes, recompile on each modification."""
    cache = cache if cache is not None else BuildCache()
    last: dict[Path, float] = {}
    print(f"Watching {options.input_file} for changes...", file=sys.stderr)
    try:
        while True:
            current = _mtimes(watched_files(options, cache))
            changed = [p for p, m in current.items() if last.get(p) != m]
            if changed and options.input_file in current:
                for path in changed:
                    cache.invalidate(str(path))
                try:
                    _write(options, compile_file(options, cache))
                    print(f"Compiled {options.input_file}", file=sys.stderr)
                except PreprocessError as exc:
                    print(format_error(exc), file=sys.stderr)
                # The import set may have changed
                last = _mtimes(watched_files(options, cache))
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        options = resolve_options(args)
    except (argparse.ArgumentTypeError, tomllib.TOMLDecodeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if options.watch:
        watch_loop(options)
        return 0

    try:
        text = compile_file(options)
    except EngineError as exc:
        print(format_error(exc), file=sys.stderr)
        return 2
    except PreprocessError as exc:
        print(format_error(exc), file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _write(options, text)
    return 0
