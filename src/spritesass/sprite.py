"""Sprite sheets: glob expansion, packing, export, and map rendering.

Images are stacked along one axis (vertical by default): the sheet is as long
as all images together and as wide as the widest one. Every image sits at
cross-axis offset 0.
"""

from __future__ import annotations

import base64
import glob
import io
import logging
import os
import re
import secrets
import string
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from spritesass.errors import ImageDecodeError, ImageExportError

logger = logging.getLogger(__name__)

# Key of the synthetic one-pixel entry that points just past the last image
BLANK_SENTINEL = "pixel"

# Returned by width/height queries for names not in the sheet
MISSING = -1

_SUFFIX_ALPHABET = string.ascii_letters + string.digits
_PLAIN_KEY = re.compile(r"^(?:\d+|-?[A-Za-z_][\w-]*)$")


def random_suffix(n: int = 6) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(n))


def decode_image(path: str | Path) -> Image.Image:
    """Open and fully decode one raster as RGBA."""
    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGBA")
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        raise ImageDecodeError(path, exc) from exc


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def inline_data_uri(img: Image.Image) -> str:
    """Render a raster as a base64 PNG data URI suitable for url()."""
    encoded = base64.b64encode(encode_png(img)).decode("ascii")
    return f"url('data:image/png;base64,{encoded}')"


def _render_key(name: str) -> str:
    if _PLAIN_KEY.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class SpriteSheet:
    """An ordered list of images packed into one composite raster."""

    def __init__(
        self,
        image_dir: Path,
        build_dir: Path,
        gen_image_dir: Path,
        *,
        vertical: bool = True,
    ) -> None:
        self.image_dir = Path(image_dir)
        self.build_dir = Path(build_dir)
        self.gen_image_dir = Path(gen_image_dir)
        self.vertical = vertical
        self.files: list[str] = []
        self.images: list[Image.Image] = []
        # URL of the sheet relative to the build directory
        self.out_file = ""
        self.combined = False
        self._composite: Image.Image | None = None
        self._exported: Path | None = None

    def __len__(self) -> int:
        return len(self.images)

    def __str__(self) -> str:
        return " ".join(self.names())

    def names(self) -> list[str]:
        return [Path(f).stem for f in self.files]

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def decode(self, *patterns: str) -> None:
        """Expand each glob under the image directory and decode every match.

        Matches are concatenated in argument order; duplicates are kept.
        """
        if self.combined:
            raise ValueError("sprite sheet is already combined; cannot add images")
        if not patterns:
            raise ValueError("at least one glob pattern is required")

        paths: list[str] = []
        for pattern in patterns:
            matches = sorted(glob.glob(os.path.join(self.image_dir, pattern)))
            if not matches:
                logger.warning("sprite glob matched no files: %s", pattern)
            paths.extend(matches)
        if not paths:
            raise ImageDecodeError(os.path.join(self.image_dir, patterns[0]), "no images matched")

        if not self.out_file:
            self.out_file = self._output_url(patterns[0])

        for path in paths:
            self.images.append(decode_image(path))
            self.files.append(path)

    def _output_url(self, pattern: str) -> str:
        """Name the sheet after the first glob's directory plus a random suffix."""
        gdir = os.path.relpath(self.gen_image_dir, self.build_dir).replace(os.sep, "/")
        stem = os.path.dirname(pattern)
        if stem in ("", "."):
            stem = "image"
        stem = stem.replace("/", "").replace("*", "")
        return f"{gdir}/{stem}-{random_suffix()}.png"

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def image_width(self, pos: int) -> int:
        if not 0 <= pos < len(self.images):
            return MISSING
        return self.images[pos].width

    def image_height(self, pos: int) -> int:
        if not 0 <= pos < len(self.images):
            return MISSING
        return self.images[pos].height

    @property
    def width(self) -> int:
        widths = [img.width for img in self.images]
        if self.vertical:
            return max(widths, default=0)
        return sum(widths)

    @property
    def height(self) -> int:
        heights = [img.height for img in self.images]
        if self.vertical:
            return sum(heights)
        return max(heights, default=0)

    def x(self, pos: int) -> int:
        if self.vertical:
            return 0
        return sum(img.width for img in self.images[: max(pos, 0)])

    def y(self, pos: int) -> int:
        if not self.vertical:
            return 0
        return sum(img.height for img in self.images[: max(pos, 0)])

    def lookup(self, name: str) -> int:
        """Index of an image by path, file name, or file name without extension."""
        for i, f in enumerate(self.files):
            p = Path(f)
            if name in (f, p.name, p.stem):
                return i
        return -1

    def _find(self, name: str) -> int:
        pos = self.lookup(name)
        if pos == -1:
            logger.warning("sprite image not found: %s\n try one of: %s", name, self)
        return pos

    # ------------------------------------------------------------------
    # Queries by name
    # ------------------------------------------------------------------

    def width_of(self, name: str) -> int:
        return self.image_width(self._find(name))

    def height_of(self, name: str) -> int:
        return self.image_height(self._find(name))

    def position(self, name: str) -> str:
        pos = self._find(name)
        if pos == -1:
            return "0px 0px"
        return f"{-self.x(pos)}px {-self.y(pos)}px"

    def css(self, name: str) -> str:
        return f'url("{self.out_file}") {self.position(name)}'

    def dimensions(self, name: str) -> str:
        pos = self.lookup(name)
        if pos == -1:
            return ""
        return f"width: {self.image_width(pos)}px;\nheight: {self.image_height(pos)}px"

    def record(self, name: str) -> dict[str, int | str] | None:
        pos = self._find(name)
        if pos == -1:
            return None
        return {
            "width": self.image_width(pos),
            "height": self.image_height(pos),
            "x": self.x(pos),
            "y": self.y(pos),
            "url": self.out_file,
        }

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def combine(self) -> Image.Image:
        """Composite every image onto one canvas. Runs once per sheet."""
        if self._composite is not None:
            return self._composite

        canvas = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        for i, img in enumerate(self.images):
            canvas.paste(img, (self.x(i), self.y(i)))

        self._composite = canvas
        self.combined = True
        return canvas

    def export(self) -> Path:
        """Write the composite PNG under the generated-image directory."""
        if self._exported is not None:
            return self._exported

        path = self.gen_image_dir / os.path.basename(self.out_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.combine().save(path, format="PNG")
        except OSError as exc:
            raise ImageExportError(path, exc) from exc

        logger.info("created file: %s", path)
        self._exported = path
        return path

    def inline(self) -> str:
        """Data URI of the first image."""
        if not self.images:
            raise ImageDecodeError(self.image_dir, "no image to inline")
        return inline_data_uri(self.images[0])

    def render_map(self, variable: str) -> str:
        """Render the sheet as incremental map_merge statements bound to *variable*.

        The result replaces ``sprite-map(...);`` and so starts with the empty
        map that the preceding ``$variable:`` is assigned.
        """
        parts = ["();"]
        keys: set[str] = set()
        for i, name in enumerate(self.names()):
            keys.add(name)
            parts.append(
                self._merge(
                    variable,
                    name,
                    self.image_width(i),
                    self.image_height(i),
                    self.x(i),
                    self.y(i),
                )
            )
        if BLANK_SENTINEL not in keys:
            x = 0 if self.vertical else self.width
            y = self.height if self.vertical else 0
            parts.append(self._merge(variable, BLANK_SENTINEL, 1, 1, x, y))
        return "".join(parts)

    def _merge(self, variable: str, name: str, w: int, h: int, x: int, y: int) -> str:
        return (
            f" {variable}: map_merge({variable},({_render_key(name)}: "
            f"(width: {w}, height: {h}, x: {x}, y: {y}, url: '{self.out_file}')));"
        )
