"""Turn raster images into grids of half-block terminal cells.

Each terminal cell shows the glyph ``▀`` with its foreground set to the
upper pixel and its background set to the lower one, so a cell covers one
pixel column and two pixel rows.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from md2paper.exceptions import ImageDecodeError

LOGGER = logging.getLogger(__name__)

HALF_BLOCK = "▀"

RGB = tuple[int, int, int]

_REMOTE_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def load_image(url: str, base_dir: Optional[Path] = None) -> bytes:
    """Read the image at *url*, resolved against *base_dir* when relative.

    Only local files are supported; remote URLs raise
    :class:`ImageDecodeError`.
    """
    if url.startswith("file://"):
        url = url[len("file://"):]
    elif _REMOTE_RE.match(url):
        raise ImageDecodeError(f"remote images are not supported: {url}")
    path = Path(url).expanduser()
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ImageDecodeError(f"cannot read {path}: {exc.strerror or exc}") from exc


def rasterize(
    data: bytes,
    target_width: int,
    background: Optional[RGB] = None,
) -> list[list[tuple[RGB, RGB]]]:
    """Downsample *data* to at most *target_width* cells per row.

    Args:
        data: Encoded image bytes in any format Pillow can read.
        target_width: Maximum number of cells per row.  Smaller images
            keep their size; they are never scaled up.
        background: Colour that transparent pixels are blended onto.

    Returns:
        Rows of ``(top, bottom)`` colour pairs, one pair per cell.

    Raises:
        ImageDecodeError: The data is not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            image = img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"cannot decode image: {exc}") from exc

    width, height = image.size
    if not width or not height:
        raise ImageDecodeError("image has no pixels")

    columns = min(width, max(1, target_width))
    scale = columns / width
    rows = max(2, round(height * scale))
    if rows % 2:
        rows += 1
    LOGGER.debug("Rasterizing %dx%d image into %dx%d cells", width, height, columns, rows // 2)

    image = image.resize((columns, rows), Image.Resampling.LANCZOS)
    canvas = Image.new("RGBA", image.size, (*(background or (0, 0, 0)), 255))
    image = Image.alpha_composite(canvas, image).convert("RGB")
    pixels = image.load()

    return [
        [(pixels[x, 2 * y], pixels[x, 2 * y + 1]) for x in range(columns)]
        for y in range(rows // 2)
    ]


def to_hex(rgb: RGB) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)
