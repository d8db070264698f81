"""
Canvas compositing for the outpainting round trip.

Two steps wrap the AI call:

1. Mask build: the expanded canvas is filled with a sentinel colour and the
   original is drawn at its centered origin. The sentinel marks the region
   the model has to fill without relying on alpha support.
2. Final composite: the AI result is stretched over the whole canvas and the
   original is drawn again on top, so pixels inside the original's box are
   always the uploaded ones, whatever resolution the model returned.
"""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from canvas_expander.models.jobs import ExpansionGeometry
from canvas_expander.services.errors import ImageDecodeError

logger = logging.getLogger(__name__)

SENTINEL_COLOR: Tuple[int, int, int] = (0xFF, 0x00, 0xFF)
SENTINEL_HEX = "#FF00FF"
MASK_MEDIA_TYPE = "image/png"
# Per-channel distance still counted as sentinel when scanning AI output.
SENTINEL_TOLERANCE = 24


def _decode(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    # Animated GIF/WebP: use the first frame.
    if getattr(image, "is_animated", False):
        image.seek(0)
    image.load()
    # Browsers honour EXIF orientation when drawing, so do the same here.
    image = ImageOps.exif_transpose(image)
    if image.mode not in ("RGB", "RGBA"):
        has_alpha = image.mode in ("LA", "PA") or "transparency" in image.info
        image = image.convert("RGBA" if has_alpha or image.mode == "P" else "RGB")
    return image


def read_image_size(data: bytes) -> Tuple[int, int] | None:
    """
    Read (width, height) from the image header without decoding pixel data.

    Returns None when Pillow refuses the header as a decompression bomb,
    i.e. the image is far larger than any dimension limit we accept.
    """
    try:
        with Image.open(BytesIO(data)) as image:
            return image.size
    except Image.DecompressionBombError:
        return None
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeError("Could not load the image file.") from exc


def decode_image_sync(data: bytes, error_message: str = "Could not load the image file.") -> Image.Image:
    try:
        return _decode(data)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(error_message) from exc


async def decode_image(data: bytes, error_message: str = "Could not load the image file.") -> Image.Image:
    """Decode image bytes off the event loop, raising ImageDecodeError on failure."""
    return await asyncio.to_thread(decode_image_sync, data, error_message)


def _draw_original(canvas: Image.Image, original: Image.Image, geometry: ExpansionGeometry) -> None:
    if original.size != geometry.original_size:
        raise ValueError(
            f"Original is {original.size[0]}x{original.size[1]}, geometry expects "
            f"{geometry.original_width}x{geometry.original_height}"
        )
    canvas.alpha_composite(original.convert("RGBA"), dest=geometry.origin)


def build_mask_canvas(original: Image.Image, geometry: ExpansionGeometry) -> Image.Image:
    """Sentinel-filled canvas of the expanded size with the original at its origin."""
    canvas = Image.new("RGBA", geometry.size, SENTINEL_COLOR + (255,))
    _draw_original(canvas, original, geometry)
    return canvas.convert("RGB")


def composite_final(
    generated: Image.Image,
    original: Image.Image,
    geometry: ExpansionGeometry,
) -> Image.Image:
    """
    Stretch the AI image over the full canvas and redraw the original on top.
    """
    background = generated.convert("RGBA")
    if background.size != geometry.size:
        logger.info(
            "Scaling AI result %dx%d to canvas %dx%d",
            background.size[0],
            background.size[1],
            geometry.width,
            geometry.height,
        )
        background = background.resize(geometry.size, Image.Resampling.LANCZOS)

    canvas = Image.new("RGBA", geometry.size, (0, 0, 0, 0))
    canvas.alpha_composite(background)
    _draw_original(canvas, original, geometry)
    return canvas.convert("RGB")


def encode_png(image: Image.Image) -> bytes:
    """Lossless PNG payload used both for the request and the stored result."""
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def sentinel_coverage(image: Image.Image, box: Tuple[int, int, int, int] | None = None) -> float:
    """
    Fraction of pixels (optionally outside `box`) that are still sentinel-coloured.
    """
    pixels = np.asarray(image.convert("RGB"), dtype=np.int16)
    distance = np.abs(pixels - np.array(SENTINEL_COLOR, dtype=np.int16)).max(axis=2)
    matches = distance <= SENTINEL_TOLERANCE

    considered = np.ones(matches.shape, dtype=bool)
    if box is not None:
        left, top, right, bottom = box
        considered[top:bottom, left:right] = False

    total = int(considered.sum())
    if total == 0:
        return 0.0
    return float((matches & considered).sum()) / total
