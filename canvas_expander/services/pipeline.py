from __future__ import annotations

import asyncio
import logging

from canvas_expander.services.compositor import (
    MASK_MEDIA_TYPE,
    build_mask_canvas,
    composite_final,
    decode_image,
    encode_png,
    sentinel_coverage,
)
from canvas_expander.services.gemini_client import EXPANSION_PROMPT, ExpansionClient
from canvas_expander.services.geometry import MAX_IMAGE_DIMENSION, compute_expansion

logger = logging.getLogger(__name__)

# Share of the expanded border still sentinel-coloured before we warn.
RESIDUAL_SENTINEL_WARNING = 0.005


def _build_request(original, geometry) -> bytes:
    return encode_png(build_mask_canvas(original, geometry))


def _finish(generated, original, geometry) -> bytes:
    final = composite_final(generated, original, geometry)
    residual = sentinel_coverage(final, geometry.original_box)
    if residual > RESIDUAL_SENTINEL_WARNING:
        logger.warning("AI result still has %.1f%% sentinel colour in the border", residual * 100)
    return encode_png(final)


async def expand_image(
    source: bytes,
    aspect_ratio: str,
    client: ExpansionClient,
    max_dimension: int = MAX_IMAGE_DIMENSION,
    prompt: str = EXPANSION_PROMPT,
) -> bytes:
    """
    Run one image through geometry, masking, the AI call and compositing.

    Returns the final composite as PNG bytes. Raises the GeometryError,
    ImageDecodeError or AIServiceError of whichever step failed. Pixel work
    runs in a worker thread so the event loop keeps serving requests.
    """
    original = await decode_image(source, "Could not load the image file.")
    geometry = compute_expansion(original.width, original.height, aspect_ratio, max_dimension)

    request_bytes = await asyncio.to_thread(_build_request, original, geometry)

    generated_bytes = await client.expand(request_bytes, MASK_MEDIA_TYPE, prompt)
    generated = await decode_image(generated_bytes, "Could not load the generated image from AI.")

    return await asyncio.to_thread(_finish, generated, original, geometry)
