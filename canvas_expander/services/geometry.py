from __future__ import annotations

import logging
import math
from typing import Tuple

from canvas_expander.models.jobs import ExpansionGeometry
from canvas_expander.services.errors import DimensionLimitExceeded, InvalidRatio, NoOpExpansion

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 5000
# Ratios closer than this are treated as already matching.
RATIO_TOLERANCE = 0.01


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_aspect_ratio(ratio: str) -> Tuple[float, float]:
    """
    Parse a `W:H` ratio string into two positive numbers.

    Raises InvalidRatio unless there are exactly two finite, positive
    numeric components.
    """
    parts = ratio.split(":")
    if len(parts) != 2:
        raise InvalidRatio(ratio)

    values = []
    for part in parts:
        try:
            value = float(part.strip())
        except ValueError:
            raise InvalidRatio(ratio) from None
        if not math.isfinite(value) or value <= 0:
            raise InvalidRatio(ratio)
        values.append(value)
    return values[0], values[1]


def compute_expansion(
    original_width: int,
    original_height: int,
    ratio: str,
    max_dimension: int = MAX_IMAGE_DIMENSION,
) -> ExpansionGeometry:
    """
    Compute the expanded canvas that fits `ratio` around the original.

    The original is never scaled: one side is kept and the other grows,
    with the original centered on the new canvas.
    """
    ratio_w, ratio_h = parse_aspect_ratio(ratio)
    target_ratio = ratio_w / ratio_h
    original_ratio = original_width / original_height

    if abs(target_ratio - original_ratio) < RATIO_TOLERANCE:
        raise NoOpExpansion()

    if target_ratio > original_ratio:
        # Wider target: keep height, grow width.
        new_height = original_height
        new_width = _round_half_up(new_height * target_ratio)
    else:
        new_width = original_width
        new_height = _round_half_up(new_width / target_ratio)

    if new_width > max_dimension or new_height > max_dimension:
        raise DimensionLimitExceeded(new_width, new_height, max_dimension)

    geometry = ExpansionGeometry(
        original_width=original_width,
        original_height=original_height,
        width=new_width,
        height=new_height,
        offset_x=(new_width - original_width) / 2,
        offset_y=(new_height - original_height) / 2,
    )
    logger.debug(
        "Expansion %dx%d -> %dx%d for ratio %s (offset %.1f, %.1f)",
        original_width,
        original_height,
        new_width,
        new_height,
        ratio,
        geometry.offset_x,
        geometry.offset_y,
    )
    return geometry
