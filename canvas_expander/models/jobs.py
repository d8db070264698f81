from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Tuple

from canvas_expander.api.v1.schemas import JobStatus


def utcnow() -> datetime:
    """Return an explicit, timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PreviewHandle:
    """
    Revocable reference to the displayable original of a job.

    The bytes behind the handle live in the preview registry; the handle
    itself only carries the lookup token. Once released, the registry no
    longer serves the image and a second release is refused.
    """

    token: str
    media_type: str
    released: bool = False


@dataclass(slots=True, frozen=True)
class ExpansionGeometry:
    """
    Expanded canvas size and placement of the original within it.

    Offsets are the exact centering values and may be fractional halves
    when the added border has an odd pixel count. All drawing goes through
    `origin` so the mask and the final composite line up pixel for pixel.
    """

    original_width: int
    original_height: int
    width: int
    height: int
    offset_x: float
    offset_y: float

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def original_size(self) -> Tuple[int, int]:
        return (self.original_width, self.original_height)

    @property
    def origin(self) -> Tuple[int, int]:
        return (math.floor(self.offset_x), math.floor(self.offset_y))

    @property
    def original_box(self) -> Tuple[int, int, int, int]:
        """Box (left, top, right, bottom) covered by the original on the canvas."""
        x, y = self.origin
        return (x, y, x + self.original_width, y + self.original_height)


@dataclass(slots=True)
class ValidatedImage:
    """An upload that passed intake checks and is ready to become a job."""

    filename: str
    media_type: str
    data: bytes
    width: int
    height: int


@dataclass(slots=True)
class ImageJob:
    """
    One user-submitted image and its processing state.

    `generated_image` holds the self-contained PNG of the composited result
    and is only set while the job is done; `error` is only set while the
    job is in the error state.
    """

    id: str
    filename: str
    media_type: str
    source_image: bytes
    preview: PreviewHandle
    width: int
    height: int
    status: JobStatus = JobStatus.QUEUED
    generated_image: bytes | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
