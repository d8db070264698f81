from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from typing import Iterable, List

from canvas_expander.models.jobs import ValidatedImage
from canvas_expander.services.compositor import decode_image, read_image_size
from canvas_expander.services.errors import (
    DimensionsTooLarge,
    FileTooLarge,
    ImageDecodeError,
    IntakeError,
    UnreadableImage,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Upload:
    """Raw file as received from the client."""

    filename: str
    data: bytes
    content_type: str | None = None


@dataclass(slots=True)
class IntakeReport:
    """Accepted images plus aggregate counts for each rejection kind."""

    accepted: List[ValidatedImage] = field(default_factory=list)
    oversized: int = 0
    overdimensioned: int = 0
    unreadable: int = 0
    max_file_size_mb: int = 15
    max_dimension: int = 5000

    @property
    def rejected(self) -> int:
        return self.oversized + self.overdimensioned + self.unreadable

    @property
    def message(self) -> str | None:
        parts = []
        if self.oversized:
            parts.append(f"{self.oversized} exceeded {self.max_file_size_mb}MB size limit")
        if self.overdimensioned:
            parts.append(f"{self.overdimensioned} exceeded {self.max_dimension}px dimension limit")
        if self.unreadable:
            parts.append(f"{self.unreadable} could not be read")
        if not parts:
            return None
        return f"Some images were not added: {', '.join(parts)}."


def _media_type(upload: Upload) -> str:
    if upload.content_type and upload.content_type.startswith("image/"):
        return upload.content_type
    guessed, _ = mimetypes.guess_type(upload.filename)
    return guessed or "application/octet-stream"


async def validate_upload(upload: Upload, max_file_size: int, max_dimension: int) -> ValidatedImage:
    """
    Check one upload against the size and pixel ceilings.

    The pixel ceiling is checked from the header before any decoding, so
    huge images are reported as too large rather than unreadable.
    Raises FileTooLarge, DimensionsTooLarge or UnreadableImage.
    """
    if len(upload.data) > max_file_size:
        raise FileTooLarge(f"{upload.filename} is larger than {max_file_size} bytes")

    try:
        size = read_image_size(upload.data)
    except ImageDecodeError as exc:
        raise UnreadableImage(f"{upload.filename} could not be read") from exc
    if size is None:
        raise DimensionsTooLarge(f"{upload.filename} exceeds the decoder's pixel limit")
    if max(size) > max_dimension:
        raise DimensionsTooLarge(f"{upload.filename} is {size[0]}x{size[1]}")

    try:
        image = await decode_image(upload.data)
    except ImageDecodeError as exc:
        raise UnreadableImage(f"{upload.filename} could not be read") from exc

    width, height = image.size
    return ValidatedImage(
        filename=upload.filename,
        media_type=_media_type(upload),
        data=upload.data,
        width=width,
        height=height,
    )


async def validate_uploads(
    uploads: Iterable[Upload],
    max_file_size_mb: int = 15,
    max_dimension: int = 5000,
) -> IntakeReport:
    """Validate a selection of files; rejections are counted, never raised."""
    uploads = list(uploads)
    max_file_size = max_file_size_mb * 1024 * 1024
    results = await asyncio.gather(
        *(validate_upload(upload, max_file_size, max_dimension) for upload in uploads),
        return_exceptions=True,
    )

    report = IntakeReport(max_file_size_mb=max_file_size_mb, max_dimension=max_dimension)
    for upload, result in zip(uploads, results):
        if isinstance(result, ValidatedImage):
            report.accepted.append(result)
        elif isinstance(result, FileTooLarge):
            report.oversized += 1
        elif isinstance(result, DimensionsTooLarge):
            report.overdimensioned += 1
        elif isinstance(result, IntakeError):
            report.unreadable += 1
        else:
            raise result

        if isinstance(result, IntakeError):
            logger.info("Rejected upload %s (%s): %s", upload.filename, result.kind, result)

    return report
