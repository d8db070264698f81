from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass, field
from io import BytesIO
from typing import Iterable, List

from PIL import Image

from canvas_expander.api.v1.schemas import DownloadFormat, JobStatus
from canvas_expander.models.jobs import ImageJob
from canvas_expander.services.compositor import decode_image_sync
from canvas_expander.services.errors import ExportError, ImageDecodeError, NothingToExport

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "expanded-images.zip"
EXPORT_SUFFIX = "-expanded"
DEFAULT_QUALITY = 95

_PIL_FORMATS = {
    DownloadFormat.JPG: ("JPEG", "image/jpeg"),
    DownloadFormat.PNG: ("PNG", "image/png"),
    DownloadFormat.WEBP: ("WEBP", "image/webp"),
}
_UNSAFE_CHARS = re.compile(r"[^a-z0-9_.-]", re.IGNORECASE)


def media_type_for(fmt: DownloadFormat) -> str:
    return _PIL_FORMATS[fmt][1]


def export_filename(filename: str, fmt: DownloadFormat, fallback: str | None = None) -> str:
    """
    Build the download name: sanitized stem + `-expanded` + format extension.

    The stem is everything before the last dot; when that is empty the
    fallback (or the whole filename) is used instead.
    """
    dot = filename.rfind(".")
    stem = filename[:dot] if dot > 0 else ""
    stem = stem or fallback or filename
    safe = _UNSAFE_CHARS.sub("_", stem)
    return f"{safe}{EXPORT_SUFFIX}.{fmt.value}"


def convert_image(data: bytes, fmt: DownloadFormat, quality: int = DEFAULT_QUALITY) -> bytes:
    """Re-encode a finished image into the download format."""
    pil_format, _ = _PIL_FORMATS[fmt]
    try:
        image = decode_image_sync(data, "Image could not be loaded for export.")
        if pil_format == "JPEG" and image.mode != "RGB":
            flattened = Image.new("RGB", image.size, (255, 255, 255))
            flattened.paste(image, mask=image.split()[-1] if image.mode == "RGBA" else None)
            image = flattened

        buffer = BytesIO()
        save_kwargs = {"format": pil_format}
        if pil_format in ("JPEG", "WEBP"):
            save_kwargs["quality"] = quality
        image.save(buffer, **save_kwargs)
        return buffer.getvalue()
    except ImageDecodeError as exc:
        raise ExportError(str(exc)) from exc
    except (OSError, ValueError, KeyError) as exc:
        raise ExportError(f"Could not encode image as {fmt.value}: {exc}") from exc


def export_single(job: ImageJob, fmt: DownloadFormat, quality: int = DEFAULT_QUALITY) -> tuple[str, bytes]:
    """Convert one finished job for download. Returns (filename, bytes)."""
    if job.status is not JobStatus.DONE or job.generated_image is None:
        raise ExportError(f"Job {job.id} has no expanded image yet.")
    return export_filename(job.filename, fmt), convert_image(job.generated_image, fmt, quality)


@dataclass(slots=True)
class ExportArchive:
    data: bytes
    entries: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    filename: str = ARCHIVE_NAME


def _unique_name(name: str, used: set) -> str:
    if name not in used:
        return name
    stem, dot, ext = name.rpartition(".")
    counter = 2
    while f"{stem}-{counter}{dot}{ext}" in used:
        counter += 1
    return f"{stem}-{counter}{dot}{ext}"


def build_archive(
    jobs: Iterable[ImageJob],
    fmt: DownloadFormat,
    quality: int = DEFAULT_QUALITY,
) -> ExportArchive:
    """
    Bundle every done job into one zip archive.

    Jobs that fail to convert are logged and skipped. Raises NothingToExport
    when no entry could be produced.
    """
    buffer = BytesIO()
    entries: List[str] = []
    skipped: List[str] = []
    used: set = set()

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        done = [job for job in jobs if job.status is JobStatus.DONE and job.generated_image]
        for index, job in enumerate(done):
            try:
                payload = convert_image(job.generated_image, fmt, quality)
            except ExportError as exc:
                logger.error("Failed to convert image %s to %s: %s", job.filename, fmt.value, exc)
                skipped.append(job.filename)
                continue
            name = _unique_name(export_filename(job.filename, fmt, fallback=f"image-{index}"), used)
            used.add(name)
            archive.writestr(name, payload)
            entries.append(name)

    if not entries:
        raise NothingToExport()

    logger.info("Exported %d image(s) as %s (%d skipped)", len(entries), fmt.value, len(skipped))
    return ExportArchive(data=buffer.getvalue(), entries=entries, skipped=skipped)
