"""Tests for format conversion and archive packaging."""

import asyncio
import zipfile
from io import BytesIO

import pytest
from PIL import Image

from canvas_expander.api.v1.schemas import DownloadFormat, JobStatus
from canvas_expander.services.errors import ExportError, NothingToExport
from canvas_expander.services.export import (
    build_archive,
    convert_image,
    export_filename,
    export_single,
)
from canvas_expander.services.jobs import JobStore
from canvas_expander.services.previews import PreviewRegistry
from conftest import make_image_bytes, validated


def _jobs(*specs):
    """specs: (filename, generated bytes or None) pairs; bytes mark done jobs."""
    store = JobStore(PreviewRegistry())

    async def build():
        jobs = await store.enqueue([validated(name) for name, _ in specs])
        for job, (_, generated) in zip(jobs, specs):
            if generated is not None:
                await store.update_status(job.id, JobStatus.PROCESSING)
                await store.update_status(job.id, JobStatus.DONE, generated_image=generated)
        return jobs

    return asyncio.run(build())


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("holiday.png", "holiday-expanded.jpg"),
        ("my photo (1).jpeg", "my_photo__1_-expanded.jpg"),
        ("archive.tar.gz", "archive.tar-expanded.jpg"),
        ("Café.PNG", "Caf_-expanded.jpg"),
    ],
)
def test_export_filename(filename, expected):
    assert export_filename(filename, DownloadFormat.JPG) == expected


def test_export_filename_fallbacks():
    assert export_filename("noextension", DownloadFormat.PNG, fallback="image-3") == "image-3-expanded.png"
    assert export_filename(".png", DownloadFormat.PNG, fallback="image-0") == "image-0-expanded.png"
    assert export_filename("noextension", DownloadFormat.PNG) == "noextension-expanded.png"


@pytest.mark.parametrize("fmt,pil_format", [("jpg", "JPEG"), ("png", "PNG"), ("webp", "WEBP")])
def test_convert_image(fmt, pil_format):
    payload = convert_image(make_image_bytes(30, 20), DownloadFormat(fmt))
    image = Image.open(BytesIO(payload))
    assert image.format == pil_format
    assert image.size == (30, 20)


def test_convert_flattens_alpha_for_jpeg():
    payload = convert_image(make_image_bytes(10, 10, color=(0, 0, 0, 0), mode="RGBA"), DownloadFormat.JPG)
    assert Image.open(BytesIO(payload)).mode == "RGB"


def test_convert_rejects_garbage():
    with pytest.raises(ExportError):
        convert_image(b"garbage", DownloadFormat.PNG)


def test_archive_contains_done_jobs_only():
    jobs = _jobs(
        ("a.png", make_image_bytes(20, 20)),
        ("b.png", None),
        ("c.png", make_image_bytes(20, 20)),
    )
    archive = build_archive(jobs, DownloadFormat.WEBP)

    assert archive.filename == "expanded-images.zip"
    assert archive.entries == ["a-expanded.webp", "c-expanded.webp"]
    with zipfile.ZipFile(BytesIO(archive.data)) as bundle:
        assert bundle.namelist() == archive.entries
        assert Image.open(BytesIO(bundle.read("a-expanded.webp"))).format == "WEBP"


def test_archive_skips_failed_conversions():
    jobs = _jobs(("bad.png", b"corrupted"), ("good.png", make_image_bytes(20, 20)))
    archive = build_archive(jobs, DownloadFormat.PNG)
    assert archive.entries == ["good-expanded.png"]
    assert archive.skipped == ["bad.png"]


def test_archive_deduplicates_names():
    jobs = _jobs(("x.png", make_image_bytes(8, 8)), ("x.png", make_image_bytes(8, 8)))
    archive = build_archive(jobs, DownloadFormat.PNG)
    assert archive.entries == ["x-expanded.png", "x-expanded-2.png"]


def test_nothing_to_export():
    with pytest.raises(NothingToExport) as exc_info:
        build_archive(_jobs(("a.png", None)), DownloadFormat.PNG)
    assert str(exc_info.value) == "No images were successfully converted to download."

    with pytest.raises(NothingToExport):
        build_archive(_jobs(("bad.png", b"corrupted")), DownloadFormat.PNG)


def test_export_single_requires_done_job():
    done, queued = _jobs(("a.png", make_image_bytes(12, 12)), ("b.png", None))
    name, payload = export_single(done, DownloadFormat.JPG)
    assert name == "a-expanded.jpg"
    assert Image.open(BytesIO(payload)).format == "JPEG"
    with pytest.raises(ExportError):
        export_single(queued, DownloadFormat.JPG)
