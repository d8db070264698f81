"""
Shared pytest fixtures: synthetic images and a stand-in expansion client.
"""

from io import BytesIO
from typing import Callable, Dict, List

import pytest
from PIL import Image

from canvas_expander.config import Settings
from canvas_expander.models.jobs import ValidatedImage
from canvas_expander.services.compositor import SENTINEL_COLOR
from canvas_expander.services.session import Session

FILL_COLOR = (20, 160, 90)


def make_image_bytes(
    width: int,
    height: int,
    color=(200, 40, 40),
    fmt: str = "PNG",
    mode: str = "RGB",
) -> bytes:
    image = Image.new(mode, (width, height), color)
    # A couple of distinct pixels so pixel-exact checks are meaningful.
    if width > 2 and height > 2:
        image.putpixel((1, 1), (0, 0, 255) if mode == "RGB" else (0, 0, 255, 255))
        image.putpixel((width - 2, height - 2), (255, 255, 0) if mode == "RGB" else (255, 255, 0, 255))
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def validated(filename: str, width: int = 40, height: int = 30) -> ValidatedImage:
    return ValidatedImage(
        filename=filename,
        media_type="image/png",
        data=make_image_bytes(width, height),
        width=width,
        height=height,
    )


class FakeExpansionClient:
    """
    Stand-in for the Gemini client.

    Replaces sentinel pixels with FILL_COLOR and returns the result as PNG.
    `failures` maps a call index (0-based) to an exception to raise instead.
    """

    def __init__(self, failures: Dict[int, Exception] | None = None, scale: float = 1.0):
        self.failures = failures or {}
        self.scale = scale
        self.calls: List[bytes] = []
        self.before_return: Callable[[], object] | None = None

    def is_available(self) -> bool:
        return True

    async def expand(self, image_bytes: bytes, mime_type: str, prompt: str) -> bytes:
        index = len(self.calls)
        self.calls.append(image_bytes)
        if self.before_return is not None:
            await self.before_return()
        if index in self.failures:
            raise self.failures[index]

        image = Image.open(BytesIO(image_bytes)).convert("RGB")
        pixels = [FILL_COLOR if p == SENTINEL_COLOR else p for p in image.getdata()]
        image.putdata(pixels)
        if self.scale != 1.0:
            size = (max(1, int(image.width * self.scale)), max(1, int(image.height * self.scale)))
            image = image.resize(size)
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key=None, request_delay_seconds=0.0)


@pytest.fixture
def fake_client() -> FakeExpansionClient:
    return FakeExpansionClient()


@pytest.fixture
def session(settings, fake_client) -> Session:
    return Session(settings, client=fake_client)
