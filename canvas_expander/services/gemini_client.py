"""
Gemini integration for canvas expansion.

This is the single point of contact with the generative image service. The
batch runner only depends on the `ExpansionClient` protocol, so tests (and
any other backend) can stand in for the Gemini client.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from canvas_expander.services.compositor import SENTINEL_HEX
from canvas_expander.services.errors import (
    AIServiceError,
    EmptyResult,
    GenerationStopped,
    NoOpResult,
    NoResponse,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image"
NORMAL_FINISH_REASON = "STOP"

EXPANSION_PROMPT = f"""You are an expert photo editor. Expand this image seamlessly by replacing every solid magenta area ({SENTINEL_HEX}).
Instructions:
1. Study the existing content: subject, background, lighting and shadows.
2. Continue the background naturally into the magenta areas so that the new areas blend with the original without visible seams or artifacts.
3. Match the colour palette, textures and grain of the original photo precisely.
4. Carry existing gradients, patterns and environmental elements into the new areas.
5. Keep lighting and shadows in the new areas consistent with the original light source.
6. Never fill the new areas with a flat, solid colour. Even when the original background looks plain, add subtle texture, grain and lighting variation so the result reads as a real photograph.
7. Return one cohesive, photorealistic image that contains no magenta."""


class ExpansionClient(Protocol):
    """Submit a masked image and an instruction, get the expanded image back."""

    async def expand(self, image_bytes: bytes, mime_type: str, prompt: str) -> bytes:
        ...

    def is_available(self) -> bool:
        """False when the backend cannot accept requests (e.g. no API key)."""
        ...


def _finish_reason_name(reason: Any) -> Optional[str]:
    if reason is None:
        return None
    value = getattr(reason, "value", reason)
    return str(value)


def parse_expansion_response(response: Any, request_bytes: bytes) -> bytes:
    """
    Validate a generate_content response and return the generated image bytes.

    Raises NoResponse, GenerationStopped, EmptyResult or NoOpResult.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise NoResponse()
    candidate = candidates[0]

    # The finish reason is the reliable success signal; STOP means the model
    # completed its turn normally.
    reason = _finish_reason_name(getattr(candidate, "finish_reason", None))
    if reason and reason != NORMAL_FINISH_REASON:
        logger.warning("Gemini stopped generation early: %s", reason)
        raise GenerationStopped(reason)

    generated: Optional[bytes] = None
    text_parts = []
    content = getattr(candidate, "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            generated = inline.data
        if getattr(part, "text", None):
            text_parts.append(part.text)

    if text_parts:
        logger.info("Gemini text response: %s", " ".join(text_parts))

    if generated is None:
        raise EmptyResult()
    if generated == request_bytes:
        raise NoOpResult()
    return generated


class GeminiExpansionClient:
    """
    Client for the Gemini image model.

    Handles authentication and the request/response contract. A missing API
    key does not prevent construction; it is reported per request instead so
    the rest of the service stays usable.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_MODEL):
        self.model = model
        self._client: Optional[genai.Client] = None
        if not api_key:
            logger.warning("GEMINI_API_KEY not set. Image expansion requests will fail.")
            return
        self._client = genai.Client(api_key=api_key)
        logger.info("Gemini client initialized (model: %s)", model)

    def is_available(self) -> bool:
        return self._client is not None

    async def expand(self, image_bytes: bytes, mime_type: str, prompt: str) -> bytes:
        try:
            if self._client is None:
                raise RuntimeError("GEMINI_API_KEY is not configured.")

            logger.info(
                "Calling Gemini %s (%d bytes, %s)", self.model, len(image_bytes), mime_type
            )
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    prompt,
                ],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                ),
            )
            return parse_expansion_response(response, image_bytes)
        except AIServiceError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Error calling Gemini API: %s", exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
