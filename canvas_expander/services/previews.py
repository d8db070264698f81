from __future__ import annotations

import logging
from typing import Dict, Tuple
from uuid import uuid4

from canvas_expander.models.jobs import PreviewHandle

logger = logging.getLogger(__name__)


class PreviewRegistry:
    """
    Explicit registry of preview handles for job originals.

    Every handle acquired at intake must be released exactly once: on job
    removal, on reset, or by `sweep()` at application teardown.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[bytes, str]] = {}

    def acquire(self, data: bytes, media_type: str) -> PreviewHandle:
        token = uuid4().hex
        self._entries[token] = (data, media_type)
        return PreviewHandle(token=token, media_type=media_type)

    def open(self, token: str) -> Tuple[bytes, str] | None:
        """Return (bytes, media type) for a live handle, or None if released."""
        return self._entries.get(token)

    def release(self, handle: PreviewHandle) -> bool:
        if handle.released:
            logger.warning("Preview handle %s already released", handle.token)
            return False
        handle.released = True
        if self._entries.pop(handle.token, None) is None:
            logger.warning("Preview handle %s was not registered", handle.token)
            return False
        return True

    def sweep(self) -> int:
        """Drop every remaining entry. Returns how many were still live."""
        count = len(self._entries)
        if count:
            logger.info("Sweeping %d live preview handle(s)", count)
        self._entries.clear()
        return count

    @property
    def active_count(self) -> int:
        return len(self._entries)
