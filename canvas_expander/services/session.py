from __future__ import annotations

import logging

from canvas_expander.api.v1.schemas import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_DOWNLOAD_FORMAT,
    DownloadFormat,
)
from canvas_expander.config import Settings, get_settings
from canvas_expander.services.batch import BatchRunner
from canvas_expander.services.gemini_client import ExpansionClient, GeminiExpansionClient
from canvas_expander.services.jobs import JobStore
from canvas_expander.services.previews import PreviewRegistry
from canvas_expander.services.throttle import RequestThrottle

logger = logging.getLogger(__name__)


class Session:
    """
    Process-wide state of the single user session.

    Owns the job store, the preview registry and the batch runner, plus the
    selections shared by every job: target aspect ratio and download format.
    `error` is the current banner message (intake summary, export failure).
    """

    def __init__(self, settings: Settings, client: ExpansionClient | None = None) -> None:
        self.settings = settings
        self.previews = PreviewRegistry()
        self.store = JobStore(self.previews)
        if client is None:
            client = GeminiExpansionClient(api_key=settings.api_key, model=settings.model)
        self.client = client
        self.runner = BatchRunner(
            self.store,
            client,
            RequestThrottle(settings.request_delay_seconds),
            max_dimension=settings.max_dimension,
        )
        self.aspect_ratio: str = DEFAULT_ASPECT_RATIO
        self.download_format: DownloadFormat = DEFAULT_DOWNLOAD_FORMAT
        self.error: str | None = None

    async def reset(self) -> None:
        """Start over: release every preview, clear jobs, restore the default ratio."""
        self.runner.invalidate()
        removed = await self.store.reset()
        self.aspect_ratio = DEFAULT_ASPECT_RATIO
        self.error = None
        logger.info("Session reset (%d job(s) removed)", removed)

    async def close(self) -> None:
        """Teardown: stop background runs and release every handle."""
        await self.runner.shutdown()
        await self.store.reset()
        self.previews.sweep()


_default_session: Session | None = None


def get_session() -> Session:
    """
    Return the process-wide session instance.

    Used as a FastAPI dependency so tests can inject their own session.
    """
    global _default_session
    if _default_session is None:
        _default_session = Session(get_settings())
    return _default_session
