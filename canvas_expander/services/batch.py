"""
Sequential batch runner for canvas expansion jobs.

One pipeline is in flight at a time. A single in-progress flag, owned by the
runner, guards both the batch and the single-job entry points: while a run
is active, further run requests are no-ops.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Set

from canvas_expander.api.v1.schemas import JobStatus
from canvas_expander.services.errors import ExpanderError
from canvas_expander.services.gemini_client import ExpansionClient
from canvas_expander.services.geometry import MAX_IMAGE_DIMENSION
from canvas_expander.services.jobs import RUNNABLE_STATUSES, JobStore
from canvas_expander.services.pipeline import expand_image
from canvas_expander.services.throttle import RequestThrottle

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class JobOutcome:
    job_id: str
    # None when the job was skipped (removed, or no longer runnable).
    status: JobStatus | None
    error: str | None = None


@dataclass(slots=True)
class BatchSummary:
    outcomes: List[JobOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status is JobStatus.DONE)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is JobStatus.ERROR)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status is None)


class BatchRunner:
    def __init__(
        self,
        store: JobStore,
        client: ExpansionClient,
        throttle: RequestThrottle | None = None,
        max_dimension: int = MAX_IMAGE_DIMENSION,
    ) -> None:
        self._store = store
        self._client = client
        self._throttle = throttle or RequestThrottle()
        self._max_dimension = max_dimension
        self._running = False
        # Bumped by invalidate(); a run stops dispatching once it is stale.
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()

    def is_running(self) -> bool:
        return self._running

    def _claim(self) -> bool:
        if self._running:
            logger.info("Run requested while another run is in progress; ignoring")
            return False
        self._running = True
        self._throttle.begin()
        return True

    def invalidate(self) -> None:
        """Stop dispatching further jobs of the current run (the in-flight one finishes)."""
        self._generation += 1

    async def run_batch(self, aspect_ratio: str) -> BatchSummary | None:
        """
        Process every queued or failed job once, in insertion order.

        Returns None without doing anything if a run is already active.
        """
        if not self._claim():
            return None
        return await self._run_claimed(None, aspect_ratio)

    async def run_single(self, job_id: str, aspect_ratio: str) -> BatchSummary | None:
        """Process exactly one job under the same guard as run_batch."""
        if not self._claim():
            return None
        return await self._run_claimed([job_id], aspect_ratio)

    def start_batch(self, aspect_ratio: str) -> bool:
        """Claim the guard now and run the batch in the background."""
        if not self._claim():
            return False
        self._spawn(self._run_claimed(None, aspect_ratio))
        return True

    def start_single(self, job_id: str, aspect_ratio: str) -> bool:
        if not self._claim():
            return False
        self._spawn(self._run_claimed([job_id], aspect_ratio))
        return True

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def shutdown(self) -> None:
        """Cancel background runs at application teardown."""
        self.invalidate()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_claimed(self, job_ids: List[str] | None, aspect_ratio: str) -> BatchSummary:
        generation = self._generation
        summary = BatchSummary()
        try:
            if job_ids is None:
                job_ids = await self._store.eligible_job_ids()
            logger.info("Starting run of %d job(s) at ratio %s", len(job_ids), aspect_ratio)

            for job_id in job_ids:
                if generation != self._generation:
                    logger.info("Run invalidated; %d job(s) not dispatched", len(job_ids) - len(summary.outcomes))
                    break
                summary.outcomes.append(await self._process_job(job_id, aspect_ratio))

            logger.info(
                "Run finished: %d done, %d failed, %d skipped",
                summary.succeeded,
                summary.failed,
                summary.skipped,
            )
            return summary
        finally:
            self._running = False

    async def _process_job(self, job_id: str, aspect_ratio: str) -> JobOutcome:
        job = await self._store.get_job(job_id)
        if job is None or job.status not in RUNNABLE_STATUSES:
            return JobOutcome(job_id=job_id, status=None)

        await self._throttle.wait_turn()
        # The job may have been removed while we waited.
        if await self._store.update_status(job_id, JobStatus.PROCESSING) is None:
            return JobOutcome(job_id=job_id, status=None)

        try:
            result = await expand_image(
                job.source_image,
                aspect_ratio,
                self._client,
                max_dimension=self._max_dimension,
            )
        except ExpanderError as exc:
            logger.warning("Job %s failed: %s", job_id, exc)
            return await self._record(job_id, JobStatus.ERROR, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error processing job %s", job_id)
            return await self._record(
                job_id, JobStatus.ERROR, error=str(exc) or "An unknown error occurred."
            )

        return await self._record(job_id, JobStatus.DONE, generated_image=result)

    async def _record(
        self,
        job_id: str,
        status: JobStatus,
        *,
        generated_image: bytes | None = None,
        error: str | None = None,
    ) -> JobOutcome:
        updated = await self._store.update_status(
            job_id, status, generated_image=generated_image, error=error
        )
        if updated is None:
            logger.info("Discarding result for removed job %s", job_id)
            return JobOutcome(job_id=job_id, status=None)
        return JobOutcome(job_id=job_id, status=status, error=error)
