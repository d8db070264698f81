from __future__ import annotations

import logging
from typing import Dict, Iterable, List
from uuid import uuid4

from canvas_expander.api.v1.schemas import JobStatus
from canvas_expander.models.jobs import ImageJob, ValidatedImage, utcnow
from canvas_expander.services.errors import InvalidTransition
from canvas_expander.services.previews import PreviewRegistry

logger = logging.getLogger(__name__)

# Every path to done or error goes through processing; error is retryable.
ALLOWED_TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.DONE, JobStatus.ERROR}),
    JobStatus.ERROR: frozenset({JobStatus.PROCESSING}),
    JobStatus.DONE: frozenset(),
}

RUNNABLE_STATUSES = (JobStatus.QUEUED, JobStatus.ERROR)


class JobStore:
    """
    In-memory, insertion-ordered collection of image jobs.

    All mutation goes through these methods. Jobs are addressed by id, and
    updates for an id that is no longer present are ignored, which is how a
    late result for a removed job gets discarded.
    """

    def __init__(self, previews: PreviewRegistry) -> None:
        self._previews = previews
        self._jobs: Dict[str, ImageJob] = {}

    @property
    def previews(self) -> PreviewRegistry:
        return self._previews

    async def enqueue(self, images: Iterable[ValidatedImage]) -> List[ImageJob]:
        """Create one queued job per validated upload."""
        created: List[ImageJob] = []
        for image in images:
            job = ImageJob(
                id=str(uuid4()),
                filename=image.filename,
                media_type=image.media_type,
                source_image=image.data,
                preview=self._previews.acquire(image.data, image.media_type),
                width=image.width,
                height=image.height,
            )
            self._jobs[job.id] = job
            created.append(job)
        if created:
            logger.info("Queued %d job(s); %d total", len(created), len(self._jobs))
        return created

    async def get_job(self, job_id: str) -> ImageJob | None:
        return self._jobs.get(job_id)

    async def list_jobs(self) -> List[ImageJob]:
        return list(self._jobs.values())

    async def eligible_job_ids(self) -> List[str]:
        """Ids of queued or failed jobs, in insertion order."""
        return [job.id for job in self._jobs.values() if job.status in RUNNABLE_STATUSES]

    async def remove(self, job_id: str) -> ImageJob | None:
        """Remove a job and release its preview handle."""
        job = self._jobs.pop(job_id, None)
        if job is None:
            return None
        if job.status is JobStatus.PROCESSING:
            logger.info("Removed job %s while processing; its result will be discarded", job_id)
        self._previews.release(job.preview)
        return job

    async def reset(self) -> int:
        """Release every preview handle and clear the queue."""
        count = len(self._jobs)
        for job in self._jobs.values():
            self._previews.release(job.preview)
        self._jobs.clear()
        return count

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        generated_image: bytes | None = None,
        error: str | None = None,
    ) -> ImageJob | None:
        """
        Move a job to `status`, keeping the result/error invariants.

        Returns None (and changes nothing) when the job no longer exists.
        Raises InvalidTransition for transitions the lifecycle does not allow.
        """
        job = self._jobs.get(job_id)
        if job is None:
            logger.info("Ignoring %s update for unknown job %s", status.value, job_id)
            return None

        if status not in ALLOWED_TRANSITIONS[job.status]:
            raise InvalidTransition(job_id, job.status.value, status.value)

        if status is JobStatus.DONE:
            if generated_image is None:
                raise ValueError("A done job requires a generated image.")
            job.generated_image = generated_image
            job.error = None
        elif status is JobStatus.ERROR:
            job.generated_image = None
            job.error = error or "An unknown error occurred."
        else:
            job.generated_image = None
            job.error = None

        job.status = status
        job.updated_at = utcnow()
        return job
