from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from canvas_expander.api.v1.schemas import (
    AspectRatioUpdate,
    BatchState,
    DownloadFormat,
    DownloadFormatUpdate,
    ExpandResponse,
    IntakeResponse,
    JobDetail,
    JobStatus,
    SessionSettings,
)
from canvas_expander.models.jobs import ImageJob
from canvas_expander.services.errors import ExportError, NothingToExport
from canvas_expander.services.export import build_archive, export_single, media_type_for
from canvas_expander.services.intake import Upload, validate_uploads
from canvas_expander.services.jobs import RUNNABLE_STATUSES
from canvas_expander.services.session import Session, get_session

router = APIRouter(prefix="/api/v1")


def _to_detail(job: ImageJob) -> JobDetail:
    preview_url = None
    if not job.preview.released:
        preview_url = f"{router.prefix}/previews/{job.preview.token}"
    download_url = None
    if job.status is JobStatus.DONE:
        download_url = f"{router.prefix}/jobs/{job.id}/download"
    return JobDetail(
        id=job.id,
        filename=job.filename,
        status=job.status,
        width=job.width,
        height=job.height,
        error=job.error,
        preview_url=preview_url,
        download_url=download_url,
        created_at=job.created_at.isoformat(),
        updated_at=job.updated_at.isoformat(),
    )


def _settings_view(session: Session) -> SessionSettings:
    return SessionSettings(
        aspect_ratio=session.aspect_ratio,
        download_format=session.download_format,
        max_file_size_mb=session.settings.max_file_size_mb,
        max_dimension=session.settings.max_dimension,
        processing=session.runner.is_running(),
        ai_available=session.client.is_available(),
        error=session.error,
    )


async def _require_job(session: Session, job_id: str) -> ImageJob:
    job = await session.store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")
    return job


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health", tags=["health"])
async def health_check() -> dict:
    """API v1 health check endpoint."""
    return {"status": "ok", "api_version": "v1"}


@router.get("/settings", response_model=SessionSettings, tags=["settings"])
async def get_settings_view(session: Session = Depends(get_session)) -> SessionSettings:
    """Current selections, upload limits, processing flag and error banner."""
    return _settings_view(session)


@router.put("/settings/aspect-ratio", response_model=SessionSettings, tags=["settings"])
async def set_aspect_ratio(
    update: AspectRatioUpdate,
    session: Session = Depends(get_session),
) -> SessionSettings:
    """
    Select the target aspect ratio for every job.

    Accepts a preset or custom `W:H` string, or a custom width/height pair.
    The ratio is validated per job when it is expanded.
    """
    if update.width is not None and update.height is not None:
        ratio = f"{update.width:g}:{update.height:g}"
    elif update.ratio and update.ratio.strip():
        ratio = update.ratio.strip()
    else:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide `ratio` or both `width` and `height`.",
        )
    session.aspect_ratio = ratio
    return _settings_view(session)


@router.put("/settings/download-format", response_model=SessionSettings, tags=["settings"])
async def set_download_format(
    update: DownloadFormatUpdate,
    session: Session = Depends(get_session),
) -> SessionSettings:
    session.download_format = update.format
    return _settings_view(session)


@router.post(
    "/jobs",
    response_model=IntakeResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["jobs"],
    summary="Upload images and queue them for expansion",
)
async def create_jobs(
    files: List[UploadFile] = File(..., description="One or more images to expand."),
    session: Session = Depends(get_session),
) -> IntakeResponse:
    """
    Validate uploaded images and queue the accepted ones.

    Files over the size ceiling, images over the pixel ceiling and files that
    cannot be decoded are rejected; the response reports how many of each.
    """
    uploads = [
        Upload(filename=f.filename or "image", data=await f.read(), content_type=f.content_type)
        for f in files
    ]
    report = await validate_uploads(
        uploads,
        max_file_size_mb=session.settings.max_file_size_mb,
        max_dimension=session.settings.max_dimension,
    )
    jobs = await session.store.enqueue(report.accepted)
    session.error = report.message

    return IntakeResponse(
        jobs=[_to_detail(job) for job in jobs],
        oversized=report.oversized,
        overdimensioned=report.overdimensioned,
        unreadable=report.unreadable,
        message=report.message,
    )


@router.get("/jobs", response_model=list[JobDetail], tags=["jobs"])
async def list_jobs(session: Session = Depends(get_session)) -> list[JobDetail]:
    """List all jobs in upload order."""
    return [_to_detail(job) for job in await session.store.list_jobs()]


@router.get("/jobs/{job_id}", response_model=JobDetail, tags=["jobs"])
async def get_job(job_id: str, session: Session = Depends(get_session)) -> JobDetail:
    return _to_detail(await _require_job(session, job_id))


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["jobs"])
async def remove_job(job_id: str, session: Session = Depends(get_session)) -> Response:
    """
    Remove a job and release its preview.

    A job removed while processing is dropped immediately; its pending
    result is discarded when it arrives.
    """
    if await session.store.remove(job_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/previews/{token}", tags=["jobs"])
async def get_preview(token: str, session: Session = Depends(get_session)) -> Response:
    """Serve a job's original image while its preview handle is live."""
    entry = session.previews.open(token)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preview not found.")
    data, media_type = entry
    return Response(content=data, media_type=media_type)


@router.get("/jobs/{job_id}/download", tags=["export"])
async def download_job(
    job_id: str,
    format: DownloadFormat | None = Query(default=None),
    session: Session = Depends(get_session),
) -> Response:
    """Download one expanded image in the selected (or given) format."""
    job = await _require_job(session, job_id)
    if job.status is not JobStatus.DONE:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Job is not done yet.")
    fmt = format or session.download_format
    try:
        filename, payload = await run_in_threadpool(
            export_single, job, fmt, session.settings.export_quality
        )
    except ExportError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _attachment(payload, media_type_for(fmt), filename)


@router.post(
    "/jobs/{job_id}/expand",
    response_model=ExpandResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["expand"],
)
async def expand_job(job_id: str, session: Session = Depends(get_session)) -> ExpandResponse:
    """Expand a single queued or failed job in the background."""
    job = await _require_job(session, job_id)
    if job.status not in RUNNABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Job is {job.status.value}; only queued or failed jobs can be expanded.",
        )
    if not session.runner.start_single(job_id, session.aspect_ratio):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Processing already in progress.")
    session.error = None
    return ExpandResponse(started=True, job_ids=[job_id])


@router.post(
    "/expand",
    response_model=ExpandResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["expand"],
)
async def expand_all(session: Session = Depends(get_session)) -> ExpandResponse:
    """Expand every queued or failed job, one at a time, in the background."""
    if session.runner.is_running():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Processing already in progress.")
    job_ids = await session.store.eligible_job_ids()
    if not job_ids:
        return ExpandResponse(started=False)
    if not session.runner.start_batch(session.aspect_ratio):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Processing already in progress.")
    session.error = None
    return ExpandResponse(started=True, job_ids=job_ids)


@router.get("/batch", response_model=BatchState, tags=["expand"])
async def batch_state(session: Session = Depends(get_session)) -> BatchState:
    return BatchState(
        running=session.runner.is_running(),
        eligible=len(await session.store.eligible_job_ids()),
    )


@router.post("/reset", status_code=status.HTTP_204_NO_CONTENT, tags=["jobs"])
async def reset_session(session: Session = Depends(get_session)) -> Response:
    """Start over: drop every job and restore the default ratio."""
    await session.reset()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/export", tags=["export"])
async def export_archive(
    format: DownloadFormat | None = Query(default=None),
    session: Session = Depends(get_session),
) -> Response:
    """Download every expanded image as one zip archive."""
    fmt = format or session.download_format
    jobs = await session.store.list_jobs()
    try:
        archive = await run_in_threadpool(build_archive, jobs, fmt, session.settings.export_quality)
    except NothingToExport as exc:
        session.error = str(exc)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _attachment(archive.data, "application/zip", archive.filename)
