from enum import Enum
from typing import List

from pydantic import BaseModel, Field, PositiveFloat


class JobStatus(str, Enum):
    """Lifecycle states for an image job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class DownloadFormat(str, Enum):
    """Raster formats offered for download."""

    JPG = "jpg"
    PNG = "png"
    WEBP = "webp"


ASPECT_RATIOS: List[str] = ["1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9"]
DEFAULT_ASPECT_RATIO = ASPECT_RATIOS[0]
DEFAULT_DOWNLOAD_FORMAT = DownloadFormat.PNG


class JobDetail(BaseModel):
    """View of a single image job as shown on its card."""

    id: str = Field(..., description="Unique job identifier.")
    filename: str = Field(..., description="Original upload filename.")
    status: JobStatus = Field(..., description="Current lifecycle status.")
    width: int = Field(..., description="Original width in pixels.")
    height: int = Field(..., description="Original height in pixels.")
    error: str | None = Field(default=None, description="Failure message when status is 'error'.")
    preview_url: str | None = Field(
        default=None,
        description="URL of the original image preview while its handle is live.",
    )
    download_url: str | None = Field(
        default=None,
        description="URL of the expanded image once the job is done.",
    )
    created_at: str = Field(..., description="Creation timestamp in ISO 8601 format (UTC).")
    updated_at: str = Field(..., description="Last modification timestamp in ISO 8601 format (UTC).")


class IntakeResponse(BaseModel):
    """Result of an upload: queued jobs plus aggregate rejection counts."""

    jobs: List[JobDetail] = Field(default_factory=list)
    oversized: int = Field(default=0, description="Files over the size ceiling.")
    overdimensioned: int = Field(default=0, description="Images over the pixel ceiling.")
    unreadable: int = Field(default=0, description="Files that could not be decoded.")
    message: str | None = Field(default=None, description="Human-readable rejection summary.")


class AspectRatioUpdate(BaseModel):
    """Either a `W:H` ratio string or a custom width/height pair."""

    ratio: str | None = Field(default=None, description="Preset or custom ratio, e.g. '16:9'.")
    width: PositiveFloat | None = Field(default=None, description="Custom ratio width component.")
    height: PositiveFloat | None = Field(default=None, description="Custom ratio height component.")


class DownloadFormatUpdate(BaseModel):
    format: DownloadFormat


class SessionSettings(BaseModel):
    """Process-wide selections, limits and the current error banner."""

    aspect_ratio: str
    download_format: DownloadFormat
    presets: List[str] = Field(default_factory=lambda: list(ASPECT_RATIOS))
    formats: List[DownloadFormat] = Field(default_factory=lambda: list(DownloadFormat))
    max_file_size_mb: int
    max_dimension: int
    processing: bool
    ai_available: bool = Field(default=True, description="False when no Gemini API key is configured.")
    error: str | None = None


class BatchState(BaseModel):
    running: bool
    eligible: int = Field(default=0, description="Jobs currently queued or failed.")


class ExpandResponse(BaseModel):
    """Acknowledgement for a batch or single-job expansion request."""

    started: bool
    job_ids: List[str] = Field(default_factory=list)
