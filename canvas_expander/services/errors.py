"""
Error taxonomy for the expansion pipeline.

Every failure that can end up on a job, in the intake summary or in the
export banner derives from `ExpanderError`, so the batch runner can record
the message verbatim and routes can translate errors into HTTP responses.
"""

from __future__ import annotations


class ExpanderError(Exception):
    """Base class for all domain errors raised by the service."""


# ------------------------------------------------------------
# Intake
# ------------------------------------------------------------

class IntakeError(ExpanderError):
    """An uploaded file was rejected before becoming a job."""

    kind = "load"


class FileTooLarge(IntakeError):
    kind = "size"


class DimensionsTooLarge(IntakeError):
    kind = "dimension"


class UnreadableImage(IntakeError):
    kind = "load"


# ------------------------------------------------------------
# Geometry
# ------------------------------------------------------------

class GeometryError(ExpanderError):
    """The requested expansion cannot be computed for this image."""


class InvalidRatio(GeometryError):
    def __init__(self, ratio: str) -> None:
        super().__init__(f'Invalid aspect ratio: "{ratio}". Please use positive numbers.')
        self.ratio = ratio


class NoOpExpansion(GeometryError):
    def __init__(self) -> None:
        super().__init__("Image already has the selected aspect ratio.")


class DimensionLimitExceeded(GeometryError):
    def __init__(self, width: int, height: int, limit: int) -> None:
        super().__init__(
            f"Expanded image ({width}x{height}) would exceed the {limit}px limit."
        )
        self.width = width
        self.height = height
        self.limit = limit


# ------------------------------------------------------------
# Image decoding
# ------------------------------------------------------------

class ImageDecodeError(ExpanderError):
    """Image bytes could not be decoded."""


# ------------------------------------------------------------
# AI service
# ------------------------------------------------------------

class AIServiceError(ExpanderError):
    """The generative service did not produce a usable expansion."""


class NoResponse(AIServiceError):
    def __init__(self) -> None:
        super().__init__("No valid response was returned from the AI.")


class GenerationStopped(AIServiceError):
    def __init__(self, reason: str) -> None:
        if reason == "SAFETY":
            message = (
                "The image could not be processed due to the AI's safety policies. "
                "Please try a different image."
            )
        elif reason == "RECITATION":
            message = "The image could not be processed due to the AI's recitation policy."
        else:
            message = f"Image generation stopped. Reason: {reason}."
        super().__init__(message)
        self.reason = reason


class EmptyResult(AIServiceError):
    def __init__(self) -> None:
        super().__init__("The AI finished successfully but did not return an image.")


class NoOpResult(AIServiceError):
    def __init__(self) -> None:
        super().__init__("The AI returned the original image without making changes.")


class TransportError(AIServiceError):
    """Network, SDK or parsing fault while talking to the service."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to expand image: {detail}")


# ------------------------------------------------------------
# Job state
# ------------------------------------------------------------

class JobStateError(ExpanderError):
    """A job operation is not valid in the job's current state."""


class InvalidTransition(JobStateError):
    def __init__(self, job_id: str, current: str, requested: str) -> None:
        super().__init__(f"Job {job_id} cannot move from '{current}' to '{requested}'.")
        self.job_id = job_id
        self.current = current
        self.requested = requested


# ------------------------------------------------------------
# Export
# ------------------------------------------------------------

class ExportError(ExpanderError):
    """A finished image could not be re-encoded for download."""


class NothingToExport(ExportError):
    def __init__(self) -> None:
        super().__init__("No images were successfully converted to download.")
