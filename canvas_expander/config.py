from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration for the canvas expander service.

    Values come from the process environment (optionally populated from a
    `.env` file at startup). Limits default to the values the upload screen
    advertises: 15MB per file and 5000px per side.
    """

    api_key: str | None = None
    model: str = "gemini-2.5-flash-image"
    max_file_size_mb: int = 15
    max_dimension: int = 5000
    request_delay_seconds: float = 1.0
    export_quality: int = 95
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = (
            os.environ.get("GEMINI_API_KEY")
            or os.environ.get("GOOGLE_API_KEY")
            or os.environ.get("API_KEY")
        )
        return cls(
            api_key=api_key or None,
            model=os.environ.get("EXPANDER_MODEL", cls.model),
            max_file_size_mb=_env_int("EXPANDER_MAX_FILE_SIZE_MB", cls.max_file_size_mb),
            max_dimension=_env_int("EXPANDER_MAX_DIMENSION", cls.max_dimension),
            request_delay_seconds=_env_float(
                "EXPANDER_REQUEST_DELAY_SECONDS", cls.request_delay_seconds
            ),
            export_quality=_env_int("EXPANDER_EXPORT_QUALITY", cls.export_quality),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""
    return Settings.from_env()
