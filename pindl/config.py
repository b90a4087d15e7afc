"""Runtime configuration.

Values come from environment variables prefixed with ``PINDL_`` or from a
``.env`` file in the working directory. The FFmpeg switch also honours the
bare ``ENABLE_FFMPEG`` variable used by release builds.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pindl.constants import (
    DEFAULT_MAX_PAGES,
    DOWNLOAD_TIMEOUT_SECONDS,
    MAX_PAGES_LIMIT,
    REQUEST_TIMEOUT_SECONDS,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PINDL_",
        extra="ignore",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    enable_ffmpeg: bool = Field(
        default=False,
        validation_alias=AliasChoices("ENABLE_FFMPEG", "PINDL_ENABLE_FFMPEG"),
        description="Enable FFmpeg-backed HLS to MP4 conversion.",
    )
    request_timeout_seconds: float = Field(
        default=REQUEST_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for Pinterest page and API requests.",
    )
    download_timeout_seconds: float = Field(
        default=DOWNLOAD_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for media file downloads.",
    )
    output_dir: Path = Field(
        default=Path.home() / "Downloads" / "PinDL",
        description="Root folder for downloaded media.",
    )
    max_pages: int = Field(
        default=DEFAULT_MAX_PAGES,
        ge=1,
        le=MAX_PAGES_LIMIT,
        description="Maximum number of profile pages to walk.",
    )
    log_level: str = Field(default="INFO", min_length=1)
    verbose: bool = False
    ffmpeg_binary: str = Field(default="ffmpeg", min_length=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def ffmpeg_enabled() -> bool:
    """Whether FFmpeg-dependent features may be used in this environment."""

    return get_settings().enable_ffmpeg
