#!/usr/bin/env python3
"""
Configuration management for the dub track sync estimator.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
MIN_WINDOW_SECONDS = 1
MAX_WINDOW_SECONDS = 3600

class Settings(BaseSettings):
    """Estimator settings with environment variable support (DUB_SYNC_ prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="DUB_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # External tools
    FFMPEG_PATH: Optional[str] = Field(default=None)
    FFPROBE_PATH: Optional[str] = Field(default=None)
    HWACCEL: str = Field(default="auto")

    # Analysis settings
    ANALYSIS_WINDOW_SECONDS: int = Field(default=300)
    SAMPLE_RATE: int = Field(default=8000)
    PIPE_BUFFER_SIZE: int = Field(default=1024 * 1024)  # 1MB

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    LOG_FILE: Optional[str] = Field(default=None)

    @field_validator("ANALYSIS_WINDOW_SECONDS")
    @classmethod
    def validate_analysis_window(cls, v):
        """Analysis window must be between 1 second and 1 hour."""
        if v < MIN_WINDOW_SECONDS or v > MAX_WINDOW_SECONDS:
            raise ValueError(
                f"Analysis window must be between {MIN_WINDOW_SECONDS}-{MAX_WINDOW_SECONDS} seconds, got {v}"
            )
        return v

    @field_validator("SAMPLE_RATE")
    @classmethod
    def validate_sample_rate(cls, v):
        if v < 4000 or v > 96000:
            raise ValueError(f"Sample rate must be between 4000-96000 Hz, got {v}")
        return v

    @field_validator("PIPE_BUFFER_SIZE")
    @classmethod
    def validate_buffer_size(cls, v):
        if v < 4096:
            raise ValueError(f"Pipe buffer must be at least 4096 bytes, got {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level names."""
        level = str(v).upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("HWACCEL")
    @classmethod
    def validate_hwaccel(cls, v):
        value = (v or "").strip()
        if value and value != "auto":
            logging.warning(f"Unusual HWACCEL value '{value}' passed through to ffmpeg")
        return value


@lru_cache()
def get_settings() -> Settings:
    return Settings()
