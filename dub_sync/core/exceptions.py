#!/usr/bin/env python3
"""
Custom exception classes for the dub track sync estimator.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

class DubSyncException(Exception):
    """Base exception for dub sync errors."""

    log_level = logging.ERROR

    def __init__(
        self,
        detail: str,
        error_code: str = "UNKNOWN_ERROR",
        timestamp: Optional[datetime] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.detail = detail
        self.error_code = error_code
        self.timestamp = timestamp or datetime.now(timezone.utc)
        self.context = context or {}

        # Log the exception
        logger.log(
            self.log_level,
            f"DubSyncException: {error_code} - {detail}",
            extra={
                "error_code": error_code,
                "context": context
            }
        )

        super().__init__(detail)

class FFmpegNotFoundError(DubSyncException):
    """Raised when the ffmpeg or ffprobe executable cannot be located."""

    def __init__(self, tool: str = "ffmpeg", searched: Optional[list] = None, **kwargs):
        super().__init__(
            detail=f"{tool} not found. Install it and make sure it is on PATH, or set DUB_SYNC_{tool.upper()}_PATH",
            error_code="FFMPEG_NOT_FOUND",
            context={"tool": tool, "searched": searched or []},
            **kwargs
        )

class TrackProbeError(DubSyncException):
    """Raised when the track list of a media file cannot be read."""

    def __init__(self, detail: str, file_path: Optional[str] = None, **kwargs):
        super().__init__(
            detail=detail,
            error_code="TRACK_PROBE_ERROR",
            context={"file_path": file_path},
            **kwargs
        )

class ExtractionError(DubSyncException):
    """Raised when a producer/consumer pipeline yields no analysis text."""

    log_level = logging.WARNING

    def __init__(self, detail: str = "Unable to analyze audio", source_chars: int = 0, candidate_chars: int = 0, **kwargs):
        super().__init__(
            detail=detail,
            error_code="EXTRACTION_FAILED",
            context={
                "source_chars": source_chars,
                "candidate_chars": candidate_chars
            },
            **kwargs
        )

class InsufficientMarkersError(DubSyncException):
    """Raised when either stream has too few markers for a reliable search."""

    log_level = logging.WARNING

    def __init__(self, source_markers: int, candidate_markers: int, minimum: int, **kwargs):
        super().__init__(
            detail=(
                f"Insufficient audio markers for reliable sync "
                f"({source_markers} source, {candidate_markers} candidate, minimum {minimum})"
            ),
            error_code="INSUFFICIENT_MARKERS",
            context={
                "source_markers": source_markers,
                "candidate_markers": candidate_markers,
                "minimum": minimum
            },
            **kwargs
        )
