#!/usr/bin/env python3
"""
Automatic dub track sync
========================

Estimates the delay (ms) to apply to an alternate-language audio track so
that it lines up with a reference track of the source video. Both streams
are reduced to acoustic markers (silences and loudness transients) by two
parallel ffmpeg pipelines, then matched with a three-phase offset search.

Failures never raise: they return ``NO_RESULT`` (``None``) so a batch can
fall back to its manually configured delay.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import Settings, get_settings
from .exceptions import ExtractionError, InsufficientMarkersError
from .ffmpeg_locator import find_ffmpeg
from .config import MAX_WINDOW_SECONDS, MIN_WINDOW_SECONDS
from .marker_parser import MIN_MARKERS, MarkerCounts, has_enough_markers, parse_markers
from .offset_search import SearchResult, find_best_offset
from .pipeline_coordinator import build_pipeline_pair, run_dual_pipelines
from .track_selector import (
    LanguagePredicate,
    TrackInfo,
    is_language_in_list as default_language_predicate,
    select_reference_track,
)

logger = logging.getLogger(__name__)

NO_RESULT = None


@dataclass
class AutoSyncResult:
    """Container for one offset estimation."""
    offset_ms: Optional[int] = NO_RESULT
    search: Optional[SearchResult] = None
    reference_track_id: Optional[int] = None
    source_counts: MarkerCounts = field(default_factory=MarkerCounts)
    candidate_counts: MarkerCounts = field(default_factory=MarkerCounts)
    source_markers: int = 0
    candidate_markers: int = 0
    reference_low_confidence: bool = False
    failure: Optional[str] = None
    ffmpeg_time_ms: int = 0
    sync_time_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.offset_ms is not NO_RESULT

    @property
    def low_confidence(self) -> bool:
        """
        True when the estimate should not be trusted blindly.

        Also set on a failed result when no source track outside the target
        languages was found, so callers can report it either way.
        """
        if self.search is not None and self.search.low_confidence:
            return True
        return self.reference_low_confidence

    def phase_summary(self) -> List[str]:
        """Readable per-phase diagnostics for logging."""
        if self.search is None:
            return []
        s = self.search
        return [
            f"Coarse result: {s.coarse.offset_ms}ms ({s.coarse.score} matches)",
            f"Fine result: {s.fine.offset_ms}ms (score: {round(s.fine.score, 2)})",
            f"Ultra-fine result: {s.ultra_fine.offset_ms}ms (score: {round(s.ultra_fine.score, 2)})",
        ]

    def to_dict(self) -> dict:
        data = {
            "offset_ms": self.offset_ms,
            "low_confidence": self.low_confidence,
            "reference_track_id": self.reference_track_id,
            "source_markers": self.source_markers,
            "candidate_markers": self.candidate_markers,
            "failure": self.failure,
            "ffmpeg_time_ms": self.ffmpeg_time_ms,
            "sync_time_ms": self.sync_time_ms,
            "phases": {},
        }
        if self.search is not None:
            for name, phase in self.search.phases():
                data["phases"][name] = {"offset_ms": phase.offset_ms, "score": phase.score}
        return data


class AutoSyncService:
    """
    Marker-based offset estimator between a source video and a language file.

    Holds only configuration; every call to ``compute`` works on fresh local
    state, so one service may be shared across files.
    """

    def __init__(self, ffmpeg_path: Optional[str] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.ffmpeg_path = ffmpeg_path or find_ffmpeg()
        logger.debug(f"AutoSyncService initialized with ffmpeg: {self.ffmpeg_path}")

    def compute(
        self,
        source_path: str,
        candidate_path: str,
        source_tracks: Sequence[TrackInfo],
        target_languages: Sequence[str],
        is_language_in_list: LanguagePredicate = default_language_predicate,
        analysis_window_seconds: Optional[int] = None,
    ) -> AutoSyncResult:
        """Estimate the candidate delay; see AutoSyncResult for diagnostics."""
        window = (
            analysis_window_seconds
            if analysis_window_seconds is not None
            else self.settings.ANALYSIS_WINDOW_SECONDS
        )
        result = AutoSyncResult()

        if not MIN_WINDOW_SECONDS <= window <= MAX_WINDOW_SECONDS:
            logger.warning(
                f"Analysis window must be between {MIN_WINDOW_SECONDS}-{MAX_WINDOW_SECONDS} "
                f"seconds, got {window}"
            )
            result.failure = "INVALID_ANALYSIS_WINDOW"
            return result

        selection = select_reference_track(source_tracks, target_languages, is_language_in_list)
        result.reference_track_id = selection.track_id
        result.reference_low_confidence = selection.low_confidence

        logger.info(
            f"Extracting and analyzing audio via pipe "
            f"({window}s, {self.settings.SAMPLE_RATE // 1000}kHz mono)..."
        )
        source, candidate = build_pipeline_pair(
            self.ffmpeg_path,
            str(source_path),
            str(candidate_path),
            window,
            reference_track_id=selection.track_id,
            sample_rate=self.settings.SAMPLE_RATE,
            buffer_size=self.settings.PIPE_BUFFER_SIZE,
            hwaccel=self.settings.HWACCEL,
        )
        pair = run_dual_pipelines(source, candidate)
        result.ffmpeg_time_ms = pair.elapsed_ms

        sync_start = time.perf_counter()
        try:
            self._estimate(pair, result)
        except (ExtractionError, InsufficientMarkersError) as e:
            result.offset_ms = NO_RESULT
            result.failure = e.error_code
        finally:
            result.sync_time_ms = int((time.perf_counter() - sync_start) * 1000)

        return result

    def _estimate(self, pair, result: AutoSyncResult) -> None:
        if not pair.both_succeeded:
            raise ExtractionError(
                source_chars=len(pair.source_output),
                candidate_chars=len(pair.candidate_output),
            )

        logger.info("Analyzing audio patterns...")
        source_markers, result.source_counts = parse_markers(pair.source_output)
        candidate_markers, result.candidate_counts = parse_markers(pair.candidate_output)
        result.source_markers = len(source_markers)
        result.candidate_markers = len(candidate_markers)

        logger.info(f"Source: {result.source_counts.describe()}")
        logger.info(f"Language: {result.candidate_counts.describe()}")
        logger.info(
            f"Total markers: {result.source_markers} source, {result.candidate_markers} language"
        )

        if not (has_enough_markers(source_markers) and has_enough_markers(candidate_markers)):
            raise InsufficientMarkersError(
                result.source_markers, result.candidate_markers, MIN_MARKERS
            )

        search = find_best_offset(source_markers, candidate_markers)
        result.search = search
        result.offset_ms = search.offset_ms

        for line in result.phase_summary():
            logger.info(line)

        if search.low_confidence:
            logger.warning(f"Low confidence sync (only {search.coarse.score} coarse matches)")


def estimate_offset(
    source_path: str,
    candidate_path: str,
    source_tracks: Sequence[TrackInfo],
    target_languages: Sequence[str],
    is_language_in_list: LanguagePredicate = default_language_predicate,
    analysis_window_seconds: Optional[int] = None,
    ffmpeg_path: Optional[str] = None,
) -> Optional[int]:
    """
    Return the offset in milliseconds, or NO_RESULT.

    A throwaway AutoSyncService is built per call, so ffmpeg is located
    every time and ``FFmpegNotFoundError`` is raised when it cannot be found.
    That is a setup error rather than a failed estimate; batch callers
    should build one service up front and reuse it.
    """
    service = AutoSyncService(ffmpeg_path=ffmpeg_path)
    return service.compute(
        source_path,
        candidate_path,
        source_tracks,
        target_languages,
        is_language_in_list,
        analysis_window_seconds,
    ).offset_ms


def effective_delay(result: AutoSyncResult, manual_delay_ms: int = 0) -> int:
    """Auto offset plus the manual delay, or the manual delay alone on failure."""
    if result.offset_ms is NO_RESULT:
        return manual_delay_ms
    return result.offset_ms + manual_delay_ms
