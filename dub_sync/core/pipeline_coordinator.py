"""
Run the reference and candidate marker pipelines side by side.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from .marker_pipeline import MarkerPipeline, PIPE_BUFFER_SIZE, SAMPLE_RATE

logger = logging.getLogger(__name__)


@dataclass
class PipelinePair:
    """Raw analysis text of both streams plus wall time spent in ffmpeg."""
    source_output: str
    candidate_output: str
    elapsed_ms: int = 0

    @property
    def both_succeeded(self) -> bool:
        return len(self.source_output) > 0 and len(self.candidate_output) > 0


def build_pipeline_pair(
    ffmpeg: str,
    source_path: str,
    candidate_path: str,
    window_seconds: int,
    reference_track_id: Optional[int] = None,
    sample_rate: int = SAMPLE_RATE,
    buffer_size: int = PIPE_BUFFER_SIZE,
    hwaccel: str = "auto",
) -> tuple:
    """Create the two pipelines with a shared analysis window.

    The candidate file always uses its best available audio stream.
    """
    source = MarkerPipeline(
        ffmpeg=ffmpeg,
        input_path=source_path,
        window_seconds=window_seconds,
        track_id=reference_track_id,
        sample_rate=sample_rate,
        buffer_size=buffer_size,
        hwaccel=hwaccel,
        label="source",
    )
    candidate = MarkerPipeline(
        ffmpeg=ffmpeg,
        input_path=candidate_path,
        window_seconds=window_seconds,
        track_id=None,
        sample_rate=sample_rate,
        buffer_size=buffer_size,
        hwaccel=hwaccel,
        label="candidate",
    )
    return source, candidate


def run_dual_pipelines(source: MarkerPipeline, candidate: MarkerPipeline) -> PipelinePair:
    """Run both pipelines on separate threads and wait for both to finish."""
    if source.window_seconds != candidate.window_seconds:
        raise ValueError(
            f"Pipelines must share the analysis window "
            f"({source.window_seconds}s vs {candidate.window_seconds}s)"
        )

    start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="marker_pipeline") as executor:
        source_future = executor.submit(source.run)
        candidate_future = executor.submit(candidate.run)
        source_output = source_future.result()
        candidate_output = candidate_future.result()
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    logger.debug(
        f"Dual pipelines finished in {elapsed_ms}ms "
        f"(source {len(source_output)} chars, candidate {len(candidate_output)} chars)"
    )
    return PipelinePair(source_output, candidate_output, elapsed_ms)
