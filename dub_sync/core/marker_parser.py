"""
Turn ffmpeg analysis text into sync markers.

Markers are plain timestamps in seconds: silence starts, silence ends and
loudness transients (RMS jumps of more than 6 dB between consecutive astats
windows), merged into one unordered list per stream.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

MIN_MARKERS = 5
TRANSIENT_THRESHOLD_DB = 6.0
RMS_FLOOR_DB = -50.0

SILENCE_START_RE = re.compile(r"silence_start:\s*(\d+(?:\.\d+)?)")
SILENCE_END_RE = re.compile(r"silence_end:\s*(\d+(?:\.\d+)?)")
# A window whose level is not a number (-inf on digital silence) does not
# match on its own; the lazy gap then pairs its pts_time with the next level.
RMS_RE = re.compile(
    r"pts_time:(\d+(?:\.\d+)?).*?lavfi\.astats\.Overall\.RMS_level=(-?\d+(?:\.\d+)?)"
)


@dataclass
class MarkerCounts:
    silence_start: int = 0
    silence_end: int = 0
    transients: int = 0

    @property
    def total(self) -> int:
        return self.silence_start + self.silence_end + self.transients

    def describe(self) -> str:
        return (
            f"{self.silence_start} silence_start, "
            f"{self.silence_end} silence_end, "
            f"{self.transients} transients"
        )


def _floats(pattern: re.Pattern, text: str) -> List[float]:
    return [float(value) for value in pattern.findall(text)]


def parse_silence_markers(text: str) -> Tuple[List[float], List[float]]:
    """Return (silence_start times, silence_end times) in order of appearance."""
    return _floats(SILENCE_START_RE, text), _floats(SILENCE_END_RE, text)


def parse_rms_samples(text: str) -> List[Tuple[float, float]]:
    """Return (pts_time, RMS level dB) pairs in order of appearance.

    ametadata prints the frame line and the RMS key on separate lines, so
    the text is flattened before matching.
    """
    flat = text.replace("\n", " ").replace("\r", " ")
    return [(float(t), float(level)) for t, level in RMS_RE.findall(flat)]


def detect_transients(
    samples: Sequence[Tuple[float, float]],
    floor_db: float = RMS_FLOOR_DB,
    threshold_db: float = TRANSIENT_THRESHOLD_DB,
) -> List[float]:
    """Timestamps where loudness rises by more than ``threshold_db``.

    Levels below ``floor_db`` are clamped to it so near-silence cannot
    produce huge deltas. The marker is placed on the louder (current) window.
    """
    if len(samples) < 2:
        return []
    times = np.array([t for t, _ in samples], dtype=np.float64)
    levels = np.maximum(np.array([lvl for _, lvl in samples], dtype=np.float64), floor_db)
    jumps = np.diff(levels) > threshold_db
    return times[1:][jumps].tolist()


def parse_markers(text: str) -> Tuple[List[float], MarkerCounts]:
    """Build the marker set of one stream from its analysis text."""
    starts, ends = parse_silence_markers(text)
    transients = detect_transients(parse_rms_samples(text))
    markers = starts + ends + transients
    counts = MarkerCounts(len(starts), len(ends), len(transients))
    return markers, counts


def has_enough_markers(markers: Sequence[float], minimum: int = MIN_MARKERS) -> bool:
    return len(markers) >= minimum
