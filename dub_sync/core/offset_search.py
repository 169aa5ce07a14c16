"""
Three-phase coarse-to-fine offset search over two marker sets.

An offset ``t`` (ms) is the shift added to candidate timestamps; a
(reference, candidate) pair matches when ``|(cand + t/1000) - ref|`` is
inside the phase tolerance.

    coarse      -60000..+60000 ms, 500 ms steps, tol 0.50 s, score = match count
    fine        coarse +-2000 ms,   10 ms steps, tol 0.20 s, score = sum(tol - d)
    ultra-fine  fine   +-100 ms,     1 ms steps, tol 0.15 s, score = sum(tol - d)

Each phase keeps its seed offset until a strictly higher score appears, so
ties resolve to the first offset scanned.
"""

from dataclasses import dataclass
from typing import List, Sequence, Union

import numpy as np

LOW_CONFIDENCE_MATCHES = 3


@dataclass(frozen=True)
class PhaseSpec:
    name: str
    half_width_ms: int
    step_ms: int
    tolerance: float
    weighted: bool


COARSE = PhaseSpec("coarse", 60000, 500, 0.5, weighted=False)
FINE = PhaseSpec("fine", 2000, 10, 0.2, weighted=True)
ULTRA_FINE = PhaseSpec("ultra-fine", 100, 1, 0.15, weighted=True)


@dataclass
class PhaseResult:
    offset_ms: int
    score: Union[int, float]


@dataclass
class SearchResult:
    coarse: PhaseResult
    fine: PhaseResult
    ultra_fine: PhaseResult

    @property
    def offset_ms(self) -> int:
        return self.ultra_fine.offset_ms

    @property
    def low_confidence(self) -> bool:
        return self.coarse.score < LOW_CONFIDENCE_MATCHES

    def phases(self) -> List[tuple]:
        return [
            (COARSE.name, self.coarse),
            (FINE.name, self.fine),
            (ULTRA_FINE.name, self.ultra_fine),
        ]


def score_offset(
    ref: np.ndarray, cand: np.ndarray, offset_ms: int, tolerance: float, weighted: bool
) -> Union[int, float]:
    """Score one candidate offset against every marker pair."""
    shift = offset_ms / 1000.0
    d = np.abs((cand[np.newaxis, :] + shift) - ref[:, np.newaxis])
    inside = d < tolerance
    if not weighted:
        return int(np.count_nonzero(inside))
    return float(np.sum(tolerance - d[inside]))


def scan_phase(ref: np.ndarray, cand: np.ndarray, spec: PhaseSpec, center_ms: int) -> PhaseResult:
    """Scan ``center +- half_width`` inclusive and keep the best offset."""
    best = PhaseResult(center_ms, 0 if not spec.weighted else 0.0)
    for t in range(center_ms - spec.half_width_ms, center_ms + spec.half_width_ms + 1, spec.step_ms):
        score = score_offset(ref, cand, t, spec.tolerance, spec.weighted)
        if score > best.score:
            best = PhaseResult(t, score)
    return best


def find_best_offset(reference: Sequence[float], candidate: Sequence[float]) -> SearchResult:
    """Run the coarse, fine and ultra-fine scans, each seeded by the previous one."""
    ref = np.asarray(reference, dtype=np.float64)
    cand = np.asarray(candidate, dtype=np.float64)

    coarse = scan_phase(ref, cand, COARSE, 0)
    fine = scan_phase(ref, cand, FINE, coarse.offset_ms)
    ultra_fine = scan_phase(ref, cand, ULTRA_FINE, fine.offset_ms)
    return SearchResult(coarse=coarse, fine=fine, ultra_fine=ultra_fine)
