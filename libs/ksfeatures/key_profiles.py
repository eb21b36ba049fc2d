"""Key profile matching over 24 keys (12 tonics × {major, minor}).

Scores are Pearson correlations between a pitch-class histogram and the
Krumhansl-Schmuckler profile rotated to each tonic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from .pitch_class import PITCH_CLASSES, N_PITCH_CLASSES, as_histogram, has_signal


class Mode(str, Enum):
    MAJOR = "major"
    MINOR = "minor"


MAJOR_PROFILE = np.array(
    [6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88], dtype=float
)
MINOR_PROFILE = np.array(
    [6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17], dtype=float
)

PROFILES = {Mode.MAJOR: MAJOR_PROFILE, Mode.MINOR: MINOR_PROFILE}


@dataclass(frozen=True)
class KeyCandidate:
    tonic: str
    mode: Mode
    score: float  # Pearson correlation in [-1, 1]

    @property
    def name(self) -> str:
        return f"{self.tonic} {self.mode.value}"


def rotate_profile(profile: Sequence[float], tonic: int) -> np.ndarray:
    """Shift ``profile`` so its index 0 (the tonic weight) lands on ``tonic``."""
    return np.roll(np.asarray(profile, dtype=float), tonic % N_PITCH_CLASSES)


def correlate(a: Sequence[float], b: Sequence[float]) -> float:
    """Pearson correlation; 0.0 when either vector has no variance."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    ac = a - a.mean()
    bc = b - b.mean()
    denom = np.linalg.norm(ac) * np.linalg.norm(bc)
    if denom == 0:
        return 0.0
    return float(np.dot(ac, bc) / denom)


def confidence_from_score(score: float) -> float:
    """Affine map of a correlation onto [0, 1].

    +1 -> 1.0, 0 -> 0.5, -1 -> 0.0. A calibration choice, not a probability.
    """
    return max(0.0, min(1.0, (score + 1.0) / 2.0))


def _score_all(h: np.ndarray) -> List[KeyCandidate]:
    # Enumeration order (tonic ascending, major before minor) is the tie-break.
    out: List[KeyCandidate] = []
    for tonic in range(N_PITCH_CLASSES):
        for mode in (Mode.MAJOR, Mode.MINOR):
            score = correlate(h, rotate_profile(PROFILES[mode], tonic))
            out.append(KeyCandidate(PITCH_CLASSES[tonic], mode, score))
    return out


def score_candidates(hist: Sequence[float]) -> List[KeyCandidate]:
    """All 24 candidates in enumeration order, or [] when there is no signal."""
    h = as_histogram(hist)
    if not has_signal(h):
        return []
    return _score_all(h)


def rank_candidates(hist: Sequence[float]) -> List[KeyCandidate]:
    """All 24 candidates sorted by descending score.

    The sort is stable, so exact ties keep enumeration order.
    """
    return sorted(score_candidates(hist), key=lambda c: -c.score)


def best_match(hist: Sequence[float]) -> Optional[KeyCandidate]:
    """Highest scoring candidate; the first one in enumeration order on ties."""
    candidates = score_candidates(hist)
    if not candidates:
        return None
    return max(candidates, key=lambda c: c.score)


__all__ = [
    "Mode",
    "MAJOR_PROFILE",
    "MINOR_PROFILE",
    "PROFILES",
    "KeyCandidate",
    "rotate_profile",
    "correlate",
    "confidence_from_score",
    "score_candidates",
    "rank_candidates",
    "best_match",
]
