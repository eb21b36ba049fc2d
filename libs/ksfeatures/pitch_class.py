"""Pitch-class histogram accumulation with exponential smoothing.

A histogram is a 12-bin energy distribution, index 0 = C and each following
index one semitone higher.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from kscore.errors import HistogramShapeError


PITCH_CLASSES: Tuple[str, ...] = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
N_PITCH_CLASSES = 12

DEFAULT_ALPHA = 0.85


def as_histogram(hist: Sequence[float]) -> np.ndarray:
    """Return ``hist`` as a float64 array, failing loudly on a bad shape."""
    arr = np.asarray(hist, dtype=float)
    if arr.ndim != 1 or arr.shape[0] != N_PITCH_CLASSES:
        raise HistogramShapeError(
            f"Pitch class histogram must have length {N_PITCH_CLASSES}, got shape {arr.shape}"
        )
    return arr


def normalize_histogram(hist: Sequence[float]) -> np.ndarray:
    """Scale to unit sum. A histogram summing to <= 0 becomes all zeros."""
    h = as_histogram(hist)
    total = h.sum()
    if not total > 0:
        return np.zeros(N_PITCH_CLASSES)
    return h / total


def has_signal(hist: Sequence[float]) -> bool:
    """True when at least one bin holds positive energy."""
    h = as_histogram(hist)
    return bool(h.max() > 0)


class PitchClassAccumulator:
    """Running 12-bin histogram over a stream of per-frame vectors.

    Each frame is added into a raw running total, then every bin is smoothed:
    ``smoothed = alpha * smoothed + (1 - alpha) * raw_total``. The smoothing is
    order-sensitive, so frames must be added in increasing time order.
    """

    def __init__(self, alpha: float = DEFAULT_ALPHA):
        if not 0.0 <= alpha < 1.0:
            raise ValueError(f"alpha must be in [0, 1), got {alpha}")
        self.alpha = alpha
        self.reset()

    def reset(self) -> None:
        self._raw_total = np.zeros(N_PITCH_CLASSES)
        self._smoothed = np.zeros(N_PITCH_CLASSES)
        self.frames_seen = 0

    def add(self, frame: Sequence[float]) -> None:
        self._raw_total += as_histogram(frame)
        self._smoothed = self.alpha * self._smoothed + (1.0 - self.alpha) * self._raw_total
        self.frames_seen += 1

    @property
    def raw_total(self) -> np.ndarray:
        return self._raw_total.copy()

    @property
    def smoothed(self) -> np.ndarray:
        return self._smoothed.copy()


__all__ = [
    "PITCH_CLASSES",
    "N_PITCH_CLASSES",
    "DEFAULT_ALPHA",
    "as_histogram",
    "normalize_histogram",
    "has_signal",
    "PitchClassAccumulator",
]
