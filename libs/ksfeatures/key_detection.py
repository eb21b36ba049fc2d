"""Musical key detection from pitch-class histograms and mono PCM.

Returns a best key guess among 24 keys (12 pitch classes × {major, minor}),
a confidence score in [0, 1] and the normalized histogram it was derived from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from kscore.audio import first_channel, truncate
from kscore.config import AnalysisOptions

from .key_profiles import KeyCandidate, Mode, best_match, confidence_from_score, rank_candidates
from .pitch_class import DEFAULT_ALPHA, PitchClassAccumulator, normalize_histogram
from .spectral import (
    DEFAULT_MAX_FREQ,
    DEFAULT_MIN_FREQ,
    DEFAULT_NOISE_FLOOR_DB,
    AudioBackend,
    SoundfileBackend,
    SpectralFrameSampler,
    frame_ends,
    require_backend,
)

logger = logging.getLogger(__name__)


TOP_CANDIDATES = 5


@dataclass(frozen=True)
class KeyDetectionResult:
    tonic: str
    mode: Mode
    confidence: float
    profile: Tuple[float, ...]  # normalized 12-bin histogram

    @property
    def name(self) -> str:
        return f"{self.tonic} {self.mode.value}"


@dataclass(frozen=True)
class KeyDetectionSummary:
    best: KeyDetectionResult
    top_candidates: Tuple[KeyCandidate, ...]


def detect_key_from_histogram(hist: Sequence[float]) -> Optional[KeyDetectionResult]:
    """Best key for a raw histogram, or None when it carries no signal."""
    h = normalize_histogram(hist)
    best = best_match(h)
    if best is None:
        return None
    return KeyDetectionResult(
        tonic=best.tonic,
        mode=best.mode,
        confidence=confidence_from_score(best.score),
        profile=tuple(float(x) for x in h),
    )


def rank_key_candidates_from_histogram(hist: Sequence[float]) -> List[KeyCandidate]:
    return rank_candidates(normalize_histogram(hist))


def summarize(result: Optional[KeyDetectionResult], top: int = TOP_CANDIDATES) -> Optional[KeyDetectionSummary]:
    """Attach the top ranked candidates, re-ranked from the result's own profile."""
    if result is None:
        return None
    candidates = rank_candidates(result.profile)[:top]
    return KeyDetectionSummary(best=result, top_candidates=tuple(candidates))


class KeyAnalysis:
    """One analysis run over a decoded buffer.

    Owns its spectral context and accumulator. ``step`` must be called for
    frames 0..frames-1 in order; ``close`` releases the analyser.
    """

    def __init__(
        self,
        backend: AudioBackend,
        samples: np.ndarray,
        sample_rate: int,
        options: AnalysisOptions,
        *,
        noise_floor_db: float = DEFAULT_NOISE_FLOOR_DB,
        min_freq: float = DEFAULT_MIN_FREQ,
        max_freq: float = DEFAULT_MAX_FREQ,
        alpha: float = DEFAULT_ALPHA,
    ):
        self.options = options
        self.sample_rate = int(sample_rate)
        mono = truncate(first_channel(np.asarray(samples)), self.sample_rate, options.seconds_to_analyze)
        self.sampler = SpectralFrameSampler(
            self.sample_rate,
            options.fft_size,
            noise_floor_db=noise_floor_db,
            min_freq=min_freq,
            max_freq=max_freq,
        )
        self.accumulator = PitchClassAccumulator(alpha=alpha)
        self.ends = frame_ends(self.sample_rate, options.seconds_to_analyze, options.frames)
        self._next = 0
        self.analyser = backend.open_analyser(mono, self.sample_rate, options.fft_size)

    @property
    def done(self) -> bool:
        return self._next >= len(self.ends)

    def step(self) -> None:
        if self.done:
            raise RuntimeError("All frames already analysed")
        self.accumulator.add(self.sampler.sample(self.analyser, self.ends[self._next]))
        self._next += 1

    def current(self) -> Optional[KeyDetectionResult]:
        """Match the histogram accumulated so far."""
        return detect_key_from_histogram(self.accumulator.smoothed)

    def discard(self) -> None:
        self.accumulator.reset()

    def close(self) -> None:
        self.analyser.close()


def detect_key(
    audio: np.ndarray,
    sr: int,
    options: Optional[AnalysisOptions] = None,
    backend: Optional[AudioBackend] = None,
) -> Optional[KeyDetectionSummary]:
    """Detect musical key from decoded audio, back to back with no pacing.

    Accepts shape (samples,) or (samples, channels); only the first channel
    is analysed. Returns None when no tonal energy was observed.
    """
    options = options or AnalysisOptions()
    backend = require_backend(backend if backend is not None else SoundfileBackend())
    analysis = KeyAnalysis(backend, audio, sr, options)
    try:
        while not analysis.done:
            analysis.step()
    finally:
        analysis.close()
    summary = summarize(analysis.current())
    logger.debug(f"Key detection: {summary.best.name if summary else 'undetermined'}")
    return summary


__all__ = [
    "TOP_CANDIDATES",
    "KeyDetectionResult",
    "KeyDetectionSummary",
    "detect_key_from_histogram",
    "rank_key_candidates_from_histogram",
    "summarize",
    "KeyAnalysis",
    "detect_key",
]
