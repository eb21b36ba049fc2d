"""Keyscope key detection engine.

Spectral frame sampling, pitch-class accumulation and profile matching.
"""

__version__ = "0.1.0"

from .pitch_class import PITCH_CLASSES, PitchClassAccumulator, normalize_histogram
from .key_profiles import Mode, KeyCandidate, best_match, rank_candidates, confidence_from_score
from .spectral import AudioBackend, FrameAnalyser, SoundfileBackend, SpectralFrameSampler
from .key_detection import (
    KeyDetectionResult,
    KeyDetectionSummary,
    detect_key,
    detect_key_from_histogram,
    rank_key_candidates_from_histogram,
)
from .estimator import InMemoryKeyCache, KeyEstimator, NoPacing, RealTimePacing

__all__ = [
    # Histograms
    "PITCH_CLASSES",
    "PitchClassAccumulator",
    "normalize_histogram",
    # Matching
    "Mode",
    "KeyCandidate",
    "best_match",
    "rank_candidates",
    "confidence_from_score",
    # Spectral sampling
    "AudioBackend",
    "FrameAnalyser",
    "SoundfileBackend",
    "SpectralFrameSampler",
    # Detection
    "KeyDetectionResult",
    "KeyDetectionSummary",
    "detect_key",
    "detect_key_from_histogram",
    "rank_key_candidates_from_histogram",
    # Estimator
    "InMemoryKeyCache",
    "KeyEstimator",
    "NoPacing",
    "RealTimePacing",
]
