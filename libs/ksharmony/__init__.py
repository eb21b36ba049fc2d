"""Keyscope Harmony

Diatonic chord and progression suggestions for a detected key.
"""

__version__ = "0.1.0"

from .chords import (
    ChordQuality,
    COMMON_PROGRESSIONS,
    ChordSuggestions,
    DiatonicChord,
    Progression,
    get_scale_notes,
    suggest_progressions,
    transpose,
)

__all__ = [
    "ChordQuality",
    "COMMON_PROGRESSIONS",
    "ChordSuggestions",
    "DiatonicChord",
    "Progression",
    "get_scale_notes",
    "suggest_progressions",
    "transpose",
]
