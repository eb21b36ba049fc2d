"""Diatonic chord suggestions for a detected key.

Provides scale and triad helpers plus a few canned progressions. Minor keys
use the natural minor scale.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from ksfeatures.key_profiles import Mode
from ksfeatures.pitch_class import PITCH_CLASSES


class ChordQuality(str, Enum):
    """Triad qualities that occur diatonically."""
    MAJOR = "maj"
    MINOR = "min"
    DIMINISHED = "dim"


# Scale patterns (semitones from root)
SCALE_PATTERNS: Dict[Mode, Tuple[int, ...]] = {
    Mode.MAJOR: (0, 2, 4, 5, 7, 9, 11),
    Mode.MINOR: (0, 2, 3, 5, 7, 8, 10),
}

# Triad quality on each scale degree
# Major: I ii iii IV V vi vii°
# Minor (natural): i ii° III iv v VI VII
TRIAD_QUALITIES: Dict[Mode, Tuple[ChordQuality, ...]] = {
    Mode.MAJOR: (
        ChordQuality.MAJOR, ChordQuality.MINOR, ChordQuality.MINOR, ChordQuality.MAJOR,
        ChordQuality.MAJOR, ChordQuality.MINOR, ChordQuality.DIMINISHED,
    ),
    Mode.MINOR: (
        ChordQuality.MINOR, ChordQuality.DIMINISHED, ChordQuality.MAJOR, ChordQuality.MINOR,
        ChordQuality.MINOR, ChordQuality.MAJOR, ChordQuality.MAJOR,
    ),
}

ROMAN_NUMERALS: Dict[Mode, Tuple[str, ...]] = {
    Mode.MAJOR: ("I", "ii", "iii", "IV", "V", "vi", "vii°"),
    Mode.MINOR: ("i", "ii°", "III", "iv", "v", "VI", "VII"),
}


# Common progressions (scale degrees, 1-indexed) as (name, major degrees, minor degrees)
COMMON_PROGRESSIONS: List[Tuple[str, Tuple[int, ...], Tuple[int, ...]]] = [
    ("Pop (I–V–vi–IV)", (1, 5, 6, 4), (1, 6, 3, 7)),  # minor: i–VI–III–VII
    ("Cadence (ii–V–I)", (2, 5, 1), (2, 5, 1)),  # no raised leading tone in minor
    ("Rock (I–bVII–IV)", (1, 7, 4), (1, 7, 4)),
    ("Circle-ish (vi–ii–V–I)", (6, 2, 5, 1), (6, 2, 5, 1)),
]


@dataclass(frozen=True)
class DiatonicChord:
    degree: int
    roman: str
    chord: str


@dataclass(frozen=True)
class Progression:
    name: str
    roman: str
    chords: Tuple[str, ...]


@dataclass(frozen=True)
class ChordSuggestions:
    diatonic_chords: Tuple[DiatonicChord, ...]
    progressions: Tuple[Progression, ...]


def note_index(note: str) -> int:
    """Pitch class index of a sharp-spelled note name (e.g. 'C#' -> 1)."""
    name = note.strip()
    if name not in PITCH_CLASSES:
        raise ValueError(f"Unsupported tonic: {note}")
    return PITCH_CLASSES.index(name)


def transpose(note: str, semitones: int) -> str:
    return PITCH_CLASSES[(note_index(note) + semitones) % 12]


def get_scale_notes(tonic: str, mode: Mode = Mode.MAJOR) -> List[str]:
    """Seven note names of the scale starting from ``tonic``."""
    return [transpose(tonic, step) for step in SCALE_PATTERNS[Mode(mode)]]


def chord_name(root: str, quality: ChordQuality) -> str:
    if quality is ChordQuality.MAJOR:
        return root
    if quality is ChordQuality.MINOR:
        return f"{root}m"
    return f"{root}dim"


def suggest_progressions(tonic: str, mode: Mode) -> ChordSuggestions:
    """Diatonic triads and canned progressions for a key.

    Only the key's tonic and mode are needed; raises ValueError for an
    unknown tonic or mode.
    """
    mode = Mode(mode)
    scale = get_scale_notes(tonic, mode)
    qualities = TRIAD_QUALITIES[mode]
    roman = ROMAN_NUMERALS[mode]

    diatonic = tuple(
        DiatonicChord(degree=i + 1, roman=roman[i], chord=chord_name(note, qualities[i]))
        for i, note in enumerate(scale)
    )

    progressions = []
    for name, degrees_major, degrees_minor in COMMON_PROGRESSIONS:
        degrees = degrees_major if mode is Mode.MAJOR else degrees_minor
        progressions.append(
            Progression(
                name=name,
                roman=" → ".join(roman[d - 1] for d in degrees),
                chords=tuple(diatonic[d - 1].chord for d in degrees),
            )
        )

    return ChordSuggestions(diatonic_chords=diatonic, progressions=tuple(progressions))


__all__ = [
    "ChordQuality",
    "SCALE_PATTERNS",
    "TRIAD_QUALITIES",
    "ROMAN_NUMERALS",
    "COMMON_PROGRESSIONS",
    "DiatonicChord",
    "Progression",
    "ChordSuggestions",
    "note_index",
    "transpose",
    "get_scale_notes",
    "chord_name",
    "suggest_progressions",
]
