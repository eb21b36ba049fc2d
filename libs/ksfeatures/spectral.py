"""Spectral frame sampling: short-time spectra to per-frame pitch-class energy.

The platform's decode/transform facility is abstracted as an ``AudioBackend``
capability. ``SoundfileBackend`` decodes with soundfile and computes spectra
with numpy's real FFT, converted to dB with librosa.
"""

from __future__ import annotations

from typing import List, Protocol

import librosa
import numpy as np

from kscore.audio import DecodedAudio, decode_audio, decoding_available
from kscore.errors import AudioCapabilityError

from .pitch_class import N_PITCH_CLASSES


DEFAULT_NOISE_FLOOR_DB = -85.0
DEFAULT_MIN_FREQ = 50.0
DEFAULT_MAX_FREQ = 2000.0

# Floor for silent bins in amplitude_to_db: -200 dB, well under any noise floor.
_AMIN = 1e-10


class FrameAnalyser(Protocol):
    """An open spectral-analysis context over one mono buffer."""

    fft_size: int

    def spectrum(self, end: int) -> np.ndarray:
        """dB magnitudes (length fft_size // 2) of the window ending at sample ``end``."""
        ...

    def close(self) -> None: ...


class AudioBackend(Protocol):
    def available(self) -> bool: ...

    def decode(self, data: bytes) -> DecodedAudio: ...

    def open_analyser(self, samples: np.ndarray, sample_rate: int, fft_size: int) -> FrameAnalyser: ...


class FftFrameAnalyser:
    """Blackman-windowed magnitude spectrum, scaled by 1/fft_size, in dB.

    Holds a private copy of the samples so the caller's buffer is never touched.
    Samples before 0 and past the end of the buffer read as silence.
    """

    def __init__(self, samples: np.ndarray, sample_rate: int, fft_size: int):
        self.fft_size = int(fft_size)
        self.sample_rate = int(sample_rate)
        self._samples = np.array(samples, dtype=np.float64, copy=True).reshape(-1)
        self._window = np.blackman(self.fft_size)
        self._frame = np.zeros(self.fft_size)
        self.closed = False

    def spectrum(self, end: int) -> np.ndarray:
        if self.closed:
            raise RuntimeError("Frame analyser is closed")
        start = end - self.fft_size
        lo = max(start, 0)
        hi = min(end, self._samples.shape[0])
        self._frame.fill(0.0)
        if hi > lo:
            self._frame[lo - start : hi - start] = self._samples[lo:hi]
        mag = np.abs(np.fft.rfft(self._frame * self._window))[: self.fft_size // 2] / self.fft_size
        return librosa.amplitude_to_db(mag, ref=1.0, amin=_AMIN, top_db=None)

    def close(self) -> None:
        self._samples = np.zeros(0)
        self.closed = True


class SoundfileBackend:
    """Default capability: soundfile decoding plus numpy FFT analysis."""

    def available(self) -> bool:
        return decoding_available()

    def decode(self, data: bytes) -> DecodedAudio:
        return decode_audio(data)

    def open_analyser(self, samples: np.ndarray, sample_rate: int, fft_size: int) -> FftFrameAnalyser:
        return FftFrameAnalyser(samples, sample_rate, fft_size)


def require_backend(backend) -> AudioBackend:
    """Fail with AudioCapabilityError unless ``backend`` can decode and analyse."""
    if backend is None:
        raise AudioCapabilityError("No audio backend configured")
    if not backend.available():
        raise AudioCapabilityError(f"{type(backend).__name__} is not available on this runtime")
    return backend


class SpectralFrameSampler:
    """Maps one dB spectrum onto 12 pitch classes.

    Bin 0 (DC) is skipped. A bin contributes ``10 ** (dB / 20)`` to the pitch
    class nearest its centre frequency when its level is at least
    ``noise_floor_db`` and its frequency lies in ``[min_freq, max_freq]``.
    """

    def __init__(
        self,
        sample_rate: int,
        fft_size: int,
        noise_floor_db: float = DEFAULT_NOISE_FLOOR_DB,
        min_freq: float = DEFAULT_MIN_FREQ,
        max_freq: float = DEFAULT_MAX_FREQ,
    ):
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = int(sample_rate)
        self.fft_size = int(fft_size)
        self.noise_floor_db = noise_floor_db
        self.min_freq = min_freq
        self.max_freq = max_freq

        n_bins = self.fft_size // 2
        # freq = bin * sample_rate / fft_size
        freqs = librosa.fft_frequencies(sr=self.sample_rate, n_fft=self.fft_size)[1:n_bins]
        in_range = (freqs >= min_freq) & (freqs <= max_freq)
        self._bins = np.arange(1, n_bins)[in_range]
        midi = librosa.hz_to_midi(freqs[in_range])
        # Round half up, then reduce to a non-negative pitch class.
        self._pitch_classes = np.mod(np.floor(midi + 0.5).astype(int), N_PITCH_CLASSES)

    def pitch_class_energy(self, spectrum_db: np.ndarray) -> np.ndarray:
        """Raw 12-element energy vector for a single frame."""
        spectrum_db = np.asarray(spectrum_db, dtype=float)
        if spectrum_db.shape != (self.fft_size // 2,):
            raise ValueError(
                f"Expected spectrum of length {self.fft_size // 2}, got shape {spectrum_db.shape}"
            )
        db = spectrum_db[self._bins]
        keep = np.isfinite(db) & (db >= self.noise_floor_db)
        mags = np.power(10.0, db[keep] / 20.0)
        return np.bincount(self._pitch_classes[keep], weights=mags, minlength=N_PITCH_CLASSES)

    def sample(self, analyser: FrameAnalyser, end: int) -> np.ndarray:
        return self.pitch_class_energy(analyser.spectrum(end))


def frame_ends(sample_rate: int, seconds: float, frames: int) -> List[int]:
    """Sample index at which each of ``frames`` evenly spaced windows ends.

    Frame ``i`` ends at ``(i + 1) * seconds / frames``; strictly increasing
    whenever the spacing is at least one sample.
    """
    total = seconds * sample_rate
    return [int(np.floor((i + 1) * total / frames)) for i in range(frames)]


__all__ = [
    "DEFAULT_NOISE_FLOOR_DB",
    "DEFAULT_MIN_FREQ",
    "DEFAULT_MAX_FREQ",
    "FrameAnalyser",
    "AudioBackend",
    "FftFrameAnalyser",
    "SoundfileBackend",
    "require_backend",
    "SpectralFrameSampler",
    "frame_ends",
]
