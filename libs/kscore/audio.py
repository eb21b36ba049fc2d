"""Audio I/O helpers for Keyscope.

Decodes compressed or PCM payloads with soundfile. Waveforms are returned as
float32 arrays in range [-1.0, 1.0] with shape (samples, channels).
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import soundfile as sf

from .errors import AudioCapabilityError, AudioDecodeError


@dataclass(frozen=True)
class DecodedAudio:
    """Decoded PCM payload."""

    samples: np.ndarray  # float32, shape (samples, channels)
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1]) if self.samples.ndim == 2 else 1

    @property
    def duration(self) -> float:
        return self.samples.shape[0] / float(self.sample_rate) if self.sample_rate else 0.0


def decoding_available() -> bool:
    """True when libsndfile is loaded and reports at least one readable format."""
    return bool(sf.available_formats())


def read_audio_bytes(data: bytes) -> Tuple[np.ndarray, int]:
    """Decode an in-memory payload and return (audio, sample_rate).

    Raises:
        AudioDecodeError: if the payload is empty or not a format libsndfile reads.
    """
    if not data:
        raise AudioDecodeError("Empty audio payload")
    try:
        with io.BytesIO(data) as buf:
            audio, sr = sf.read(buf, dtype="float32", always_2d=True)
    except (sf.LibsndfileError, RuntimeError, TypeError) as e:
        raise AudioDecodeError(f"Unable to decode audio: {e}") from e
    return audio, int(sr)


def decode_audio(data: bytes) -> DecodedAudio:
    if not decoding_available():
        raise AudioCapabilityError("libsndfile reports no readable audio formats")
    audio, sr = read_audio_bytes(data)
    if sr <= 0:
        raise AudioDecodeError(f"Invalid sample rate: {sr}")
    return DecodedAudio(samples=audio, sample_rate=sr)


def encode_wav(audio: np.ndarray, sample_rate: int, subtype: str = "PCM_16") -> bytes:
    """Encode audio of shape (samples,) or (samples, channels) as WAV bytes."""
    buf = io.BytesIO()
    sf.write(buf, audio, sample_rate, format="WAV", subtype=subtype)
    return buf.getvalue()


def first_channel(audio: np.ndarray) -> np.ndarray:
    """Return the first channel as a 1-D view. If mono, return as-is."""
    if audio.ndim == 1:
        return audio
    if audio.shape[1] == 0:
        return np.zeros(audio.shape[0], dtype=audio.dtype)
    return audio[:, 0]


def truncate(audio: np.ndarray, sample_rate: int, seconds: float) -> np.ndarray:
    """Keep at most ``seconds`` of audio from the start."""
    limit = int(np.floor(seconds * sample_rate))
    return audio[: max(0, limit)]


__all__ = [
    "DecodedAudio",
    "decoding_available",
    "read_audio_bytes",
    "decode_audio",
    "encode_wav",
    "first_channel",
    "truncate",
]
