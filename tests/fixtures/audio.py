"""Synthetic audio and test doubles shared by the engine and pod tests."""

import asyncio

import numpy as np

from kscore.audio import encode_wav
from ksfeatures.spectral import SoundfileBackend

SR = 22050

# Equal-tempered frequencies (Hz)
C4, E4, G4, A4, C5 = 261.626, 329.628, 391.995, 440.0, 523.251


def tone(freqs, duration, sr=SR, amplitude=0.5):
    """Sum of sines, scaled so the peak stays inside [-1, 1]."""
    t = np.arange(int(sr * duration)) / sr
    audio = sum(np.sin(2 * np.pi * f * t) for f in freqs)
    return (amplitude * audio / len(freqs)).astype(np.float32)


def wav_bytes(audio, sr=SR):
    return encode_wav(audio, sr)


class StaticSource:
    """AudioSource returning fixed bytes and counting fetches."""

    def __init__(self, data: bytes):
        self.data = data
        self.calls = []

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        return self.data


class RecordingBackend(SoundfileBackend):
    """SoundfileBackend that remembers every analyser it opened."""

    def __init__(self):
        self.analysers = []

    def open_analyser(self, samples, sample_rate, fft_size):
        analyser = super().open_analyser(samples, sample_rate, fft_size)
        self.analysers.append(analyser)
        return analyser


class UnavailableBackend(SoundfileBackend):
    def available(self) -> bool:
        return False


class StallingPacing:
    """Lets ``stall_after`` frames through, then blocks until cancelled."""

    def __init__(self, stall_after: int):
        self.stall_after = stall_after
        self.calls = 0
        self.stalled = asyncio.Event()

    async def wait(self, options) -> None:
        self.calls += 1
        if self.calls > self.stall_after:
            self.stalled.set()
            await asyncio.Event().wait()
