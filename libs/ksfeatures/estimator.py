"""End-to-end key estimation for a named audio source.

The estimator fetches, decodes and analyses one source per call. Frame pacing
and result caching are injected policies; the estimator holds no global state.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Callable, Hashable, Optional, Protocol, Tuple

import numpy as np

from kscore.config import AnalysisOptions, get_settings
from kscore.fetch import AudioSource, HttpAudioSource

from .key_detection import KeyAnalysis, KeyDetectionResult, KeyDetectionSummary, summarize
from .spectral import AudioBackend, SoundfileBackend, require_backend

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, float]
ProgressCallback = Callable[[int, int], None]


# ------------------------------ Pacing ------------------------------ #
class Pacing(Protocol):
    async def wait(self, options: AnalysisOptions) -> None: ...


class NoPacing:
    """Process frames back to back, yielding to the event loop between them."""

    async def wait(self, options: AnalysisOptions) -> None:
        await asyncio.sleep(0)


class RealTimePacing:
    """Wait ``seconds_to_analyze / frames`` before every frame."""

    async def wait(self, options: AnalysisOptions) -> None:
        await asyncio.sleep(options.frame_interval)


# ------------------------------ Cache ------------------------------- #
class KeyResultCache(Protocol):
    def get(self, key: CacheKey) -> Optional[KeyDetectionSummary]: ...

    def set(self, key: CacheKey, value: KeyDetectionSummary) -> None: ...


class InMemoryKeyCache:
    """Bounded LRU map. Writes are idempotent, so last writer wins."""

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = get_settings().KS_CACHE_SIZE if max_entries is None else max_entries
        self._data: "OrderedDict[CacheKey, KeyDetectionSummary]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: CacheKey) -> Optional[KeyDetectionSummary]:
        value = self._data.get(key)
        if value is not None:
            self._data.move_to_end(key)
        return value

    def set(self, key: CacheKey, value: KeyDetectionSummary) -> None:
        if self.max_entries <= 0:
            return
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)


def cache_key(source: Hashable, options: AnalysisOptions) -> CacheKey:
    return (source, float(options.seconds_to_analyze))


# ---------------------------- Estimator ----------------------------- #
class KeyEstimator:
    """Fetch, decode and analyse audio sources into key estimates.

    Args:
        source: Audio acquisition collaborator (defaults to HttpAudioSource)
        backend: Decode/transform capability (defaults to SoundfileBackend)
        cache: Optional result cache keyed by (source, seconds_to_analyze)
        pacing: Frame scheduling policy (defaults to NoPacing)
    """

    def __init__(
        self,
        source: Optional[AudioSource] = None,
        backend: Optional[AudioBackend] = None,
        cache: Optional[KeyResultCache] = None,
        pacing: Optional[Pacing] = None,
    ):
        self.source = source if source is not None else HttpAudioSource()
        self.backend = backend if backend is not None else SoundfileBackend()
        self.cache = cache
        self.pacing = pacing if pacing is not None else NoPacing()

    async def estimate_url(
        self,
        url: str,
        options: Optional[AnalysisOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[KeyDetectionResult]:
        """Best key for the audio at ``url``, or None when no tonal signal was found.

        Raises:
            AudioCapabilityError: decode/transform facility unavailable
            AudioFetchError: non-2xx response or transport failure
            AudioDecodeError: payload is not decodable audio
        """
        options = options or AnalysisOptions.from_settings()
        backend = require_backend(self.backend)
        data = await self.source.fetch(url)
        decoded = backend.decode(data)
        logger.debug(
            f"Decoded {url}: {decoded.duration:.2f}s @ {decoded.sample_rate} Hz, {decoded.channels} ch"
        )
        return await self._analyse(decoded.samples, decoded.sample_rate, options, on_progress)

    async def estimate_url_with_candidates(
        self,
        url: str,
        options: Optional[AnalysisOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[KeyDetectionSummary]:
        """Best key plus the top ranked candidates; cached when a cache is set."""
        options = options or AnalysisOptions.from_settings()
        key = cache_key(url, options)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Key cache hit for {url}")
                return cached

        summary = summarize(await self.estimate_url(url, options, on_progress))
        if summary is not None and self.cache is not None:
            self.cache.set(key, summary)
        return summary

    async def estimate_bytes(
        self,
        data: bytes,
        options: Optional[AnalysisOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[KeyDetectionSummary]:
        """Same pipeline for an already fetched payload."""
        options = options or AnalysisOptions.from_settings()
        backend = require_backend(self.backend)
        decoded = backend.decode(data)
        return summarize(await self._analyse(decoded.samples, decoded.sample_rate, options, on_progress))

    async def estimate_samples(
        self,
        samples: np.ndarray,
        sample_rate: int,
        options: Optional[AnalysisOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[KeyDetectionSummary]:
        options = options or AnalysisOptions.from_settings()
        require_backend(self.backend)
        return summarize(await self._analyse(samples, sample_rate, options, on_progress))

    async def _analyse(
        self,
        samples: np.ndarray,
        sample_rate: int,
        options: AnalysisOptions,
        on_progress: Optional[ProgressCallback],
    ) -> Optional[KeyDetectionResult]:
        analysis = KeyAnalysis(self.backend, samples, sample_rate, options)
        try:
            while not analysis.done:
                await self.pacing.wait(options)
                analysis.step()
                if on_progress is not None:
                    on_progress(analysis.accumulator.frames_seen, options.frames)
        except asyncio.CancelledError:
            logger.info("Key analysis cancelled", extra={"frames": analysis.accumulator.frames_seen})
            analysis.discard()
            raise
        finally:
            analysis.close()

        result = analysis.current()
        if result is None:
            logger.info("Key undetermined: no tonal energy observed")
        else:
            logger.info(
                f"Detected key {result.name} (confidence={result.confidence:.3f})",
                extra={"key": result.name, "confidence": round(result.confidence, 4), "frames": options.frames},
            )
        return result


__all__ = [
    "Pacing",
    "NoPacing",
    "RealTimePacing",
    "KeyResultCache",
    "InMemoryKeyCache",
    "cache_key",
    "KeyEstimator",
]
