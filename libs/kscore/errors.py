"""Error taxonomy shared by the Keyscope libraries and pods.

"No tonal signal" is deliberately absent: it is a ``None`` result, never an
exception.
"""

from __future__ import annotations

from typing import Optional


class KeyscopeError(Exception):
    """Base class for all Keyscope errors."""


class AudioCapabilityError(KeyscopeError):
    """The decode/transform facility is not available on this runtime."""


class AudioAcquisitionError(KeyscopeError):
    """The audio source could not be fetched or decoded."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


class AudioFetchError(AudioAcquisitionError):
    """Non-success response or transport failure while fetching audio."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, source=source)
        self.status_code = status_code


class AudioDecodeError(AudioAcquisitionError):
    """The payload was fetched but could not be decoded as audio."""


class HistogramShapeError(KeyscopeError, ValueError):
    """A pitch-class histogram did not have exactly 12 bins."""


__all__ = [
    "KeyscopeError",
    "AudioCapabilityError",
    "AudioAcquisitionError",
    "AudioFetchError",
    "AudioDecodeError",
    "HistogramShapeError",
]
