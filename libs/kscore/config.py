"""Configuration loading for Keyscope.

Reads environment variables into a typed settings object using Pydantic v2.

Env variables (see .env.example):
- KS_LOG_LEVEL (default: INFO)
- KS_ENV (default: development)
- KS_OTEL_ENDPOINT (optional)
- KS_SECONDS_TO_ANALYZE (default: 18)
- KS_FFT_SIZE (default: 4096)
- KS_FRAMES (default: 96)
- KS_FETCH_TIMEOUT (default: 15 seconds)
- KS_MAX_AUDIO_BYTES (default: 10 MiB)
- KS_CACHE_SIZE (default: 256 entries)
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 32768


def _check_fft_size(value: int) -> int:
    if value < MIN_FFT_SIZE or value > MAX_FFT_SIZE or value & (value - 1):
        raise ValueError(
            f"fft_size must be a power of two between {MIN_FFT_SIZE} and {MAX_FFT_SIZE}, got {value}"
        )
    return value


class Settings(BaseModel):
    KS_LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    KS_ENV: str = Field(default="development", description="Environment name")
    KS_OTEL_ENDPOINT: Optional[str] = Field(
        default=None, description="OTLP HTTP endpoint (e.g., http://localhost:4318)"
    )

    KS_SECONDS_TO_ANALYZE: float = Field(default=18.0, gt=0, description="Clip duration analyzed")
    KS_FFT_SIZE: int = Field(default=4096, description="Spectral transform length")
    KS_FRAMES: int = Field(default=96, ge=1, description="Temporal sample count")

    KS_FETCH_TIMEOUT: float = Field(default=15.0, gt=0, description="Audio fetch timeout (s)")
    KS_MAX_AUDIO_BYTES: int = Field(default=10 * 1024 * 1024, gt=0, description="Max fetched payload")
    KS_CACHE_SIZE: int = Field(default=256, ge=0, description="Result cache entries (0 disables)")

    model_config = ConfigDict(extra="ignore")

    @field_validator("KS_FFT_SIZE")
    @classmethod
    def validate_fft_size(cls, v: int) -> int:
        return _check_fft_size(v)


class AnalysisOptions(BaseModel):
    """The only tunables of the key detection engine.

    Accepts both snake_case names and the camelCase aliases used by clients
    (``secondsToAnalyze``, ``fftSize``, ``frames``).
    """

    seconds_to_analyze: float = Field(default=18.0, gt=0, alias="secondsToAnalyze")
    fft_size: int = Field(default=4096, alias="fftSize")
    frames: int = Field(default=96, ge=1)

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    @field_validator("fft_size")
    @classmethod
    def validate_fft_size(cls, v: int) -> int:
        return _check_fft_size(v)

    @property
    def frame_interval(self) -> float:
        """Seconds between two consecutive frame instants."""
        return self.seconds_to_analyze / self.frames

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AnalysisOptions":
        s = settings or get_settings()
        return cls(
            seconds_to_analyze=s.KS_SECONDS_TO_ANALYZE,
            fft_size=s.KS_FFT_SIZE,
            frames=s.KS_FRAMES,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment and memoize.

    Raises:
        ValueError: if an environment variable holds an invalid value.
    """

    env = {
        key: value
        for key, value in os.environ.items()
        if key.startswith("KS_") and key in Settings.model_fields
    }

    try:
        return Settings.model_validate(env)
    except ValidationError as e:
        bad = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ValueError(
            f"Invalid environment variables: {', '.join(bad)}"
        ) from e


__all__ = ["Settings", "AnalysisOptions", "get_settings", "MIN_FFT_SIZE", "MAX_FFT_SIZE"]
