"""Analyzer Pod - Key detection service for Keyscope.

Exposes key estimation (from uploads, URLs or histograms) and diatonic chord
suggestions via HTTP.
"""

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kscore.config import AnalysisOptions
from kscore.errors import AudioAcquisitionError, AudioCapabilityError, HistogramShapeError
from kscore.logging import setup_logging, setup_tracing
from ksfeatures.estimator import InMemoryKeyCache, KeyEstimator, NoPacing, RealTimePacing
from ksfeatures.key_detection import (
    KeyDetectionSummary,
    detect_key_from_histogram,
    rank_key_candidates_from_histogram,
)
from ksfeatures.key_profiles import KeyCandidate, Mode
from ksharmony.chords import suggest_progressions
from pods.analyzer.config import config

logger = logging.getLogger(__name__)


# ============================================================================
# Startup/Shutdown
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    if setup_tracing(service_name=f"{config.SERVICE_NAME}-pod"):
        logger.info("OTEL tracing enabled")
    logger.info(f"{config.SERVICE_NAME} pod starting (v{config.SERVICE_VERSION})")
    yield
    logger.info(f"{config.SERVICE_NAME} pod shutting down")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Analyzer Pod",
    description="Musical key detection service for Keyscope",
    version=config.SERVICE_VERSION,
    lifespan=lifespan,
)


@lru_cache(maxsize=1)
def get_estimator() -> KeyEstimator:
    """Shared estimator; the result cache is the only state shared across requests."""
    pacing = RealTimePacing() if config.PACING == "realtime" else NoPacing()
    return KeyEstimator(cache=InMemoryKeyCache(), pacing=pacing)


# ============================================================================
# Request/Response Models
# ============================================================================

class KeyUrlRequest(BaseModel):
    """Request to analyze a remote (preview) audio URL."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    seconds_to_analyze: Optional[float] = Field(default=None, alias="secondsToAnalyze")
    fft_size: Optional[int] = Field(default=None, alias="fftSize")
    frames: Optional[int] = None


class HistogramRequest(BaseModel):
    """Request to match an already accumulated pitch-class histogram."""

    histogram: List[float]


class ChordRequest(BaseModel):
    tonic: str
    mode: Mode


class CandidateResponse(BaseModel):
    tonic: str
    mode: Mode
    name: str
    score: float


class KeyAnalysisResponse(BaseModel):
    """Key estimate. ``status`` is "undetermined" (with ``key`` null) when no tonal signal was found."""

    status: str
    key: Optional[str] = None
    tonic: Optional[str] = None
    mode: Optional[Mode] = None
    confidence: Optional[float] = None
    profile: Optional[List[float]] = None
    candidates: List[CandidateResponse] = Field(default_factory=list)


def _candidate(c: KeyCandidate) -> CandidateResponse:
    return CandidateResponse(tonic=c.tonic, mode=c.mode, name=c.name, score=c.score)


def _summary_response(summary: Optional[KeyDetectionSummary]) -> KeyAnalysisResponse:
    if summary is None:
        return KeyAnalysisResponse(status="undetermined")
    best = summary.best
    return KeyAnalysisResponse(
        status="ok",
        key=best.name,
        tonic=best.tonic,
        mode=best.mode,
        confidence=best.confidence,
        profile=list(best.profile),
        candidates=[_candidate(c) for c in summary.top_candidates],
    )


def _build_options(
    seconds_to_analyze: Optional[float], fft_size: Optional[int], frames: Optional[int]
) -> AnalysisOptions:
    defaults = AnalysisOptions.from_settings()
    overrides = {
        "seconds_to_analyze": seconds_to_analyze,
        "fft_size": fft_size,
        "frames": frames,
    }
    values = defaults.model_dump()
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return AnalysisOptions(**values)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid analysis options: {e}") from e


def _analysis_failed(e: Exception) -> HTTPException:
    if isinstance(e, AudioCapabilityError):
        logger.error(f"Audio capability unavailable: {e}")
        return HTTPException(status_code=503, detail=f"Audio analysis unavailable: {e}")
    logger.warning(f"Audio acquisition failed: {e}")
    return HTTPException(status_code=422, detail={"status": "failed", "error": str(e)})


# ============================================================================
# Endpoints
# ============================================================================

@app.post("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "service": config.SERVICE_NAME}


@app.post("/analyze/key", response_model=KeyAnalysisResponse)
async def analyze_key(
    file: UploadFile = File(...),
    seconds_to_analyze: Optional[float] = Form(default=None),
    fft_size: Optional[int] = Form(default=None),
    frames: Optional[int] = Form(default=None),
    estimator: KeyEstimator = Depends(get_estimator),
):
    """Detect musical key from an uploaded audio file.

    Args:
        file: Audio file (WAV, FLAC, OGG, MP3 where libsndfile supports it)

    Returns:
        JSON with detected key, confidence and top candidates
    """
    options = _build_options(seconds_to_analyze, fft_size, frames)
    audio_bytes = await file.read()
    if len(audio_bytes) > config.MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail="Uploaded file too large")

    try:
        summary = await estimator.estimate_bytes(audio_bytes, options)
    except (AudioAcquisitionError, AudioCapabilityError) as e:
        raise _analysis_failed(e) from e
    return _summary_response(summary)


@app.post("/analyze/key/url", response_model=KeyAnalysisResponse)
async def analyze_key_url(request: KeyUrlRequest, estimator: KeyEstimator = Depends(get_estimator)):
    """Detect musical key from a remote audio URL (e.g. a store preview clip)."""
    options = _build_options(request.seconds_to_analyze, request.fft_size, request.frames)
    try:
        summary = await estimator.estimate_url_with_candidates(request.url, options)
    except (AudioAcquisitionError, AudioCapabilityError) as e:
        raise _analysis_failed(e) from e
    return _summary_response(summary)


@app.post("/analyze/key/histogram", response_model=KeyAnalysisResponse)
async def analyze_key_histogram(request: HistogramRequest):
    """Match a 12-bin pitch-class histogram against all 24 keys."""
    try:
        result = detect_key_from_histogram(request.histogram)
        ranked = rank_key_candidates_from_histogram(request.histogram)
    except HistogramShapeError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    if result is None:
        return KeyAnalysisResponse(status="undetermined")
    return KeyAnalysisResponse(
        status="ok",
        key=result.name,
        tonic=result.tonic,
        mode=result.mode,
        confidence=result.confidence,
        profile=list(result.profile),
        candidates=[_candidate(c) for c in ranked],
    )


@app.post("/suggest/chords")
async def suggest_chords(request: ChordRequest):
    """Diatonic triads and common progressions for a key."""
    try:
        suggestions = suggest_progressions(request.tonic, request.mode)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return {
        "key": f"{request.tonic} {request.mode.value}",
        "diatonic_chords": [
            {"degree": c.degree, "roman": c.roman, "chord": c.chord}
            for c in suggestions.diatonic_chords
        ],
        "progressions": [
            {"name": p.name, "roman": p.roman, "chords": list(p.chords)}
            for p in suggestions.progressions
        ],
    }


# ============================================================================
# Root
# ============================================================================

@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "endpoints": {
            "health": "POST /health",
            "analyze_key": "POST /analyze/key",
            "analyze_key_url": "POST /analyze/key/url",
            "analyze_key_histogram": "POST /analyze/key/histogram",
            "suggest_chords": "POST /suggest/chords",
        }
    }


# ============================================================================
# Logging Setup
# ============================================================================

if __name__ == "__main__":
    setup_logging(service_name=config.SERVICE_NAME)
    import uvicorn

    uvicorn.run(
        "pods.analyzer.main:app",
        host="0.0.0.0",
        port=config.SERVICE_PORT,
        reload=config.ENV == "dev",
    )
