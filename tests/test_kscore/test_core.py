"""Tests for shared settings, audio decoding, fetching and logging."""

import asyncio
import json
import logging

import httpx
import numpy as np
import pytest

from kscore.audio import decode_audio, encode_wav, first_channel, truncate
from kscore.config import AnalysisOptions, get_settings
from kscore.errors import AudioDecodeError, AudioFetchError
from kscore.fetch import HttpAudioSource
from kscore.logging import JsonFormatter


@pytest.fixture
def clean_settings(monkeypatch):
    for key in ("KS_FFT_SIZE", "KS_FRAMES", "KS_SECONDS_TO_ANALYZE", "KS_CACHE_SIZE"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self, clean_settings):
        s = get_settings()
        assert s.KS_SECONDS_TO_ANALYZE == 18.0
        assert s.KS_FFT_SIZE == 4096
        assert s.KS_FRAMES == 96
        options = AnalysisOptions.from_settings(s)
        assert options == AnalysisOptions()

    def test_env_overrides(self, clean_settings):
        clean_settings.setenv("KS_FFT_SIZE", "2048")
        clean_settings.setenv("KS_FRAMES", "48")
        options = AnalysisOptions.from_settings()
        assert options.fft_size == 2048
        assert options.frames == 48

    def test_invalid_env_raises(self, clean_settings):
        clean_settings.setenv("KS_FFT_SIZE", "3000")
        with pytest.raises(ValueError, match="KS_FFT_SIZE"):
            get_settings()


class TestAnalysisOptions:
    def test_camel_case_aliases(self):
        options = AnalysisOptions.model_validate({"secondsToAnalyze": 10, "fftSize": 8192, "frames": 32})
        assert options.seconds_to_analyze == 10
        assert options.fft_size == 8192
        assert options.frame_interval == pytest.approx(10 / 32)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"fft_size": 1000},
            {"fft_size": 16},
            {"frames": 0},
            {"seconds_to_analyze": 0},
            {"hop": 512},
        ],
    )
    def test_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            AnalysisOptions(**kwargs)


class TestAudio:
    def test_decode_roundtrip_shape(self):
        audio = np.zeros((1000, 2), dtype=np.float32)
        decoded = decode_audio(encode_wav(audio, 8000))
        assert decoded.sample_rate == 8000
        assert decoded.channels == 2
        assert decoded.duration == pytest.approx(1000 / 8000)

    @pytest.mark.parametrize("payload", [b"", b"not audio at all"])
    def test_decode_rejects_garbage(self, payload):
        with pytest.raises(AudioDecodeError):
            decode_audio(payload)

    def test_first_channel_and_truncate(self):
        stereo = np.stack([np.ones(10), np.zeros(10)], axis=1)
        np.testing.assert_array_equal(first_channel(stereo), np.ones(10))
        mono = np.arange(10.0)
        assert first_channel(mono) is mono
        assert len(truncate(mono, sample_rate=4, seconds=1.5)) == 6
        assert len(truncate(mono, sample_rate=4, seconds=10)) == 10


class TestHttpAudioSource:
    def test_returns_body(self):
        source = HttpAudioSource(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"abc")))
        assert asyncio.run(source.fetch("https://example.com/a.wav")) == b"abc"

    def test_non_success_status(self):
        source = HttpAudioSource(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        with pytest.raises(AudioFetchError) as exc_info:
            asyncio.run(source.fetch("https://example.com/a.wav"))
        assert exc_info.value.status_code == 503
        assert exc_info.value.source == "https://example.com/a.wav"

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = HttpAudioSource(transport=httpx.MockTransport(handler))
        with pytest.raises(AudioFetchError) as exc_info:
            asyncio.run(source.fetch("https://example.com/a.wav"))
        assert exc_info.value.status_code is None

    def test_payload_limit(self):
        source = HttpAudioSource(
            max_bytes=10,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"x" * 11)),
        )
        with pytest.raises(AudioFetchError, match="exceeds"):
            asyncio.run(source.fetch("https://example.com/a.wav"))

    def test_rejects_non_http_urls(self):
        with pytest.raises(AudioFetchError):
            asyncio.run(HttpAudioSource().fetch("file:///etc/passwd"))

    def test_malformed_url_is_a_fetch_error(self):
        def handler(request):
            raise AssertionError("request should not be sent")

        source = HttpAudioSource(transport=httpx.MockTransport(handler))
        url = "https://a.example/x\x00.mp3"
        with pytest.raises(AudioFetchError) as exc_info:
            asyncio.run(source.fetch(url))
        assert exc_info.value.source == url
        assert exc_info.value.status_code is None


def test_json_formatter():
    record = logging.LogRecord("ksfeatures.estimator", logging.INFO, __file__, 1, "Detected %s", ("A minor",), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "INFO"
    assert payload["name"] == "ksfeatures.estimator"
    assert payload["message"] == "Detected A minor"
    assert "trace_id" not in payload


def test_json_formatter_tags_service_and_analysis_context():
    record = logging.LogRecord("ksfeatures.estimator", logging.INFO, __file__, 1, "Detected key", (), None)
    record.key = "A minor"
    record.confidence = 0.81
    record.source = None
    payload = json.loads(JsonFormatter(service="analyzer", env="test").format(record))
    assert payload["service"] == "analyzer"
    assert payload["env"] == "test"
    assert payload["key"] == "A minor"
    assert payload["confidence"] == 0.81
    assert "source" not in payload
    assert "frames" not in payload
