"""Tests for spectral frame sampling and pitch-class accumulation."""

import numpy as np
import pytest

from kscore.errors import AudioCapabilityError, HistogramShapeError
from ksfeatures.pitch_class import PitchClassAccumulator, has_signal, normalize_histogram
from ksfeatures.spectral import (
    FftFrameAnalyser,
    SpectralFrameSampler,
    frame_ends,
    require_backend,
)
from tests.fixtures.audio import A4, SR, UnavailableBackend, tone


class TestSpectralFrameSampler:
    """Per-bin filtering and pitch-class assignment."""

    def _silent_spectrum(self, fft_size=4096):
        return np.full(fft_size // 2, -200.0)

    def test_bin_filters(self):
        sampler = SpectralFrameSampler(sample_rate=44100, fft_size=4096)
        spectrum = self._silent_spectrum()
        spectrum[0] = 0.0  # DC is always skipped
        spectrum[1] = 0.0  # 10.8 Hz: below min_freq
        spectrum[200] = 0.0  # 2153 Hz: above max_freq
        spectrum[41] = -20.0  # 441.4 Hz -> A
        spectrum[42] = -90.0  # under the noise floor
        spectrum[43] = -85.0  # 462.9 Hz -> A#, exactly at the floor
        spectrum[44] = np.nan
        spectrum[45] = -np.inf

        energy = sampler.pitch_class_energy(spectrum)

        assert energy.shape == (12,)
        assert energy[9] == pytest.approx(0.1)
        assert energy[10] == pytest.approx(10 ** (-85 / 20))
        assert energy.sum() == pytest.approx(0.1 + 10 ** (-85 / 20))

    def test_silent_spectrum_is_all_zero(self):
        sampler = SpectralFrameSampler(sample_rate=SR, fft_size=4096)
        assert not sampler.pitch_class_energy(self._silent_spectrum()).any()

    def test_configurable_thresholds(self):
        sampler = SpectralFrameSampler(sample_rate=44100, fft_size=4096, noise_floor_db=-95, max_freq=400)
        spectrum = self._silent_spectrum()
        spectrum[41] = -20.0  # 441 Hz, now out of range
        spectrum[24] = -90.0  # 258 Hz -> C, now above the floor
        energy = sampler.pitch_class_energy(spectrum)
        assert energy[9] == 0.0
        assert energy[0] == pytest.approx(10 ** (-90 / 20))

    def test_rejects_wrong_spectrum_length(self):
        sampler = SpectralFrameSampler(sample_rate=SR, fft_size=4096)
        with pytest.raises(ValueError):
            sampler.pitch_class_energy(np.zeros(4096))

    def test_pure_tone_frame_lands_on_a(self):
        audio = tone([A4], duration=1.0)
        sampler = SpectralFrameSampler(sample_rate=SR, fft_size=4096)
        analyser = FftFrameAnalyser(audio, SR, 4096)
        energy = sampler.sample(analyser, end=SR)
        assert int(np.argmax(energy)) == 9

    def test_analyser_reads_silence_outside_buffer(self):
        audio = tone([A4], duration=0.5)
        analyser = FftFrameAnalyser(audio, SR, 1024)
        sampler = SpectralFrameSampler(sample_rate=SR, fft_size=1024)
        assert not sampler.sample(analyser, end=0).any()
        assert not sampler.sample(analyser, end=len(audio) + 1024).any()
        assert sampler.sample(analyser, end=512).any()

    def test_analyser_does_not_mutate_samples(self):
        audio = tone([A4], duration=0.5)
        before = audio.copy()
        analyser = FftFrameAnalyser(audio, SR, 2048)
        analyser.spectrum(4096)
        analyser.close()
        np.testing.assert_array_equal(audio, before)

    def test_closed_analyser_refuses_work(self):
        analyser = FftFrameAnalyser(np.zeros(4096, dtype=np.float32), SR, 1024)
        analyser.close()
        with pytest.raises(RuntimeError):
            analyser.spectrum(1024)


def test_frame_ends_are_evenly_spaced_and_increasing():
    ends = frame_ends(sample_rate=1000, seconds=2.0, frames=4)
    assert ends == [500, 1000, 1500, 2000]
    ends = frame_ends(sample_rate=SR, seconds=18.0, frames=96)
    assert len(ends) == 96
    assert all(a < b for a, b in zip(ends, ends[1:]))
    assert ends[-1] == 18 * SR


def test_require_backend():
    with pytest.raises(AudioCapabilityError):
        require_backend(None)
    with pytest.raises(AudioCapabilityError):
        require_backend(UnavailableBackend())


class TestPitchClassAccumulator:
    def test_exponential_smoothing_of_running_total(self):
        acc = PitchClassAccumulator()
        frame = [1.0] + [0.0] * 11
        acc.add(frame)
        assert acc.raw_total[0] == pytest.approx(1.0)
        assert acc.smoothed[0] == pytest.approx(0.15)
        acc.add(frame)
        assert acc.raw_total[0] == pytest.approx(2.0)
        assert acc.smoothed[0] == pytest.approx(0.85 * 0.15 + 0.15 * 2.0)
        assert acc.frames_seen == 2

    def test_order_matters(self):
        a = [1.0] + [0.0] * 11
        b = [0.0, 2.0] + [0.0] * 10

        forward = PitchClassAccumulator()
        forward.add(a)
        forward.add(b)
        backward = PitchClassAccumulator()
        backward.add(b)
        backward.add(a)

        np.testing.assert_array_equal(forward.raw_total, backward.raw_total)
        assert not np.allclose(forward.smoothed, backward.smoothed)

    def test_reset_discards_state(self):
        acc = PitchClassAccumulator()
        acc.add([1.0] * 12)
        acc.reset()
        assert acc.frames_seen == 0
        assert not acc.smoothed.any()
        assert not acc.raw_total.any()

    def test_rejects_bad_frames_and_alpha(self):
        with pytest.raises(HistogramShapeError):
            PitchClassAccumulator().add([1.0] * 11)
        with pytest.raises(ValueError):
            PitchClassAccumulator(alpha=1.0)

    def test_returned_vectors_are_copies(self):
        acc = PitchClassAccumulator()
        acc.add([1.0] * 12)
        snapshot = acc.smoothed
        snapshot[:] = 99.0
        assert acc.smoothed[0] == pytest.approx(0.15)


def test_normalize_histogram():
    np.testing.assert_allclose(normalize_histogram([1, 1, 2] + [0] * 9), [0.25, 0.25, 0.5] + [0] * 9)
    assert not normalize_histogram([0.0] * 12).any()


def test_has_signal():
    assert has_signal([0.0] * 11 + [1e-9])
    assert not has_signal([0.0] * 12)
    assert not has_signal([-1.0] + [0.0] * 11)
    with pytest.raises(HistogramShapeError):
        has_signal([1.0] * 11)
