"""
streamclip Analytics Tests

- Framing (floor(N / F), trailing partial frame dropped)
- Band bin mapping
- RMS / crest / SNR / transience on hand-checkable signals
- Decode failures
- Determinism
"""

import math

import numpy as np
import pytest
import soundfile as sf

from streamclip import audio
from streamclip.analytics import analyze_file, compute_metrics
from streamclip.errors import DecodeError
from tests.conftest import create_test_wav, tone


class TestFraming:
    """PSD frame layout."""

    def test_five_minute_clip_frame_count(self):
        assert audio.frame_count(300 * 48000, 1024) == 14062

    def test_trailing_partial_frame_dropped(self):
        spectra = audio.frame_spectra(np.zeros(1024 * 3 + 500), 1024)
        assert spectra.shape == (3, 512)

    def test_fewer_samples_than_a_frame(self):
        spectra = audio.frame_spectra(np.zeros(100), 1024)
        assert spectra.shape == (0, 512)

    def test_psd_shape_in_metrics(self):
        metrics = compute_metrics(tone(48000))
        assert metrics.psd.shape == (46, 512)
        assert metrics.frame_count == 46
        assert metrics.num_samples == 48000

    def test_tone_peaks_in_expected_bin(self):
        # 1500 Hz at 48 kHz / 1024 lands exactly on bin 32
        spectra = audio.frame_spectra(tone(4096, freq=1500.0), 1024)
        assert int(np.argmax(spectra[0])) == 32


class TestBands:

    def test_default_band_bins(self):
        assert audio.band_bins(*audio.BANDS["63Hz"]) == (1, 2)
        assert audio.band_bins(*audio.BANDS["125Hz"]) == (2, 4)

    def test_freq_to_bin_rounds_half_up(self):
        # 0.5 bin exactly
        assert audio.freq_to_bin(23.4375, 1024, 48000) == 1
        assert audio.freq_to_bin(23.0, 1024, 48000) == 0

    def test_band_power_empty(self):
        assert audio.band_power(np.zeros((0, 512)), 1, 2) == 0.0
        assert audio.band_power(np.ones((3, 512)), 4, 4) == 0.0

    def test_band_power_mean_over_frames_and_bins(self):
        spectra = np.array([[0.0, 1.0, 3.0, 9.0], [0.0, 3.0, 5.0, 9.0]])
        assert audio.band_power(spectra, 1, 3) == pytest.approx(3.0)


class TestMetrics:
    """Hand-checkable metric values."""

    def test_rms_of_constant(self):
        assert compute_metrics(np.full(2048, 0.5)).rms == pytest.approx(0.5)

    def test_rms_scales_linearly(self):
        base = compute_metrics(tone(4096, amplitude=0.1)).rms
        assert compute_metrics(tone(4096, amplitude=0.4)).rms == pytest.approx(4 * base)

    def test_crest_factor_of_sine(self):
        metrics = compute_metrics(tone(48000, freq=1000.0, amplitude=0.5))
        assert metrics.crest_factor == pytest.approx(math.sqrt(2), rel=1e-3)

    def test_snr_of_dc_signal(self):
        # 8-sample frames of 0.5: DC magnitude 4, rms 0.5
        samples = np.full(16, 0.5)
        metrics = compute_metrics(samples, sample_rate=8, frame_size=8, bands={"dc": (0.0, 1.0)})
        assert metrics.band_powers["dc"] == pytest.approx(4.0)
        assert metrics.snr_db == pytest.approx(20 * math.log10(8), rel=1e-9)

    def test_transience_rate(self):
        # Two loud DC frames, two silent frames
        samples = np.concatenate([np.full(16, 0.5), np.zeros(16)])
        metrics = compute_metrics(samples, sample_rate=8, frame_size=8, bands={"dc": (0.0, 1.0)})
        assert metrics.transience_rate == pytest.approx(30.0)

    def test_transience_zero_without_frames(self):
        metrics = compute_metrics(np.full(100, 0.2))
        assert metrics.frame_count == 0
        assert metrics.transience_rate == 0.0

    def test_silence_stays_finite_except_snr(self):
        metrics = compute_metrics(np.zeros(4096))
        assert metrics.rms == 0.0
        assert metrics.crest_factor == 0.0
        assert metrics.snr_db == -math.inf
        assert metrics.to_dict()["snr_db"] is None

    def test_to_dict_keys(self):
        data = compute_metrics(tone(4096)).to_dict()
        assert set(data) == {
            "rms", "psd", "bandPowers", "snr_db", "crestFactor", "transienceRate",
            "sample_rate", "frame_size", "num_samples", "frame_count",
        }
        assert set(data["bandPowers"]) == {"63Hz", "125Hz"}
        assert len(data["psd"]) == 4
        assert len(data["psd"][0]) == 512

    def test_deterministic(self):
        a = compute_metrics(tone(48000)).to_dict()
        b = compute_metrics(tone(48000)).to_dict()
        assert a == b


class TestAnalyzeFile:

    def test_analyze_wav(self, test_wav_path):
        metrics = analyze_file(test_wav_path)
        assert metrics.sample_rate == 48000
        assert metrics.num_samples == 48000
        assert metrics.rms > 0

    def test_first_channel_only(self, tmp_path):
        path = tmp_path / "stereo.wav"
        left = tone(4096, amplitude=0.5)
        stereo = np.stack([left, np.zeros_like(left)], axis=1)
        sf.write(path, stereo, 48000, subtype="PCM_16")

        samples, sr = audio.read_first_channel(path)
        assert sr == 48000
        assert np.max(np.abs(samples)) > 0.4

    def test_garbage_file(self, tmp_path):
        path = tmp_path / "garbage.wav"
        path.write_bytes(b"this is not audio" * 10)
        with pytest.raises(DecodeError):
            analyze_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeError):
            analyze_file(tmp_path / "nope.wav")

    def test_empty_wav(self, tmp_path):
        path = tmp_path / "empty.wav"
        audio.write_wav(path, np.zeros(0))
        with pytest.raises(DecodeError, match="empty"):
            analyze_file(path)

    def test_roundtrip_length(self, tmp_path):
        path = tmp_path / "half.wav"
        create_test_wav(path, duration_sec=0.5)
        assert sf.info(str(path)).frames == 24000

    def test_five_minute_file(self, tmp_path):
        path = tmp_path / "five_minutes.wav"
        create_test_wav(path, duration_sec=300.0)

        metrics = analyze_file(path)
        assert metrics.sample_rate == 48000
        assert metrics.num_samples == 300 * 48000
        assert metrics.frame_count == 14062
        assert metrics.psd.shape == (14062, 512)
