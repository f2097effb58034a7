"""
streamclip Analytics Engine

Computes the metrics set for one clip from its decoded WAV.

Metrics (locked set):
    - rms:              sqrt(mean(x^2))
    - psd:              per-frame magnitude spectra (see streamclip.audio)
    - bandPowers:       mean magnitude per BANDS entry
    - snr_db:           20 * log10(max band power / (rms + EPS))
    - crestFactor:      peak_abs / (rms + EPS)
    - transienceRate:   transient frames / total frames * 60

Notes:
    - snr_db treats the loudest band as "signal" and broadband RMS as a
      noise-floor proxy. It is not a calibrated acoustic measurement.
    - transienceRate counts frames with any bin above crestFactor * 0.8
      and scales the frame share by 60. This is only events-per-minute
      if a frame lasts one second; the formula is kept for comparability
      with previously published metrics.
"""

import math
from pathlib import Path
from typing import Mapping

import numpy as np

from streamclip import audio
from streamclip.contracts import Metrics


TRANSIENT_RATIO = 0.8


def compute_metrics(
    samples: np.ndarray,
    sample_rate: int = audio.SAMPLE_RATE,
    frame_size: int = audio.FRAME_SIZE,
    bands: Mapping[str, tuple[float, float]] = audio.BANDS,
) -> Metrics:
    """
    Compute the metrics set from mono samples.

    Args:
        samples: Non-empty 1D samples in [-1, 1]
        sample_rate: Sample rate of `samples`
        frame_size: PSD frame length
        bands: Band label → (low Hz, high Hz)

    Returns:
        Metrics for the clip.
    """
    samples = np.asarray(samples, dtype=np.float64)

    rms = audio.compute_rms(samples)
    peak = audio.compute_peak_abs(samples)
    spectra = audio.frame_spectra(samples, frame_size)

    band_powers = {}
    for label, (low_hz, high_hz) in bands.items():
        lo, hi = audio.band_bins(low_hz, high_hz, frame_size, sample_rate)
        band_powers[label] = audio.band_power(spectra, lo, hi)

    signal = max(band_powers.values()) if band_powers else 0.0
    snr_db = 20 * math.log10(signal / (rms + audio.EPS)) if signal > 0 else -math.inf

    crest_factor = peak / (rms + audio.EPS)

    total_frames = spectra.shape[0]
    if total_frames:
        transient_frames = int(np.count_nonzero(
            np.any(spectra > crest_factor * TRANSIENT_RATIO, axis=1)
        ))
        transience_rate = transient_frames / total_frames * 60
    else:
        transience_rate = 0.0

    return Metrics(
        rms=rms,
        psd=spectra,
        band_powers=band_powers,
        snr_db=snr_db,
        crest_factor=crest_factor,
        transience_rate=transience_rate,
        sample_rate=sample_rate,
        frame_size=frame_size,
        num_samples=int(len(samples)),
    )


def analyze_file(path: Path, frame_size: int = audio.FRAME_SIZE) -> Metrics:
    """
    Decode a WAV container and compute its metrics.

    Raises:
        DecodeError: If the container cannot be turned into samples.
    """
    samples, sr = audio.read_first_channel(path)
    return compute_metrics(samples, sample_rate=sr, frame_size=frame_size)
