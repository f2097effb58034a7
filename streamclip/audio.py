"""
streamclip Audio Utilities

Deterministic, CPU-only audio primitives for clip analytics.

Library Stack:
    - soundfile: WAV/FLAC I/O (libsndfile-backed)
    - numpy: Array operations
    - scipy.fft: Real FFT for per-frame magnitude spectra

INVARIANTS:
    - All operations are deterministic
    - No randomness, seeds, or time-based logic
    - Single-threaded FFT (scipy.fft default workers)
    - Same samples → identical output

FRAMING RULES (FROZEN):
    - Consecutive, non-overlapping frames of FRAME_SIZE samples
    - Trailing partial frame is dropped, never zero-padded
    - Frame spectrum = |DFT| for bins 0 .. FRAME_SIZE/2 - 1
"""

import math
from pathlib import Path

import numpy as np
import soundfile as sf
from scipy import fft as sp_fft

from streamclip.errors import DecodeError


# =============================================================================
# Constants (FROZEN)
# =============================================================================

SAMPLE_RATE = 48000
FRAME_SIZE = 1024
EPS = 1e-12  # Keeps SNR and crest factor finite on silence

# Octave bands: label → (low Hz, high Hz) around the nominal centre
BANDS: dict[str, tuple[float, float]] = {
    "63Hz": (63 / math.sqrt(2), 63 * math.sqrt(2)),
    "125Hz": (125 / math.sqrt(2), 125 * math.sqrt(2)),
}


# =============================================================================
# WAV I/O
# =============================================================================


def read_first_channel(path: Path) -> tuple[np.ndarray, int]:
    """
    Decode an audio container and return its first channel.

    Args:
        path: Path to a WAV (or any libsndfile-readable) file

    Returns:
        Tuple of (samples as float64 in [-1, 1], sample_rate)

    Raises:
        DecodeError: If the file cannot be parsed, has no channels or
            samples, or contains non-finite values.
    """
    try:
        data, sr = sf.read(path, dtype="float64", always_2d=True)
    except (RuntimeError, OSError) as e:
        raise DecodeError(f"Failed to decode {path}: {e}") from e

    if data.ndim != 2 or data.shape[1] == 0:
        raise DecodeError(f"Audio file has no channels: {path}")
    if data.shape[0] == 0:
        raise DecodeError(f"Audio file is empty: {path}")

    samples = np.ascontiguousarray(data[:, 0])
    if not np.all(np.isfinite(samples)):
        raise DecodeError(f"Audio file contains non-finite values (NaN or Inf): {path}")
    return samples, int(sr)


def write_wav(path: Path, samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> None:
    """
    Write mono samples as PCM 16-bit WAV.

    Note:
        - Hard clips to [-1, 1] before writing
        - Deterministic output (no dithering)
    """
    clipped = np.clip(samples, -1.0, 1.0)
    sf.write(path, clipped, sample_rate, subtype="PCM_16")


# =============================================================================
# Scalar metrics
# =============================================================================


def compute_rms(samples: np.ndarray) -> float:
    """Compute RMS of entire signal."""
    return float(np.sqrt(np.mean(np.square(samples))))


def compute_peak_abs(samples: np.ndarray) -> float:
    """Compute peak absolute value of signal."""
    return float(np.max(np.abs(samples)))


# =============================================================================
# Spectral framing
# =============================================================================


def frame_count(num_samples: int, frame_size: int = FRAME_SIZE) -> int:
    """Number of complete frames: floor(N / F)."""
    return num_samples // frame_size


def frame_spectra(samples: np.ndarray, frame_size: int = FRAME_SIZE) -> np.ndarray:
    """
    Magnitude spectrum of each complete frame.

    Args:
        samples: Input samples (1D)
        frame_size: Frame length in samples

    Returns:
        Array of shape (floor(N / frame_size), frame_size // 2), time order.
    """
    n_frames = frame_count(len(samples), frame_size)
    n_bins = frame_size // 2
    if n_frames == 0:
        return np.zeros((0, n_bins), dtype=np.float64)

    frames = np.asarray(samples[: n_frames * frame_size], dtype=np.float64)
    frames = frames.reshape(n_frames, frame_size)
    spectra = np.abs(sp_fft.rfft(frames, axis=1))
    return spectra[:, :n_bins]


def freq_to_bin(freq: float, frame_size: int = FRAME_SIZE, sample_rate: int = SAMPLE_RATE) -> int:
    """
    Map a frequency to a bin index: round(freq * F / sr), halves rounded up.
    """
    return int(math.floor(freq * frame_size / sample_rate + 0.5))


def band_bins(
    low_hz: float,
    high_hz: float,
    frame_size: int = FRAME_SIZE,
    sample_rate: int = SAMPLE_RATE,
) -> tuple[int, int]:
    """Half-open bin range [lo, hi) for a frequency band."""
    return (
        freq_to_bin(low_hz, frame_size, sample_rate),
        freq_to_bin(high_hz, frame_size, sample_rate),
    )


def band_power(spectra: np.ndarray, lo_bin: int, hi_bin: int) -> float:
    """
    Mean magnitude over bins [lo_bin, hi_bin) across all frames.

    Returns 0.0 when there are no frames or the range is empty.
    """
    hi_bin = min(hi_bin, spectra.shape[1])
    if spectra.shape[0] == 0 or hi_bin <= lo_bin:
        return 0.0
    return float(np.mean(spectra[:, lo_bin:hi_bin]))
