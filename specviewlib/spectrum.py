"""Per-window spectral analysis: downmix, FFT, display-bin aggregation."""

from __future__ import annotations

import math

import numpy as np
from scipy import fft as scipy_fft

from .models import AudioSource, SpectrogramConfig, SpectrumGeometry
from .utils import round_up_to_power_of_two

# Assumed upper bound of |X[k]| for a unit-amplitude real and imaginary part.
MAX_MAGNITUDE = math.sqrt(2.0)


def spectrum_geometry(sample_rate: int, window_length_frames: float,
                      config: SpectrogramConfig) -> SpectrumGeometry:
    """How FFT bins map onto display bins for one window length.

    The FFT needs a power-of-two input, so the window is padded up.
    Display bins cover ``ideal_bin_size_in_hz`` each (a fractional number of
    FFT bins) up to ``min(ideal_max_frequency_in_hz, nyquist)``.
    """
    fft_input_length = round_up_to_power_of_two(window_length_frames)
    hz_per_fft_bin = sample_rate / fft_input_length
    fractional_bins_per_bin = config.ideal_bin_size_in_hz / hz_per_fft_bin
    max_frequency = min(config.ideal_max_frequency_in_hz, sample_rate / 2.0)
    max_fft_bins = min(fft_input_length, math.floor(max_frequency / hz_per_fft_bin))
    if fractional_bins_per_bin > 0:
        spectrum_bins = max(0, math.floor(max_fft_bins / fractional_bins_per_bin))
    else:
        spectrum_bins = 0
    return SpectrumGeometry(
        fft_input_length=fft_input_length,
        fractional_bins_per_bin=fractional_bins_per_bin,
        spectrum_bins=spectrum_bins,
    )


def slice_bounds(source: AudioSource, window_start_frames: float,
                 window_length_frames: float, fft_input_length: int) -> tuple[int, int]:
    """Integer ``[start, end)`` frames of one window, clipped to the buffer
    and to the FFT input length."""
    start = math.floor(window_start_frames)
    end = min(
        math.floor(window_start_frames + window_length_frames),
        source.frame_count,
        start + fft_input_length,
    )
    return start, max(start, end)


def downmix_window(source: AudioSource, start: int, end: int,
                   fft_input_length: int) -> np.ndarray:
    """Channel mean of frames ``[start, end)`` in a zeroed float32 buffer of
    ``fft_input_length`` samples.  The tail past ``end`` stays zero."""
    buffer = np.zeros(fft_input_length, dtype=np.float32)
    count = end - start
    if count <= 0:
        return buffer
    head = buffer[:count]
    for channel in source.channels:
        head += channel[start:end]
    head /= np.float32(source.channel_count)
    return buffer


def complete_spectrum(half: np.ndarray, n: int) -> np.ndarray:
    """Expand an ``rfft`` result to the full conjugate-symmetric spectrum."""
    full = np.empty(n, dtype=np.complex128)
    m = len(half)
    full[:m] = half
    full[m:] = np.conj(half[1:n - m + 1][::-1])
    return full


def compute_window(source: AudioSource, window_start_frames: float,
                   fft_input_length: int,
                   window_length_frames: float | None = None) -> np.ndarray:
    """Complex spectrum (length ``fft_input_length``) of one analysis window.

    *window_length_frames* defaults to ``fft_input_length``; a window that
    runs past the end of the buffer is zero-padded, never wrapped.
    """
    if window_length_frames is None:
        window_length_frames = fft_input_length
    start, end = slice_bounds(source, window_start_frames,
                              window_length_frames, fft_input_length)
    mono = downmix_window(source, start, end, fft_input_length)
    half = scipy_fft.rfft(mono.astype(np.float64))
    return complete_spectrum(half, fft_input_length)


def aggregate(spectrum: np.ndarray, geometry: SpectrumGeometry) -> np.ndarray:
    """Average FFT magnitudes into display bins, normalised to [0, 1].

    Display bin ``i`` sums the FFT bins ``[floor(i*f), ceil((i+1)*f))``
    (clipped to the spectrum) and divides by the span length plus one.
    The extra one is part of the established output and is kept so that
    rasters stay comparable across versions.
    """
    bins = geometry.spectrum_bins
    if bins <= 0:
        return np.zeros(0, dtype=np.float64)
    f = geometry.fractional_bins_per_bin
    n = len(spectrum)
    idx = np.arange(bins, dtype=np.float64)
    starts = np.floor(idx * f).astype(np.intp)
    ends = np.minimum(np.ceil((idx + 1) * f).astype(np.intp), n)
    ends = np.maximum(ends, starts)

    magnitudes = np.hypot(spectrum.real, spectrum.imag)
    cumulative = np.concatenate(([0.0], np.cumsum(magnitudes)))
    totals = cumulative[ends] - cumulative[starts]
    counts = (ends - starts) + 1
    average = totals / counts
    return np.clip(average / MAX_MAGNITUDE, 0.0, 1.0)


class SpectrumComputer:
    """Computes display spectra for windows of one source/config pair."""

    def __init__(self, source: AudioSource, config: SpectrogramConfig,
                 window_length_frames: float):
        self.source = source
        self.window_length_frames = window_length_frames
        self.geometry = spectrum_geometry(source.sample_rate,
                                          window_length_frames, config)

    @property
    def spectrum_bins(self) -> int:
        return self.geometry.spectrum_bins

    def compute_window(self, window_start_frames: float) -> np.ndarray:
        return compute_window(self.source, window_start_frames,
                              self.geometry.fft_input_length,
                              self.window_length_frames)

    def display_spectrum(self, window_start_frames: float) -> np.ndarray:
        """Unit magnitudes, one per display bin, low frequency first."""
        return aggregate(self.compute_window(window_start_frames), self.geometry)
