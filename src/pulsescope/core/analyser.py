"""
Byte-frequency spectrum analysis.

Computes the same kind of snapshot a browser analyser node produces:
a Blackman-windowed FFT, smoothed over time, converted to decibels and
mapped onto unsigned bytes.
"""

from dataclasses import dataclass

import numpy as np
from scipy import signal as scipy_signal


@dataclass
class AnalyserParams:
    """Spectrum analyser settings."""

    fft_size: int = 256
    smoothing_time_constant: float = 0.5
    min_decibels: float = -100.0
    max_decibels: float = -30.0

    def __post_init__(self):
        n = self.fft_size
        if n < 32 or n & (n - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {n}")
        if not 0.0 <= self.smoothing_time_constant <= 1.0:
            raise ValueError(
                "smoothing_time_constant must be in [0, 1], "
                f"got {self.smoothing_time_constant}"
            )
        if self.max_decibels <= self.min_decibels:
            raise ValueError("max_decibels must be greater than min_decibels")

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2


class SpectrumAnalyser:
    """
    Converts windows of time-domain samples to byte magnitudes.

    Keeps the previous magnitudes between calls for time smoothing,
    so one analyser should serve one stream.
    """

    def __init__(self, params: AnalyserParams | None = None):
        self.params = params or AnalyserParams()
        self._window = scipy_signal.get_window("blackman", self.params.fft_size)
        self._previous = np.zeros(self.params.bin_count, dtype=np.float64)

    @property
    def fft_size(self) -> int:
        return self.params.fft_size

    @property
    def bin_count(self) -> int:
        return self.params.bin_count

    def reset(self):
        """Clear the time-smoothing memory."""
        self._previous[:] = 0.0

    def magnitudes(self, samples: np.ndarray) -> np.ndarray:
        """
        Smoothed linear magnitudes for the most recent ``fft_size`` samples.

        Shorter inputs are zero-padded at the front.

        Args:
            samples: 1-D float audio in [-1, 1].

        Returns:
            Array of ``bin_count`` magnitudes.
        """
        n = self.params.fft_size
        frame = np.zeros(n, dtype=np.float64)
        tail = np.asarray(samples, dtype=np.float64)[-n:]
        if len(tail):
            frame[n - len(tail):] = tail

        spectrum = np.fft.rfft(frame * self._window)[: self.bin_count]
        current = np.abs(spectrum) / n

        tau = self.params.smoothing_time_constant
        smoothed = tau * self._previous + (1.0 - tau) * current
        smoothed[~np.isfinite(smoothed)] = 0.0
        self._previous = smoothed
        return smoothed

    def byte_frequency_data(self, samples: np.ndarray, out: np.ndarray) -> np.ndarray:
        """
        Write byte magnitudes for the latest window into ``out``.

        Args:
            samples: 1-D float audio; the last ``fft_size`` samples are used.
            out: Caller-owned uint8 buffer of length ``bin_count``.

        Returns:
            ``out``, filled in place.
        """
        if len(out) != self.bin_count:
            raise ValueError(
                f"buffer length {len(out)} does not match bin count {self.bin_count}"
            )

        p = self.params
        magnitudes = self.magnitudes(samples)

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(magnitudes)

        scale = 255.0 / (p.max_decibels - p.min_decibels)
        scaled = np.floor(scale * (db - p.min_decibels))
        # log10(0) is -inf, which clips to 0
        out[:] = np.clip(scaled, 0, 255).astype(np.uint8)
        return out
