"""
Frequency band extraction.

Reduces a byte-magnitude spectrum snapshot to three normalized
energy levels: bass, mid and treble.
"""

from dataclasses import dataclass

import numpy as np

# Magnitudes are unsigned bytes
MAX_MAGNITUDE = 255.0


@dataclass(frozen=True)
class BandEnergies:
    """Energy levels for the three frequency bands, each in [0.0, 1.0]."""

    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0


class BandExtractor:
    """
    Splits a spectrum snapshot into three contiguous bin ranges.

    With ``third = n // 3`` the ranges are ``[0, third)``,
    ``[third, 2 * third)`` and ``[2 * third, n)``, so any remainder
    bins land in the treble band.
    """

    @staticmethod
    def band_edges(n_bins: int) -> tuple[int, int]:
        """
        Calculate the two split points for a snapshot of ``n_bins``.

        Args:
            n_bins: Snapshot length.

        Returns:
            (bass_end, mid_end) bin indices.
        """
        third = n_bins // 3
        return third, third * 2

    @staticmethod
    def _mean(values: np.ndarray) -> float:
        if values.size == 0:
            return 0.0
        return float(np.mean(values, dtype=np.float64)) / MAX_MAGNITUDE

    def extract(self, snapshot: np.ndarray) -> BandEnergies:
        """
        Reduce a snapshot to band energies.

        Args:
            snapshot: 1-D array of magnitudes in [0, 255].

        Returns:
            BandEnergies with each band's mean magnitude scaled to [0, 1].
        """
        data = np.asarray(snapshot)
        bass_end, mid_end = self.band_edges(len(data))

        return BandEnergies(
            bass=self._mean(data[:bass_end]),
            mid=self._mean(data[bass_end:mid_end]),
            treble=self._mean(data[mid_end:]),
        )
