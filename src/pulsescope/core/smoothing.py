"""
Exponential smoothing of band energies across ticks.
"""

from pulsescope.core.bands import BandEnergies


class SmoothingFilter:
    """
    Per-band exponential moving average.

    Each tick moves the smoothed value a fixed fraction of the way
    towards the raw value, which damps jitter without a fixed window.
    """

    def __init__(self, factor: float = 0.15):
        """
        Initialize the filter.

        Args:
            factor: Fraction of the remaining distance covered per tick, in (0, 1].
        """
        if not 0.0 < factor <= 1.0:
            raise ValueError(f"smoothing factor must be in (0, 1], got {factor}")
        self.factor = factor
        self._state = BandEnergies()

    @property
    def state(self) -> BandEnergies:
        """Current smoothed values."""
        return self._state

    def _lerp(self, current: float, target: float) -> float:
        return current + (target - current) * self.factor

    def update(self, raw: BandEnergies) -> BandEnergies:
        """
        Advance the filter by one tick.

        Args:
            raw: This tick's unsmoothed band energies.

        Returns:
            The new smoothed band energies.
        """
        self._state = BandEnergies(
            bass=self._lerp(self._state.bass, raw.bass),
            mid=self._lerp(self._state.mid, raw.mid),
            treble=self._lerp(self._state.treble, raw.treble),
        )
        return self._state

    def reset(self):
        """Return all bands to zero."""
        self._state = BandEnergies()
