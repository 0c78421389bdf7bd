"""
Audio-reactive feature engine.

Combines band extraction, smoothing and beat detection into a single
per-tick step. One engine instance is shared by every consumer of a
session (shader uniforms, UI meters) so the state cannot drift.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from pulsescope.core.bands import BandEnergies, BandExtractor
from pulsescope.core.beat import BeatDetector, BeatParams
from pulsescope.core.smoothing import SmoothingFilter


@dataclass
class EngineConfig:
    """Top-level engine tuning."""

    smoothing: float = 0.15
    beat: BeatParams = field(default_factory=BeatParams)

    def __post_init__(self):
        if not 0.0 < self.smoothing <= 1.0:
            raise ValueError(f"smoothing must be in (0, 1], got {self.smoothing}")


@dataclass(frozen=True)
class EngineOutput:
    """
    Immutable per-tick snapshot published to consumers.

    ``bass``, ``mid`` and ``treble`` are smoothed; the ``raw_*`` fields
    hold this tick's unsmoothed band values.
    """

    bass: float = 0.0
    mid: float = 0.0
    treble: float = 0.0
    beat: float = 0.0
    is_beat: bool = False
    raw_bass: float = 0.0
    raw_mid: float = 0.0
    raw_treble: float = 0.0
    tick: int = 0
    time_ms: float = 0.0

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.bass, self.mid, self.treble, self.beat)

    def as_uniforms(self) -> dict[str, float]:
        """Shader uniform values for this tick."""
        return {
            "u_bass": self.bass,
            "u_mid": self.mid,
            "u_treble": self.treble,
            "u_beat": self.beat,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "bass": self.bass,
            "mid": self.mid,
            "treble": self.treble,
            "beat": self.beat,
            "is_beat": self.is_beat,
            "raw_bass": self.raw_bass,
            "raw_mid": self.raw_mid,
            "raw_treble": self.raw_treble,
        }


SILENT_OUTPUT = EngineOutput()


class AudioReactiveEngine:
    """
    Turns spectrum snapshots into smoothed bands and a beat pulse.

    The engine owns all per-session state: the smoothing filter, the
    beat history and the pulse. It is not thread-safe; a single driver
    must call :meth:`process` once per tick.
    """

    def __init__(self, config: EngineConfig | None = None):
        """
        Initialize the engine.

        Args:
            config: Engine tuning (default: EngineConfig()).
        """
        self.config = config or EngineConfig()
        self.extractor = BandExtractor()
        self.smoother = SmoothingFilter(self.config.smoothing)
        self.detector = BeatDetector(self.config.beat)
        self._ticks = 0

    @property
    def ticks(self) -> int:
        """Number of snapshots processed since the last reset."""
        return self._ticks

    def process(self, snapshot: np.ndarray, now_ms: float) -> EngineOutput:
        """
        Run one tick: extract, smooth, detect.

        Args:
            snapshot: Spectrum magnitudes in [0, 255].
            now_ms: Monotonic tick timestamp in milliseconds.

        Returns:
            A new EngineOutput for this tick.
        """
        raw: BandEnergies = self.extractor.extract(snapshot)
        smoothed = self.smoother.update(raw)
        beat = self.detector.update(raw.bass, now_ms)
        self._ticks += 1

        return EngineOutput(
            bass=smoothed.bass,
            mid=smoothed.mid,
            treble=smoothed.treble,
            beat=beat.pulse,
            is_beat=beat.fired,
            raw_bass=raw.bass,
            raw_mid=raw.mid,
            raw_treble=raw.treble,
            tick=self._ticks,
            time_ms=now_ms,
        )

    def reset(self):
        """Clear smoothing, beat history and pulse."""
        self.smoother.reset()
        self.detector.reset()
        self._ticks = 0
