"""
Beat detection on the raw bass band.

A beat fires when the bass either jumps above its recent average or
rises sharply since the previous tick, as long as the bass clears a
noise floor and the cooldown since the last beat has elapsed. The
resulting pulse decays geometrically on every tick.
"""

from collections import deque
from dataclasses import dataclass


@dataclass
class BeatParams:
    """Beat detection tuning."""

    history_size: int = 20  # ticks of raw bass kept for the rolling average
    threshold_ratio: float = 1.2  # bass must exceed average * ratio
    derivative_threshold: float = 0.15  # minimum tick-to-tick bass rise
    min_bass: float = 0.08  # noise floor
    cooldown_ms: float = 100.0
    decay: float = 0.88  # pulse multiplier per tick

    def __post_init__(self):
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")
        if not 0.0 <= self.decay < 1.0:
            raise ValueError(f"decay must be in [0, 1), got {self.decay}")
        if self.cooldown_ms < 0:
            raise ValueError(f"cooldown_ms must be >= 0, got {self.cooldown_ms}")


class BeatHistory:
    """Fixed-capacity window of raw bass values, oldest evicted first."""

    def __init__(self, capacity: int = 20):
        self.capacity = capacity
        self._values: deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._values)

    def append(self, value: float):
        self._values.append(value)

    def average(self) -> float:
        """Mean of the stored values, 0.0 when empty."""
        if not self._values:
            return 0.0
        return sum(self._values) / len(self._values)

    def values(self) -> list[float]:
        return list(self._values)

    def clear(self):
        self._values.clear()


@dataclass
class BeatState:
    """Mutable detector state between ticks."""

    last_beat_ms: float | None = None  # None until the first beat
    pulse: float = 0.0
    previous_bass: float = 0.0


@dataclass(frozen=True)
class BeatResult:
    """Outcome of one detection step."""

    pulse: float
    fired: bool
    average_bass: float
    derivative: float


class BeatDetector:
    """
    Dual-criterion beat detector with cooldown and pulse decay.

    Must be fed the raw (unsmoothed) bass value exactly once per tick.
    """

    def __init__(self, params: BeatParams | None = None):
        self.params = params or BeatParams()
        self.history = BeatHistory(self.params.history_size)
        self.state = BeatState()

    @property
    def pulse(self) -> float:
        return self.state.pulse

    def _cooldown_elapsed(self, now_ms: float) -> bool:
        if self.state.last_beat_ms is None:
            return True
        return now_ms - self.state.last_beat_ms > self.params.cooldown_ms

    def update(self, bass: float, now_ms: float) -> BeatResult:
        """
        Run one detection step.

        Args:
            bass: Raw bass energy for this tick, in [0, 1].
            now_ms: Monotonic timestamp of this tick in milliseconds.

        Returns:
            BeatResult with the post-decay pulse for this tick.
        """
        p = self.params
        state = self.state

        self.history.append(bass)
        average_bass = self.history.average()

        derivative = bass - state.previous_bass
        state.previous_bass = bass

        above_floor = bass > p.min_bass
        threshold_beat = above_floor and bass > average_bass * p.threshold_ratio
        derivative_beat = above_floor and derivative > p.derivative_threshold

        fired = (threshold_beat or derivative_beat) and self._cooldown_elapsed(now_ms)
        if fired:
            state.pulse = 1.0
            state.last_beat_ms = now_ms

        state.pulse *= p.decay

        return BeatResult(
            pulse=state.pulse,
            fired=fired,
            average_bass=average_bass,
            derivative=derivative,
        )

    def reset(self):
        """Forget all history so the next session starts cold."""
        self.history.clear()
        self.state = BeatState()
