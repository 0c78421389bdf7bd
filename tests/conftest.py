"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from pulsescope.pipeline import SimulatedClock

# Default sample rate for test audio
TEST_SR = 44100

# Snapshot length produced by a 256-point analyser
TEST_BINS = 128


def band_snapshot(
    bass: int = 0,
    mid: int = 0,
    treble: int = 0,
    n_bins: int = TEST_BINS,
) -> np.ndarray:
    """Build a snapshot with a constant magnitude in each band."""
    third = n_bins // 3
    snapshot = np.zeros(n_bins, dtype=np.uint8)
    snapshot[:third] = bass
    snapshot[third:third * 2] = mid
    snapshot[third * 2:] = treble
    return snapshot


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def clock() -> SimulatedClock:
    """Millisecond clock starting at zero."""
    return SimulatedClock()


@pytest.fixture
def make_snapshot():
    """Factory for per-band constant snapshots."""
    return band_snapshot


@pytest.fixture
def silence(sample_rate: int) -> tuple[np.ndarray, int]:
    """Two seconds of digital silence."""
    return np.zeros(int(sample_rate * 2.0), dtype=np.float32), sample_rate


@pytest.fixture
def noise_bursts(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Two seconds of 50ms white-noise bursts every 500ms, silence between.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    rng = np.random.default_rng(42)
    duration = 2.0
    total_samples = int(sample_rate * duration)
    period = int(sample_rate * 0.5)
    burst = int(sample_rate * 0.05)

    y = np.zeros(total_samples, dtype=np.float32)
    for start in range(0, total_samples, period):
        end = min(start + burst, total_samples)
        y[start:end] = rng.uniform(-0.8, 0.8, end - start)

    return y, sample_rate


@pytest.fixture
def low_sine(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Two seconds of a sine centred on analyser bin 4 (~689 Hz).

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    duration = 2.0
    frequency = 4 * sample_rate / 256
    t = np.arange(int(sample_rate * duration)) / sample_rate
    y = 0.5 * np.sin(2 * np.pi * frequency * t)
    return y.astype(np.float32), sample_rate


@pytest.fixture
def temp_audio_file(tmp_path, noise_bursts):
    """Create a temporary audio file for testing file I/O."""
    import soundfile as sf

    y, sr = noise_bursts
    audio_path = tmp_path / "test_audio.wav"
    sf.write(audio_path, y, sr)
    return audio_path
