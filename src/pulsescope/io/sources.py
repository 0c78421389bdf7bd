"""
Spectrum sources.

A source fills a caller-owned byte buffer with the latest spectrum
magnitudes once per tick. Sources wrap prepared snapshots, decoded
audio played against a clock, or a live input device.
"""

import abc
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Union

import librosa
import numpy as np

from pulsescope.core.analyser import AnalyserParams, SpectrumAnalyser

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.perf_counter() * 1000.0


class SpectrumSource(abc.ABC):
    """
    Supplier of spectrum snapshots.

    ``fill_latest`` returns False when no snapshot is available yet; the
    buffer contents are then undefined and must not be analysed.
    """

    @property
    @abc.abstractmethod
    def bin_count(self) -> int:
        """Length of the snapshots this source produces."""

    @abc.abstractmethod
    def fill_latest(self, buffer: np.ndarray) -> bool:
        """Overwrite ``buffer`` with the most recent magnitudes."""

    def open(self):
        """Acquire resources before the first tick."""

    def close(self):
        """Release resources. Safe to call more than once."""

    def allocate_buffer(self) -> np.ndarray:
        return np.zeros(self.bin_count, dtype=np.uint8)

    def _check_buffer(self, buffer: np.ndarray):
        if len(buffer) != self.bin_count:
            raise ValueError(
                f"buffer length {len(buffer)} does not match bin count {self.bin_count}"
            )


class SnapshotSequenceSource(SpectrumSource):
    """Replays prepared snapshots in order, one per call."""

    def __init__(self, snapshots: Iterable[Iterable[int]], loop: bool = False):
        self._snapshots = [np.asarray(s, dtype=np.uint8) for s in snapshots]
        if not self._snapshots:
            raise ValueError("at least one snapshot is required")
        lengths = {len(s) for s in self._snapshots}
        if len(lengths) != 1:
            raise ValueError(f"snapshots must share one length, got {sorted(lengths)}")
        self._bin_count = lengths.pop()
        self.loop = loop
        self._index = 0

    @property
    def bin_count(self) -> int:
        return self._bin_count

    @property
    def remaining(self) -> int:
        return max(0, len(self._snapshots) - self._index)

    def open(self):
        self._index = 0

    def fill_latest(self, buffer: np.ndarray) -> bool:
        self._check_buffer(buffer)
        if self._index >= len(self._snapshots):
            if not self.loop:
                return False
            self._index = 0
        buffer[:] = self._snapshots[self._index]
        self._index += 1
        return True


class SignalSpectrumSource(SpectrumSource):
    """
    Decoded mono audio played back against a millisecond clock.

    The playhead is ``clock() - start`` since :meth:`open`; the snapshot
    is the analyser's view of the samples just before the playhead.
    """

    def __init__(
        self,
        y: np.ndarray,
        sample_rate: int,
        analyser: SpectrumAnalyser | None = None,
        clock: Callable[[], float] = monotonic_ms,
        loop: bool = True,
    ):
        """
        Initialize the source.

        Args:
            y: Mono audio samples.
            sample_rate: Sample rate of ``y`` in Hz.
            analyser: Spectrum analyser (default: 256-point, 128 bins).
            clock: Millisecond clock driving the playhead.
            loop: Wrap the playhead at the end of the signal.
        """
        self.y = np.asarray(y, dtype=np.float32)
        if self.y.ndim != 1 or len(self.y) == 0:
            raise ValueError("y must be a non-empty 1-D signal")
        self.sample_rate = sample_rate
        self.analyser = analyser or SpectrumAnalyser()
        self.clock = clock
        self.loop = loop
        self._start_ms: float | None = None

    @classmethod
    def from_file(
        cls,
        audio_path: Union[str, Path],
        sample_rate: int = 44100,
        analyser_params: AnalyserParams | None = None,
        clock: Callable[[], float] = monotonic_ms,
        loop: bool = True,
    ) -> "SignalSpectrumSource":
        """
        Decode an audio (or video) file to mono and wrap it.

        Args:
            audio_path: Any file librosa can decode.
            sample_rate: Target sample rate.
            analyser_params: Analyser settings.
            clock: Millisecond clock driving the playhead.
            loop: Wrap the playhead at the end of the file.
        """
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        y, sr = librosa.load(audio_path, sr=sample_rate, mono=True)
        logger.info("Decoded %s (%.2fs @ %d Hz)", audio_path.name, len(y) / sr, sr)
        return cls(y, sr, SpectrumAnalyser(analyser_params), clock=clock, loop=loop)

    @property
    def bin_count(self) -> int:
        return self.analyser.bin_count

    @property
    def duration(self) -> float:
        """Signal length in seconds."""
        return len(self.y) / self.sample_rate

    def open(self):
        self._start_ms = self.clock()
        self.analyser.reset()

    def close(self):
        self._start_ms = None

    def _elapsed_samples(self) -> int | None:
        if self._start_ms is None:
            return None
        elapsed_ms = max(0.0, self.clock() - self._start_ms)
        return int(elapsed_ms * self.sample_rate / 1000.0)

    def playhead(self) -> int | None:
        """Current sample position, or None when closed or finished."""
        position = self._elapsed_samples()
        if position is None:
            return None
        if position > len(self.y):
            if not self.loop:
                return None
            position %= len(self.y)
        return position

    def fill_latest(self, buffer: np.ndarray) -> bool:
        self._check_buffer(buffer)
        position = self._elapsed_samples()
        if position is None:
            return False
        if position > len(self.y) and not self.loop:
            return False

        # Nothing precedes the start of playback; the analyser zero-pads.
        start = max(0, position - self.analyser.fft_size)
        if self.loop:
            window = np.take(self.y, np.arange(start, position), mode="wrap")
        else:
            window = self.y[start:position]

        self.analyser.byte_frequency_data(window, buffer)
        return True


class MicrophoneSpectrumSource(SpectrumSource):
    """
    Live input device captured with sounddevice.

    The stream callback runs on the audio thread and only copies samples
    into a rolling window under a lock; analysis happens in ``fill_latest``
    on the tick thread.
    """

    def __init__(
        self,
        device: int | str | None = None,
        sample_rate: int = 44100,
        analyser: SpectrumAnalyser | None = None,
        blocksize: int = 0,
    ):
        self.device = device
        self.sample_rate = sample_rate
        self.analyser = analyser or SpectrumAnalyser()
        self.blocksize = blocksize

        self._lock = threading.Lock()
        self._window = np.zeros(self.analyser.fft_size, dtype=np.float32)
        self._captured = 0
        self._stream = None

    @property
    def bin_count(self) -> int:
        return self.analyser.bin_count

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def _callback(self, indata, frames, time_info, status):
        if status:
            logger.warning("Input stream status: %s", status)

        mono = indata[:, 0] if indata.ndim > 1 else indata
        n = len(self._window)
        k = min(len(mono), n)

        with self._lock:
            if k == n:
                self._window[:] = mono[-n:]
            else:
                self._window[:-k] = self._window[k:]
                self._window[-k:] = mono[-k:]
            self._captured += k

    def open(self):
        if self._stream is not None:
            return

        import sounddevice as sd

        stream = sd.InputStream(
            device=self.device,
            channels=1,
            samplerate=self.sample_rate,
            blocksize=self.blocksize,
            dtype="float32",
            callback=self._callback,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        self._stream = stream
        self.analyser.reset()
        logger.info(
            "Microphone stream started (device=%s, sr=%d)", self.device, self.sample_rate
        )

    def close(self):
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        stream.stop()
        stream.close()
        with self._lock:
            self._window[:] = 0.0
            self._captured = 0
        logger.info("Microphone stream closed")

    def fill_latest(self, buffer: np.ndarray) -> bool:
        self._check_buffer(buffer)
        with self._lock:
            if self._captured < len(self._window):
                return False
            window = self._window.copy()

        self.analyser.byte_frequency_data(window, buffer)
        return True
