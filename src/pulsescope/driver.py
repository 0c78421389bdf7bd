"""
Tick driver and frame scheduling.

The driver owns one engine and one spectrum source for the duration of
a session. Each scheduled frame runs exactly one extract/detect pass and
publishes a new immutable EngineOutput by replacing a single reference,
so readers never see a half-updated result and need no lock.

Scheduling is an explicit handle owned by the driver rather than a
global frame callback, so several drivers (e.g. preview and live) can
run side by side.
"""

import abc
import itertools
import logging
from typing import Callable

from pulsescope.core.engine import SILENT_OUTPUT, AudioReactiveEngine, EngineOutput
from pulsescope.io.sources import SpectrumSource, monotonic_ms

logger = logging.getLogger(__name__)

FrameCallback = Callable[[], None]
OutputListener = Callable[[EngineOutput], None]


class FrameScheduler(abc.ABC):
    """Requests one-shot callbacks on the next display refresh."""

    @abc.abstractmethod
    def request_frame(self, callback: FrameCallback) -> int:
        """Schedule ``callback`` for the next frame and return a handle."""

    @abc.abstractmethod
    def cancel_frame(self, handle: int):
        """Cancel a pending callback. Unknown handles are ignored."""


class ManualScheduler(FrameScheduler):
    """
    Scheduler pumped by the host's own render loop.

    The host calls :meth:`run_pending` once per displayed frame. Callbacks
    requested while pending ones run are deferred to the following frame.
    """

    def __init__(self):
        self._pending: dict[int, FrameCallback] = {}
        self._handles = itertools.count(1)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def request_frame(self, callback: FrameCallback) -> int:
        handle = next(self._handles)
        self._pending[handle] = callback
        return handle

    def cancel_frame(self, handle: int):
        self._pending.pop(handle, None)

    def run_pending(self) -> int:
        """
        Run every callback that was pending when called.

        A failing callback does not prevent the others from running; the
        first error is re-raised once all of them have run.

        Returns:
            Number of callbacks run.
        """
        due, self._pending = self._pending, {}
        error = None
        for callback in due.values():
            try:
                callback()
            except Exception as exc:
                logger.exception("Frame callback failed")
                if error is None:
                    error = exc
        if error is not None:
            raise error
        return len(due)


class TickDriver:
    """
    Runs the engine once per frame for one audio session.

    Args:
        source: Spectrum source for this session.
        engine: Engine to drive (default: a new AudioReactiveEngine).
        scheduler: Frame scheduler (default: a ManualScheduler).
        clock: Monotonic millisecond clock used for beat timing.
    """

    def __init__(
        self,
        source: SpectrumSource,
        engine: AudioReactiveEngine | None = None,
        scheduler: FrameScheduler | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.source = source
        self.engine = engine or AudioReactiveEngine()
        self.scheduler = scheduler or ManualScheduler()
        self.clock = clock

        self._buffer = source.allocate_buffer()
        self._output: EngineOutput = SILENT_OUTPUT
        self._listeners: list[OutputListener] = []
        self._handle: int | None = None
        self._running = False
        self._skipped = 0

    @property
    def output(self) -> EngineOutput:
        """Latest published output. Never blocks."""
        return self._output

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def skipped_ticks(self) -> int:
        """Ticks skipped because the source had no snapshot."""
        return self._skipped

    def subscribe(self, listener: OutputListener):
        """Call ``listener`` with each newly published output."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: OutputListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self):
        """
        Reset state, open the source and begin ticking.

        Errors from the source propagate and leave the driver stopped.
        """
        if self._running:
            return

        self.engine.reset()
        self._output = SILENT_OUTPUT
        self._skipped = 0
        self.source.open()

        self._running = True
        self._schedule()
        logger.info("Session started (%d bins)", self.source.bin_count)

    def stop(self):
        """Halt ticking and reset all session state. Idempotent."""
        if not self._running:
            return

        self._running = False
        if self._handle is not None:
            self.scheduler.cancel_frame(self._handle)
            self._handle = None

        try:
            self.source.close()
        finally:
            self.engine.reset()
            self._output = SILENT_OUTPUT
            logger.info("Session stopped")

    def tick(self) -> EngineOutput | None:
        """
        Run one pipeline pass and publish the result.

        Returns:
            The published output, or None if the driver is stopped or the
            source had no snapshot (the previous output stays published).
        """
        if not self._running:
            return None

        if not self.source.fill_latest(self._buffer):
            self._skipped += 1
            logger.debug("No spectrum snapshot available, skipping tick")
            return None

        output = self.engine.process(self._buffer, self.clock())
        self._output = output

        for listener in list(self._listeners):
            listener(output)
        return output

    def _schedule(self):
        self._handle = self.scheduler.request_frame(self._on_frame)

    def _on_frame(self):
        self._handle = None
        try:
            self.tick()
        finally:
            # a listener may have stopped the session
            if self._running:
                self._schedule()

    def __enter__(self) -> "TickDriver":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
