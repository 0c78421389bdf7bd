"""Tests for the TickDriver and frame scheduling."""

import numpy as np
import pytest

from pulsescope.core.engine import SILENT_OUTPUT
from pulsescope.driver import ManualScheduler, TickDriver
from pulsescope.io.sources import SnapshotSequenceSource, SpectrumSource


class FailingSource(SpectrumSource):
    """Source whose device cannot be opened."""

    @property
    def bin_count(self) -> int:
        return 128

    def open(self):
        raise OSError("device unavailable")

    def fill_latest(self, buffer: np.ndarray) -> bool:
        return False


class TestManualScheduler:
    """Tests for the host-pumped scheduler."""

    def test_run_pending_runs_callbacks(self):
        scheduler = ManualScheduler()
        calls = []
        scheduler.request_frame(lambda: calls.append("a"))
        scheduler.request_frame(lambda: calls.append("b"))

        assert scheduler.run_pending() == 2
        assert calls == ["a", "b"]
        assert scheduler.pending == 0

    def test_cancel(self):
        scheduler = ManualScheduler()
        calls = []
        handle = scheduler.request_frame(lambda: calls.append(1))
        scheduler.cancel_frame(handle)
        scheduler.cancel_frame(handle)

        assert scheduler.run_pending() == 0
        assert calls == []

    def test_requests_during_frame_are_deferred(self):
        """A callback scheduling another frame does not run it immediately."""
        scheduler = ManualScheduler()
        calls = []

        def callback():
            calls.append(1)
            scheduler.request_frame(callback)

        scheduler.request_frame(callback)
        scheduler.run_pending()

        assert calls == [1]
        assert scheduler.pending == 1

    def test_failing_callback_runs_the_rest(self):
        """Every due callback runs; the first error is raised afterwards."""
        scheduler = ManualScheduler()
        calls = []

        def fail():
            calls.append("fail")
            raise RuntimeError("first")

        def fail_again():
            calls.append("fail_again")
            raise ValueError("second")

        scheduler.request_frame(fail)
        scheduler.request_frame(fail_again)
        scheduler.request_frame(lambda: calls.append("ok"))

        with pytest.raises(RuntimeError, match="first"):
            scheduler.run_pending()

        assert calls == ["fail", "fail_again", "ok"]
        assert scheduler.pending == 0


class TestTickDriver:
    """Tests for session lifecycle and per-tick publication."""

    @pytest.fixture
    def loud_then_quiet(self, make_snapshot):
        """Alternating loud-bass and silent snapshots."""
        return [make_snapshot(bass=200) if i % 2 == 0 else make_snapshot() for i in range(20)]

    def make_driver(self, snapshots, clock, loop=False):
        source = SnapshotSequenceSource(snapshots, loop=loop)
        return TickDriver(source, scheduler=ManualScheduler(), clock=clock)

    def test_idle_before_start(self, make_snapshot, clock):
        """A stopped driver does not tick and publishes silence."""
        driver = self.make_driver([make_snapshot(bass=200)], clock)

        assert driver.tick() is None
        assert driver.output is SILENT_OUTPUT
        assert driver.scheduler.pending == 0

    def test_start_schedules_frames(self, make_snapshot, clock):
        driver = self.make_driver([make_snapshot(bass=200)] * 3, clock)
        driver.start()

        assert driver.is_running
        assert driver.scheduler.pending == 1

        driver.scheduler.run_pending()
        assert driver.output.tick == 1
        assert driver.scheduler.pending == 1

    def test_one_pass_per_tick(self, make_snapshot, clock):
        """Reading the output repeatedly never runs the pipeline again."""
        driver = self.make_driver([make_snapshot(bass=200)] * 5, clock)
        driver.start()
        driver.scheduler.run_pending()

        first = driver.output
        for _ in range(10):
            assert driver.output is first
        assert driver.engine.ticks == 1

    def test_listeners_called_once_per_tick(self, make_snapshot, clock):
        driver = self.make_driver([make_snapshot(bass=200)] * 5, clock)
        received = []
        driver.subscribe(received.append)
        driver.subscribe(received.append)
        driver.start()

        for _ in range(3):
            clock.advance(20.0)
            driver.scheduler.run_pending()

        assert [o.tick for o in received] == [1, 2, 3]
        assert received[-1] is driver.output

    def test_unsubscribe(self, make_snapshot, clock):
        driver = self.make_driver([make_snapshot()] * 5, clock)
        received = []
        driver.subscribe(received.append)
        driver.start()
        driver.scheduler.run_pending()
        driver.unsubscribe(received.append)
        driver.scheduler.run_pending()

        assert len(received) == 1

    def test_cooldown_with_simulated_clock(self, loud_then_quiet, clock):
        """Loud ticks every 40ms only beat once per cooldown window."""
        driver = self.make_driver(loud_then_quiet, clock)
        fired = []
        driver.subscribe(lambda o: o.is_beat and fired.append(o.tick))
        driver.start()

        for _ in range(len(loud_then_quiet)):
            clock.advance(20.0)
            driver.scheduler.run_pending()

        assert fired == [1, 7, 13, 19]

    def test_stop_resets_state(self, make_snapshot, clock):
        driver = self.make_driver([make_snapshot(bass=200)] * 5, clock)
        driver.start()
        driver.scheduler.run_pending()
        driver.stop()

        assert not driver.is_running
        assert driver.scheduler.pending == 0
        assert driver.output is SILENT_OUTPUT
        assert driver.engine.ticks == 0
        assert len(driver.engine.detector.history) == 0
        assert driver.engine.detector.pulse == 0.0

    def test_stop_is_idempotent(self, make_snapshot, clock):
        driver = self.make_driver([make_snapshot()], clock)
        driver.stop()
        driver.start()
        driver.stop()
        driver.stop()

        assert not driver.is_running

    def test_stop_from_listener(self, make_snapshot, clock):
        """Stopping inside a listener cancels the next frame."""
        driver = self.make_driver([make_snapshot()] * 5, clock)
        driver.subscribe(lambda o: driver.stop())
        driver.start()
        driver.scheduler.run_pending()

        assert not driver.is_running
        assert driver.scheduler.pending == 0

    def test_listener_error_keeps_ticking(self, make_snapshot, clock):
        """A listener raising on one tick does not end the session."""
        driver = self.make_driver([make_snapshot()] * 5, clock)
        received = []

        def listener(output):
            received.append(output.tick)
            if output.tick == 1:
                raise RuntimeError("listener failed")

        driver.subscribe(listener)
        driver.start()

        with pytest.raises(RuntimeError):
            driver.scheduler.run_pending()

        assert driver.is_running
        assert driver.output.tick == 1
        assert driver.scheduler.pending == 1

        driver.scheduler.run_pending()
        driver.scheduler.run_pending()

        assert received == [1, 2, 3]

    def test_listener_error_does_not_stall_other_driver(self, make_snapshot, clock):
        """A failing listener on one driver leaves a driver on the same scheduler ticking."""
        scheduler = ManualScheduler()
        failing = TickDriver(
            SnapshotSequenceSource([make_snapshot()] * 3),
            scheduler=scheduler,
            clock=clock,
        )
        healthy = TickDriver(
            SnapshotSequenceSource([make_snapshot(bass=200)] * 3),
            scheduler=scheduler,
            clock=clock,
        )
        failing.subscribe(lambda o: 1 / 0)
        failing.start()
        healthy.start()

        with pytest.raises(ZeroDivisionError):
            scheduler.run_pending()

        assert healthy.output.tick == 1
        assert healthy.engine.ticks == 1
        assert failing.is_running
        assert scheduler.pending == 2

    def test_restart_starts_cold(self, make_snapshot, clock):
        """A new session beats on its first loud tick even within the old cooldown."""
        driver = self.make_driver([make_snapshot(bass=200)] * 5, clock)
        driver.start()
        driver.scheduler.run_pending()
        assert driver.output.is_beat

        driver.stop()
        driver.start()
        driver.scheduler.run_pending()

        assert driver.output.is_beat
        assert driver.output.tick == 1

    def test_missing_snapshot_skips_tick(self, make_snapshot, clock):
        """Without a snapshot the previous output stays published."""
        driver = self.make_driver([make_snapshot(bass=200)], clock)
        driver.start()
        driver.scheduler.run_pending()
        published = driver.output

        driver.scheduler.run_pending()
        driver.scheduler.run_pending()

        assert driver.output is published
        assert driver.skipped_ticks == 2
        assert driver.engine.ticks == 1
        assert driver.is_running

    def test_failed_start_stays_stopped(self, clock):
        driver = TickDriver(FailingSource(), scheduler=ManualScheduler(), clock=clock)

        with pytest.raises(OSError):
            driver.start()

        assert not driver.is_running
        assert driver.scheduler.pending == 0

    def test_context_manager(self, make_snapshot, clock):
        driver = self.make_driver([make_snapshot()] * 2, clock)

        with driver as running:
            assert running.is_running
        assert not driver.is_running

    def test_independent_drivers(self, make_snapshot, clock):
        """Two drivers sharing a scheduler keep separate state."""
        scheduler = ManualScheduler()
        loud = TickDriver(
            SnapshotSequenceSource([make_snapshot(bass=200)] * 3),
            scheduler=scheduler,
            clock=clock,
        )
        quiet = TickDriver(
            SnapshotSequenceSource([make_snapshot()] * 3),
            scheduler=scheduler,
            clock=clock,
        )
        loud.start()
        quiet.start()
        scheduler.run_pending()
        quiet.stop()

        assert loud.output.is_beat
        assert quiet.output is SILENT_OUTPUT
        assert loud.is_running
        assert scheduler.pending == 1
