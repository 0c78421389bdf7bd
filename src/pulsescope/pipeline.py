"""
Offline replay pipeline.

Plays a decoded audio file through the same driver and engine used
live, but with a simulated clock advancing one frame per tick, so the
output is deterministic and independent of machine speed.
"""

import logging
from pathlib import Path
from typing import Any, Union

import numpy as np

from pulsescope.core.analyser import AnalyserParams, SpectrumAnalyser
from pulsescope.core.engine import AudioReactiveEngine, EngineConfig, EngineOutput
from pulsescope.driver import ManualScheduler, TickDriver
from pulsescope.io.exporter import ManifestExporter
from pulsescope.io.sources import SignalSpectrumSource

logger = logging.getLogger(__name__)


class SimulatedClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> float:
        self.now_ms += ms
        return self.now_ms


class ReactivePipeline:
    """
    Audio file to per-frame band/beat values.

    Combines decoding, spectrum analysis, the tick driver and export
    into a single interface.
    """

    def __init__(
        self,
        target_fps: int = 60,
        sample_rate: int = 44100,
        engine_config: EngineConfig | None = None,
        analyser_params: AnalyserParams | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            target_fps: Simulated display refresh rate.
            sample_rate: Decode sample rate.
            engine_config: Engine tuning.
            analyser_params: Spectrum analyser settings.
        """
        if target_fps is None or target_fps <= 0:
            raise ValueError(f"target_fps must be positive, got {target_fps}")
        self.target_fps = target_fps
        self.sample_rate = sample_rate
        self.engine_config = engine_config or EngineConfig()
        self.analyser_params = analyser_params or AnalyserParams()
        self.exporter = ManifestExporter()

    @property
    def frame_ms(self) -> float:
        return 1000.0 / self.target_fps

    def source_for_signal(
        self,
        y: np.ndarray,
        sr: int,
        clock: SimulatedClock,
    ) -> SignalSpectrumSource:
        """Wrap a decoded signal for non-looping replay."""
        analyser = SpectrumAnalyser(self.analyser_params)
        return SignalSpectrumSource(y, sr, analyser, clock=clock, loop=False)

    def run(
        self,
        source: SignalSpectrumSource,
        clock: SimulatedClock,
        max_frames: int | None = None,
    ) -> list[EngineOutput]:
        """
        Tick through a source until it runs out.

        Args:
            source: Source reading the same clock.
            clock: Clock advanced by one frame before every tick.
            max_frames: Stop after this many frames.

        Returns:
            Published outputs, one per completed tick.
        """
        n_frames = int(source.duration * self.target_fps)
        if max_frames is not None:
            n_frames = min(n_frames, max_frames)

        scheduler = ManualScheduler()
        driver = TickDriver(
            source,
            engine=AudioReactiveEngine(self.engine_config),
            scheduler=scheduler,
            clock=clock,
        )
        outputs: list[EngineOutput] = []
        driver.subscribe(outputs.append)

        with driver:
            for _ in range(n_frames):
                clock.advance(self.frame_ms)
                scheduler.run_pending()

        logger.debug("Replayed %d frames (%d skipped)", len(outputs), driver.skipped_ticks)
        return outputs

    def process_signal(
        self,
        y: np.ndarray,
        sr: int,
        max_duration: float | None = None,
    ) -> dict[str, Any]:
        """
        Replay an in-memory signal and build its manifest.

        Args:
            y: Mono audio samples.
            sr: Sample rate of ``y``.
            max_duration: Only replay the first seconds of audio.

        Returns:
            Dictionary with "manifest", "outputs", "duration", "n_frames",
            "n_beats" and "fps".
        """
        clock = SimulatedClock()
        source = self.source_for_signal(y, sr, clock)

        max_frames = None
        if max_duration is not None:
            max_frames = int(max_duration * self.target_fps)

        outputs = self.run(source, clock, max_frames=max_frames)
        duration = len(outputs) / self.target_fps
        manifest = self.exporter.build_manifest(
            outputs,
            fps=self.target_fps,
            duration=duration,
            bin_count=source.bin_count,
        )

        return {
            "manifest": manifest,
            "outputs": outputs,
            "duration": duration,
            "n_frames": len(outputs),
            "n_beats": manifest["metadata"]["n_beats"],
            "fps": self.target_fps,
        }

    def process(
        self,
        audio_path: Union[str, Path],
        output_path: Union[str, Path] | None = None,
        max_duration: float | None = None,
    ) -> dict[str, Any]:
        """
        Run the complete pipeline from audio file to manifest.

        Args:
            audio_path: Path to input audio file.
            output_path: Path for output manifest. If None, only returns dict.
            max_duration: Only replay the first seconds of audio.

        Returns:
            Dictionary containing manifest data and processing info.
        """
        audio_path = Path(audio_path)
        source = SignalSpectrumSource.from_file(
            audio_path,
            sample_rate=self.sample_rate,
            analyser_params=self.analyser_params,
            loop=False,
        )

        result = self.process_signal(source.y, source.sample_rate, max_duration)

        if output_path:
            written = self.exporter.export_json(result["manifest"], output_path)
            result["output_path"] = str(written)

        return result
