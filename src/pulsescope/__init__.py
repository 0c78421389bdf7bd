"""Audio feature-extraction and beat-detection engine for reactive visuals."""

from pulsescope.core.bands import BandEnergies, BandExtractor
from pulsescope.core.beat import BeatDetector, BeatParams
from pulsescope.core.engine import AudioReactiveEngine, EngineConfig, EngineOutput
from pulsescope.core.smoothing import SmoothingFilter
from pulsescope.driver import ManualScheduler, TickDriver
from pulsescope.pipeline import ReactivePipeline

__version__ = "0.1.0"
__all__ = [
    "AudioReactiveEngine",
    "BandEnergies",
    "BandExtractor",
    "BeatDetector",
    "BeatParams",
    "EngineConfig",
    "EngineOutput",
    "ManualScheduler",
    "ReactivePipeline",
    "SmoothingFilter",
    "TickDriver",
]
