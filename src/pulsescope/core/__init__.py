"""Core signal processing modules."""

from pulsescope.core.analyser import SpectrumAnalyser
from pulsescope.core.bands import BandExtractor
from pulsescope.core.beat import BeatDetector
from pulsescope.core.engine import AudioReactiveEngine
from pulsescope.core.smoothing import SmoothingFilter

__all__ = [
    "AudioReactiveEngine",
    "BandExtractor",
    "BeatDetector",
    "SmoothingFilter",
    "SpectrumAnalyser",
]
