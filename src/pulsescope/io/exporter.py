"""
Manifest serialization module.

Exports the per-tick engine outputs of an offline replay to a JSON
manifest for renderers that consume pre-computed band/beat values.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Sequence, Union

from pulsescope.core.engine import EngineOutput


@dataclass
class ManifestMetadata:
    """Metadata header for the band/beat manifest."""

    duration: float
    fps: int
    n_frames: int
    n_beats: int
    bin_count: int
    schema_version: str = "1.0"


class ManifestExporter:
    """
    Exports engine outputs to a JSON manifest.

    Each frame holds the smoothed bands, the beat pulse, whether a beat
    fired on that tick and the unsmoothed bass.
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision

    def _round(self, value: float) -> float:
        """Round to configured precision."""
        return round(float(value), self.precision)

    def _build_frame(self, index: int, output: EngineOutput, fps: int) -> dict[str, Any]:
        return {
            "frame_index": index,
            "time": self._round(index / fps),
            "bass": self._round(output.bass),
            "mid": self._round(output.mid),
            "treble": self._round(output.treble),
            "beat": self._round(output.beat),
            "is_beat": bool(output.is_beat),
            "raw_bass": self._round(output.raw_bass),
        }

    def build_manifest(
        self,
        outputs: Sequence[EngineOutput],
        fps: int,
        duration: float,
        bin_count: int,
    ) -> dict[str, Any]:
        """
        Build the complete manifest dictionary.

        Args:
            outputs: One EngineOutput per tick, in order.
            fps: Tick rate used for the replay.
            duration: Replayed audio duration in seconds.
            bin_count: Snapshot length fed to the engine.

        Returns:
            Dictionary with "metadata" and "frames".
        """
        metadata = ManifestMetadata(
            duration=self._round(duration),
            fps=fps,
            n_frames=len(outputs),
            n_beats=sum(1 for o in outputs if o.is_beat),
            bin_count=bin_count,
        )
        frames = [self._build_frame(i, o, fps) for i, o in enumerate(outputs)]
        return {"metadata": asdict(metadata), "frames": frames}

    def export_json(
        self,
        manifest: dict[str, Any],
        output_path: Union[str, Path],
        indent: int | None = 2,
    ) -> Path:
        """
        Write a manifest to disk.

        Args:
            manifest: Manifest from build_manifest().
            output_path: Destination file.
            indent: JSON indentation (None for compact output).

        Returns:
            Path to the written file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=indent)
        return output_path
