"""
Command-line interface for audio-reactive band/beat analysis.

Usage:
    pulsescope <audio_file> [-o manifest.json] [options]
    pulsescope <audio_file> --preview
    pulsescope --mic [--preview]
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from pulsescope.core.analyser import AnalyserParams, SpectrumAnalyser
from pulsescope.core.beat import BeatParams
from pulsescope.core.engine import AudioReactiveEngine, EngineConfig
from pulsescope.driver import ManualScheduler, TickDriver
from pulsescope.io.sources import MicrophoneSpectrumSource, SignalSpectrumSource
from pulsescope.pipeline import ReactivePipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulsescope",
        description="Extract smoothed band levels and a beat pulse from audio",
    )

    parser.add_argument(
        "input",
        type=Path,
        nargs="?",
        default=None,
        help="Input audio file (wav, mp3, flac, or a video with an audio track)",
    )
    parser.add_argument(
        "--mic",
        action="store_true",
        help="Analyse the default input device instead of a file",
    )
    parser.add_argument(
        "--device",
        default=None,
        help="Input device index or name for --mic",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output manifest file path (default: <input>_pulse.json)",
    )
    parser.add_argument(
        "-f", "--fps",
        type=int,
        default=60,
        help="Ticks per second (default: 60)",
    )
    parser.add_argument(
        "-s", "--sample-rate",
        type=int,
        default=44100,
        help="Decode / capture sample rate (default: 44100)",
    )
    parser.add_argument(
        "--max-duration",
        type=float,
        default=None,
        help="Only analyse the first N seconds",
    )

    # Tuning
    parser.add_argument("--fft-size", type=int, default=256, help="FFT size (default: 256)")
    parser.add_argument(
        "--smoothing", type=float, default=0.15,
        help="Band smoothing factor (default: 0.15)",
    )
    parser.add_argument(
        "--cooldown", type=float, default=100.0,
        help="Minimum ms between beats (default: 100)",
    )
    parser.add_argument(
        "--min-bass", type=float, default=0.08,
        help="Bass noise floor for beats (default: 0.08)",
    )

    # Output
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Open a live meter window instead of writing a manifest",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print manifest summary to stdout",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return parser


def _engine_config(args) -> EngineConfig:
    return EngineConfig(
        smoothing=args.smoothing,
        beat=BeatParams(cooldown_ms=args.cooldown, min_bass=args.min_bass),
    )


def _device(value):
    if value is not None and value.isdigit():
        return int(value)
    return value


def _run_live(args, analyser_params: AnalyserParams) -> int:
    from pulsescope.preview import run_preview

    if args.mic:
        source = MicrophoneSpectrumSource(
            device=_device(args.device),
            sample_rate=args.sample_rate,
            analyser=SpectrumAnalyser(analyser_params),
        )
    else:
        source = SignalSpectrumSource.from_file(
            args.input,
            sample_rate=args.sample_rate,
            analyser_params=analyser_params,
        )

    driver = TickDriver(
        source,
        engine=AudioReactiveEngine(_engine_config(args)),
        scheduler=ManualScheduler(),
    )
    run_preview(driver, fps=args.fps)
    return 0


def _run_mic_console(args, analyser_params: AnalyserParams) -> int:
    """Print beats from the input device until interrupted."""
    source = MicrophoneSpectrumSource(
        device=_device(args.device),
        sample_rate=args.sample_rate,
        analyser=SpectrumAnalyser(analyser_params),
    )
    scheduler = ManualScheduler()
    driver = TickDriver(source, engine=AudioReactiveEngine(_engine_config(args)), scheduler=scheduler)

    def on_output(output):
        if output.is_beat and not args.quiet:
            print(
                f"beat  bass={output.raw_bass:.3f}  "
                f"mid={output.mid:.3f}  treble={output.treble:.3f}",
                flush=True,
            )

    driver.subscribe(on_output)
    period = 1.0 / args.fps
    deadline = None
    if args.max_duration is not None:
        deadline = time.monotonic() + args.max_duration

    with driver:
        try:
            while deadline is None or time.monotonic() < deadline:
                scheduler.run_pending()
                time.sleep(period)
        except KeyboardInterrupt:
            pass
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.input is None and not args.mic:
        parser.error("an input file or --mic is required")

    # Validate input
    if args.input is not None and not args.input.exists():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        return 1

    try:
        analyser_params = AnalyserParams(fft_size=args.fft_size)
        _engine_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.preview:
        return _run_live(args, analyser_params)
    if args.mic:
        return _run_mic_console(args, analyser_params)

    output_path = args.output
    if output_path is None:
        output_path = args.input.with_name(f"{args.input.stem}_pulse.json")

    pipeline = ReactivePipeline(
        target_fps=args.fps,
        sample_rate=args.sample_rate,
        engine_config=_engine_config(args),
        analyser_params=analyser_params,
    )

    if not args.quiet:
        print(f"Processing: {args.input}")
        print(f"Target FPS: {args.fps}")

    result = pipeline.process(
        args.input,
        output_path=output_path,
        max_duration=args.max_duration,
    )

    if not args.quiet:
        print(f"Duration: {result['duration']:.2f}s")
        print(f"Frames: {result['n_frames']}")
        print(f"Beats: {result['n_beats']}")
        print(f"Output: {result['output_path']}")

    if args.summary:
        manifest = result["manifest"]
        print("\n--- Manifest Summary ---")
        print(json.dumps(manifest["metadata"], indent=2))

        frames = manifest["frames"]
        beats = [f for f in frames if f["is_beat"]]
        if beats:
            print(f"\nFirst beat: {json.dumps(beats[0], indent=2)}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
