"""
Command-line interface for beat analysis and timeline export.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from beatsync.config import (
    AnalysisConfig,
    ProjectSettings,
    VisualizerColor,
    VisualizerStyle,
)
from beatsync.errors import BeatSyncError
from beatsync.io.exporter import TimelineExporter
from beatsync.pipeline import BeatAnalysisPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beatsync",
        description="Detect beats in an audio file and export a synchronized visualizer timeline",
    )

    parser.add_argument(
        "input",
        type=Path,
        help="Input audio file (wav, flac, ogg, mp3)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output manifest file path (default: <input>_timeline.json)",
    )

    parser.add_argument(
        "-f", "--fps",
        type=int,
        default=30,
        help="Timeline frames per second (default: 30)",
    )

    parser.add_argument(
        "-s", "--sample-rate",
        type=int,
        default=None,
        help="Resample before analysis (default: keep the file's rate)",
    )

    parser.add_argument(
        "--style",
        choices=[s.value for s in VisualizerStyle],
        default=VisualizerStyle.WAVEFORM.value,
        help="Visualizer variant (default: Waveform)",
    )

    parser.add_argument(
        "--color",
        choices=[c.value for c in VisualizerColor],
        default=VisualizerColor.AMBER.value,
        help="Visualizer palette (default: Amber)",
    )

    parser.add_argument(
        "--sync-intensity",
        type=float,
        default=60.0,
        help="Beat pulse strength, 0-100 (default: 60)",
    )

    parser.add_argument(
        "--sensitivity",
        type=float,
        default=50.0,
        help="Waveform pulse sensitivity, 0-100 (default: 50)",
    )

    parser.add_argument(
        "--thickness",
        type=float,
        default=3.0,
        help="Waveform stroke width, 1-10 (default: 3)",
    )

    parser.add_argument(
        "--no-sync",
        action="store_true",
        help="Disable beat-driven effects (scrubbing only)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress output",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print manifest summary to stdout",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        return 1

    output_path = args.output
    if output_path is None:
        output_path = args.input.with_name(f"{args.input.stem}_timeline.json")

    settings = ProjectSettings(
        project_id=args.input.stem,
        audio_source=str(args.input),
        sync_intensity=args.sync_intensity,
        waveform_sensitivity=args.sensitivity,
        waveform_thickness=args.thickness,
        visualizer_color=args.color,
        visualizer_style=args.style,
        beat_sync_enabled=not args.no_sync,
    )

    try:
        settings.validate()
        pipeline = BeatAnalysisPipeline(AnalysisConfig(sample_rate=args.sample_rate))

        if not args.quiet:
            print(f"Processing: {args.input}")

        result = pipeline.analyze_file(args.input)
        exporter = TimelineExporter(fps=args.fps)
        manifest = exporter.build_manifest(result, settings)
        exporter.write_json(manifest, output_path)
    except BeatSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print(f"Beats: {len(result.beats)}")
        print(f"Duration: {result.duration:.2f}s")
        print(f"Frames: {manifest['metadata']['n_frames']}")
        print(f"Output: {output_path}")

    if args.summary:
        print("\n--- Manifest Summary ---")
        print(json.dumps(manifest["metadata"], indent=2))

        beats = manifest["beats"]
        if beats:
            print(f"\nFirst beat: {json.dumps(beats[0], indent=2)}")
        if len(beats) > 1:
            strongest = max(beats, key=lambda b: b["intensity"])
            print(f"\nStrongest beat: {json.dumps(strongest, indent=2)}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
