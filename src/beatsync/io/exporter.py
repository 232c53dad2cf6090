"""
Timeline manifest serialization.

Replays an analysis through the synchronizer and visual modulator at
a fixed frame rate and exports the per-frame parameters, beats and
annotations to JSON for offline renderers.
"""

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from beatsync.annotations import AnnotationStore
from beatsync.config import ProjectSettings, SyncConfig
from beatsync.core.onset import AnalysisResult, Beat
from beatsync.sync import ManualScheduler, PlaybackSynchronizer
from beatsync.visualizers.modulator import FrameParameters, VisualModulator


@dataclass
class ManifestMetadata:
    """Metadata header for the timeline manifest."""

    duration: float
    fps: int
    n_frames: int
    n_beats: int
    style: str
    color: str
    sync_intensity: float
    beat_sync_enabled: bool
    schema_version: str = "1.0"


class TimelineExporter:
    """
    Exports a beat analysis as a frame-by-frame timeline manifest.

    Pulse windows are driven by a ManualScheduler advanced to each frame
    time, so the output is deterministic.
    """

    def __init__(
        self,
        fps: int = 30,
        precision: int = 4,
        sync_config: SyncConfig | None = None,
    ):
        """
        Initialize the exporter.

        Args:
            fps: Frames per second of the exported timeline.
            precision: Decimal places for floating point values.
            sync_config: Tolerance and pulse window durations.
        """
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.fps = fps
        self.precision = precision
        self.sync_config = sync_config or SyncConfig()

    def _round(self, value: float) -> float:
        """Round to configured precision."""
        return round(float(value), self.precision)

    def _beat_dict(self, beat: Beat, annotations: AnnotationStore) -> dict[str, Any]:
        command = annotations.get(beat.timestamp)
        return {
            "time": self._round(beat.timestamp),
            "intensity": self._round(beat.intensity),
            "bass_intensity": self._round(beat.bass_intensity),
            "command": command.value if command is not None else None,
            "icon": annotations.icon_for(beat.timestamp),
        }

    def _frame_dict(self, index: int, frame: FrameParameters, is_beat: bool) -> dict[str, Any]:
        return {
            "frame_index": index,
            "time": self._round(frame.time),
            "is_beat": is_beat,
            "restart": frame.restart,
            "scrub_frame": None if frame.scrub_frame is None else self._round(frame.scrub_frame),
            "visual_scale": self._round(frame.visual_scale),
            "speed_multiplier": self._round(frame.speed_multiplier),
            "pulse_scale": self._round(frame.pulse_scale),
            "shadow_opacity": self._round(frame.shadow_opacity),
        }

    def build_manifest(
        self,
        result: AnalysisResult,
        settings: ProjectSettings,
        annotations: AnnotationStore | None = None,
    ) -> dict[str, Any]:
        """
        Build the complete manifest dictionary.

        Args:
            result: Beats and duration from the analysis.
            settings: Project controls (intensity, style, color, ...).
            annotations: Timeline commands to include, if any.

        Returns:
            Manifest dictionary ready for serialization.
        """
        annotations = annotations or AnnotationStore()
        scheduler = ManualScheduler()
        synchronizer = PlaybackSynchronizer(
            beats=result.beats,
            sync_intensity=settings.sync_intensity,
            enabled=settings.beat_sync_enabled,
            config=self.sync_config,
            scheduler=scheduler,
        )
        modulator = VisualModulator.from_settings(
            settings,
            duration=result.duration,
            config=self.sync_config,
            scheduler=scheduler,
            strict=False,
        )

        n_frames = int(math.ceil(result.duration * self.fps))
        frames = []
        for i in range(n_frames):
            t = i / self.fps
            scheduler.advance_to(t)
            event = synchronizer.update(t)
            if event is not None:
                modulator.on_pulse(event)
            frame = modulator.frame(t, general=synchronizer.parameters)
            frames.append(self._frame_dict(i, frame, event is not None))

        metadata = ManifestMetadata(
            duration=self._round(result.duration),
            fps=self.fps,
            n_frames=n_frames,
            n_beats=len(result.beats),
            style=modulator.style.value,
            color=modulator.color.value,
            sync_intensity=synchronizer.sync_intensity,
            beat_sync_enabled=synchronizer.enabled,
        )

        return {
            "metadata": {
                "duration": metadata.duration,
                "fps": metadata.fps,
                "n_frames": metadata.n_frames,
                "n_beats": metadata.n_beats,
                "style": metadata.style,
                "color": metadata.color,
                "sync_intensity": metadata.sync_intensity,
                "beat_sync_enabled": metadata.beat_sync_enabled,
                "schema_version": metadata.schema_version,
            },
            "asset": modulator.asset,
            "beats": [self._beat_dict(b, annotations) for b in result.beats],
            "annotations": [
                {"time": self._round(t), "command": command.value}
                for t, command in annotations.items()
            ],
            "frames": frames,
        }

    def export_json(
        self,
        result: AnalysisResult,
        settings: ProjectSettings,
        output_path: Union[str, Path],
        annotations: AnnotationStore | None = None,
        indent: int = 2,
    ) -> Path:
        """
        Export the manifest to a JSON file.

        Returns:
            Path to written file.
        """
        manifest = self.build_manifest(result, settings, annotations)
        return self.write_json(manifest, output_path, indent=indent)

    def write_json(
        self,
        manifest: dict[str, Any],
        output_path: Union[str, Path],
        indent: int = 2,
    ) -> Path:
        """Write an already built manifest to ``output_path``."""
        output_path = Path(output_path)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=indent, ensure_ascii=False)

        return output_path
