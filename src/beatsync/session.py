"""
Editing session for one project at a time.

Owns the project's pulse state and timeline annotations, loads its
beats through the shared analysis cache and turns playback time
updates into frame parameters for the renderer.
"""

import logging

from beatsync.annotations import AnnotationStore
from beatsync.cache import AnalysisCache
from beatsync.config import ProjectSettings, SyncConfig
from beatsync.core.onset import AnalysisResult
from beatsync.errors import BeatSyncError
from beatsync.pipeline import BeatAnalysisPipeline
from beatsync.sync import (
    PlaybackSynchronizer,
    PulseState,
    Scheduler,
    default_scheduler,
)
from beatsync.visualizers.modulator import FrameParameters, VisualModulator

logger = logging.getLogger(__name__)

_VISUAL_FIELDS = {
    "visualizer_style",
    "visualizer_color",
    "waveform_thickness",
    "waveform_sensitivity",
}
_IDENTITY_FIELDS = {"project_id", "audio_source"}


class EditingSession:
    """
    Per-project state of the studio timeline.

    Switching projects discards the previous project's pulse state and
    annotations. Analysis that finishes after a later open_project() or
    close() is dropped instead of being applied, even when the same
    project was reopened.
    """

    def __init__(
        self,
        cache: AnalysisCache,
        pipeline: BeatAnalysisPipeline | None = None,
        sync_config: SyncConfig | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.cache = cache
        self.pipeline = pipeline or BeatAnalysisPipeline()
        self.sync_config = sync_config or SyncConfig()
        self.scheduler = scheduler or default_scheduler()

        self.settings: ProjectSettings | None = None
        self.result = AnalysisResult()
        self.last_error: str | None = None
        self.is_analyzing = False
        self._generation = 0  # Bumped by every open_project() and close()
        self.annotations = AnnotationStore()
        self.synchronizer = PlaybackSynchronizer(
            config=self.sync_config,
            scheduler=self.scheduler,
        )
        self.modulator = VisualModulator(config=self.sync_config, scheduler=self.scheduler)

    @property
    def project_id(self) -> str | None:
        return self.settings.project_id if self.settings is not None else None

    @property
    def beats(self):
        return self.result.beats

    @property
    def pulse_state(self) -> PulseState:
        return self.synchronizer.state

    async def open_project(self, settings: ProjectSettings) -> AnalysisResult | None:
        """
        Make ``settings`` the active project and load its beats.

        Analysis failures are not fatal: the beat list stays empty and
        ``last_error`` carries a message for the user.

        Returns:
            The applied AnalysisResult, or None when the session was reopened
            or closed before the analysis finished.

        Raises:
            InvalidConfiguration: ``sync_intensity`` is out of range.
        """
        self.synchronizer.set_sync_intensity(settings.sync_intensity)
        self._reset_project_state()
        self.settings = settings
        self.synchronizer.set_enabled(settings.beat_sync_enabled)
        self.modulator = VisualModulator.from_settings(
            settings,
            config=self.sync_config,
            scheduler=self.scheduler,
            strict=False,
        )

        self._generation += 1
        generation = self._generation
        project_id = settings.project_id
        self.is_analyzing = True
        try:
            result = await self.pipeline.analyze(settings.audio_source, self.cache)
        except BeatSyncError as e:
            if generation != self._generation:
                logger.info("Ignoring failed analysis for superseded open of %s", project_id)
                return None
            logger.warning("Beat analysis failed for project %s: %s", project_id, e)
            self.last_error = e.user_message
            result = AnalysisResult()
        finally:
            if generation == self._generation:
                self.is_analyzing = False

        if generation != self._generation:
            logger.info(
                "Discarding analysis of %s for %s; a newer open is active",
                settings.audio_source,
                project_id,
            )
            return None

        self._apply_result(result)
        return result

    def _reset_project_state(self) -> None:
        self.synchronizer.reset()
        self.synchronizer.set_beats(())
        self.modulator.reset()
        self.annotations.clear()
        self.result = AnalysisResult()
        self.last_error = None

    def _apply_result(self, result: AnalysisResult) -> None:
        self.result = result
        self.synchronizer.set_beats(result.beats)
        self.modulator.set_duration(result.duration)

    def on_time_update(self, current_time: float) -> FrameParameters:
        """
        Feed a playback time sample and return the parameters to draw.
        """
        event = self.synchronizer.update(current_time)
        if event is not None:
            self.modulator.on_pulse(event)
        return self.modulator.frame(
            current_time,
            general=self.synchronizer.parameters,
            active_beat=self.synchronizer.active_beat_at(current_time),
        )

    def update_settings(self, **changes) -> ProjectSettings:
        """
        Change controls of the active project.

        Visual changes rebuild the modulator; an invalid visual
        configuration falls back to the default variant.
        """
        if self.settings is None:
            raise RuntimeError("No project is open")
        if _IDENTITY_FIELDS & changes.keys():
            raise ValueError("Use open_project() to switch projects or audio sources")

        updated = self.settings.with_changes(**changes)
        if "sync_intensity" in changes:
            self.synchronizer.set_sync_intensity(updated.sync_intensity)
        if "beat_sync_enabled" in changes:
            self.synchronizer.set_enabled(updated.beat_sync_enabled)
        if _VISUAL_FIELDS & changes.keys():
            self.modulator.reset()
            self.modulator = VisualModulator.from_settings(
                updated,
                duration=self.result.duration,
                config=self.sync_config,
                scheduler=self.scheduler,
                strict=False,
            )

        self.settings = updated
        return updated

    def close(self) -> None:
        """Discard the active project's state."""
        self._generation += 1
        self._reset_project_state()
        self.settings = None
        self.is_analyzing = False
