"""
Beat-driven animation parameters for the timeline visualizer.

Maps rising-edge pulses and the playback clock onto per-frame
parameters for one of three variants:
- Waveform → deterministic scrub position + short intensity pulse
- Bars / Particles → burst restart at a beat-dependent speed + bass punch
"""

import logging
from dataclasses import dataclass
from typing import Any

from beatsync.config import (
    ProjectSettings,
    SyncConfig,
    VisualizerColor,
    VisualizerStyle,
)
from beatsync.core.onset import Beat
from beatsync.errors import InvalidConfiguration
from beatsync.sync import (
    NEUTRAL_PULSE,
    PulseEvent,
    PulseParameters,
    PulseWindow,
    Scheduler,
    default_scheduler,
)
from beatsync.visualizers.templates import TEMPLATES, build_asset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameParameters:
    """Everything the renderer needs to draw one tick."""

    style: VisualizerStyle
    time: float
    scrub_frame: float | None  # Waveform only
    visual_scale: float
    speed_multiplier: float
    restart: bool  # Restart the burst animation from frame 0
    pulse_scale: float
    shadow_opacity: float
    active_beat: Beat | None = None


class VisualModulator:
    """
    Produces animation parameters for the configured visualizer variant.

    Pulses are fed in through :meth:`on_pulse`; each one starts a local
    window (150ms for Waveform, 300ms for the burst variants) after which
    the visual scale falls back to 1. The burst speed set by a pulse holds
    until the next pulse restarts the animation.
    """

    def __init__(
        self,
        style: VisualizerStyle | str = VisualizerStyle.WAVEFORM,
        color: VisualizerColor | str = VisualizerColor.AMBER,
        thickness: float = 3.0,
        sensitivity: float = 50.0,
        duration: float = 0.0,
        config: SyncConfig | None = None,
        scheduler: Scheduler | None = None,
    ):
        """
        Initialize the modulator.

        Args:
            style: Rendering variant.
            color: Palette entry applied to the animation asset.
            thickness: Waveform stroke width (1-10).
            sensitivity: Waveform pulse sensitivity (0-100, 50 = 1x).
            duration: Media duration in seconds, used for scrubbing.
            config: Pulse window durations.
            scheduler: Timer source for pulse expiry.

        Raises:
            InvalidConfiguration: Any argument is out of range or unknown.
        """
        self.style = VisualizerStyle.parse(style)
        self.color = VisualizerColor.parse(color)
        if not (1 <= thickness <= 10):
            raise InvalidConfiguration(f"thickness must be within [1, 10], got {thickness!r}")
        if not (0 <= sensitivity <= 100):
            raise InvalidConfiguration(f"sensitivity must be within [0, 100], got {sensitivity!r}")
        self.thickness = thickness
        self.sensitivity = sensitivity
        self.config = config or SyncConfig()
        self.config.validate()
        self.duration = 0.0
        self.set_duration(duration)

        self.template = TEMPLATES[self.style]
        self.asset: dict[str, Any] = build_asset(self.style, self.color, self.thickness)

        window = (
            self.config.burst_pulse_duration
            if self.style.is_event_driven
            else self.config.waveform_pulse_duration
        )
        self._pulse = PulseWindow(
            baseline=1.0,
            duration=window,
            scheduler=scheduler or default_scheduler(),
        )
        self._speed = 1.0
        self._restart_pending = False

    @classmethod
    def from_settings(
        cls,
        settings: ProjectSettings,
        duration: float = 0.0,
        config: SyncConfig | None = None,
        scheduler: Scheduler | None = None,
        strict: bool = True,
    ) -> "VisualModulator":
        """
        Build a modulator from project settings.

        With ``strict=False`` an invalid visual configuration falls back to
        the default Waveform/Amber variant instead of raising.
        """
        try:
            settings.validate_visuals()
        except InvalidConfiguration as e:
            if strict:
                raise
            logger.warning("Invalid visualizer configuration (%s); using defaults", e)
            return cls(duration=duration, config=config, scheduler=scheduler)

        return cls(
            style=settings.visualizer_style,
            color=settings.visualizer_color,
            thickness=settings.waveform_thickness,
            sensitivity=settings.waveform_sensitivity,
            duration=duration,
            config=config,
            scheduler=scheduler,
        )

    def set_duration(self, duration: float) -> None:
        if duration < 0:
            raise InvalidConfiguration(f"duration must not be negative, got {duration!r}")
        self.duration = float(duration)

    def scrub_frame(self, current_time: float) -> float:
        """
        Template frame for a playback position.

        A pure function of ``current_time / duration``, clamped to the
        template's length.
        """
        if self.duration <= 0:
            return 0.0
        ratio = max(0.0, min(1.0, current_time / self.duration))
        return ratio * self.template.total_frames

    def on_pulse(self, event: PulseEvent) -> None:
        """Apply a rising-edge pulse to the visualizer."""
        beat = event.beat
        if self.style.is_event_driven:
            params = event.parameters
            self._pulse.trigger(params.transient_scale)
            self._speed = params.speed_multiplier
            self._restart_pending = True
        else:
            self._pulse.trigger(1 + beat.intensity * 0.15 * (self.sensitivity / 50.0))

    @property
    def visual_scale(self) -> float:
        return self._pulse.value

    @property
    def speed_multiplier(self) -> float:
        """Burst playback speed; always 1 for Waveform."""
        return self._speed

    def frame(
        self,
        current_time: float,
        general: PulseParameters = NEUTRAL_PULSE,
        active_beat: Beat | None = None,
    ) -> FrameParameters:
        """
        Parameters for the tick at ``current_time``.

        ``restart`` is reported on the first frame after a pulse only.
        """
        restart = self._restart_pending
        self._restart_pending = False
        return FrameParameters(
            style=self.style,
            time=current_time,
            scrub_frame=None if self.style.is_event_driven else self.scrub_frame(current_time),
            visual_scale=self.visual_scale,
            speed_multiplier=self.speed_multiplier,
            restart=restart,
            pulse_scale=general.pulse_scale,
            shadow_opacity=general.shadow_opacity,
            active_beat=active_beat,
        )

    def reset(self) -> None:
        self._pulse.cancel()
        self._speed = 1.0
        self._restart_pending = False
