"""
Configuration objects for analysis, synchronization and visuals.

Everything here is a plain dataclass with sensible defaults; values
coming from the surrounding UI are checked with ``validate()``.
"""

from dataclasses import dataclass, replace
from enum import Enum

from beatsync.errors import InvalidConfiguration


class VisualizerStyle(str, Enum):
    """The three mutually exclusive rendering variants."""

    WAVEFORM = "Waveform"
    BARS = "Bars"
    PARTICLES = "Particles"

    @classmethod
    def parse(cls, value: "str | VisualizerStyle") -> "VisualizerStyle":
        try:
            return cls(value)
        except ValueError:
            raise InvalidConfiguration(f"Unknown visualizer style: {value!r}") from None

    @property
    def is_event_driven(self) -> bool:
        return self is not VisualizerStyle.WAVEFORM


class VisualizerColor(str, Enum):
    """Palette choices for the visualizer overlay."""

    AMBER = "Amber"
    AQUA = "Aqua"
    CRIMSON = "Crimson"

    @classmethod
    def parse(cls, value: "str | VisualizerColor") -> "VisualizerColor":
        try:
            return cls(value)
        except ValueError:
            raise InvalidConfiguration(f"Unknown visualizer color: {value!r}") from None


@dataclass
class AnalysisConfig:
    """Parameters of the onset detection pass."""

    frame_size: int = 1024
    hop_size: int = 512  # 50% overlap
    history_size: int = 10  # Flux values kept for the adaptive threshold
    threshold_multiplier: float = 1.5
    noise_floor: float = 0.01  # Rejects near-silence
    low_band_hz: float = 250.0  # Upper edge of the "bass" band
    window: str = "hann"
    sample_rate: int | None = None  # None keeps the decoded rate

    def validate(self) -> None:
        if self.frame_size <= 0 or self.hop_size <= 0:
            raise InvalidConfiguration("frame_size and hop_size must be positive")
        if self.history_size < 1:
            raise InvalidConfiguration("history_size must be at least 1")
        if self.threshold_multiplier <= 0:
            raise InvalidConfiguration("threshold_multiplier must be positive")
        if self.noise_floor < 0:
            raise InvalidConfiguration("noise_floor must not be negative")
        if self.low_band_hz <= 0:
            raise InvalidConfiguration("low_band_hz must be positive")
        if self.sample_rate is not None and self.sample_rate <= 0:
            raise InvalidConfiguration("sample_rate must be positive")


@dataclass
class SyncConfig:
    """Timing constants for beat synchronization, in seconds."""

    tolerance: float = 0.1  # Radius around a beat that counts as "at" the beat
    pulse_duration: float = 0.4  # General cross-component pulse
    waveform_pulse_duration: float = 0.15
    burst_pulse_duration: float = 0.3  # Bars / Particles

    def validate(self) -> None:
        if self.tolerance <= 0:
            raise InvalidConfiguration("tolerance must be positive")
        for name in ("pulse_duration", "waveform_pulse_duration", "burst_pulse_duration"):
            if getattr(self, name) <= 0:
                raise InvalidConfiguration(f"{name} must be positive")


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not (low <= value <= high):
        raise InvalidConfiguration(f"{name} must be within [{low}, {high}], got {value!r}")


@dataclass
class ProjectSettings:
    """Per-project controls as edited in the studio."""

    project_id: str
    audio_source: str
    sync_intensity: float = 60.0  # 0-100
    waveform_sensitivity: float = 50.0  # 0-100
    waveform_thickness: float = 3.0  # 1-10
    visualizer_color: VisualizerColor | str = VisualizerColor.AMBER
    visualizer_style: VisualizerStyle | str = VisualizerStyle.WAVEFORM
    beat_sync_enabled: bool = True

    def __post_init__(self):
        # Known names become enum members; anything else is left for validate()
        if self.visualizer_style in VisualizerStyle._value2member_map_:
            self.visualizer_style = VisualizerStyle(self.visualizer_style)
        if self.visualizer_color in VisualizerColor._value2member_map_:
            self.visualizer_color = VisualizerColor(self.visualizer_color)

    def validate(self) -> None:
        _check_range("sync_intensity", self.sync_intensity, 0, 100)
        self.validate_visuals()

    def validate_visuals(self) -> None:
        """Check only the fields consumed by the visual modulator."""
        _check_range("waveform_sensitivity", self.waveform_sensitivity, 0, 100)
        _check_range("waveform_thickness", self.waveform_thickness, 1, 10)
        VisualizerStyle.parse(self.visualizer_style)
        VisualizerColor.parse(self.visualizer_color)

    def with_changes(self, **changes) -> "ProjectSettings":
        return replace(self, **changes)
