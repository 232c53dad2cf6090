"""
Onset (transient) detection with an adaptive spectral-flux threshold.

A frame becomes a beat when its flux is a local rise, exceeds every
other value in a short sliding history, clears ``mean(history) * 1.5``
and sits above a fixed noise floor.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator

import numpy as np

from beatsync.config import AnalysisConfig
from beatsync.core.features import FeatureTrack, FrameFeatures


@dataclass(frozen=True)
class Beat:
    """A detected transient."""

    timestamp: float  # Seconds from the start of the audio
    intensity: float  # Overall transient strength [0, 1]
    bass_intensity: float  # Low-band energy strength [0, 1]


@dataclass(frozen=True)
class AnalysisResult:
    """Beats and duration for one audio resource."""

    beats: tuple[Beat, ...] = ()
    duration: float = 0.0
    sample_rate: int | None = field(default=None, compare=False)

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError(f"duration must not be negative, got {self.duration}")
        # Accept any iterable but always store an immutable sequence
        object.__setattr__(self, "beats", tuple(self.beats))

    @property
    def beat_times(self) -> np.ndarray:
        return np.array([b.timestamp for b in self.beats], dtype=float)

    def __len__(self) -> int:
        return len(self.beats)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class OnsetDetector:
    """
    Single forward pass over a feature track, emitting ordered beats.

    The detector keeps no state between calls; each call to
    :meth:`iter_beats` starts with an empty history.
    """

    def __init__(self, config: AnalysisConfig | None = None):
        self.config = config or AnalysisConfig()
        self.config.validate()

    def iter_beats(
        self,
        frames: Iterable[FrameFeatures],
        sample_rate: int,
    ) -> Iterator[Beat]:
        """
        Yield beats as frames are consumed.

        Args:
            frames: Per-frame features in frame order.
            sample_rate: Sample rate used to turn frame offsets into seconds.
        """
        history: deque[float] = deque(maxlen=self.config.history_size)
        previous_flux = 0.0

        for frame in frames:
            flux = frame.spectral_flux
            history.append(flux)

            earlier = list(history)[:-1]
            is_peak = flux > previous_flux and flux > max(earlier, default=float("-inf"))

            if is_peak:
                threshold = sum(history) / len(history) * self.config.threshold_multiplier
                if flux > threshold and flux > self.config.noise_floor:
                    yield Beat(
                        timestamp=frame.start_sample / sample_rate,
                        intensity=_clamp01(frame.rms * 3),
                        bass_intensity=_clamp01(frame.low_band_energy / 10),
                    )

            previous_flux = flux

    def detect(self, track: FeatureTrack) -> tuple[Beat, ...]:
        """Run the full pass over a feature track."""
        return tuple(self.iter_beats(track, track.sample_rate))

