"""
Per-frame feature extraction for onset detection.

Extracts three drivers per analysis frame: half-wave rectified
spectral flux, RMS amplitude and low-band (bass) energy.
"""

from dataclasses import dataclass
from typing import Iterator

import librosa
import numpy as np
from scipy import signal as scipy_signal

from beatsync.config import AnalysisConfig


@dataclass(frozen=True)
class FrameFeatures:
    """Features of a single analysis frame."""

    start_sample: int
    spectral_flux: float
    rms: float
    low_band_energy: float


@dataclass
class FeatureTrack:
    """Frame-aligned feature arrays for one pass over a buffer."""

    start_samples: np.ndarray
    spectral_flux: np.ndarray
    rms: np.ndarray
    low_band_energy: np.ndarray
    sample_rate: int
    hop_size: int

    def __len__(self) -> int:
        return len(self.start_samples)

    def __iter__(self) -> Iterator[FrameFeatures]:
        for i in range(len(self)):
            yield FrameFeatures(
                start_sample=int(self.start_samples[i]),
                spectral_flux=float(self.spectral_flux[i]),
                rms=float(self.rms[i]),
                low_band_energy=float(self.low_band_energy[i]),
            )

    @property
    def frame_times(self) -> np.ndarray:
        """Start time of each frame in seconds."""
        return self.start_samples / float(self.sample_rate)


class FeatureExtractor:
    """
    Computes spectral flux, RMS and low-band energy over overlapping frames.

    A frame starts every ``hop_size`` samples for as long as a full
    ``frame_size`` window fits in the buffer; trailing samples that do
    not fill a frame are ignored.
    """

    def __init__(self, config: AnalysisConfig | None = None):
        """
        Initialize the extractor.

        Args:
            config: Frame/hop sizes and band limits. Uses defaults if None.
        """
        self.config = config or AnalysisConfig()
        self.config.validate()
        self._window = scipy_signal.get_window(
            self.config.window, self.config.frame_size, fftbins=True
        )

    def frame_count(self, n_samples: int) -> int:
        """Number of full frames that fit in ``n_samples``."""
        frame_size = self.config.frame_size
        if n_samples < frame_size:
            return 0
        return 1 + (n_samples - frame_size) // self.config.hop_size

    def _low_band_bins(self, sr: int) -> int:
        """Index of the highest FFT bin inside the low band."""
        n = self.config.frame_size
        return min(int(self.config.low_band_hz * n / sr), n // 2 - 1)

    def extract(self, y: np.ndarray, sr: int) -> FeatureTrack:
        """
        Extract per-frame features from a mono buffer.

        Args:
            y: Mono PCM samples.
            sr: Sample rate.

        Returns:
            FeatureTrack with one entry per frame, in frame order.
        """
        frame_size = self.config.frame_size
        hop = self.config.hop_size
        y = np.ascontiguousarray(y, dtype=np.float64)

        n_frames = self.frame_count(len(y))
        if n_frames == 0:
            empty = np.zeros(0, dtype=np.float64)
            return FeatureTrack(
                start_samples=np.zeros(0, dtype=np.int64),
                spectral_flux=empty,
                rms=empty.copy(),
                low_band_energy=empty.copy(),
                sample_rate=sr,
                hop_size=hop,
            )

        # Shape: (n_frames, frame_size)
        frames = librosa.util.frame(y, frame_length=frame_size, hop_length=hop).T
        start_samples = np.arange(n_frames, dtype=np.int64) * hop

        # Spectral flux from the windowed magnitude spectrum. The first
        # frame is compared against an all-zero spectrum.
        magnitudes = np.abs(np.fft.rfft(frames * self._window, axis=1))
        previous = np.vstack([np.zeros_like(magnitudes[:1]), magnitudes[:-1]])
        spectral_flux = np.maximum(magnitudes - previous, 0.0).sum(axis=1)

        rms = np.sqrt(np.mean(frames ** 2, axis=1))

        # Parseval: energy of the band-limited frame, so a pure bass tone
        # reports the same energy as the raw frame.
        power = np.abs(np.fft.rfft(frames, axis=1)) ** 2
        k = self._low_band_bins(sr)
        low_band_energy = (power[:, 0] + 2.0 * power[:, 1:k + 1].sum(axis=1)) / frame_size

        return FeatureTrack(
            start_samples=start_samples,
            spectral_flux=spectral_flux,
            rms=rms,
            low_band_energy=low_band_energy,
            sample_rate=sr,
            hop_size=hop,
        )
