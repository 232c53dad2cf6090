"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from beatsync.core.onset import AnalysisResult, Beat
from beatsync.sync import ManualScheduler

# Default sample rate for test audio
TEST_SR = 22050

# Onsets of the synthetic click track, preceded by silence
CLICK_ONSETS = (0.25, 0.75, 1.25, 1.75)


def make_click_track(
    sample_rate: int,
    onsets=CLICK_ONSETS,
    duration: float = 2.0,
    amplitude: float = 0.8,
) -> np.ndarray:
    """Silence with a 10ms exponentially decaying click at each onset."""
    total_samples = int(sample_rate * duration)
    y = np.zeros(total_samples, dtype=np.float32)

    click_duration = int(sample_rate * 0.01)
    for onset in onsets:
        start = int(onset * sample_rate)
        end = min(start + click_duration, total_samples)
        decay = np.exp(-np.linspace(0, 5, end - start))
        y[start:end] = amplitude * decay

    return y


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def click_track(sample_rate: int) -> tuple[np.ndarray, int]:
    """
    Generate clicks at CLICK_ONSETS with silence in between.

    Returns:
        Tuple of (audio_signal, sample_rate).
    """
    return make_click_track(sample_rate), sample_rate


@pytest.fixture
def silence(sample_rate: int) -> tuple[np.ndarray, int]:
    """Two seconds of digital silence."""
    return np.zeros(int(sample_rate * 2.0), dtype=np.float32), sample_rate


@pytest.fixture
def temp_audio_file(tmp_path, click_track):
    """Write the click track to a temporary WAV file."""
    import soundfile as sf

    y, sr = click_track
    audio_path = tmp_path / "clicks.wav"
    sf.write(audio_path, y, sr)
    return audio_path


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Deterministic timer source starting at t=0."""
    return ManualScheduler()


@pytest.fixture
def beats() -> tuple[Beat, ...]:
    """Hand-made beats one second apart."""
    return (
        Beat(timestamp=1.0, intensity=0.5, bass_intensity=0.25),
        Beat(timestamp=2.0, intensity=0.8, bass_intensity=0.75),
        Beat(timestamp=3.0, intensity=1.0, bass_intensity=0.0),
    )


@pytest.fixture
def analysis(beats) -> AnalysisResult:
    """An analysis result over the hand-made beats."""
    return AnalysisResult(beats=beats, duration=4.0, sample_rate=TEST_SR)


@pytest.fixture
def click_onsets() -> tuple[float, ...]:
    """True onset times of the click_track fixture."""
    return CLICK_ONSETS
