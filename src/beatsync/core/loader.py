"""
Audio source loading and decoding.

Resolves an audio resource (local path, file:// or http(s):// URL),
fetches its bytes and decodes them to mono PCM. Only channel 0 is
kept; the engine never mixes channels down.
"""

import io
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Union
from urllib.parse import unquote, urlparse

import librosa
import numpy as np
import soundfile as sf

from beatsync.errors import DecodeError, SourceUnavailableError

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = ("http", "https")


@dataclass
class DecodedAudio:
    """Channel 0 of a decoded audio resource."""

    samples: np.ndarray
    sample_rate: int
    duration: float
    n_channels: int = 1

    @property
    def n_samples(self) -> int:
        """Total number of samples in the decoded channel."""
        return len(self.samples)


def resource_key(source: Union[str, Path]) -> str:
    """
    Resolve an audio source to the key used by the analysis cache.

    Local paths become absolute file:// URIs so that different spellings
    of the same file share one cache entry. URLs are returned unchanged.
    """
    text = str(source)
    if urlparse(text).scheme in _REMOTE_SCHEMES + ("file",):
        return text
    return Path(text).expanduser().resolve().as_uri()


class AudioLoader:
    """
    Fetches and decodes audio resources for analysis.
    """

    def __init__(self, sample_rate: int | None = None, timeout: float = 30.0):
        """
        Initialize the loader.

        Args:
            sample_rate: Target sample rate. None preserves the original rate.
            timeout: Network timeout in seconds for remote sources.
        """
        self.sample_rate = sample_rate
        self.timeout = timeout

    def fetch(self, source: Union[str, Path]) -> bytes:
        """
        Read the raw bytes of an audio resource.

        Raises:
            SourceUnavailableError: The file is missing or the request failed.
        """
        text = str(source)
        parsed = urlparse(text)

        if parsed.scheme in _REMOTE_SCHEMES:
            try:
                with urllib.request.urlopen(text, timeout=self.timeout) as response:
                    return response.read()
            except urllib.error.HTTPError as e:
                raise SourceUnavailableError(
                    f"Failed to fetch audio file. Status: {e.code}"
                ) from e
            except (urllib.error.URLError, OSError) as e:
                raise SourceUnavailableError(f"Failed to fetch audio file: {e}") from e

        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(text)
        try:
            return path.expanduser().read_bytes()
        except OSError as e:
            raise SourceUnavailableError(f"Audio file not readable: {path}") from e

    def decode(self, data: bytes) -> DecodedAudio:
        """
        Decode an in-memory audio container.

        Args:
            data: Encoded audio (wav, flac, ogg, mp3 where libsndfile supports it).

        Returns:
            DecodedAudio holding channel 0.

        Raises:
            DecodeError: The container or codec is unsupported or corrupt.
        """
        try:
            frames, sr = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except (sf.SoundFileError, RuntimeError, TypeError) as e:
            raise DecodeError(f"Failed to decode audio: {e}") from e

        n_channels = frames.shape[1]
        y = np.ascontiguousarray(frames[:, 0])

        if self.sample_rate is not None and self.sample_rate != sr and len(y) > 0:
            y = librosa.resample(y, orig_sr=sr, target_sr=self.sample_rate)
            sr = self.sample_rate

        duration = float(librosa.get_duration(y=y, sr=sr)) if len(y) > 0 else 0.0

        return DecodedAudio(
            samples=y,
            sample_rate=int(sr),
            duration=duration,
            n_channels=n_channels,
        )

    def load(self, source: Union[str, Path]) -> DecodedAudio:
        """
        Fetch and decode an audio resource in one step.
        """
        data = self.fetch(source)
        decoded = self.decode(data)
        logger.debug(
            "Decoded %s: %d samples @ %d Hz, %d channel(s)",
            source,
            decoded.n_samples,
            decoded.sample_rate,
            decoded.n_channels,
        )
        return decoded
