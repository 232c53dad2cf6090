"""
Beat analysis pipeline.

Orchestrates the flow from audio resource to AnalysisResult and routes
it through the session's analysis cache.
"""

import asyncio
import logging
from pathlib import Path
from typing import Union

import numpy as np

from beatsync.cache import AnalysisCache
from beatsync.config import AnalysisConfig
from beatsync.core.features import FeatureExtractor, FeatureTrack
from beatsync.core.loader import AudioLoader, DecodedAudio, resource_key
from beatsync.core.onset import AnalysisResult, OnsetDetector

logger = logging.getLogger(__name__)


class BeatAnalysisPipeline:
    """
    Complete audio-to-beats processing pipeline.

    Combines loading, feature extraction and onset detection into a
    single interface. The blocking pass runs in a worker thread when
    called through :meth:`analyze`.
    """

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        loader: AudioLoader | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Analysis parameters. Uses defaults if None.
            loader: Audio loader; one honouring ``config.sample_rate`` is
                created if None.
        """
        self.config = config or AnalysisConfig()
        self.config.validate()

        self.loader = loader or AudioLoader(sample_rate=self.config.sample_rate)
        self.extractor = FeatureExtractor(self.config)
        self.detector = OnsetDetector(self.config)

    def load(self, source: Union[str, Path]) -> DecodedAudio:
        """
        Phase A: Fetch and decode the audio resource (channel 0).
        """
        return self.loader.load(source)

    def extract(self, y: np.ndarray, sr: int) -> FeatureTrack:
        """
        Phase B: Per-frame flux, RMS and low-band energy.
        """
        return self.extractor.extract(y, sr)

    def analyze_samples(self, y: np.ndarray, sr: int) -> AnalysisResult:
        """
        Phases B and C on an already decoded buffer.

        Zero-length input returns an empty result with zero duration.
        """
        track = self.extract(y, sr)
        beats = self.detector.detect(track)
        duration = len(y) / float(sr) if len(y) > 0 else 0.0
        return AnalysisResult(beats=beats, duration=duration, sample_rate=sr)

    def analyze_file(self, source: Union[str, Path]) -> AnalysisResult:
        """
        Run the complete pipeline synchronously.

        Raises:
            SourceUnavailableError: The resource could not be fetched.
            DecodeError: The resource could not be decoded.
        """
        decoded = self.load(source)
        track = self.extract(decoded.samples, decoded.sample_rate)
        beats = self.detector.detect(track)
        logger.info(
            "Detected %d beats in %s (%.2fs, %d frames)",
            len(beats),
            source,
            decoded.duration,
            len(track),
        )
        return AnalysisResult(
            beats=beats,
            duration=decoded.duration,
            sample_rate=decoded.sample_rate,
        )

    async def analyze(
        self,
        source: Union[str, Path],
        cache: AnalysisCache | None = None,
    ) -> AnalysisResult:
        """
        Analyze a resource without blocking the event loop.

        With a cache, the result is memoized under the resource key and
        concurrent calls for the same resource share one pass.
        """
        if cache is None:
            return await asyncio.to_thread(self.analyze_file, source)

        return await cache.get_or_compute(
            resource_key(source),
            lambda: asyncio.to_thread(self.analyze_file, source),
        )
