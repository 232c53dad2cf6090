"""Core audio processing modules."""

from beatsync.core.features import FeatureExtractor
from beatsync.core.loader import AudioLoader
from beatsync.core.onset import OnsetDetector

__all__ = ["AudioLoader", "FeatureExtractor", "OnsetDetector"]
