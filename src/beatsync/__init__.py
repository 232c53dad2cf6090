"""Audio-reactive timeline synchronization engine."""

from beatsync.annotations import AnnotationStore, TimelineCommand
from beatsync.cache import AnalysisCache
from beatsync.core.onset import AnalysisResult, Beat
from beatsync.pipeline import BeatAnalysisPipeline
from beatsync.session import EditingSession
from beatsync.sync import PlaybackSynchronizer
from beatsync.visualizers.modulator import VisualModulator

__version__ = "0.1.0"
__all__ = [
    "AnalysisCache",
    "AnalysisResult",
    "AnnotationStore",
    "Beat",
    "BeatAnalysisPipeline",
    "EditingSession",
    "PlaybackSynchronizer",
    "TimelineCommand",
    "VisualModulator",
]
