"""Visualizer templates and beat-driven modulation."""

from beatsync.visualizers.modulator import FrameParameters, VisualModulator

__all__ = ["FrameParameters", "VisualModulator"]
