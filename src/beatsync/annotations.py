"""
Timeline annotations: one command label per beat timestamp.
"""

from enum import Enum
from typing import Iterator

from beatsync.errors import InvalidConfiguration


class TimelineCommand(str, Enum):
    """Commands that can be attached to a beat."""

    ZOOM_IN = "Zoom In"
    QUICK_CUT = "Quick Cut"
    PAN_LEFT = "Pan Left"
    DOF_BLUR = "DoF Blur"
    EXPLOSION = "Explosion"

    @classmethod
    def parse(cls, value: "str | TimelineCommand") -> "TimelineCommand":
        try:
            return cls(value)
        except ValueError:
            raise InvalidConfiguration(f"Unknown timeline command: {value!r}") from None


# Overlay glyph drawn above an annotated beat
COMMAND_ICONS: dict[TimelineCommand, str] = {
    TimelineCommand.ZOOM_IN: "\U0001F50D",
    TimelineCommand.QUICK_CUT: "✂️",
    TimelineCommand.PAN_LEFT: "⬅️",
    TimelineCommand.DOF_BLUR: "\U0001F4A7",
    TimelineCommand.EXPLOSION: "\U0001F4A5",
}
DEFAULT_ICON = "\U0001F3AC"


class AnnotationStore:
    """
    Map from exact beat timestamp to a timeline command.

    Timestamps are used as produced by the detector; nothing is rounded,
    so lookups must use the same float.
    """

    def __init__(self):
        self._commands: dict[float, TimelineCommand] = {}

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, timestamp: float) -> bool:
        return timestamp in self._commands

    def __iter__(self) -> Iterator[float]:
        return iter(sorted(self._commands))

    def get(self, timestamp: float) -> TimelineCommand | None:
        return self._commands.get(timestamp)

    def set(self, timestamp: float, label: TimelineCommand | str) -> None:
        """Attach ``label`` to ``timestamp``, replacing any existing one."""
        self._commands[timestamp] = TimelineCommand.parse(label)

    def remove(self, timestamp: float) -> None:
        """Drop the label at ``timestamp``; a missing key is not an error."""
        self._commands.pop(timestamp, None)

    def apply(self, timestamp: float, selection: TimelineCommand | str | None) -> None:
        """Apply a command-menu selection; None removes the label."""
        if selection is None:
            self.remove(timestamp)
        else:
            self.set(timestamp, selection)

    def clear(self) -> None:
        self._commands.clear()

    def items(self) -> list[tuple[float, TimelineCommand]]:
        """Annotations in timestamp order."""
        return sorted(self._commands.items())

    def icon_for(self, timestamp: float) -> str | None:
        """Overlay glyph for the beat at ``timestamp``, None if unannotated."""
        command = self._commands.get(timestamp)
        if command is None:
            return None
        return COMMAND_ICONS.get(command, DEFAULT_ICON)
