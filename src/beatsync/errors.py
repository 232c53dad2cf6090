"""
Error taxonomy for the beat synchronization engine.

Loader and detector failures propagate through the analysis cache
untouched; the editing session turns them into an empty beat list
and a user-facing message.
"""


class BeatSyncError(Exception):
    """Base class for all engine errors."""

    #: Short message suitable for display in the surrounding UI.
    user_message = "Could not analyze audio for beat detection."


class DecodeError(BeatSyncError):
    """Audio container or codec is unsupported or the data is corrupt."""

    user_message = (
        "Failed to decode audio. The file might be corrupt or in an unsupported format."
    )


class SourceUnavailableError(BeatSyncError):
    """The audio resource could not be fetched."""

    user_message = "Failed to load audio file. Please check the network connection."


class InvalidConfiguration(BeatSyncError, ValueError):
    """A configuration value is out of range or not one of the known options."""

    user_message = "Invalid visualizer configuration."
