"""Exceptions shared by the orchestration layers around the audio core."""
from __future__ import annotations


class AudioProcessingError(RuntimeError):
    """Raised when a transcription, synthesis, or prompt provider fails."""


class AudioFileError(RuntimeError):
    """Raised when an audio file cannot be read or is not a WAV file."""


class RecordingNotFoundError(KeyError):
    def __init__(self, recording_id: str):
        super().__init__(f"Recording not found with ID: {recording_id}")
        self.recording_id = recording_id

    def __str__(self) -> str:
        return self.args[0]


class StreamSessionError(RuntimeError):
    """Raised for chunks or stop requests against an invalid streaming session."""
