"""Turn WAV files and uploaded WAV bytes into recordings."""
from __future__ import annotations

from pathlib import Path

from voice_services.audio.wav_codec import WavError, decode_wav, validate_prologue
from voice_services.errors import AudioFileError
from voice_services.recordings import Recording


def read_wav_file(file_path: str | Path) -> bytes:
    """Read a WAV file from disk after checking its RIFF/WAVE prologue."""

    if file_path is None or not str(file_path).strip():
        raise ValueError("File path cannot be null or empty")

    path = Path(file_path)
    if not path.exists():
        raise AudioFileError(f"File not found: {path}")
    if path.is_dir():
        raise AudioFileError(f"Path points to a directory, not a file: {path}")

    try:
        data = path.read_bytes()
    except OSError as exc:
        raise AudioFileError(f"Failed to read file: {path}") from exc

    try:
        validate_prologue(data)
    except WavError as exc:
        raise AudioFileError(f"{exc} in file: {path}") from exc
    return data


def ingest_wav_bytes(wav_bytes: bytes, recording_id: str) -> Recording:
    """Decode uploaded WAV bytes into a recording with the given id.

    Codec failures propagate as ``WavError`` subclasses.
    """

    if not wav_bytes:
        raise ValueError("WAV bytes cannot be null or empty")
    if recording_id is None or not recording_id.strip():
        raise ValueError("ID cannot be null or empty")

    return Recording(recording_id=recording_id, pcm=decode_wav(wav_bytes))
