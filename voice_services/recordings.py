"""In-memory recording storage and the transcription flow built on it.

Recordings hold PCM audio plus format metadata. Transcribing a recording wraps
its PCM in a WAV container, hands it to the speech-to-text provider and, when a
prompt service is configured, forwards any non-blank transcript to it.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from voice_services.ai.prompt_service import PromptService
from voice_services.audio.silence import SilenceDetector
from voice_services.audio.wav_codec import PcmBuffer, encode_wav
from voice_services.errors import AudioProcessingError, RecordingNotFoundError
from voice_services.stt.transcription_service import TranscriptionProvider

logger = logging.getLogger(__name__)


@dataclass
class Recording:
    recording_id: str
    pcm: PcmBuffer
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    transcribed_text: str | None = None
    detected_language: str | None = None
    ai_response: str | None = None

    @property
    def has_transcribed_text(self) -> bool:
        return bool(self.transcribed_text and self.transcribed_text.strip())

    @property
    def has_ai_response(self) -> bool:
        return bool(self.ai_response and self.ai_response.strip())

    def metadata_view(self) -> Dict[str, object]:
        return {
            "id": self.recording_id,
            "samples_per_second": self.pcm.sample_rate,
            "bits_per_sample": self.pcm.bits_per_sample,
            "channels": self.pcm.channels,
            "data_size": len(self.pcm.data),
            "created_at": self.created_at.isoformat(),
        }


def _require_id(recording_id: str | None) -> str:
    if recording_id is None or not recording_id.strip():
        raise ValueError("Recording ID cannot be null or empty")
    return recording_id


class RecordingStore:
    def __init__(self):
        self._recordings: Dict[str, Recording] = {}
        self._lock = threading.Lock()

    def store(self, recording: Recording) -> Recording:
        if recording is None:
            raise ValueError("Recording cannot be None")
        _require_id(recording.recording_id)
        with self._lock:
            self._recordings[recording.recording_id] = recording
        return recording

    def get(self, recording_id: str) -> Optional[Recording]:
        _require_id(recording_id)
        with self._lock:
            return self._recordings.get(recording_id)

    def clear(self, recording_id: str) -> bool:
        _require_id(recording_id)
        with self._lock:
            return self._recordings.pop(recording_id, None) is not None

    def ids(self) -> List[str]:
        with self._lock:
            return sorted(self._recordings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._recordings)


class RecordingService:
    def __init__(
        self,
        store: RecordingStore,
        transcriber: TranscriptionProvider,
        prompt_service: PromptService | None = None,
        detector: SilenceDetector | None = None,
    ):
        if store is None:
            raise ValueError("RecordingStore cannot be None")
        if transcriber is None:
            raise ValueError("Transcription provider cannot be None")
        self.store = store
        self.transcriber = transcriber
        self.prompt_service = prompt_service
        self.detector = detector

    def start_recording(self, pcm_data: bytes, sample_rate: int, bits_per_sample: int, channels: int) -> Recording:
        if pcm_data is None:
            raise ValueError("PCM data cannot be None")
        if len(pcm_data) == 0:
            raise ValueError("PCM data cannot be empty")
        if sample_rate <= 0:
            raise ValueError("Samples per second must be positive")
        if bits_per_sample <= 0:
            raise ValueError("Bits per sample must be positive")
        if channels <= 0:
            raise ValueError("Channels must be positive")

        pcm = PcmBuffer(
            data=bytes(pcm_data), sample_rate=sample_rate, bits_per_sample=bits_per_sample, channels=channels
        )
        recording = Recording(recording_id=str(uuid.uuid4()), pcm=pcm)
        logger.info("Stored recording %s (%d bytes)", recording.recording_id, len(pcm.data))
        return self.store.store(recording)

    def detect_silence(self, pcm: PcmBuffer) -> bool:
        if self.detector is None:
            return False
        return self.detector.is_silent(pcm)

    def get_recording(self, recording_id: str) -> Optional[Recording]:
        return self.store.get(recording_id)

    def stop_recording(self, recording_id: str) -> bool:
        return self.store.clear(recording_id)

    def transcribe_recording(self, recording_id: str) -> Recording:
        recording = self.store.get(recording_id)
        if recording is None:
            raise RecordingNotFoundError(recording_id)

        wav_bytes = encode_wav(recording.pcm)
        result = self.transcriber.transcribe(wav_bytes, recording.pcm)
        recording.transcribed_text = result.text
        recording.detected_language = result.language

        if self.prompt_service is not None and recording.has_transcribed_text:
            try:
                recording.ai_response = self.prompt_service.send_prompt(recording.transcribed_text)
            except AudioProcessingError as exc:
                raise AudioProcessingError(f"Transcription successful but AI processing failed: {exc}") from exc

        return recording
