"""Chunked PCM streaming with per-chunk silence checks.

A single streaming session is active at a time. Chunks are accumulated in a
thread-safe buffer. Stopping the session wraps the buffered audio in a WAV
container and transcribes it; the buffer is cleared only once that succeeds.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass

from voice_services.audio.silence import SUPPORTED_BIT_DEPTHS, SilenceDetector, UnsupportedBitDepthError
from voice_services.audio.wav_codec import PcmBuffer, encode_wav
from voice_services.errors import StreamSessionError
from voice_services.stt.transcription_service import TranscriptionProvider

logger = logging.getLogger(__name__)


class StreamBuffer:
    """Append-only byte accumulator guarded by a lock."""

    def __init__(self):
        self._buffer = bytearray()
        self._lock = threading.Lock()

    def append(self, chunk: bytes) -> int:
        if chunk is None:
            raise ValueError("Audio chunk cannot be None")
        if len(chunk) == 0:
            raise ValueError("Audio chunk cannot be empty")
        with self._lock:
            self._buffer.extend(chunk)
            return len(self._buffer)

    def drain(self) -> bytes:
        """Return everything buffered so far and empty the buffer."""

        with self._lock:
            data = bytes(self._buffer)
            self._buffer.clear()
            return data

    def snapshot(self) -> bytes:
        with self._lock:
            return bytes(self._buffer)

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._buffer)

    def is_empty(self) -> bool:
        return self.size == 0

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()


@dataclass
class StreamFormat:
    sample_rate: int
    bits_per_sample: int
    channels: int


@dataclass
class ChunkResult:
    buffered: int
    is_silent: bool


@dataclass
class StreamResult:
    session_id: str
    text: str
    language: str | None
    audio_size: int

    @property
    def has_transcription(self) -> bool:
        return bool(self.text and self.text.strip())


class StreamingSessionManager:
    def __init__(self, transcriber: TranscriptionProvider, detector: SilenceDetector | None = None):
        self.transcriber = transcriber
        self.detector = detector
        self.buffer = StreamBuffer()
        self.session_id: str | None = None
        self.stream_format: StreamFormat | None = None
        self.latest_transcription = ""
        self._lock = threading.Lock()

    def start(self, sample_rate: int, bits_per_sample: int, channels: int) -> str:
        if sample_rate <= 0 or bits_per_sample <= 0 or channels <= 0:
            raise ValueError("sample rate, bits per sample and channels must be positive")
        if self.detector is not None and bits_per_sample not in SUPPORTED_BIT_DEPTHS:
            raise UnsupportedBitDepthError(bits_per_sample)

        with self._lock:
            if self.session_id is not None:
                logger.info("Replacing streaming session %s", self.session_id)
                self.buffer.clear()
            self.session_id = str(uuid.uuid4())
            self.stream_format = StreamFormat(sample_rate, bits_per_sample, channels)
            self.latest_transcription = ""
            return self.session_id

    def _require_session(self, session_id: str) -> StreamFormat:
        if self.session_id is None or self.session_id != session_id:
            raise StreamSessionError("Invalid or expired session")
        return self.stream_format

    def add_chunk(self, session_id: str, pcm_data: bytes) -> ChunkResult:
        with self._lock:
            stream_format = self._require_session(session_id)
            if not pcm_data:
                raise ValueError("Audio chunk cannot be empty")

            # chunks are classified before buffering; a rejected chunk is never stored
            silent = False
            if self.detector is not None:
                silent = self.detector.is_silent(
                    PcmBuffer(
                        data=bytes(pcm_data),
                        sample_rate=stream_format.sample_rate,
                        bits_per_sample=stream_format.bits_per_sample,
                        channels=stream_format.channels,
                    )
                )
            buffered = self.buffer.append(pcm_data)
        return ChunkResult(buffered=buffered, is_silent=silent)

    def stop(self, session_id: str) -> StreamResult:
        with self._lock:
            stream_format = self._require_session(session_id)
            pcm_data = self.buffer.snapshot()
            if not pcm_data:
                raise StreamSessionError("No audio data recorded")

            pcm = PcmBuffer(
                data=pcm_data,
                sample_rate=stream_format.sample_rate,
                bits_per_sample=stream_format.bits_per_sample,
                channels=stream_format.channels,
            )
            # session and buffer survive a failed transcription
            result = self.transcriber.transcribe(encode_wav(pcm), pcm)
            self.buffer.clear()
            self.latest_transcription = result.text or ""
            self.session_id = None
            self.stream_format = None

        logger.info("Streaming session %s stopped with %d bytes", session_id, len(pcm_data))
        return StreamResult(
            session_id=session_id,
            text=self.latest_transcription,
            language=result.language,
            audio_size=len(pcm_data),
        )
