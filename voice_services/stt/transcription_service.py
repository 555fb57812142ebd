"""Speech-to-text providers for WAV audio.

Supports faster-whisper for real transcription and a deterministic stub for
development and tests. Providers receive the WAV container along with the
decoded PCM so they can pick whichever representation suits them.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from voice_services.audio.silence import SilenceDetector
from voice_services.audio.wav_codec import PcmBuffer, WavError, decode_wav
from voice_services.errors import AudioProcessingError

logger = logging.getLogger(__name__)

STUB_TRANSCRIPT = "[speech]"


@dataclass
class TranscriptionResult:
    text: str
    language: str | None = None


class TranscriptionProvider(Protocol):
    def transcribe(self, wav_bytes: bytes, pcm: Optional[PcmBuffer] = None) -> TranscriptionResult:
        ...


class SpeechToTextService:
    """Transcription service.

    Supports:
    - faster-whisper (``provider="whisper"``), loaded lazily on first use
    - Stub mode (``provider="stub"``): empty text for silent audio, a fixed
      marker otherwise
    """

    PROVIDERS = ("stub", "whisper")

    def __init__(
        self,
        provider: str = "stub",
        language: str = "en",
        model_size: str = "base",
        detector: SilenceDetector | None = None,
    ):
        if provider not in self.PROVIDERS:
            raise ValueError(f"Unknown transcription provider {provider!r}; expected one of {self.PROVIDERS}")
        self.provider = provider
        self.language = language
        self.model_size = model_size
        self.detector = detector or SilenceDetector()
        self.model = None

    def _load_model(self):
        if self.model is not None:
            return self.model

        try:
            from faster_whisper import WhisperModel
        except ImportError as exc:
            raise AudioProcessingError(
                "faster-whisper is not installed; install the 'whisper' extra to use this provider"
            ) from exc

        logger.info("Loading faster-whisper model: %s", self.model_size)
        self.model = WhisperModel(self.model_size, device="cpu", compute_type="int8")
        logger.info("faster-whisper model loaded: %s", self.model_size)
        return self.model

    def transcribe(self, wav_bytes: bytes, pcm: Optional[PcmBuffer] = None) -> TranscriptionResult:
        """
        Transcribe a WAV container.

        Args:
            wav_bytes: Complete WAV file bytes
            pcm: Already-decoded PCM for the same audio, if the caller has it

        Returns:
            TranscriptionResult with the text and detected language
        """
        if not wav_bytes:
            raise AudioProcessingError("No audio data to transcribe")

        if self.provider == "whisper":
            return self._transcribe_whisper(wav_bytes)

        if pcm is None:
            try:
                pcm = decode_wav(wav_bytes)
            except WavError as exc:
                raise AudioProcessingError(f"Cannot transcribe invalid WAV data: {exc}") from exc
        return self._transcribe_stub(pcm)

    def _transcribe_whisper(self, wav_bytes: bytes) -> TranscriptionResult:
        model = self._load_model()
        try:
            segments, info = model.transcribe(io.BytesIO(wav_bytes), language=self.language, beam_size=5)
            text = " ".join(segment.text.strip() for segment in segments).strip()
        except Exception as exc:
            logger.error("Error in transcription: %s", exc, exc_info=True)
            raise AudioProcessingError(f"Transcription failed: {exc}") from exc

        return TranscriptionResult(text=text, language=getattr(info, "language", None) or self.language)

    def _transcribe_stub(self, pcm: PcmBuffer) -> TranscriptionResult:
        try:
            silent = self.detector.is_silent(pcm)
        except ValueError as exc:
            raise AudioProcessingError(f"Cannot transcribe audio: {exc}") from exc

        if silent:
            return TranscriptionResult(text="", language=self.language)
        return TranscriptionResult(text=STUB_TRANSCRIPT, language=self.language)
