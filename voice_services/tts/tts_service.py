"""Text-to-speech service with support for the OpenAI speech API.

The stub provider renders a short silent WAV clip sized to the text, which keeps
the service usable offline and in tests.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

from openai import OpenAI

from voice_services.audio.wav_codec import PcmBuffer, encode_wav
from voice_services.errors import AudioProcessingError

logger = logging.getLogger(__name__)

STUB_SAMPLE_RATE = 16000
STUB_SECONDS_PER_CHAR = 0.05


@dataclass
class SynthesizedAudio:
    text: str
    encoding: str
    payload: bytes

    def as_base64(self) -> str:
        return base64.b64encode(self.payload).decode("utf-8")


class TextToSpeechService:
    """Text-to-speech service.

    Supports:
    - OpenAI speech API (``provider="openai"``, requires an API key)
    - Stub mode (``provider="stub"``)
    """

    PROVIDERS = ("stub", "openai")

    def __init__(
        self,
        provider: str = "stub",
        api_key: str | None = None,
        model: str = "tts-1",
        voice: str = "alloy",
        client: OpenAI | None = None,
    ):
        if provider not in self.PROVIDERS:
            raise ValueError(f"Unknown TTS provider {provider!r}; expected one of {self.PROVIDERS}")
        self.provider = provider
        self.model = model
        self.voice = voice
        self.client = client
        self.cache: dict[str, SynthesizedAudio] = {}

        if provider == "openai" and self.client is None:
            if api_key:
                self.client = OpenAI(api_key=api_key)
                logger.info("OpenAI TTS initialized with model %s", model)
            else:
                logger.warning("OpenAI API key not set; text-to-speech is unavailable")

    def is_available(self) -> bool:
        if self.provider == "stub":
            return True
        return self.client is not None

    def synthesize(self, text: str, use_cache: bool = True) -> SynthesizedAudio:
        """
        Synthesize speech from text.

        Args:
            text: Text to synthesize
            use_cache: Whether to use cached results

        Returns:
            SynthesizedAudio with audio data
        """
        if text is None:
            raise ValueError("Text cannot be None")
        normalized = text.strip()
        if not normalized:
            raise AudioProcessingError("Text cannot be empty")
        if not self.is_available():
            raise AudioProcessingError("Text-to-Speech service is not available. Please check configuration.")

        if use_cache and normalized in self.cache:
            logger.debug("Using cached TTS for: %s", normalized[:50])
            return self.cache[normalized]

        if self.provider == "openai":
            result = self._synthesize_openai(normalized)
        else:
            result = self._synthesize_stub(normalized)

        if use_cache:
            self.cache[normalized] = result
        return result

    def _synthesize_openai(self, text: str) -> SynthesizedAudio:
        try:
            response = self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
                response_format="wav",
            )
            payload = response.content
        except Exception as exc:
            logger.error("Error in OpenAI TTS: %s", exc, exc_info=True)
            raise AudioProcessingError(f"Failed to synthesize speech: {exc}") from exc

        if not payload:
            raise AudioProcessingError("Text-to-Speech provider returned no audio")
        return SynthesizedAudio(text=text, encoding="audio/wav", payload=payload)

    def _synthesize_stub(self, text: str) -> SynthesizedAudio:
        frames = int(len(text) * STUB_SECONDS_PER_CHAR * STUB_SAMPLE_RATE)
        pcm = PcmBuffer(data=bytes(frames * 2), sample_rate=STUB_SAMPLE_RATE, bits_per_sample=16, channels=1)
        return SynthesizedAudio(text=text, encoding="audio/wav", payload=encode_wav(pcm))

    def clear_cache(self):
        """Clear the TTS cache."""
        self.cache.clear()
