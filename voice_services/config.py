"""Configuration helpers for running the voice services.

The settings default to values that work in local development (stub providers,
no API key) but can be overridden via environment variables to mirror
deployment behavior.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    truthy = {"1", "true", "t", "yes", "y"}
    falsy = {"0", "false", "f", "no", "n"}
    if value.lower() in truthy:
        return True
    if value.lower() in falsy:
        return False
    return default


def _as_optional_int(value: str | None, default: int | None) -> int | None:
    if value is None:
        return default
    if value.lower() in {"none", "", "-1"}:
        return None
    return int(value)


def _as_list(value: str | None, default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class ServiceSettings:
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    log_level: str = "info"
    api_key: str | None = None
    request_id_header: str = "x-request-id"
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    max_requests_per_minute: int | None = None
    max_upload_bytes: int = 50 * 1024 * 1024
    stt_provider: str = "stub"
    stt_language: str = "en"
    whisper_model: str = "base"
    tts_provider: str = "stub"
    ai_provider: str = "echo"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_tts_model: str = "tts-1"
    openai_tts_voice: str = "alloy"
    silence_threshold: float = 0.01
    silent_ratio: float = 0.95

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        """Load settings from environment variables with safe defaults."""

        defaults = cls()
        return cls(
            host=os.getenv("VOICE_SERVICES_HOST", defaults.host),
            port=int(os.getenv("VOICE_SERVICES_PORT", defaults.port)),
            reload=_as_bool(os.getenv("VOICE_SERVICES_RELOAD"), defaults.reload),
            log_level=os.getenv("VOICE_SERVICES_LOG_LEVEL", defaults.log_level),
            api_key=os.getenv("VOICE_SERVICES_API_KEY"),
            request_id_header=os.getenv("VOICE_SERVICES_REQUEST_ID_HEADER", defaults.request_id_header),
            allowed_origins=_as_list(os.getenv("VOICE_SERVICES_ALLOWED_ORIGINS"), defaults.allowed_origins),
            max_requests_per_minute=_as_optional_int(
                os.getenv("VOICE_SERVICES_MAX_REQUESTS_PER_MINUTE"), defaults.max_requests_per_minute
            ),
            max_upload_bytes=int(os.getenv("VOICE_SERVICES_MAX_UPLOAD_BYTES", defaults.max_upload_bytes)),
            stt_provider=os.getenv("VOICE_SERVICES_STT_PROVIDER", defaults.stt_provider),
            stt_language=os.getenv("VOICE_SERVICES_STT_LANGUAGE", defaults.stt_language),
            whisper_model=os.getenv("VOICE_SERVICES_WHISPER_MODEL", defaults.whisper_model),
            tts_provider=os.getenv("VOICE_SERVICES_TTS_PROVIDER", defaults.tts_provider),
            ai_provider=os.getenv("VOICE_SERVICES_AI_PROVIDER", defaults.ai_provider),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("VOICE_SERVICES_OPENAI_MODEL", defaults.openai_model),
            openai_tts_model=os.getenv("VOICE_SERVICES_OPENAI_TTS_MODEL", defaults.openai_tts_model),
            openai_tts_voice=os.getenv("VOICE_SERVICES_OPENAI_TTS_VOICE", defaults.openai_tts_voice),
            silence_threshold=float(os.getenv("VOICE_SERVICES_SILENCE_THRESHOLD", defaults.silence_threshold)),
            silent_ratio=float(os.getenv("VOICE_SERVICES_SILENT_RATIO", defaults.silent_ratio)),
        )


def configure_logging(level: str) -> None:
    """Apply a simple logging configuration for the service."""

    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
