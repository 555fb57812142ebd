"""FastAPI wiring for the voice services.

Endpoints cover WAV upload transcription, in-memory PCM recordings, chunked
streaming, silence checks and text-to-speech. Providers default to the
deterministic stubs so the service runs without model downloads or API keys.
"""
from __future__ import annotations

import base64
import binascii
import collections
import logging
import time
import uuid
from typing import Callable

from fastapi import FastAPI, File, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from voice_services.ai.prompt_service import PromptService
from voice_services.audio.silence import SilenceDetector
from voice_services.audio.wav_codec import PcmBuffer, WavError, encode_wav
from voice_services.config import ServiceSettings
from voice_services.errors import AudioProcessingError, RecordingNotFoundError, StreamSessionError
from voice_services.ingest import ingest_wav_bytes
from voice_services.ops.metrics import MetricsRegistry
from voice_services.recordings import RecordingService, RecordingStore
from voice_services.streaming import StreamingSessionManager
from voice_services.stt.transcription_service import SpeechToTextService
from voice_services.tts.tts_service import TextToSpeechService

settings = ServiceSettings.from_env()
logger = logging.getLogger("voice_services.api")

WAV_CONTENT_TYPES = {"audio/wav", "audio/x-wav", "audio/wave", "audio/vnd.wave"}

app = FastAPI(title="Voice Services")


class RateLimiter:
    def __init__(self, max_requests_per_minute: int | None, now: Callable[[], float] | None = None):
        self.max_requests_per_minute = max_requests_per_minute
        self._now = now or time.monotonic
        self._events: collections.deque[float] = collections.deque()

    def allow(self) -> bool:
        if self.max_requests_per_minute is None:
            return True

        current = self._now()
        cutoff = current - 60
        while self._events and self._events[0] <= cutoff:
            self._events.popleft()

        if len(self._events) >= self.max_requests_per_minute:
            return False

        self._events.append(current)
        return True


@app.middleware("http")
async def enforce_security(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or str(uuid.uuid4())

    if settings.api_key:
        provided = request.headers.get("x-api-key")
        if provided != settings.api_key:
            logger.warning("rejecting request: missing or invalid API key", extra={"path": request.url.path})
            return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": "invalid api key"})

    if not rate_limiter.allow():
        logger.warning("rejecting request: rate limit exceeded", extra={"path": request.url.path})
        return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content={"detail": "rate limit exceeded"})

    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    return response


@app.middleware("http")
async def apply_cors(request: Request, call_next):
    response = await call_next(request)
    origin = request.headers.get("origin")
    allow_any = "*" in settings.allowed_origins
    if settings.allowed_origins and (allow_any or (origin and origin in settings.allowed_origins)):
        response.headers["access-control-allow-origin"] = origin if origin and not allow_any else "*"
        response.headers["access-control-allow-headers"] = "*"
        response.headers["access-control-allow-methods"] = "GET,POST,DELETE,OPTIONS"
    return response


detector = SilenceDetector(silence_threshold=settings.silence_threshold, silent_ratio=settings.silent_ratio)
stt = SpeechToTextService(
    provider=settings.stt_provider,
    language=settings.stt_language,
    model_size=settings.whisper_model,
    detector=detector,
)
tts = TextToSpeechService(
    provider=settings.tts_provider,
    api_key=settings.openai_api_key,
    model=settings.openai_tts_model,
    voice=settings.openai_tts_voice,
)
prompts = PromptService(provider=settings.ai_provider, api_key=settings.openai_api_key, model=settings.openai_model)
recordings = RecordingService(RecordingStore(), stt, prompt_service=prompts, detector=detector)
streaming = StreamingSessionManager(stt, detector=detector)
metrics = MetricsRegistry()
rate_limiter = RateLimiter(settings.max_requests_per_minute)


class PcmPayload(BaseModel):
    pcm_data: str
    samples_per_second: int
    bits_per_sample: int
    channels: int


class StreamStartRequest(BaseModel):
    samples_per_second: int
    bits_per_sample: int
    channels: int


class StreamChunkRequest(BaseModel):
    session_id: str
    pcm_data: str


class StreamStopRequest(BaseModel):
    session_id: str


class TtsRequest(BaseModel):
    text: str


def _decode_base64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="pcm_data must be base64") from exc


def _bad_request(exc: Exception):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _translate_processing_error(exc: AudioProcessingError):
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Audio processing failed: {exc}"
    ) from exc


def _recording_not_found(recording_id: str):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Recording not found: {recording_id}")


@app.get("/health")
def healthcheck():
    return {"status": "ok", "stt_provider": stt.provider, "tts_available": tts.is_available()}


@app.post("/api/audio/transcribe")
async def transcribe_upload(file: UploadFile = File(...), skip_silent: bool = False):
    if file.content_type not in WAV_CONTENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only WAV files are supported")

    wav_bytes = await file.read()
    if not wav_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    if len(wav_bytes) > settings.max_upload_bytes:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File is too large")

    try:
        recording = ingest_wav_bytes(wav_bytes, str(uuid.uuid4()))
        silent = detector.is_silent(recording.pcm)
    except WavError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid WAV format: {exc}") from exc
    except ValueError as exc:
        _bad_request(exc)

    if not (silent and skip_silent):
        try:
            result = stt.transcribe(wav_bytes, recording.pcm)
        except AudioProcessingError as exc:
            _translate_processing_error(exc)
        recording.transcribed_text = result.text
        recording.detected_language = result.language

    metrics.counter("audio.transcribe.calls").inc()
    return {
        **recording.metadata_view(),
        "transcribed_text": recording.transcribed_text,
        "has_transcription": recording.has_transcribed_text,
        "detected_language": recording.detected_language,
        "audio_size": len(wav_bytes),
        "is_silent": silent,
    }


@app.post("/api/audio/silence")
def check_silence(request: PcmPayload):
    pcm = PcmBuffer(
        data=_decode_base64(request.pcm_data),
        sample_rate=request.samples_per_second,
        bits_per_sample=request.bits_per_sample,
        channels=request.channels,
    )
    try:
        analysis = detector.analyze(pcm)
    except ValueError as exc:
        _bad_request(exc)

    metrics.counter("audio.silence.calls").inc()
    return analysis.asdict()


@app.post("/api/recording/start")
def start_recording(request: PcmPayload):
    try:
        recording = recordings.start_recording(
            _decode_base64(request.pcm_data),
            request.samples_per_second,
            request.bits_per_sample,
            request.channels,
        )
    except ValueError as exc:
        _bad_request(exc)

    metrics.counter("recording.start").inc()
    return recording.metadata_view()


@app.get("/api/recording/{recording_id}")
def get_recording(recording_id: str):
    recording = recordings.get_recording(recording_id)
    if recording is None:
        _recording_not_found(recording_id)
    metrics.counter("recording.get").inc()
    return {
        **recording.metadata_view(),
        "transcribed_text": recording.transcribed_text,
        "ai_response": recording.ai_response,
    }


@app.get("/api/recording/{recording_id}/wav")
def download_recording(recording_id: str):
    recording = recordings.get_recording(recording_id)
    if recording is None:
        _recording_not_found(recording_id)
    metrics.counter("recording.download").inc()
    headers = {"Content-Disposition": f'attachment; filename="{recording_id}.wav"'}
    return Response(encode_wav(recording.pcm), media_type="audio/wav", headers=headers)


@app.delete("/api/recording/{recording_id}")
def stop_recording(recording_id: str):
    if not recordings.stop_recording(recording_id):
        _recording_not_found(recording_id)
    metrics.counter("recording.stop").inc()
    return {"id": recording_id, "message": "Recording stopped and cleared"}


@app.post("/api/recording/{recording_id}/transcribe")
def transcribe_recording(recording_id: str):
    try:
        recording = recordings.transcribe_recording(recording_id)
    except RecordingNotFoundError:
        _recording_not_found(recording_id)
    except AudioProcessingError as exc:
        _translate_processing_error(exc)

    metrics.counter("recording.transcribe").inc()
    return {
        **recording.metadata_view(),
        "transcribed_text": recording.transcribed_text,
        "has_transcription": recording.has_transcribed_text,
        "detected_language": recording.detected_language,
        "ai_response": recording.ai_response,
        "has_ai_response": recording.has_ai_response,
    }


@app.post("/api/stream/start")
def start_stream(request: StreamStartRequest):
    try:
        session_id = streaming.start(request.samples_per_second, request.bits_per_sample, request.channels)
    except ValueError as exc:
        _bad_request(exc)
    metrics.counter("stream.start").inc()
    return {"session_id": session_id}


@app.post("/api/stream/chunk")
def stream_chunk(request: StreamChunkRequest):
    try:
        result = streaming.add_chunk(request.session_id, _decode_base64(request.pcm_data))
    except (StreamSessionError, ValueError) as exc:
        _bad_request(exc)
    metrics.counter("stream.chunk").inc()
    return {"buffer_size": result.buffered, "is_silent": result.is_silent}


@app.post("/api/stream/stop")
def stop_stream(request: StreamStopRequest):
    try:
        result = streaming.stop(request.session_id)
    except StreamSessionError as exc:
        _bad_request(exc)
    except AudioProcessingError as exc:
        _translate_processing_error(exc)
    metrics.counter("stream.stop").inc()
    return {
        "session_id": result.session_id,
        "transcribed_text": result.text,
        "has_transcription": result.has_transcription,
        "detected_language": result.language,
        "audio_size": result.audio_size,
    }


@app.get("/api/stream/transcription/{session_id}")
def stream_transcription(session_id: str):
    return {
        "session_id": session_id,
        "transcribed_text": streaming.latest_transcription,
        "has_transcription": bool(streaming.latest_transcription),
    }


@app.post("/api/tts")
def synthesize(request: TtsRequest):
    if not request.text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Text cannot be empty")
    if not tts.is_available():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Text-to-Speech service is not available. Please check configuration.",
        )

    try:
        audio = tts.synthesize(request.text)
    except AudioProcessingError as exc:
        _translate_processing_error(exc)

    metrics.counter("tts.calls").inc()
    return Response(audio.payload, media_type=audio.encoding)


@app.get("/metrics")
def metric_snapshot():
    """Expose collected counters for lightweight observability."""

    return {"counters": metrics.snapshot()}
