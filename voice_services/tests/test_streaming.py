import struct
import threading

import pytest

from voice_services.audio.silence import SilenceDetector, UnsupportedBitDepthError
from voice_services.audio.wav_codec import decode_wav
from voice_services.errors import AudioProcessingError, StreamSessionError
from voice_services.streaming import StreamBuffer, StreamingSessionManager
from voice_services.stt.transcription_service import TranscriptionResult

LOUD_CHUNK = struct.pack("<2h", 9000, -9000) * 100
QUIET_CHUNK = bytes(400)


class CapturingTranscriber:
    def __init__(self):
        self.received = []

    def transcribe(self, wav_bytes, pcm=None):
        self.received.append(wav_bytes)
        return TranscriptionResult(text="streamed words", language="en")


def test_buffer_append_drain_and_clear():
    buffer = StreamBuffer()

    assert buffer.is_empty()
    assert buffer.append(b"\x01\x02") == 2
    assert buffer.append(b"\x03") == 3
    assert buffer.size == 3
    assert buffer.drain() == b"\x01\x02\x03"
    assert buffer.is_empty()

    buffer.append(b"\x04")
    buffer.clear()
    assert buffer.size == 0


@pytest.mark.parametrize("chunk", [b"", None])
def test_buffer_rejects_empty_chunks(chunk):
    with pytest.raises(ValueError):
        StreamBuffer().append(chunk)


def test_buffer_accumulates_from_many_threads():
    buffer = StreamBuffer()

    def writer():
        for _ in range(100):
            buffer.append(b"\x00\x01")

    threads = [threading.Thread(target=writer) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert buffer.size == 8 * 100 * 2


def test_session_flow_transcribes_accumulated_audio():
    transcriber = CapturingTranscriber()
    manager = StreamingSessionManager(transcriber, detector=SilenceDetector())

    session_id = manager.start(16000, 16, 1)
    first = manager.add_chunk(session_id, LOUD_CHUNK)
    second = manager.add_chunk(session_id, QUIET_CHUNK)
    result = manager.stop(session_id)

    assert first.is_silent is False
    assert second.is_silent is True
    assert second.buffered == len(LOUD_CHUNK) + len(QUIET_CHUNK)
    assert result.text == "streamed words"
    assert result.has_transcription
    assert result.audio_size == len(LOUD_CHUNK) + len(QUIET_CHUNK)
    assert decode_wav(transcriber.received[0]).data == LOUD_CHUNK + QUIET_CHUNK
    assert manager.latest_transcription == "streamed words"
    assert manager.session_id is None


def test_chunks_for_unknown_session_are_rejected():
    manager = StreamingSessionManager(CapturingTranscriber())
    manager.start(16000, 16, 1)

    with pytest.raises(StreamSessionError, match="Invalid or expired session"):
        manager.add_chunk("not-the-session", LOUD_CHUNK)


def test_stop_without_audio_is_rejected():
    manager = StreamingSessionManager(CapturingTranscriber())
    session_id = manager.start(16000, 16, 1)

    with pytest.raises(StreamSessionError, match="No audio data recorded"):
        manager.stop(session_id)


def test_starting_again_discards_previous_session():
    manager = StreamingSessionManager(CapturingTranscriber())
    old_session = manager.start(16000, 16, 1)
    manager.add_chunk(old_session, LOUD_CHUNK)

    new_session = manager.start(8000, 8, 1)

    assert new_session != old_session
    assert manager.buffer.is_empty()
    with pytest.raises(StreamSessionError):
        manager.add_chunk(old_session, LOUD_CHUNK)


def test_without_detector_chunks_are_never_silent():
    manager = StreamingSessionManager(CapturingTranscriber())
    session_id = manager.start(16000, 16, 1)

    assert manager.add_chunk(session_id, QUIET_CHUNK).is_silent is False


def test_start_requires_positive_format():
    with pytest.raises(ValueError):
        StreamingSessionManager(CapturingTranscriber()).start(16000, 0, 1)


class FlakyTranscriber(CapturingTranscriber):
    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures

    def transcribe(self, wav_bytes, pcm=None):
        if self.failures:
            self.failures -= 1
            raise AudioProcessingError("model unavailable")
        return super().transcribe(wav_bytes, pcm)


class RejectingDetector:
    def is_silent(self, pcm):
        raise UnsupportedBitDepthError(pcm.bits_per_sample)


def test_unsupported_bit_depth_rejected_at_start():
    manager = StreamingSessionManager(CapturingTranscriber(), detector=SilenceDetector())

    with pytest.raises(UnsupportedBitDepthError):
        manager.start(16000, 32, 1)

    assert manager.session_id is None


def test_any_bit_depth_allowed_without_detector():
    manager = StreamingSessionManager(CapturingTranscriber())

    assert manager.start(16000, 32, 1)


def test_chunk_rejected_by_detector_is_not_buffered():
    manager = StreamingSessionManager(CapturingTranscriber(), detector=RejectingDetector())
    session_id = manager.start(16000, 16, 1)

    with pytest.raises(UnsupportedBitDepthError):
        manager.add_chunk(session_id, LOUD_CHUNK)

    assert manager.buffer.is_empty()


def test_failed_transcription_keeps_session_and_audio():
    transcriber = FlakyTranscriber()
    manager = StreamingSessionManager(transcriber)
    session_id = manager.start(16000, 16, 1)
    manager.add_chunk(session_id, LOUD_CHUNK)

    with pytest.raises(AudioProcessingError):
        manager.stop(session_id)

    assert manager.session_id == session_id
    assert manager.buffer.size == len(LOUD_CHUNK)

    result = manager.stop(session_id)

    assert result.text == "streamed words"
    assert result.audio_size == len(LOUD_CHUNK)
    assert decode_wav(transcriber.received[0]).data == LOUD_CHUNK
    assert manager.buffer.is_empty()
