import base64
import struct
from importlib import reload

from fastapi.testclient import TestClient

from voice_services.audio.wav_codec import PcmBuffer, encode_wav

LOUD = PcmBuffer(data=struct.pack("<2h", 12000, -12000) * 400, sample_rate=16000, bits_per_sample=16, channels=1)
QUIET = PcmBuffer(data=bytes(1600), sample_rate=16000, bits_per_sample=16, channels=1)


def reload_server(monkeypatch):
    def _reload():
        import voice_services.api.server as server

        monkeypatch.delenv("VOICE_SERVICES_API_KEY", raising=False)
        monkeypatch.delenv("VOICE_SERVICES_MAX_REQUESTS_PER_MINUTE", raising=False)
        monkeypatch.delenv("VOICE_SERVICES_STT_PROVIDER", raising=False)
        reload(server)
        return server

    return _reload


def upload(client, wav, content_type="audio/wav", **params):
    return client.post("/api/audio/transcribe", files={"file": ("clip.wav", wav, content_type)}, params=params)


def test_transcribe_upload_returns_metadata_and_text(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)
    wav = encode_wav(LOUD)

    response = upload(client, wav)

    assert response.status_code == 200
    payload = response.json()
    assert payload["samples_per_second"] == 16000
    assert payload["bits_per_sample"] == 16
    assert payload["channels"] == 1
    assert payload["data_size"] == len(LOUD.data)
    assert payload["audio_size"] == len(wav)
    assert payload["transcribed_text"] == "[speech]"
    assert payload["has_transcription"] is True
    assert payload["detected_language"] == "en"
    assert payload["is_silent"] is False


def test_silent_upload_has_no_transcription(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)

    payload = upload(client, encode_wav(QUIET)).json()

    assert payload["is_silent"] is True
    assert payload["has_transcription"] is False


def test_skip_silent_leaves_transcript_empty(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)

    payload = upload(client, encode_wav(QUIET), skip_silent="true").json()

    assert payload["is_silent"] is True
    assert payload["transcribed_text"] is None
    assert payload["detected_language"] is None


def test_non_wav_content_type_rejected(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)

    response = upload(client, encode_wav(LOUD), content_type="audio/mpeg")

    assert response.status_code == 400
    assert response.json()["detail"] == "Only WAV files are supported"


def test_empty_upload_rejected(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)

    response = upload(client, b"")

    assert response.status_code == 400
    assert response.json()["detail"] == "File is empty"


def test_malformed_wav_rejected(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)

    response = upload(client, b"RIFF\x10\x00\x00\x00WAVEjunk\x00\x00\x00\x00")

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid WAV format:")


def test_unsupported_bit_depth_rejected(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)
    wav = encode_wav(PcmBuffer(data=bytes(64), sample_rate=16000, bits_per_sample=32, channels=1))

    response = upload(client, wav)

    assert response.status_code == 400


def test_silence_endpoint_reports_analysis(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)

    response = client.post(
        "/api/audio/silence",
        json={
            "pcm_data": base64.b64encode(QUIET.data).decode("ascii"),
            "samples_per_second": 16000,
            "bits_per_sample": 16,
            "channels": 1,
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["is_silent"] is True
    assert payload["total_frames"] == 800
    assert payload["silent_ratio"] == 1.0


def test_silence_endpoint_rejects_bad_base64(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)

    response = client.post(
        "/api/audio/silence",
        json={"pcm_data": "not base64!", "samples_per_second": 16000, "bits_per_sample": 16, "channels": 1},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "pcm_data must be base64"


def test_zero_channel_upload_rejected(monkeypatch):
    server = reload_server(monkeypatch)()
    client = TestClient(server.app)
    fmt = b"fmt " + struct.pack("<IHHIIHH", 16, 1, 0, 16000, 0, 0, 16)
    data = b"data" + struct.pack("<I", 200) + bytes(200)
    body = b"WAVE" + fmt + data
    wav = b"RIFF" + struct.pack("<I", len(body)) + body

    response = upload(client, wav)

    assert response.status_code == 400
    assert "channels must be positive" in response.json()["detail"]
