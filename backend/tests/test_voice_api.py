import pytest

from backend.voicemail.main import app
from backend.voicemail.routers.voice import get_intent_resolver, get_voice_manager
from backend.voicemail.schemas.voice import Action, Intent, IntentParameters
from backend.voicemail.services.voice_manager import (
    SpeechResult,
    VoiceManager,
    MAX_SPEECH_CHARS,
    TRUNCATION_MARKER,
)


class StubResolver:
    def __init__(self, intent: Intent):
        self.intent = intent
        self.transcripts = []

    def resolve(self, transcript):
        self.transcripts.append(transcript)
        return self.intent


class RecordingManager:
    def __init__(self, audio=None):
        self.audio = audio
        self.spoken = []

    def speak(self, text, voice_settings=None):
        self.spoken.append(text)
        if self.audio:
            return SpeechResult(audio=self.audio)
        return SpeechResult.local(text, "Using browser speech synthesis due to service limitations")


@pytest.fixture
def resolve_as():
    def _use(action: Action, confidence=0.87, **params):
        stub = StubResolver(Intent(action=action, parameters=IntentParameters(**params), confidence=confidence))
        app.dependency_overrides[get_intent_resolver] = lambda: stub
        return stub
    return _use


@pytest.mark.parametrize("body", [{}, {"transcript": ""}, {"transcript": "   "}, {"transcript": 12}, None])
def test_command_requires_transcript(client, body):
    r = client.post('/api/voice/command', json=body)
    assert r.status_code == 400


def test_command_executes_and_logs(client, resolve_as):
    client.post('/api/webhooks/postmark/simulate', json={"from": "bob@example.com", "subject": "Ping"})
    stub = resolve_as(Action.SWITCH_TAB, tab="unread")
    r = client.post('/api/voice/command', json={"transcript": "show unread"})
    assert r.status_code == 200
    data = r.json()
    assert stub.transcripts == ["show unread"]
    assert data["intent"]["action"] == "switch_tab"
    assert data["switchTab"] == "unread"
    assert "emails" not in data

    history = client.get('/api/voice/history').json()
    assert history[0]["transcript"] == "show unread"
    assert history[0]["intent"] == "switch_tab"
    assert history[0]["confidence"] == 87
    assert history[0]["success"] is True


def test_unknown_command_logged_as_failure(client, resolve_as):
    resolve_as(Action.UNKNOWN, confidence=0.0)
    data = client.post('/api/voice/command', json={"transcript": "sing a song"}).json()
    assert data["summary"].startswith("I can help you read emails")
    entry = client.get('/api/voice/history?limit=1').json()[0]
    assert entry["success"] is False
    assert entry["confidence"] == 0


def test_command_without_llm_credentials_still_answers(client):
    r = client.post('/api/voice/command', json={"transcript": "read my emails"})
    assert r.status_code == 200
    assert r.json()["intent"]["action"] == "unknown"


@pytest.mark.parametrize("body", [{}, {"text": ""}, {"text": "  "}, {"text": 5}])
def test_speak_requires_text(client, body):
    assert client.post('/api/voice/speak', json=body).status_code == 400


def test_speak_truncates_long_text(client):
    manager = RecordingManager()
    app.dependency_overrides[get_voice_manager] = lambda: manager
    long_text = "x" * (MAX_SPEECH_CHARS + 1000)
    r = client.post('/api/voice/speak', json={"text": long_text})
    assert r.status_code == 200
    data = r.json()
    assert data["useWebSpeech"] is True
    assert manager.spoken == ["x" * MAX_SPEECH_CHARS + TRUNCATION_MARKER]
    assert data["text"] == manager.spoken[0]


def test_speak_returns_audio(client):
    app.dependency_overrides[get_voice_manager] = lambda: RecordingManager(audio=b"ID3-bytes")
    r = client.post('/api/voice/speak', json={"text": "hello", "voiceSettings": {"stability": 0.3}})
    assert r.status_code == 200
    assert r.headers["content-type"] == "audio/mpeg"
    assert r.content == b"ID3-bytes"


def test_speak_without_credential_uses_web_speech(client):
    app.dependency_overrides[get_voice_manager] = lambda: VoiceManager(None)
    data = client.post('/api/voice/speak', json={"text": "hello"}).json()
    assert data == {
        "useWebSpeech": True,
        "text": "hello",
        "message": "Using browser speech synthesis because premium voice is not configured",
    }


def test_quota_and_diag_without_credentials(client):
    app.dependency_overrides[get_voice_manager] = lambda: VoiceManager(None)
    assert client.get('/api/voice/quota').json()["status"] == "unavailable"
    diag = client.get('/api/voice/diag').json()
    assert diag["tts"]["configured"] is False
    assert diag["llm"]["available"] is False


def test_voices_unavailable_without_credentials(client):
    app.dependency_overrides[get_voice_manager] = lambda: VoiceManager(None)
    assert client.get('/api/voice/voices').json() == {"voices": [], "message": "Premium voices not available"}
