import httpx
import pytest

from backend.voicemail.services.tts import ElevenLabsClient, TTSError
from backend.voicemail.services.voice_manager import (
    VoiceManager,
    NO_CREDENTIAL_MESSAGE,
    QUOTA_MESSAGE,
    FAILURE_MESSAGE,
    MAX_SPEECH_CHARS,
    TRUNCATION_MARKER,
    truncate_for_speech,
)


class FakeClient:
    def __init__(self, used=0, limit=10000, fail_synthesis=False, fail_quota=False):
        self.used = used
        self.limit = limit
        self.fail_synthesis = fail_synthesis
        self.fail_quota = fail_quota
        self.subscription_calls = 0
        self.synthesized = []

    def subscription(self):
        self.subscription_calls += 1
        if self.fail_quota:
            raise TTSError("elevenlabs_http_401")
        return {"character_count": self.used, "character_limit": self.limit}

    def synthesize(self, text, settings=None):
        if self.fail_synthesis:
            raise TTSError("elevenlabs_http_500")
        self.synthesized.append(text)
        return b"ID3-audio"


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_no_credential_means_local_synthesis():
    client = FakeClient()
    manager = VoiceManager(None, client=client)
    result = manager.speak("hello")
    assert result.use_local_synthesis is True
    assert result.text == "hello"
    assert result.message == NO_CREDENTIAL_MESSAGE
    assert client.subscription_calls == 0
    assert client.synthesized == []


def test_insufficient_quota_means_local_synthesis():
    client = FakeClient(used=9995, limit=10000)
    result = VoiceManager("key", client=client).speak("hello")
    assert result.use_local_synthesis is True
    assert result.message == QUOTA_MESSAGE
    assert client.synthesized == []


def test_unknown_quota_means_local_synthesis():
    result = VoiceManager("key", client=FakeClient(fail_quota=True)).speak("hello")
    assert result.message == QUOTA_MESSAGE


def test_provider_failure_means_local_synthesis():
    result = VoiceManager("key", client=FakeClient(fail_synthesis=True)).speak("hello")
    assert result.use_local_synthesis is True
    assert result.message == FAILURE_MESSAGE


def test_success_returns_audio():
    client = FakeClient()
    result = VoiceManager("key", client=client).speak("hello")
    assert result.audio == b"ID3-audio"
    assert result.use_local_synthesis is False
    assert client.synthesized == ["hello"]


def test_safety_margin_applies_to_text_length():
    # 100 chars needs 110 remaining
    assert VoiceManager("key", client=FakeClient(used=9891)).can_handle(100) is False
    assert VoiceManager("key", client=FakeClient(used=9890)).can_handle(100) is True


def test_quota_is_cached_until_ttl_expires():
    client = FakeClient()
    clock = FakeClock()
    manager = VoiceManager("key", client=client, clock=clock)
    manager.check_quota_status()
    clock.now += 299
    manager.check_quota_status()
    assert client.subscription_calls == 1
    clock.now += 2
    manager.check_quota_status()
    assert client.subscription_calls == 2


def test_reset_quota_cache_forces_refresh():
    client = FakeClient()
    manager = VoiceManager("key", client=client, clock=FakeClock())
    manager.check_quota_status()
    manager.reset_quota_cache()
    manager.check_quota_status()
    assert client.subscription_calls == 2


@pytest.mark.parametrize("used, status", [(0, "available"), (9500, "low"), (10000, "exceeded")])
def test_quota_view_status(used, status):
    view = VoiceManager("key", client=FakeClient(used=used)).quota_view()
    assert view["status"] == status
    assert view["charactersRemaining"] == 10000 - used
    assert view["percentageUsed"] == round(used / 100)


def test_quota_view_unavailable_without_key():
    assert VoiceManager(None).quota_view()["status"] == "unavailable"


def test_truncate_for_speech():
    text = "a" * (MAX_SPEECH_CHARS + 500)
    out = truncate_for_speech(text)
    assert out == "a" * MAX_SPEECH_CHARS + TRUNCATION_MARKER
    assert truncate_for_speech("short") == "short"


def test_elevenlabs_client_sends_key_and_voice_settings():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("xi-api-key")
        seen["body"] = request.read()
        return httpx.Response(200, content=b"mp3")

    http = httpx.Client(transport=httpx.MockTransport(handler))
    client = ElevenLabsClient("secret", http=http, base_url="https://tts.test")
    assert client.synthesize("hi") == b"mp3"
    assert seen["url"] == "https://tts.test/v1/text-to-speech/21m00Tcm4TlvDq8ikWAM"
    assert seen["key"] == "secret"
    assert b'"similarity_boost": 0.75' in seen["body"] or b'"similarity_boost":0.75' in seen["body"]


def test_elevenlabs_client_raises_on_http_error():
    http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(429, text="quota")))
    with pytest.raises(TTSError):
        ElevenLabsClient("secret", http=http, base_url="https://tts.test").synthesize("hi")


def test_list_voices_via_http_client():
    payload = {"voices": [{"voice_id": "v1", "name": "Rachel", "category": "premade"}]}
    http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload)))
    manager = VoiceManager("key", client=ElevenLabsClient("key", http=http, base_url="https://tts.test"))
    assert manager.list_voices() == [{"voiceId": "v1", "name": "Rachel"}]
    assert VoiceManager(None).list_voices() is None


class OddQuotaClient(FakeClient):
    def __init__(self, body):
        super().__init__()
        self.body = body

    def subscription(self):
        self.subscription_calls += 1
        return self.body


@pytest.mark.parametrize("body", [[], "quota", {"character_count": "lots", "character_limit": 10000}])
def test_malformed_quota_means_local_synthesis(body):
    client = OddQuotaClient(body)
    manager = VoiceManager("key", client=client)
    assert manager.check_quota_status() is None
    result = manager.speak("hi")
    assert result.use_local_synthesis is True
    assert result.message == QUOTA_MESSAGE
    assert client.synthesized == []
    assert manager.quota_view()["status"] == "unavailable"
