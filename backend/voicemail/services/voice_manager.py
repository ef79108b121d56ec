"""Premium speech synthesis with a local-synthesis fallback.

``speak`` degrades in three steps, all ending in the same directive so the
client has a single fallback path: no credential, not enough quota (or quota
unknown), provider failure. Quota is cached for five minutes per manager.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..schemas.voice import QuotaInfo, VoiceSettings
from .tts import ElevenLabsClient, TTSError

log = logging.getLogger(__name__)

QUOTA_CACHE_SECONDS = 5 * 60
DEFAULT_CHARACTER_LIMIT = 10000
SAFETY_MARGIN = 1.1
LOW_QUOTA_CHARS = 1000

MAX_SPEECH_CHARS = 9500
TRUNCATION_MARKER = '... Content truncated for audio playback.'

NO_CREDENTIAL_MESSAGE = 'Using browser speech synthesis because premium voice is not configured'
QUOTA_MESSAGE = 'Using browser speech synthesis due to service quota limitations'
FAILURE_MESSAGE = 'Using browser speech synthesis due to service limitations'


def truncate_for_speech(text: str, limit: int = MAX_SPEECH_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


@dataclass
class SpeechResult:
    audio: Optional[bytes] = None
    use_local_synthesis: bool = False
    text: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def local(cls, text: str, message: str) -> "SpeechResult":
        return cls(use_local_synthesis=True, text=text, message=message)


class VoiceManager:
    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[ElevenLabsClient] = None,
        clock: Callable[[], float] = time.time,
        cache_ttl: float = QUOTA_CACHE_SECONDS,
    ):
        self.api_key = api_key or None
        self.client = client or (ElevenLabsClient(api_key) if api_key else None)
        self.clock = clock
        self.cache_ttl = cache_ttl
        self._quota: Optional[QuotaInfo] = None
        self._checked_at: float = 0.0
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.client)

    def check_quota_status(self) -> Optional[QuotaInfo]:
        """Cached quota, refreshed after the TTL. None when unknown; never raises."""
        if not self.configured:
            return None
        with self._lock:
            if self._quota and self.clock() - self._checked_at < self.cache_ttl:
                return self._quota
        # concurrent refreshes are tolerated; the last one to finish wins
        try:
            data = self.client.subscription()
        except (TTSError, httpx.HTTPError, ValueError) as e:
            log.warning("tts_quota_check_failed", extra={"component": "tts", "error_type": type(e).__name__})
            return None
        if not isinstance(data, dict):
            log.warning("tts_quota_malformed", extra={"component": "tts", "error_type": type(data).__name__})
            return None
        try:
            used = int(data.get('character_count') or 0)
            limit = int(data.get('character_limit') or DEFAULT_CHARACTER_LIMIT)
        except (TypeError, ValueError) as e:
            log.warning("tts_quota_malformed", extra={"component": "tts", "error_type": type(e).__name__})
            return None
        now = self.clock()
        quota = QuotaInfo(
            characters_used=used,
            characters_limit=limit,
            characters_remaining=limit - used,
            last_checked=datetime.fromtimestamp(now, tz=timezone.utc),
        )
        with self._lock:
            self._quota = quota
            self._checked_at = now
        return quota

    def can_handle(self, text_length: int) -> bool:
        quota = self.check_quota_status()
        if not quota:
            return False
        # round first: 100 * 1.1 is 110.00000000000001 in floating point
        return quota.characters_remaining >= math.ceil(round(text_length * SAFETY_MARGIN, 6))

    def speak(self, text: str, voice_settings: Optional[VoiceSettings] = None) -> SpeechResult:
        if not self.configured:
            return SpeechResult.local(text, NO_CREDENTIAL_MESSAGE)
        if not self.can_handle(len(text)):
            log.info("tts_quota_insufficient", extra={"component": "tts", "count": len(text)})
            return SpeechResult.local(text, QUOTA_MESSAGE)
        try:
            audio = self.client.synthesize(text, voice_settings)
        except Exception as e:
            log.warning("tts_generation_failed", exc_info=e, extra={"component": "tts"})
            return SpeechResult.local(text, FAILURE_MESSAGE)
        return SpeechResult(audio=audio)

    def quota_view(self) -> Dict[str, Any]:
        quota = self.check_quota_status()
        if not quota:
            return {'status': 'unavailable', 'message': 'Voice quota information not available'}
        remaining = quota.characters_remaining
        view = quota.model_dump(by_alias=True, mode='json')
        view['percentageUsed'] = round(quota.characters_used / quota.characters_limit * 100) if quota.characters_limit else 100
        view['status'] = 'available' if remaining > LOW_QUOTA_CHARS else 'low' if remaining > 0 else 'exceeded'
        return view

    def reset_quota_cache(self):
        with self._lock:
            self._quota = None
            self._checked_at = 0.0

    def diagnostics(self) -> Dict[str, Any]:
        return {
            'configured': self.configured,
            'cached_quota': self._quota is not None,
            'cache_ttl_s': self.cache_ttl,
        }

    def list_voices(self) -> Optional[List[Dict[str, Any]]]:
        """Voices available to the account, trimmed to id and name. None when unknown."""
        if not self.configured:
            return None
        try:
            voices = self.client.voices()
        except (TTSError, httpx.HTTPError, ValueError) as e:
            log.warning("tts_voices_failed", extra={"component": "tts", "error_type": type(e).__name__})
            return None
        return [{'voiceId': v.get('voice_id'), 'name': v.get('name')} for v in voices]
