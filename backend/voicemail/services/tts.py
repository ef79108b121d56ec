from typing import Any, Dict, List, Optional
import os, logging

import httpx

from ..schemas.voice import VoiceSettings

log = logging.getLogger(__name__)

ELEVENLABS_BASE = 'https://api.elevenlabs.io'
TTS_MODEL = 'eleven_monolingual_v1'


class TTSError(RuntimeError):
    pass


class ElevenLabsClient:
    """Thin wrapper over the ElevenLabs REST API. Any non-2xx answer raises TTSError."""

    def __init__(self, api_key: str, http: Optional[httpx.Client] = None, base_url: Optional[str] = None):
        self.api_key = api_key
        self.base_url = (base_url or os.getenv('ELEVENLABS_BASE', ELEVENLABS_BASE)).rstrip('/')
        self.http = http or httpx.Client(timeout=float(os.getenv('TTS_TIMEOUT', '30')))

    def _headers(self, **extra) -> Dict[str, str]:
        return {'xi-api-key': self.api_key, **extra}

    def synthesize(self, text: str, settings: Optional[VoiceSettings] = None) -> bytes:
        s = settings or VoiceSettings()
        resp = self.http.post(
            f"{self.base_url}/v1/text-to-speech/{s.voice_id}",
            headers=self._headers(**{'Accept': 'audio/mpeg', 'Content-Type': 'application/json'}),
            json={
                "text": text,
                "model_id": TTS_MODEL,
                "voice_settings": {
                    "stability": s.stability,
                    "similarity_boost": s.similarity_boost,
                    "style": s.style,
                    "use_speaker_boost": s.use_speaker_boost,
                },
            },
        )
        if resp.status_code >= 400:
            raise TTSError(f'elevenlabs_http_{resp.status_code}: {resp.text[:160]}')
        return resp.content

    def subscription(self) -> Dict[str, Any]:
        resp = self.http.get(f"{self.base_url}/v1/user/subscription", headers=self._headers())
        if resp.status_code >= 400:
            raise TTSError(f'elevenlabs_http_{resp.status_code}')
        return resp.json()

    def voices(self) -> List[Dict[str, Any]]:
        resp = self.http.get(f"{self.base_url}/v1/voices", headers=self._headers())
        if resp.status_code >= 400:
            raise TTSError(f'elevenlabs_http_{resp.status_code}')
        return resp.json().get('voices') or []
