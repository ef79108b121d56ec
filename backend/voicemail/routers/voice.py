from fastapi import APIRouter, Depends, HTTPException, Query, Body
from fastapi.responses import Response
from typing import Any, Optional
from pydantic import ValidationError
import os, threading, logging

from ..schemas.email import VoiceCommandOut
from ..schemas.voice import Action, VoiceSettings
from ..services.dispatcher import ActionDispatcher
from ..services.intent_resolver import IntentResolver
from ..services.llm import llm_diagnostics
from ..services.mailbox import MailboxStore, get_store
from ..services.voice_manager import VoiceManager, truncate_for_speech

router = APIRouter()
log = logging.getLogger(__name__)

_voice_manager: Optional[VoiceManager] = None
_voice_manager_lock = threading.Lock()


def get_voice_manager() -> VoiceManager:
    """Process-wide manager so the quota cache is shared across requests."""
    global _voice_manager
    with _voice_manager_lock:
        if _voice_manager is None:
            _voice_manager = VoiceManager(os.getenv('ELEVENLABS_API_KEY'))
        return _voice_manager


def get_intent_resolver() -> IntentResolver:
    return IntentResolver()


def get_dispatcher(store: MailboxStore = Depends(get_store)) -> ActionDispatcher:
    return ActionDispatcher(store)


@router.post("/command")
def voice_command(
    payload: Any = Body(None),
    store: MailboxStore = Depends(get_store),
    resolver: IntentResolver = Depends(get_intent_resolver),
    dispatcher: ActionDispatcher = Depends(get_dispatcher),
):
    transcript = payload.get('transcript') if isinstance(payload, dict) else None
    if not isinstance(transcript, str) or not transcript.strip():
        raise HTTPException(status_code=400, detail="Transcript is required")

    intent = resolver.resolve(transcript)
    store.create_voice_command(
        transcript=transcript,
        intent=intent.action.value,
        confidence=round(intent.confidence * 100),
        success=intent.action != Action.UNKNOWN,
    )
    result = dispatcher.execute(intent)
    return result.model_dump(by_alias=True, exclude_none=True, mode='json')


@router.post("/speak")
def speak(payload: Any = Body(None), manager: VoiceManager = Depends(get_voice_manager)):
    text = payload.get('text') if isinstance(payload, dict) else None
    if not isinstance(text, str) or not text.strip():
        raise HTTPException(status_code=400, detail="Text is required and must be a non-empty string")

    settings = None
    raw_settings = payload.get('voiceSettings')
    if raw_settings:
        try:
            settings = VoiceSettings.model_validate(raw_settings)
        except ValidationError:
            raise HTTPException(status_code=400, detail="Invalid voice settings")

    spoken = truncate_for_speech(text)
    if len(spoken) != len(text):
        log.info("speech_truncated", extra={"component": "tts", "count": len(text)})

    result = manager.speak(spoken, settings)
    if result.audio is not None:
        return Response(content=result.audio, media_type="audio/mpeg")
    return {"useWebSpeech": True, "text": spoken, "message": result.message}


@router.get("/quota")
def quota(manager: VoiceManager = Depends(get_voice_manager)):
    return manager.quota_view()


@router.get("/history")
def history(limit: int = Query(20, ge=1, le=500), store: MailboxStore = Depends(get_store)):
    return [
        VoiceCommandOut.model_validate(c).model_dump(by_alias=True, mode='json')
        for c in store.get_voice_commands(limit)
    ]


@router.get("/diag")
def diag(manager: VoiceManager = Depends(get_voice_manager)):
    return {"llm": llm_diagnostics(), "tts": manager.diagnostics()}


@router.get("/voices")
def voices(manager: VoiceManager = Depends(get_voice_manager)):
    found = manager.list_voices()
    if found is None:
        return {"voices": [], "message": "Premium voices not available"}
    return {"voices": found}
