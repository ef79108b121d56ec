"""Turn a spoken or typed command into a normalized Intent.

The language model is asked for JSON; whatever comes back is treated as
untrusted. Anything unusable collapses to ``unknown`` with zero confidence so
the caller always gets an Intent and never a provider error.
"""
import json
import logging
import math
from typing import Any, Callable, Dict, Optional

from ..schemas.voice import Action, Intent, IntentParameters, TABS
from . import llm

log = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5

SYSTEM_PROMPT = (
    "You are a helpful AI assistant that interprets natural conversational voice commands "
    "for email management. Be flexible with natural language patterns and respond only with valid JSON."
)

ACTION_HINTS = {
    Action.READ_EMAILS: "User wants to hear/see their emails",
    Action.SEARCH_EMAILS: "User wants to find specific emails",
    Action.MARK_AS_READ: "User wants to mark emails as read",
    Action.DELETE_EMAILS: "User wants to delete emails",
    Action.GET_UNREAD: "User wants to see only unread emails",
    Action.GET_READ: "User wants to see only read emails",
    Action.MARK_IMPORTANT: "User wants to mark emails as important",
    Action.ARCHIVE_EMAILS: "User wants to archive emails",
    Action.COMPOSE_EMAIL: "User wants to create a new email",
    Action.GET_RECENT: "User wants to see recent emails",
    Action.GET_IMPORTANT: "User wants to see important emails",
    Action.REPLY_EMAIL: "User wants to reply to an email",
    Action.FORWARD_EMAIL: "User wants to forward an email",
    Action.RESTORE_EMAILS: "User wants to restore archived emails back to inbox",
    Action.UNARCHIVE_EMAILS: "User wants to unarchive emails (same as restore)",
    Action.MARK_UNREAD: "User wants to mark emails as unread",
    Action.REMOVE_IMPORTANT: "User wants to remove important flag from emails",
    Action.PERMANENTLY_DELETE: "User wants to permanently delete emails",
    Action.GET_ARCHIVED: "User wants to see archived emails",
    Action.SWITCH_TAB: "User wants to navigate to a specific email tab/view",
    Action.UNKNOWN: "Command doesn't match any available action",
}


def build_prompt(transcript: str) -> str:
    actions = "\n".join(f"- {a.value}: {hint}" for a, hint in ACTION_HINTS.items())
    return (
        "Parse this voice command for an email assistant and determine the user's intent.\n\n"
        f"Voice command: {json.dumps(transcript)}\n\n"
        f"Available actions:\n{actions}\n\n"
        "Extract parameters when present: query (search terms), emailId (number), sender (name is enough), "
        "subject, recipient, message, timeframe (today, week, month), tab (all, unread, read, important, archived), "
        "all (true for 'all emails', 'everything').\n\n"
        'Return JSON: {"action": "action_name", "parameters": {...}, "confidence": 0.0-1.0}'
    )


def clamp_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or math.isnan(value):
        return default
    return max(0.0, min(1.0, float(value)))


def _coerce_email_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def normalize_parameters(raw: Any) -> IntentParameters:
    """Keep each parameter that has a usable value; drop the rest individually."""
    if not isinstance(raw, dict):
        return IntentParameters()
    params: Dict[str, Any] = {}
    for key in ('query', 'sender', 'subject', 'recipient', 'message', 'timeframe'):
        v = _text(raw.get(key))
        if v is not None:
            params[key] = v
    email_id = _coerce_email_id(raw.get('emailId', raw.get('email_id')))
    if email_id is not None:
        params['email_id'] = email_id
    if raw.get('all') is True or (isinstance(raw.get('all'), str) and raw['all'].lower() == 'true'):
        params['all'] = True
    tab = raw.get('tab')
    if isinstance(tab, str) and tab.lower() in TABS:
        params['tab'] = tab.lower()
    return IntentParameters(**params)


def normalize_intent(raw: Any) -> Intent:
    if not isinstance(raw, dict) or not raw:
        return Intent(action=Action.UNKNOWN, confidence=0.0)
    try:
        action = Action(str(raw.get('action') or '').strip().lower())
    except ValueError:
        return Intent(action=Action.UNKNOWN, parameters=normalize_parameters(raw.get('parameters')), confidence=0.0)
    return Intent(
        action=action,
        parameters=normalize_parameters(raw.get('parameters')),
        confidence=clamp_confidence(raw.get('confidence')),
    )


class IntentResolver:
    """Wraps the NLU provider. ``complete`` takes (prompt, system) and returns raw JSON text."""

    def __init__(self, complete: Optional[Callable[[str, str], str]] = None):
        self.complete = complete or llm.complete_json

    def resolve(self, transcript: str) -> Intent:
        try:
            raw_text = self.complete(build_prompt(transcript), SYSTEM_PROMPT)
        except Exception as e:
            log.warning("intent_provider_failed", exc_info=e, extra={"component": "intent"})
            return Intent(action=Action.UNKNOWN, confidence=0.0)
        try:
            raw = json.loads(raw_text) if isinstance(raw_text, str) else raw_text
        except ValueError:
            log.warning("intent_unparseable", extra={"component": "intent"})
            return Intent(action=Action.UNKNOWN, confidence=0.0)
        intent = normalize_intent(raw)
        log.info("intent_resolved", extra={"component": "intent", "action": intent.action.value})
        return intent
