import json

import pytest

from backend.voicemail.schemas.voice import Action
from backend.voicemail.services.intent_resolver import IntentResolver, normalize_intent, clamp_confidence
from backend.voicemail.services.llm import LLMUnavailableError


def resolver_returning(raw):
    return IntentResolver(complete=lambda prompt, system: raw)


@pytest.mark.parametrize("raw, expected", [(1.7, 1.0), (-0.3, 0.0), (0.42, 0.42), ("0.8", 0.8)])
def test_confidence_is_clamped(raw, expected):
    r = resolver_returning(json.dumps({"action": "get_unread", "confidence": raw}))
    intent = r.resolve("what's new")
    assert intent.action == Action.GET_UNREAD
    assert intent.confidence == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "not json at all", "{}", "[]", "null", '"read_emails"'])
def test_malformed_or_empty_response_is_unknown(raw):
    intent = resolver_returning(raw).resolve("blah")
    assert intent.action == Action.UNKNOWN
    assert intent.confidence == 0.0


def test_unrecognized_action_is_unknown_with_zero_confidence():
    intent = resolver_returning('{"action": "launch_rocket", "confidence": 0.99}').resolve("launch")
    assert intent.action == Action.UNKNOWN
    assert intent.confidence == 0.0


def test_provider_failure_is_unknown():
    def boom(prompt, system):
        raise LLMUnavailableError("missing OPENAI_API_KEY")

    intent = IntentResolver(complete=boom).resolve("read my email")
    assert intent.action == Action.UNKNOWN
    assert intent.confidence == 0.0


def test_without_credentials_falls_back_to_unknown():
    # autouse fixture removes every provider key
    intent = IntentResolver().resolve("read my email")
    assert intent.action == Action.UNKNOWN


def test_missing_confidence_on_valid_action_gets_default():
    intent = normalize_intent({"action": "read_emails"})
    assert intent.action == Action.READ_EMAILS
    assert intent.confidence == 0.5


def test_parameters_are_normalized_one_by_one():
    intent = normalize_intent({
        "action": "SWITCH_TAB",
        "parameters": {"tab": "Archived", "emailId": "12", "sender": "  ", "all": "true", "query": 42},
        "confidence": 0.9,
    })
    p = intent.parameters
    assert intent.action == Action.SWITCH_TAB
    assert p.tab == "archived"
    assert p.email_id == 12
    assert p.sender is None
    assert p.all is True
    assert p.query == "42"


def test_invalid_tab_and_email_id_are_dropped():
    p = normalize_intent({"action": "switch_tab", "parameters": {"tab": "spam", "emailId": "abc"}}).parameters
    assert p.tab is None
    assert p.email_id is None


def test_clamp_confidence_rejects_non_numbers():
    assert clamp_confidence(True) == 0.5
    assert clamp_confidence(float("nan")) == 0.5
    assert clamp_confidence(None) == 0.5
