from typing import Any, Dict, Optional
import os, logging
from datetime import datetime, timezone

import httpx

try:  # Gemini client (optional provider)
    import google.generativeai as genai  # type: ignore
    GEMINI_AVAILABLE = True
except ImportError:  # pragma: no cover
    genai = None  # type: ignore
    GEMINI_AVAILABLE = False

log = logging.getLogger(__name__)

# Track last error state for diagnostics
LAST_LLM_ERROR: dict | None = None

CHAT_ENDPOINTS = {
    'openai': ('OPENAI_API_KEY', 'OPENAI_BASE', 'https://api.openai.com/v1/chat/completions', 'OPENAI_MODEL', 'gpt-4o'),
    'openrouter': ('OPENROUTER_API_KEY', 'OPENROUTER_BASE', 'https://openrouter.ai/api/v1/chat/completions', 'OPENROUTER_MODEL', 'openai/gpt-4o'),
}


class LLMError(RuntimeError):
    """Provider call failed or returned nothing usable."""


class LLMUnavailableError(LLMError):
    """No credential or client library for the configured provider."""


def current_provider() -> str:
    provider = os.getenv('LLM_PROVIDER', 'openai').lower()
    if provider == 'or':
        return 'openrouter'
    return provider


def _timeout() -> float:
    return float(os.getenv('LLM_TIMEOUT', '10'))


def _record_error(e: Exception, provider: str):
    global LAST_LLM_ERROR
    LAST_LLM_ERROR = {
        'error_type': type(e).__name__,
        'error_message': str(e)[:200],
        'provider': provider,
        'ts': datetime.now(timezone.utc).timestamp(),
    }


def _chat_completions_call(provider: str, prompt: str, system: str, json_mode: bool, temperature: float, max_tokens: Optional[int]) -> str:
    key_env, base_env, default_base, model_env, default_model = CHAT_ENDPOINTS[provider]
    api_key = os.getenv(key_env)
    if not api_key:
        raise LLMUnavailableError(f'missing {key_env}')
    endpoint = os.getenv(base_env, default_base)
    payload: Dict[str, Any] = {
        "model": os.getenv(model_env, default_model),
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        "temperature": temperature,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}
    if max_tokens:
        payload["max_tokens"] = max_tokens
    headers = {
        'Authorization': f'Bearer {api_key}',
        'Content-Type': 'application/json',
    }
    if provider == 'openrouter':
        headers['HTTP-Referer'] = os.getenv('OPENROUTER_REFERRER', 'http://localhost')
        headers['X-Title'] = os.getenv('OPENROUTER_APP_NAME', 'VoiceMailAssistant')
    with httpx.Client(timeout=_timeout()) as client:
        resp = client.post(endpoint, headers=headers, json=payload)
    if resp.status_code >= 400:
        raise LLMError(f'{provider}_http_{resp.status_code}: {resp.text[:160]}')
    data = resp.json()
    choice = (data.get('choices') or [{}])[0]
    content = (choice.get('message') or {}).get('content')
    # Some providers return a list of segments; join any text-like fields
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, dict):
                v = part.get('text')
                if isinstance(v, str) and v.strip():
                    parts.append(v.strip())
            elif isinstance(part, str) and part.strip():
                parts.append(part.strip())
        content = "\n".join(parts)
    if not isinstance(content, str) or not content.strip():
        raise LLMError(f'{provider}_empty_output')
    return content.strip()


def _gemini_extract_text(resp):  # pragma: no cover
    if not resp:
        return ""
    t = getattr(resp, 'text', None)
    if t:
        return t
    try:
        return resp.candidates[0].content.parts[0].text  # type: ignore
    except (AttributeError, IndexError):
        return ""


def _gemini_call(prompt: str, system: str, json_mode: bool, temperature: float, max_tokens: Optional[int]) -> str:  # pragma: no cover
    if not GEMINI_AVAILABLE:
        raise LLMUnavailableError('google-generativeai not installed')
    api_key = os.getenv('GOOGLE_API_KEY')
    if not api_key:
        raise LLMUnavailableError('missing GOOGLE_API_KEY')
    genai.configure(api_key=api_key)  # type: ignore
    config: Dict[str, Any] = {"temperature": temperature}
    if json_mode:
        config["response_mime_type"] = "application/json"
    if max_tokens:
        config["max_output_tokens"] = max_tokens
    model = genai.GenerativeModel(  # type: ignore
        os.getenv('GEMINI_MODEL', 'gemini-1.5-flash'),
        system_instruction=system,
        generation_config=config,
    )
    resp = model.generate_content(prompt, request_options={"timeout": _timeout()})
    text = _gemini_extract_text(resp).strip()
    if not text:
        raise LLMError('gemini_empty_output')
    return text


def complete(prompt: str, system: str, *, json_mode: bool = False, temperature: float = 0.3, max_tokens: Optional[int] = None) -> str:
    """Single completion from the configured provider. No retries; errors surface as LLMError."""
    provider = current_provider()
    try:
        if provider == 'gemini':
            return _gemini_call(prompt, system, json_mode, temperature, max_tokens)
        if provider not in CHAT_ENDPOINTS:
            raise LLMUnavailableError(f'unsupported LLM_PROVIDER {provider!r}')
        return _chat_completions_call(provider, prompt, system, json_mode, temperature, max_tokens)
    except LLMUnavailableError as e:
        _record_error(e, provider)
        raise
    except LLMError as e:
        _record_error(e, provider)
        log.warning("LLM call failed", extra={"component": "llm", "provider": provider})
        raise
    except (httpx.HTTPError, ValueError) as e:
        _record_error(e, provider)
        log.warning("LLM transport failure", exc_info=e, extra={"component": "llm", "provider": provider})
        raise LLMError(f'{provider}: {type(e).__name__}') from e


def complete_json(prompt: str, system: str) -> str:
    return complete(prompt, system, json_mode=True, temperature=0.3)


def complete_text(prompt: str, system: str, max_tokens: Optional[int] = None) -> str:
    return complete(prompt, system, temperature=0.7, max_tokens=max_tokens)


def llm_available() -> bool:
    provider = current_provider()
    if provider == 'gemini':
        return GEMINI_AVAILABLE and bool(os.getenv('GOOGLE_API_KEY'))
    if provider in CHAT_ENDPOINTS:
        return bool(os.getenv(CHAT_ENDPOINTS[provider][0]))
    return False


def llm_diagnostics() -> Dict[str, Any]:
    provider = current_provider()
    base: Dict[str, Any] = {
        'provider': provider,
        'available': llm_available(),
        'last_error': LAST_LLM_ERROR,
        'timeout_default_s': _timeout(),
    }
    if provider == 'gemini':
        base.update({
            'gemini_installed': GEMINI_AVAILABLE,
            'model': os.getenv('GEMINI_MODEL', 'gemini-1.5-flash'),
        })
    elif provider in CHAT_ENDPOINTS:
        _, _, _, model_env, default_model = CHAT_ENDPOINTS[provider]
        base['model'] = os.getenv(model_env, default_model)
    return base
