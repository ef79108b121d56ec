from typing import List, Sequence
import json, logging, re

from ..models.email_model import Email
from . import llm

log = logging.getLogger(__name__)

EMPTY_DIGEST = "You don't have any emails to show you right now."
MAX_DIGEST_EMAILS = 10
AUDIO_FALLBACK_CHARS = 1000

DIGEST_SYSTEM = (
    "You are a helpful AI assistant that creates natural, conversational email summaries for voice playback. "
    "Sound like a personal assistant speaking directly to the user."
)

AUDIO_SYSTEM = (
    "You convert email content into clean, natural speech text for audio playback. "
    "Remove URLs, links and HTML markup, ignore promotional footers and tracking elements, "
    "and keep the main message and key points in conversational language."
)


def _sender(email: Email) -> str:
    return email.from_name or email.from_email


def _digest_prompt(emails: Sequence[Email]) -> str:
    data = [
        {
            "from": _sender(e),
            "subject": e.subject,
            "preview": (e.text_content or '')[:150],
            "isImportant": bool(e.is_important),
            "isRead": bool(e.is_read),
        }
        for e in emails[:MAX_DIGEST_EMAILS]
    ]
    return (
        "Create a natural, conversational summary of these emails as if you're personally telling the user about them. "
        "Mention senders, key subjects and urgency; highlight important or unread emails first; "
        "keep it concise and plain text for voice playback.\n\n"
        f"Emails to summarize:\n{json.dumps(data, indent=2, ensure_ascii=False)}"
    )


def _local_digest(emails: Sequence[Email]) -> str:
    count = len(emails)
    noun = "email" if count == 1 else "emails"
    parts = [f"You have {count} {noun}."]
    shown = list(emails[:3])
    for i, e in enumerate(shown):
        lead = "First" if i == 0 else ("Then" if i < len(shown) - 1 else "And")
        flag = " It's marked important." if e.is_important else ""
        parts.append(f"{lead}, {_sender(e)} sent you \"{e.subject}\".{flag}")
    if count > len(shown):
        parts.append(f"There are {count - len(shown)} more after that.")
    return " ".join(parts)


def generate_email_summary(emails: List[Email]) -> str:
    """Spoken digest of ``emails``. Falls back to a locally built digest when the model is unavailable."""
    if not emails:
        return EMPTY_DIGEST
    try:
        return llm.complete_text(_digest_prompt(emails), DIGEST_SYSTEM)
    except Exception as e:
        log.warning("digest_fallback_local", extra={"component": "summarizer", "error_type": type(e).__name__})
        return _local_digest(emails)


def _clean_for_speech(content: str) -> str:
    text = re.sub(r"<[^>]*>", "", content)
    text = re.sub(r"https?://\S+", "", text)
    text = re.sub(r"={3,}", "", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[^\w\s.,!?;:'\"()-]", " ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def process_email_for_audio(content: str, subject: str = 'Untitled', sender: str = 'Unknown sender') -> str:
    intro = f"Email from {sender} about {subject}."
    prompt = (
        "Please convert this email into natural speech text for audio playback:\n\n"
        f"From: {sender}\nSubject: {subject}\n\nContent:\n{content}"
    )
    try:
        cleaned = llm.complete_text(prompt, AUDIO_SYSTEM, max_tokens=800)
    except Exception as e:
        log.warning("audio_cleanup_fallback_local", extra={"component": "summarizer", "error_type": type(e).__name__})
        cleaned = _clean_for_speech(content)[:AUDIO_FALLBACK_CHARS]
    return f"{intro} {cleaned}"
