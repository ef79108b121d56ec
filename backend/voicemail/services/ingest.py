import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Tuple

from ..models.email_model import Email
from ..schemas.email import EmailCreate, PostmarkInbound
from .forwarding import parse_forwarding
from .mailbox import MailboxStore, DuplicateMessageError

log = logging.getLogger(__name__)


def _coerce_received(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            dt = parsedate_to_datetime(value)
            if dt:
                return dt
        except (TypeError, ValueError):
            pass
        try:
            return datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def process_inbound(payload: PostmarkInbound) -> EmailCreate:
    """Map an inbound webhook payload to an Email record.

    When the body is a forward, the original sender and subject become the
    displayed identity and the envelope sender is kept in ``actual_sender_*``.
    """
    fwd = parse_forwarding(payload.text_body)
    is_forwarded = fwd is not None

    from_email = payload.from_email
    from_name = payload.from_name
    subject = payload.subject
    if fwd:
        from_email = fwd.original_from or from_email
        from_name = fwd.original_from_name or from_name
        subject = fwd.original_subject or subject

    return EmailCreate(
        message_id=payload.message_id,
        from_email=from_email,
        from_name=from_name,
        to_email=payload.to,
        subject=subject,
        text_content=payload.text_body,
        html_content=payload.html_body,
        received_at=_coerce_received(payload.date),
        attachments=[a.name for a in payload.attachments],
        is_forwarded=is_forwarded,
        original_from=fwd.original_from if fwd else None,
        original_from_name=fwd.original_from_name if fwd else None,
        original_to=fwd.original_to if fwd else None,
        original_date=fwd.original_date if fwd else None,
        original_subject=fwd.original_subject if fwd else None,
        actual_sender_email=payload.from_email if fwd else None,
        actual_sender_name=payload.from_name if fwd else None,
    )


def ingest_email(store: MailboxStore, payload: EmailCreate) -> Tuple[Email, bool]:
    """Store ``payload`` unless its message id is already known. Returns (email, created)."""
    existing = store.get_email_by_message_id(payload.message_id)
    if existing:
        log.info("ingest_duplicate", extra={"component": "ingest", "email_id": existing.id})
        return existing, False
    try:
        email = store.create_email(payload)
    except DuplicateMessageError:
        # lost a race with a concurrent delivery of the same message
        existing = store.get_email_by_message_id(payload.message_id)
        if existing is None:
            raise
        return existing, False
    log.info("ingest_created", extra={"component": "ingest", "email_id": email.id})
    return email, True
