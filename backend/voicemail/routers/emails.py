from fastapi import APIRouter, Depends, HTTPException, Query, Body
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
import logging

from ..schemas.email import EmailOut, EmailUpdate, EmailAudioRequest
from ..services.mailbox import MailboxStore, get_store
from ..services.summarizer import process_email_for_audio

router = APIRouter()
log = logging.getLogger(__name__)

# columns that are NOT NULL in the emails table
REQUIRED_FIELDS = ('is_read', 'is_important', 'is_deleted', 'subject')


def _dump(records) -> List[Dict[str, Any]]:
    return [EmailOut.model_validate(r).model_dump(by_alias=True, mode='json') for r in records]


@router.get("")
def list_emails(
    store: MailboxStore = Depends(get_store),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    is_important: Optional[bool] = Query(None, alias="isImportant"),
    is_deleted: Optional[bool] = Query(False, alias="isDeleted"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    records = store.get_emails(
        is_read=is_read,
        is_important=is_important,
        is_deleted=is_deleted,
        limit=limit,
        offset=offset,
    )
    return {"emails": _dump(records), "unreadCount": store.unread_count()}


@router.get("/search/{query}")
def search_emails(query: str, store: MailboxStore = Depends(get_store)):
    records = store.search_emails(query)
    return {"emails": _dump(records), "count": len(records)}


@router.post("/summarize")
def summarize_for_audio(payload: Any = Body(None)):
    """Turn an email body into text meant to be read aloud."""
    try:
        req = EmailAudioRequest.model_validate(payload or {})
    except ValidationError:
        raise HTTPException(status_code=400, detail="Email content is required")
    if not req.content.strip():
        raise HTTPException(status_code=400, detail="Email content is required")
    text = process_email_for_audio(
        req.content,
        subject=req.subject or 'Untitled',
        sender=req.sender or 'Unknown sender',
    )
    log.info("email_summarized", extra={"component": "emails", "email_id": req.email_id, "count": len(req.content)})
    return {"summary": text}


@router.get("/{email_id}")
def get_single_email(email_id: int, store: MailboxStore = Depends(get_store)):
    record = store.get_email(email_id)
    if not record:
        raise HTTPException(status_code=404, detail="Email not found")
    return EmailOut.model_validate(record).model_dump(by_alias=True, mode='json')


@router.put("/{email_id}")
def update_email(email_id: int, changes: EmailUpdate, store: MailboxStore = Depends(get_store)):
    data = changes.model_dump(exclude_unset=True)
    nulled = [k for k in REQUIRED_FIELDS if k in data and data[k] is None]
    if nulled:
        raise HTTPException(status_code=400, detail=f"{', '.join(nulled)} cannot be null")
    record = store.update_email(email_id, **data)
    if not record:
        raise HTTPException(status_code=404, detail="Email not found")
    return EmailOut.model_validate(record).model_dump(by_alias=True, mode='json')


@router.delete("/{email_id}")
def delete_email(email_id: int, store: MailboxStore = Depends(get_store)):
    if not store.delete_email(email_id):
        raise HTTPException(status_code=404, detail="Email not found")
    log.info("email_deleted", extra={"component": "emails", "email_id": email_id})
    return {"message": "Email deleted successfully"}
