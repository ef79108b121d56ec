from fastapi import APIRouter, Depends, HTTPException, Body, Request
from typing import Any
from datetime import datetime, timezone
from pydantic import ValidationError
import logging, uuid

from ..schemas.email import EmailOut, PostmarkInbound, SimulatedEmail
from ..services.ingest import ingest_email, process_inbound
from ..services.mailbox import MailboxStore, get_store

router = APIRouter()
log = logging.getLogger(__name__)

SIMULATED_INBOX = "inbox@yourdomain.com"

SAMPLE_FORWARDED_BODY = """============ Forwarded message ============
From: Crossbeam product_marketing@getcrossbeam.com
To: abdussamad.bello@zulaiy.com
Date: Tue, 06 May 2025 18:13:17 +0100
Subject: Reminder: Explorer account functionality is changing soon
============ Forwarded message ============

This is the main content of the forwarded email..."""


def _parse_inbound(payload: Any) -> PostmarkInbound:
    try:
        return PostmarkInbound.model_validate(payload if isinstance(payload, dict) else {})
    except ValidationError as e:
        log.warning("webhook_invalid", extra={"component": "webhooks", "error_type": f"{e.error_count()} errors"})
        raise HTTPException(status_code=400, detail="Invalid webhook data")


@router.post("/postmark")
def postmark_inbound(payload: Any = Body(None), store: MailboxStore = Depends(get_store)):
    inbound = _parse_inbound(payload)
    email, created = ingest_email(store, process_inbound(inbound))
    if not created:
        return {"message": "Email already processed", "emailId": email.id}
    return {"message": "Email processed successfully", "emailId": email.id}


@router.get("/postmark/test")
def postmark_test(request: Request):
    return {
        "message": "Postmark webhook endpoint is active",
        "url": str(request.url_for("postmark_inbound")),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/postmark/test-forwarded")
def postmark_test_forwarded():
    """Dry run of the forward parser against a canned forwarded message. Nothing is stored."""
    sample = {
        "MessageID": f"test-forwarded-{int(datetime.now(timezone.utc).timestamp() * 1000)}",
        "FromName": "abdussamad bello",
        "From": "abdussamad.bello@zulaiy.com",
        "To": SIMULATED_INBOX,
        "Subject": "Fwd: Reminder: Explorer account functionality is changing soon",
        "TextBody": SAMPLE_FORWARDED_BODY,
        "Date": datetime.now(timezone.utc).isoformat(),
        "Attachments": [],
    }
    processed = process_inbound(PostmarkInbound.model_validate(sample))
    return {
        "message": "Forwarded email parsing test",
        "originalWebhook": sample,
        "processedEmail": processed.model_dump(by_alias=True, mode='json'),
        "isForwarded": processed.is_forwarded,
    }


@router.post("/postmark/simulate")
def postmark_simulate(payload: Any = Body(None), store: MailboxStore = Depends(get_store)):
    try:
        sim = SimulatedEmail.model_validate(payload if isinstance(payload, dict) else {})
    except ValidationError:
        raise HTTPException(status_code=400, detail="From and subject are required")
    now = datetime.now(timezone.utc)
    inbound = PostmarkInbound(
        message_id=f"sim-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}",
        from_email=sim.from_,
        from_name=sim.from_name or sim.from_.split('@')[0],
        to=SIMULATED_INBOX,
        subject=sim.subject,
        text_body=sim.text_body or f"This is a simulated email from {sim.from_}",
        html_body=sim.html_body,
        date=now.isoformat(),
        headers=[{"Name": "X-Simulated", "Value": "true"}],
    )
    email, created = ingest_email(store, process_inbound(inbound))
    if not created:
        return {"message": "Email already processed", "emailId": email.id}
    return {
        "message": "Simulated email processed successfully",
        "emailId": email.id,
        "email": EmailOut.model_validate(email).model_dump(by_alias=True, mode='json'),
    }
