from datetime import datetime

import pytest

from backend.voicemail.schemas.email import EmailCreate, PostmarkInbound
from backend.voicemail.services.ingest import ingest_email, process_inbound
from backend.voicemail.services.mailbox import DuplicateMessageError, MailboxStoreError
from backend.voicemail.services.seed import SAMPLE_EMAILS, seed_sample_emails


def payload(message_id="m-1", **overrides):
    data = {"message_id": message_id, "from_email": "a@example.com", "to_email": "me@example.com", "subject": "Hi"}
    data.update(overrides)
    return EmailCreate(**data)


def test_ingest_same_message_twice_stores_one(store):
    first, created = ingest_email(store, payload())
    again, created_again = ingest_email(store, payload(subject="Different"))
    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert store.count() == 1


def test_unique_message_id_is_enforced_by_store(store):
    store.create_email(payload())
    with pytest.raises(DuplicateMessageError):
        store.create_email(payload())
    # session is usable again after the rollback
    assert store.count() == 1


def test_received_at_defaults_and_parses():
    inbound = PostmarkInbound.model_validate({
        "MessageID": "x", "From": "a@example.com", "To": "b@example.com",
        "Subject": "s", "Date": "2025-05-06T10:00:00Z",
    })
    email = process_inbound(inbound)
    assert email.received_at.year == 2025
    assert email.attachments == []
    garbled = process_inbound(inbound.model_copy(update={"date": "yesterday-ish"}))
    assert garbled.received_at is not None


def test_update_and_delete_missing_email(store):
    assert store.update_email(404, is_read=True) is None
    assert store.delete_email(404) is False


def test_voice_commands_newest_first(store):
    store.create_voice_command("read my email", "read_emails", 90, True)
    store.create_voice_command("dance", "unknown", 0, False)
    history = store.get_voice_commands(limit=1)
    assert len(history) == 1
    assert history[0].transcript == "dance"


def test_seed_runs_once(store):
    summary = seed_sample_emails(store)
    assert summary == {"seeded": True, "inserted": len(SAMPLE_EMAILS)}
    assert seed_sample_emails(store) == {"seeded": False, "inserted": 0}
    latest = store.get_emails(limit=1)[0]
    assert latest.message_id == "sample-1"
    assert latest.is_important is True


def test_other_constraint_failures_are_not_duplicates(store):
    email = store.create_email(payload())
    with pytest.raises(MailboxStoreError) as exc:
        store.update_email(email.id, is_read=None)
    assert not isinstance(exc.value, DuplicateMessageError)
    assert store.get_email(email.id).is_read is False


def test_received_at_with_offset_is_stored_as_utc(store):
    inbound = PostmarkInbound.model_validate({
        "MessageID": "tz", "From": "a@example.com", "To": "b@example.com",
        "Subject": "s", "Date": "Tue, 06 May 2025 09:30:00 +0200",
    })
    email, _ = ingest_email(store, process_inbound(inbound))
    assert email.received_at.replace(tzinfo=None) == datetime(2025, 5, 6, 7, 30)


def test_search_treats_like_wildcards_as_text(store):
    store.create_email(payload("m-1", subject="Q3 plan: 100% done"))
    store.create_email(payload("m-2", subject="we hit 1000 users"))
    store.create_email(payload("m-3", subject="see file_a"))
    store.create_email(payload("m-4", subject="fileXa report"))
    store.create_email(payload("m-5", subject="C:\\temp paths"))
    assert [e.message_id for e in store.search_emails("100%")] == ["m-1"]
    assert [e.message_id for e in store.search_emails("file_a")] == ["m-3"]
    assert [e.message_id for e in store.search_emails("c:\\temp")] == ["m-5"]
