import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SEED_SAMPLE_EMAILS"] = "0"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from backend.voicemail.db.database import ensure_schema, get_db, make_engine
from backend.voicemail.main import app
from backend.voicemail.schemas.email import EmailCreate
from backend.voicemail.services.mailbox import MailboxStore

PROVIDER_KEYS = ("OPENAI_API_KEY", "OPENROUTER_API_KEY", "GOOGLE_API_KEY", "ELEVENLABS_API_KEY")


@pytest.fixture(autouse=True)
def no_provider_credentials(monkeypatch):
    for key in PROVIDER_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LLM_PROVIDER", "openai")


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    ensure_schema(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return MailboxStore(db)


@pytest.fixture
def make_email(store):
    """Insert an email; each call is one minute older than the previous one."""
    counter = {"n": 0}
    base = datetime(2025, 5, 6, 12, 0, tzinfo=timezone.utc)

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "message_id": f"msg-{n}",
            "from_email": f"sender{n}@example.com",
            "from_name": f"Sender {n}",
            "to_email": "me@example.com",
            "subject": f"Subject {n}",
            "text_content": f"Body of message {n}",
            "received_at": base - timedelta(minutes=n),
        }
        data.update(overrides)
        return store.create_email(EmailCreate(**data))

    return _make


@pytest.fixture
def client(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
