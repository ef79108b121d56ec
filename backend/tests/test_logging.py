import json
import logging

from fastapi.testclient import TestClient

from backend.voicemail.core.logging import JsonFormatter
from backend.voicemail.main import app
from backend.voicemail.services.mailbox import get_store


def test_health_trace_header(client):
    r = client.get('/health')
    assert r.status_code == 200
    # middleware should attach trace id
    assert 'X-Trace-Id' in r.headers


def test_incoming_trace_id_is_echoed(client):
    r = client.get('/health', headers={'X-Trace-Id': 'abc123'})
    assert r.headers['X-Trace-Id'] == 'abc123'


def test_unexpected_error_becomes_500_with_trace_id():
    def broken_store():
        raise RuntimeError("database unreachable")

    app.dependency_overrides[get_store] = broken_store
    try:
        r = TestClient(app, raise_server_exceptions=False).get('/health', headers={'X-Trace-Id': 'boom1'})
    finally:
        app.dependency_overrides.clear()
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal Server Error", "trace_id": "boom1"}


def test_json_formatter_keeps_domain_fields():
    record = logging.LogRecord("voicemail", logging.INFO, __file__, 1, "dispatch", None, None)
    record.component = "dispatcher"
    record.action = "mark_as_read"
    record.count = 3
    out = json.loads(JsonFormatter().format(record))
    assert out["msg"] == "dispatch"
    assert out["component"] == "dispatcher"
    assert out["action"] == "mark_as_read"
    assert out["count"] == 3
    assert "trace_id" not in out
