import pytest
from fastapi.testclient import TestClient

from chat_relay.api import service
from chat_relay.api.app import app
from chat_relay.domain.exceptions import ApiError
from chat_relay.infrastructure.storage.memory_store import InMemorySessionStore
from chat_relay.relay.orchestrator import RelayOrchestrator


@pytest.fixture
def install(monkeypatch):
    def _install(upstream):
        store = InMemorySessionStore()
        orch = RelayOrchestrator(store=store, client=upstream, default_model="default/model", queue_size=4)
        monkeypatch.setattr(service, "_orchestrator", orch)
        return store

    return _install


def test_stream_endpoint_emits_sse(install, fake_upstream):
    upstream = fake_upstream([b"data: hello\n\ndata:data: world\n\n[DONE]\n"])
    install(upstream)
    client = TestClient(app)

    resp = client.get("/api/chat/stream", params={"sessionId": "s1", "message": "hi", "model": "m/x"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.text == (
        "event: chat\ndata: hello\n\n"
        "event: chat\ndata: world\n\n"
        "event: done\ndata: \n\n"
    )
    assert upstream.payloads[0].model == "m/x"


def test_stream_failure_has_no_done_event(install, fake_upstream):
    install(fake_upstream([b"data: a\n"], error=ApiError(code="API_ERROR", message="boom")))
    client = TestClient(app)

    resp = client.get("/api/chat/stream", params={"sessionId": "s1", "message": "hi"})

    assert "event: chat\ndata: a\n\n" in resp.text
    assert "event: error\n" in resp.text
    assert "event: done" not in resp.text


def test_stream_rejects_blank_session(install, fake_upstream):
    install(fake_upstream())
    client = TestClient(app)

    resp = client.get("/api/chat/stream", params={"sessionId": "  ", "message": "hi"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "MISSING_SESSION_ID"

    resp = client.get("/api/chat/stream", params={"message": "hi"})
    assert resp.status_code == 422


def test_chat_history_and_clear(install, fake_upstream):
    store = install(fake_upstream(response={"choices": [{"message": {"content": "pong"}}]}))
    client = TestClient(app)

    resp = client.post("/api/chat", json={"sessionId": "s1", "message": "ping"})
    assert resp.json() == {"sessionId": "s1", "reply": "pong"}

    resp = client.get("/api/chat/s1/history")
    assert resp.json()["messages"] == [
        {"role": "user", "content": "ping"},
        {"role": "assistant", "content": "pong"},
    ]

    resp = client.delete("/api/chat/s1")
    assert resp.json() == {"sessionId": "s1", "cleared": True}
    assert store.snapshot("s1") == []


def test_chat_maps_business_errors(install, fake_upstream):
    install(fake_upstream(error=ApiError(code="API_ERROR", message="upstream down", http_status=502)))
    client = TestClient(app)

    resp = client.post("/api/chat", json={"sessionId": "s1", "message": "ping"})
    assert resp.status_code == 502
    assert resp.json() == {"code": "API_ERROR", "message": "upstream down"}


def test_stream_rejects_blank_message(install, fake_upstream):
    upstream = fake_upstream([b"[DONE]\n"])
    store = install(upstream)
    client = TestClient(app)

    resp = client.get("/api/chat/stream", params={"sessionId": "s1", "message": "   "})
    assert resp.status_code == 400
    assert resp.json()["code"] == "EMPTY_MESSAGE"
    assert upstream.payloads == []
    assert store.snapshot("s1") == []
