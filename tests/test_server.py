"""
Tests for POST /hotel-voice-assistant and the server's ambient endpoints.
"""
import random

import pytest
from fastapi.testclient import TestClient

from concierge_api import dependencies
from concierge_api.config import reset_config
from concierge_api.conversation_log import ConversationLog
from concierge_api.responder import build_responder
from concierge_api.server import app


POOL_REPLY = (
    "Our heated outdoor pool is open daily from 7 AM to 10 PM. We provide towels and have a hot tub "
    "adjacent to the pool. It's on the 3rd floor terrace with beautiful city views."
)


@pytest.fixture
def conversation_log():
    return ConversationLog()


@pytest.fixture
def client(monkeypatch, conversation_log):
    monkeypatch.delenv("CONCIERGE_API_KEY", raising=False)
    reset_config()
    dependencies.reset()

    responder = build_responder("grand_plaza", rng=random.Random(3))
    app.dependency_overrides[dependencies.get_responder] = lambda: responder
    app.dependency_overrides[dependencies.get_conversation_log] = lambda: conversation_log

    yield TestClient(app)

    app.dependency_overrides.clear()
    dependencies.reset()
    reset_config()


def _ask(client, user_message="Is there a pool?", session_id="session-1-abc", history=None, **kwargs):
    body = {"userMessage": user_message, "sessionId": session_id}
    if history is not None:
        body["conversationHistory"] = history
    return client.post("/hotel-voice-assistant", json=body, **kwargs)


def test_answers_utterance(client):
    res = _ask(client)

    assert res.status_code == 200
    assert res.json() == {"response": POOL_REPLY}


def test_greeting_is_one_of_the_canned_greetings(client):
    res = _ask(client, user_message="hello")

    assert res.status_code == 200
    assert res.json()["response"] in {
        "Hello! Welcome to Grand Plaza Hotel. How may I assist you today?",
        "Good day! I'm here to help with your hotel needs. What can I do for you?",
        "Hi there! Welcome to Grand Plaza. How can I make your stay exceptional?",
    }


def test_logs_the_exchange(client, conversation_log):
    history = [
        {"role": "assistant", "content": "Hello! Welcome to Grand Plaza Hotel. How may I assist you today?"},
    ]
    _ask(client, user_message="Is there a pool?", history=history)

    rows = conversation_log.query("session-1-abc")
    assert len(rows) == 1
    row = rows[0]
    assert row.user_message == "Is there a pool?"
    assert row.bot_response == POOL_REPLY
    assert row.metadata["intent"] == "pool"
    assert row.metadata["messageLength"] == len("Is there a pool?")
    assert row.metadata["historyLength"] == 1


def test_history_is_optional(client):
    res = client.post(
        "/hotel-voice-assistant",
        json={"userMessage": "where is the gym", "sessionId": "s"},
    )
    assert res.status_code == 200


@pytest.mark.parametrize(
    "body",
    [
        {"sessionId": "session-1"},
        {"userMessage": "hello"},
        {"userMessage": "", "sessionId": "session-1"},
        {"userMessage": "hello", "sessionId": ""},
        {},
    ],
)
def test_missing_fields(client, conversation_log, body):
    res = client.post("/hotel-voice-assistant", json=body)

    assert res.status_code == 400
    assert res.json() == {"error": "Missing required fields"}
    assert len(conversation_log) == 0


def test_malformed_json(client):
    res = client.post(
        "/hotel-voice-assistant",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert res.status_code == 400
    assert res.json() == {"error": "Invalid request body"}


@pytest.mark.parametrize(
    "body",
    [
        {"userMessage": 42, "sessionId": "session-1"},
        {"userMessage": "hi", "sessionId": "session-1", "conversationHistory": "nope"},
        ["hello"],
    ],
)
def test_wrong_shape(client, body):
    res = client.post("/hotel-voice-assistant", json=body)

    assert res.status_code == 400
    assert res.json() == {"error": "Invalid request body"}


@pytest.mark.parametrize(
    "history",
    [
        None,
        [{"role": "user", "content": "hi", "timestamp": "2024-01-01T00:00:00Z"}, {"role": "assistant"}],
    ],
)
def test_loose_history_is_accepted(client, conversation_log, history):
    res = client.post(
        "/hotel-voice-assistant",
        json={"userMessage": "Is there a pool?", "sessionId": "session-1", "conversationHistory": history},
    )

    assert res.status_code == 200
    assert res.json() == {"response": POOL_REPLY}
    assert conversation_log.query("session-1")[0].metadata["historyLength"] == len(history or [])


def test_log_failure_still_answers(client, tmp_path):
    broken_log = ConversationLog(path=tmp_path)
    app.dependency_overrides[dependencies.get_conversation_log] = lambda: broken_log

    res = _ask(client)

    assert res.status_code == 200
    assert res.json() == {"response": POOL_REPLY}
    assert len(broken_log) == 0


def test_unexpected_failure_returns_500(client):
    class ExplodingResponder:
        def respond(self, utterance, history=None):
            raise RuntimeError("boom")

    app.dependency_overrides[dependencies.get_responder] = lambda: ExplodingResponder()

    res = _ask(client)

    assert res.status_code == 500
    assert res.json() == {"error": "Internal server error", "message": "boom"}


def test_broken_log_config_returns_500_with_cors(client, monkeypatch):
    del app.dependency_overrides[dependencies.get_conversation_log]
    monkeypatch.setenv("CONVERSATION_LOG_MAX_ROWS", "0")
    reset_config()
    dependencies.reset()

    res = _ask(client)

    assert res.status_code == 500
    assert res.json() == {"error": "Internal server error", "message": "max_rows must be at least 1"}
    assert res.headers["access-control-allow-origin"] == "*"


def test_cors_headers_on_answer(client):
    res = _ask(client)
    assert res.headers["access-control-allow-origin"] == "*"


def test_options_returns_cors_headers(client):
    res = client.options("/hotel-voice-assistant")

    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"
    assert "POST" in res.headers["access-control-allow-methods"]
    assert "Authorization" in res.headers["access-control-allow-headers"]


def test_browser_preflight(client):
    res = client.options(
        "/hotel-voice-assistant",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type, Authorization",
        },
    )

    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"


def test_api_key_required_when_configured(client, monkeypatch, conversation_log):
    monkeypatch.setenv("CONCIERGE_API_KEY", "anon-key")
    reset_config()

    res = _ask(client)
    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized"}

    res = _ask(client, headers={"Authorization": "Bearer wrong"})
    assert res.status_code == 401

    res = _ask(client, headers={"Authorization": "Bearer anon-key"})
    assert res.status_code == 200
    assert len(conversation_log) == 1


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok", "component": "concierge_api"}


def test_default_dependencies_build_from_config(monkeypatch, tmp_path):
    """Without overrides the app builds its own responder and log from the environment."""
    monkeypatch.delenv("CONCIERGE_API_KEY", raising=False)
    monkeypatch.setenv("CONVERSATION_LOG_PATH", str(tmp_path / "log.jsonl"))
    reset_config()
    dependencies.reset()
    try:
        client = TestClient(app)
        res = _ask(client, user_message="Can I bring my dog?")

        assert res.status_code == 200
        assert "pet-friendly" in res.json()["response"]
        assert (tmp_path / "log.jsonl").read_text(encoding="utf-8").count("\n") == 1
    finally:
        dependencies.reset()
        reset_config()
