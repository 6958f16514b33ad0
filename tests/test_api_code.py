"""Tests for the code session endpoint."""

import pytest

from convospace.chat.commands import COMMANDS_END, COMMANDS_START
from convospace.code.sessions import SessionStore

ANSWER = (
    "Updated greeting.\n"
    f"{COMMANDS_START}\n"
    "write_diffs: [\n"
    '  { path: "hello.py", diff: "@@ -1 +1 @@\\n-print(\'hi\')\\n+print(\'hello\')" }\n'
    "]\n"
    f"{COMMANDS_END}"
)


@pytest.fixture
def session_store(api_client):
    from convospace.api.app import app
    from convospace.api.dependencies import get_session_store

    store = SessionStore(cancel_grace_seconds=60)
    app.dependency_overrides[get_session_store] = lambda: store
    return store


def _start(api_client, **overrides) -> dict:
    body = {
        "action": "start_session",
        "prompt": "Say hello instead of hi",
        "selectedFiles": {"hello.py": "print('hi')\n"},
        "provider": "openrouter",
        "model": "deepseek/deepseek-r1-0528:free",
    }
    body.update(overrides)
    return api_client.post("/api/code", json=body).json()


def _status(api_client, session_id: str) -> dict:
    return api_client.post(
        "/api/code", json={"action": "get_session_status", "sessionId": session_id}
    ).json()


class TestCodeSessions:
    """Tests for POST /api/code."""

    def test_start_runs_session_to_completion(self, api_client, use_registry, session_store):
        use_registry({"openrouter": {"content": ANSWER}})

        started = _start(api_client)

        assert started["success"] is True
        session = _status(api_client, started["sessionId"])["session"]
        assert session["status"] == "completed"
        assert session["progress"] == 100
        assert session["pendingDiffs"][0]["path"] == "hello.py"

    def test_apply_diffs(self, api_client, use_registry, session_store):
        use_registry({"openrouter": {"content": ANSWER}})
        session_id = _start(api_client)["sessionId"]

        response = api_client.post(
            "/api/code", json={"action": "apply_diffs", "sessionId": session_id}
        )

        assert response.json() == {"success": True, "appliedCount": 1, "failed": []}
        session = _status(api_client, session_id)["session"]
        assert session["files"]["hello.py"] == "print('hello')\n"
        assert session["pendingDiffs"] == []

    def test_prompt_includes_files(self, api_client, use_registry, session_store):
        registry = use_registry({"openrouter": {"content": "ok"}})

        _start(api_client, rules=["Keep it short"])

        sent = registry.factory.created[0].calls[0]
        assert "Keep it short" in sent[0]["content"]
        assert "print('hi')" in sent[1]["content"]

    def test_provider_failure_sets_error(self, api_client, use_registry, session_store):
        use_registry()

        started = _start(api_client, provider="google", model="gemini-2.0-flash")

        session = _status(api_client, started["sessionId"])["session"]
        assert session["status"] == "error"
        assert session["error"]

    def test_cancel(self, api_client, session_store, use_registry):
        use_registry()
        session = session_store.create()

        response = api_client.post(
            "/api/code", json={"action": "cancel_session", "sessionId": session.id}
        )

        assert response.json() == {"success": True}
        status = _status(api_client, session.id)["session"]
        assert status["status"] == "error"
        assert status["error"] == "Cancelled by user"

    def test_missing_prompt(self, api_client, use_registry, session_store):
        use_registry()

        response = api_client.post("/api/code", json={"action": "start_session"})

        assert response.status_code == 400
        assert response.json() == {"error": "Prompt is required"}

    def test_missing_session_id(self, api_client, use_registry, session_store):
        use_registry()

        response = api_client.post("/api/code", json={"action": "get_session_status"})

        assert response.status_code == 400
        assert response.json() == {"error": "Session ID is required"}

    def test_unknown_session(self, api_client, use_registry, session_store):
        use_registry()

        response = api_client.post(
            "/api/code", json={"action": "apply_diffs", "sessionId": "session_0_missing00"}
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}

    def test_invalid_action(self, api_client, use_registry, session_store):
        use_registry()

        response = api_client.post("/api/code", json={"action": "explode"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid action"}
