"""Tests for in-memory code sessions."""

import re
import time

import pytest

from convospace.chat.commands import COMMANDS_END, COMMANDS_START
from convospace.chat.service import ChatRequest, ChatService
from convospace.code.sessions import (
    CANCELLED_MESSAGE,
    SessionCollector,
    SessionStore,
    build_messages,
    generate_session_id,
    process_session,
)
from convospace.exceptions import CodeSessionNotFoundError, ProviderAuthError
from convospace.providers.errors import ErrorTracker


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


MODEL_ANSWER = (
    "Renamed the function.\n"
    f"{COMMANDS_START}\n"
    'request_files: ["tests/test_app.py"]\n'
    "write_diffs: [\n"
    '  { path: "app.py", diff: "@@ -1 +1 @@\\n-def old():\\n+def new():" }\n'
    "]\n"
    f"{COMMANDS_END}"
)


def _request(provider: str = "openrouter", model: str = "deepseek/deepseek-r1-0528:free") -> ChatRequest:
    return ChatRequest(
        messages=build_messages("Rename old to new", {"app.py": "def old():\n"}, []),
        provider=provider,
        model=model,
        stream=False,
    )


class TestSessionIds:
    def test_format(self):
        assert re.fullmatch(r"session_\d+_[a-z0-9]{9}", generate_session_id())

    def test_unique(self):
        assert len({generate_session_id() for _ in range(50)}) == 50


class TestSessionStore:
    """Tests for SessionStore."""

    def test_create_and_snapshot(self):
        store = SessionStore()
        session = store.create({"a.py": "print(1)\n"})

        snapshot = store.snapshot(session.id)

        assert snapshot["id"] == session.id
        assert snapshot["status"] == "pending"
        assert snapshot["progress"] == 0
        assert snapshot["files"] == {"a.py": "print(1)\n"}
        assert snapshot["pendingDiffs"] == []
        assert len(store) == 1

    def test_unknown_session_raises(self):
        store = SessionStore()

        with pytest.raises(CodeSessionNotFoundError):
            store.get("session_missing")
        with pytest.raises(CodeSessionNotFoundError):
            store.snapshot("session_missing")

    def test_cancelled_session_ignores_updates(self):
        store = SessionStore(cancel_grace_seconds=60)
        session = store.create()

        store.cancel(session.id)

        assert store.update(session.id, status="completed", progress=100) is False
        snapshot = store.snapshot(session.id)
        assert snapshot["status"] == "error"
        assert snapshot["error"] == CANCELLED_MESSAGE

    def test_cancelled_session_removed_after_grace(self):
        store = SessionStore(cancel_grace_seconds=0.05)
        session = store.create()

        store.cancel(session.id)
        deadline = time.time() + 2
        while len(store) and time.time() < deadline:
            time.sleep(0.01)

        with pytest.raises(CodeSessionNotFoundError):
            store.get(session.id)

    def test_apply_diffs_updates_files(self):
        store = SessionStore()
        session = store.create({"a.txt": "one\ntwo\n"})
        store.update(
            session.id,
            pending_diffs=[
                {"path": "a.txt", "diff": "@@ -2 +2 @@\n-two\n+TWO"},
                {"path": "new.txt", "diff": "+hello"},
            ],
        )

        applied, failed = store.apply_diffs(session.id)

        assert applied == ["a.txt", "new.txt"]
        assert failed == []
        snapshot = store.snapshot(session.id)
        assert snapshot["files"]["a.txt"] == "one\nTWO\n"
        assert snapshot["files"]["new.txt"] == "hello\n"
        assert snapshot["pendingDiffs"] == []

    def test_apply_selected_diffs_only(self):
        store = SessionStore()
        session = store.create({"a.txt": "a\n", "b.txt": "b\n"})
        store.update(
            session.id,
            pending_diffs=[
                {"path": "a.txt", "diff": "+a2"},
                {"path": "b.txt", "diff": "+b2"},
            ],
        )

        applied, _ = store.apply_diffs(session.id, ["b.txt"])

        assert applied == ["b.txt"]
        snapshot = store.snapshot(session.id)
        assert snapshot["files"]["a.txt"] == "a\n"
        assert [d["path"] for d in snapshot["pendingDiffs"]] == ["a.txt"]

    def test_failed_diff_stays_pending(self):
        store = SessionStore()
        session = store.create({"a.txt": "a\n"})
        store.update(
            session.id,
            pending_diffs=[{"path": "a.txt", "diff": "@@ -1 +1 @@\n-zzz\n+y"}],
        )

        applied, failed = store.apply_diffs(session.id)

        assert applied == []
        assert failed[0]["path"] == "a.txt"
        assert store.snapshot(session.id)["pendingDiffs"][0]["path"] == "a.txt"

    def test_collect_garbage_drops_old_sessions(self):
        clock = FakeClock()
        store = SessionStore(max_age_seconds=100, clock=clock)
        old = store.create()
        clock.now += 60
        fresh = store.create()
        clock.now += 50

        removed = store.collect_garbage()

        assert removed == 1
        with pytest.raises(CodeSessionNotFoundError):
            store.get(old.id)
        assert store.get(fresh.id).id == fresh.id


class TestBuildMessages:
    def test_system_and_user_messages(self):
        messages = build_messages(
            "Fix the bug",
            {"a.py": "x = 1"},
            ["Use type hints"],
            mode="edit",
            context={"branch": "main"},
        )

        assert [m["role"] for m in messages] == ["system", "user"]
        assert COMMANDS_START in messages[0]["content"]
        assert "Mode: edit" in messages[0]["content"]
        assert "- Use type hints" in messages[0]["content"]
        assert "File: a.py" in messages[1]["content"]
        assert '"branch": "main"' in messages[1]["content"]
        assert messages[1]["content"].endswith("Fix the bug")


class TestProcessSession:
    """Tests for process_session."""

    def test_completes_with_pending_diffs(self, make_registry):
        registry = make_registry({"openrouter": {"content": MODEL_ANSWER}})
        service = ChatService(registry, ErrorTracker())
        store = SessionStore()
        session = store.create({"app.py": "def old():\n"})

        process_session(store, service, session.id, _request())

        snapshot = store.snapshot(session.id)
        assert snapshot["status"] == "completed"
        assert snapshot["progress"] == 100
        assert snapshot["response"] == MODEL_ANSWER
        assert snapshot["requestedFiles"] == ["tests/test_app.py"]
        assert snapshot["pendingDiffs"] == [
            {"path": "app.py", "diff": "@@ -1 +1 @@\n-def old():\n+def new():"}
        ]

        applied, failed = store.apply_diffs(session.id)
        assert applied == ["app.py"]
        assert store.snapshot(session.id)["files"]["app.py"] == "def new():\n"

    def test_answer_without_commands_completes(self, make_registry):
        registry = make_registry({"openrouter": {"content": "No changes needed."}})
        store = SessionStore()
        session = store.create()

        process_session(store, ChatService(registry, ErrorTracker()), session.id, _request())

        snapshot = store.snapshot(session.id)
        assert snapshot["status"] == "completed"
        assert snapshot["pendingDiffs"] == []

    def test_invalid_provider_marks_error(self, make_registry):
        store = SessionStore()
        session = store.create()

        process_session(
            store,
            ChatService(make_registry(), ErrorTracker()),
            session.id,
            _request(provider="google", model="gemini-2.0-flash"),
        )

        snapshot = store.snapshot(session.id)
        assert snapshot["status"] == "error"
        assert "not available" in snapshot["error"]

    def test_provider_failure_marks_error(self, make_registry):
        error = ProviderAuthError("bad key", "openrouter")
        registry = make_registry(
            {
                "openrouter": {"error": error},
                "chutes": {"error": error},
                "anthropic": {"error": error},
            }
        )
        store = SessionStore()
        session = store.create()

        process_session(store, ChatService(registry, ErrorTracker()), session.id, _request())

        assert store.snapshot(session.id)["status"] == "error"

    def test_unexpected_error_marks_error(self, make_registry):
        registry = make_registry({"openrouter": {"error": RuntimeError("gateway exploded")}})
        store = SessionStore()
        session = store.create()

        process_session(store, ChatService(registry, ErrorTracker()), session.id, _request())

        snapshot = store.snapshot(session.id)
        assert snapshot["status"] == "error"
        assert "gateway exploded" in snapshot["error"]
        assert snapshot["progress"] == 10

    def test_cancelled_session_is_not_processed(self, make_registry):
        registry = make_registry({"openrouter": {"content": MODEL_ANSWER}})
        store = SessionStore(cancel_grace_seconds=60)
        session = store.create()
        store.cancel(session.id)

        process_session(store, ChatService(registry, ErrorTracker()), session.id, _request())

        assert store.snapshot(session.id)["error"] == CANCELLED_MESSAGE
        assert registry.factory.created == []


class TestSessionCollector:
    def test_start_and_stop(self):
        collector = SessionCollector(SessionStore(), interval_seconds=60)

        collector.start()
        assert collector.is_running

        collector.stop(timeout=1)
        assert not collector.is_running

    def test_sweeps_on_interval(self):
        clock = FakeClock()
        store = SessionStore(max_age_seconds=10, clock=clock)
        store.create()
        clock.now += 20
        collector = SessionCollector(store, interval_seconds=0.01)

        collector.start()
        deadline = time.time() + 2
        while len(store) and time.time() < deadline:
            time.sleep(0.01)
        collector.stop(timeout=1)

        assert len(store) == 0
