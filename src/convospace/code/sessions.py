"""
In-memory code sessions.

A code session asks a model for changes to a set of files. The model's
answer is parsed for a command block; its ``write_diffs`` become pending
diffs the client can review and apply. Sessions live in process memory
only and are swept once they exceed their maximum age.
"""

import json
import logging
import random
import string
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from convospace.chat.commands import COMMANDS_END, COMMANDS_START
from convospace.chat.service import ChatRequest, ChatService
from convospace.code.patching import apply_diff
from convospace.exceptions import ChatRequestError, CodeSessionNotFoundError, PatchError, ProviderError

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"

SYSTEM_PROMPT = f"""You are an expert software engineer working on the user's files.
Answer the request, then describe every file change in a command block:

{COMMANDS_START}
request_files: ["path/of/file/you/need/to/see"]
write_diffs: [
  {{ path: "path/to/file", diff: "<unified diff with \\n line breaks>" }}
]
{COMMANDS_END}

Only include files you were given or new files. Use unified diff hunks."""


def generate_session_id() -> str:
    """``session_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CodeSession:
    """State of one code session."""

    id: str
    files: dict[str, str]
    status: str = "pending"  # pending | processing | completed | error
    progress: int = 0
    pending_diffs: list[dict[str, str]] = field(default_factory=list)
    requested_files: list[str] = field(default_factory=list)
    response: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    expires_at: Optional[float] = None

    @property
    def cancelled(self) -> bool:
        return self.status == "error" and self.error == CANCELLED_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "progress": self.progress,
            "files": dict(self.files),
            "pendingDiffs": [dict(d) for d in self.pending_diffs],
            "requestedFiles": list(self.requested_files),
            "response": self.response,
            "error": self.error,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class SessionStore:
    """Thread-safe map of session id to CodeSession."""

    def __init__(
        self,
        max_age_seconds: float = 1800,
        cancel_grace_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_seconds = max_age_seconds
        self.cancel_grace_seconds = cancel_grace_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, CodeSession] = {}
        self._started: dict[str, float] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, files: Optional[dict[str, str]] = None) -> CodeSession:
        session = CodeSession(id=generate_session_id(), files=dict(files or {}))
        with self._lock:
            self._sessions[session.id] = session
            self._started[session.id] = self._clock()
        logger.info(f"Created code session {session.id} with {len(session.files)} files")
        return session

    def get(self, session_id: str) -> CodeSession:
        """
        Raises:
            CodeSessionNotFoundError: Unknown or already collected session
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise CodeSessionNotFoundError(session_id)
        return session

    def snapshot(self, session_id: str) -> dict[str, Any]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise CodeSessionNotFoundError(session_id)
            return session.to_dict()

    def update(self, session_id: str, **changes: Any) -> bool:
        """
        Update fields of a live session.

        Returns:
            False when the session is gone or was cancelled (nothing changed)
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.cancelled:
                return False
            for name, value in changes.items():
                setattr(session, name, value)
            session.updated_at = _now()
            return True

    def cancel(self, session_id: str) -> None:
        """Mark a session cancelled; it is collected after the grace period."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise CodeSessionNotFoundError(session_id)
            session.status = "error"
            session.error = CANCELLED_MESSAGE
            session.updated_at = _now()
            session.expires_at = self._clock() + self.cancel_grace_seconds

        # Keep the cancelled state visible to status polls for a short while
        timer = threading.Timer(self.cancel_grace_seconds, self.remove, args=(session_id,))
        timer.daemon = True
        timer.start()
        logger.info(f"Cancelled code session {session_id}")

    def remove(self, session_id: str) -> bool:
        with self._lock:
            self._started.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def apply_diffs(
        self, session_id: str, diff_paths: Optional[list[str]] = None
    ) -> tuple[list[str], list[dict[str, str]]]:
        """
        Apply pending diffs to the session's files.

        Args:
            session_id: Session to update
            diff_paths: Only apply diffs for these paths (all when None)

        Returns:
            (applied paths, failures as ``{"path", "error"}``); failed diffs
            stay pending
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise CodeSessionNotFoundError(session_id)

            selected = [
                d for d in session.pending_diffs
                if diff_paths is None or d["path"] in diff_paths
            ]
            applied: list[str] = []
            failures: list[dict[str, str]] = []
            remaining = [d for d in session.pending_diffs if d not in selected]

            for diff in selected:
                path = diff["path"]
                try:
                    session.files[path] = apply_diff(session.files.get(path, ""), diff["diff"])
                    applied.append(path)
                except PatchError as e:
                    logger.warning(f"Failed to apply diff for {path} in {session_id}: {e}")
                    failures.append({"path": path, "error": str(e)})
                    remaining.append(diff)

            session.pending_diffs = remaining
            session.updated_at = _now()

        return applied, failures

    def collect_garbage(self) -> int:
        """
        Drop sessions past their maximum age and cancelled sessions past
        their grace period.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if now - self._started[session_id] > self.max_age_seconds
                or (session.expires_at is not None and now >= session.expires_at)
            ]
            for session_id in expired:
                del self._sessions[session_id]
                del self._started[session_id]

        if expired:
            logger.info(f"Collected {len(expired)} expired code sessions")
        return len(expired)


def build_messages(
    prompt: str,
    files: dict[str, str],
    rules: list[str],
    mode: str = "hybrid",
    context: Optional[dict[str, Any]] = None,
) -> list[dict[str, str]]:
    """Chat messages for a code session request."""
    system = SYSTEM_PROMPT + f"\n\nMode: {mode}"
    if rules:
        system += "\n\nRules:\n" + "\n".join(f"- {rule}" for rule in rules)

    parts = []
    for path, content in files.items():
        parts.append(f"File: {path}\n```\n{content}\n```")
    if context:
        parts.append("Context:\n" + json.dumps(context, indent=2, default=str))
    parts.append(prompt)

    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n\n".join(parts)},
    ]


def process_session(
    store: SessionStore,
    chat_service: ChatService,
    session_id: str,
    request: ChatRequest,
) -> None:
    """
    Run a code session to completion (background task).

    Progress moves 10 (started) -> 50 (model answered) -> 80 (commands
    parsed) -> 100 (completed). Failures leave the session in ``error``.
    A cancelled session is never updated again.
    """
    if not store.update(session_id, status="processing", progress=10):
        return

    try:
        chat_service.validate(request)
        result = chat_service.generate(request)
    except (ChatRequestError, ProviderError) as e:
        logger.error(f"Code session {session_id} failed: {e}")
        store.update(session_id, status="error", error=str(e))
        return
    except Exception as e:
        logger.error(f"Code session {session_id} crashed: {e}", exc_info=True)
        store.update(session_id, status="error", error=f"Internal error: {e}")
        return

    if not store.update(session_id, progress=50, response=result.response.content):
        return

    commands = result.commands
    pending = [d.to_dict() for d in commands.write_diffs if d.path] if commands else []
    requested = list(commands.request_files) if commands else []
    if not store.update(session_id, progress=80, pending_diffs=pending, requested_files=requested):
        return

    store.update(session_id, status="completed", progress=100)
    logger.info(
        f"Code session {session_id} completed: {len(pending)} diffs, "
        f"{len(requested)} requested files"
    )


class SessionCollector:
    """Background thread that sweeps a SessionStore on an interval."""

    def __init__(self, store: SessionStore, interval_seconds: float = 300):
        self.store = store
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.store.collect_garbage()
            except Exception as e:
                logger.error(f"Code session sweep failed: {e}", exc_info=True)

    def start(self) -> None:
        if self.is_running:
            logger.warning("Code session collector is already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="code-session-collector"
        )
        self._thread.start()
        logger.info("Started code session collector")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Stopped code session collector")
