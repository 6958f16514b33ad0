"""
Code session API route.

A single POST endpoint dispatching on ``action``: start a session, poll its
status, apply its pending diffs or cancel it.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from convospace.api.dependencies import get_chat_service, get_session_store
from convospace.api.schemas import CodeActionRequest
from convospace.chat.service import ChatRequest, ChatService
from convospace.code.sessions import SessionStore, build_messages, process_session
from convospace.config import settings
from convospace.exceptions import CodeSessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_session_id(body: CodeActionRequest) -> str:
    if not body.session_id:
        raise HTTPException(status_code=400, detail="Session ID is required")
    return body.session_id


def _start_session(
    body: CodeActionRequest,
    store: SessionStore,
    service: ChatService,
    background_tasks: BackgroundTasks,
) -> dict:
    if not body.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")

    session = store.create(body.selected_files)
    request = ChatRequest(
        messages=build_messages(
            body.prompt, body.selected_files, body.rules, body.mode, body.context
        ),
        provider=body.provider or settings.default_llm_provider,
        model=body.model or settings.default_model,
        max_tokens=settings.chat_max_tokens,
        temperature=settings.default_temperature,
        stream=False,
        api_keys=body.api_keys,
    )
    background_tasks.add_task(process_session, store, service, session.id, request)
    return {"success": True, "sessionId": session.id}


def _apply_diffs(body: CodeActionRequest, store: SessionStore) -> dict:
    session_id = _require_session_id(body)
    applied, failed = store.apply_diffs(session_id, body.diff_paths)
    return {"success": True, "appliedCount": len(applied), "failed": failed}


@router.post("")
def code_action(
    body: CodeActionRequest,
    background_tasks: BackgroundTasks,
    store: SessionStore = Depends(get_session_store),
    service: ChatService = Depends(get_chat_service),
) -> dict:
    """
    Dispatch a code session action.

    Actions: ``start_session``, ``get_session_status``, ``apply_diffs``,
    ``cancel_session``.
    """
    try:
        if body.action == "start_session":
            return _start_session(body, store, service, background_tasks)

        if body.action == "get_session_status":
            return {"success": True, "session": store.snapshot(_require_session_id(body))}

        if body.action == "apply_diffs":
            return _apply_diffs(body, store)

        if body.action == "cancel_session":
            store.cancel(_require_session_id(body))
            return {"success": True}

    except CodeSessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    raise HTTPException(status_code=400, detail="Invalid action")
