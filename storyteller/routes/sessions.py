"""Session settings, transcript, and summary memory endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from storyteller import storage
from storyteller.llm import LLM, LLMError
from storyteller.prompts import PromptError
from storyteller.summary import auto_summarize, refresh_session_summary, summary_due

from .chat import llm_for_session
from .models import CreateMessage, UpdateSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_session(session_id: int) -> dict:
    session = storage.get_session(session_id)
    if not session:
        raise HTTPException(404, "Session not found")
    return session


@router.get("/sessions/{session_id}")
async def get_session(session_id: int):
    return _require_session(session_id)


@router.patch("/sessions/{session_id}")
async def update_session(session_id: int, body: UpdateSession):
    """Update session settings (conversationProfile, userNote, summaryMemory, sessionProvider, sessionModel)."""
    _require_session(session_id)
    settings = storage.update_session_settings(session_id, body.model_dump(exclude_unset=True))
    return settings.wire()


@router.get("/sessions/{session_id}/messages")
async def get_messages(session_id: int):
    """Get the session transcript."""
    _require_session(session_id)
    return [m.wire() for m in storage.get_messages(session_id)]


@router.post("/sessions/{session_id}/messages", status_code=201)
async def create_message(
    session_id: int, body: CreateMessage, request: Request, background: BackgroundTasks
):
    """Append one user or assistant message.

    Assistant messages count toward the auto-summary interval; when it is
    reached the summary is refreshed in the background.
    """
    _require_session(session_id)
    message = storage.append_message(session_id, body.role, body.content, body.character)
    if body.role == "assistant":
        storage.increment_ai_message_count(session_id)
        if summary_due(storage.get_session(session_id), storage.get_config()):
            llm = _summary_llm(request, session_id)
            if llm is not None:
                background.add_task(auto_summarize, session_id, llm)
    return message.wire()


def _summary_llm(request: Request, session_id: int) -> LLM | None:
    try:
        return llm_for_session(request, storage.get_session_settings(session_id))
    except HTTPException as e:
        logger.info("Skipping auto-summary session=%d: %s", session_id, e.detail)
        return None


@router.delete("/sessions/{session_id}/messages/{message_id}")
async def delete_message(session_id: int, message_id: int):
    _require_session(session_id)
    try:
        messages = storage.delete_message(session_id, message_id)
    except KeyError:
        raise HTTPException(404, "Message not found")
    return [m.wire() for m in messages]


@router.post("/sessions/{session_id}/summary")
async def refresh_summary(session_id: int, request: Request):
    """Regenerate the summary memory from the most recent assistant messages."""
    _require_session(session_id)
    llm = llm_for_session(request, storage.get_session_settings(session_id))
    try:
        settings = await refresh_session_summary(session_id, llm)
    except (ValueError, PromptError) as e:
        raise HTTPException(400, str(e))
    except LLMError as e:
        raise HTTPException(502, str(e))
    return settings.wire()
