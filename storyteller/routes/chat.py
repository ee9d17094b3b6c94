"""Chat-stream endpoint: narrator answer as ``data: <json>`` lines.

The route validates everything it can before the first byte is sent; those
failures are ordinary JSON errors. Once streaming has started, an LLM failure
becomes a final ``{"error": ...}`` frame. Chat messages are never persisted
here; the client stores the user message before calling and the assistant
message after the done frame.
"""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from storyteller import storage
from storyteller.llm import LLM, LLMError, resolve_llm
from storyteller.models import ChatStreamRequest, DoneFrame, ErrorFrame, SessionSettings, TextFrame
from storyteller.prompts import PromptError, build_narrator_prompt
from storyteller.render import encode_frame

logger = logging.getLogger(__name__)

router = APIRouter()


def llm_for_session(request: Request, settings: SessionSettings) -> LLM:
    """Injected LLM (app.state.llm) first, otherwise the session's connection."""
    injected = getattr(request.app.state, "llm", None)
    if injected is not None:
        return injected
    try:
        return resolve_llm(storage.get_config(), settings.session_provider, settings.session_model)
    except LLMError as e:
        raise HTTPException(400, str(e))


async def stream_answer(llm: LLM, prompt: str) -> AsyncIterator[str]:
    """Relay LLM deltas as text frames, then one done or error frame."""
    parts: list[str] = []
    try:
        async for delta in llm.stream("narrator", prompt):
            parts.append(delta)
            yield encode_frame(TextFrame(delta=delta))
    except LLMError as e:
        logger.warning("Narrator stream failed after %d chunks: %s", len(parts), e)
        yield encode_frame(ErrorFrame(message=str(e)))
        return
    yield encode_frame(DoneFrame(full_text="".join(parts)))


@router.post("/chat/stream")
async def chat_stream(body: ChatStreamRequest, request: Request):
    """Stream the narrator's continuation of a session."""
    if not body.user_message.strip():
        raise HTTPException(400, "Message is empty")
    session = storage.get_session(body.session_id)
    if not session:
        raise HTTPException(404, "Session not found")
    if session["story_id"] != body.story_id:
        raise HTTPException(400, "Session does not belong to this story")
    story = storage.get_story(body.story_id)
    if not story:
        raise HTTPException(404, "Story not found")

    settings = storage.get_session_settings(body.session_id)
    llm = llm_for_session(request, settings)
    config = storage.get_config()
    try:
        prompt = build_narrator_prompt(
            story,
            settings,
            storage.get_messages(body.session_id),
            body.user_message,
            recent=config["recent_message_count"],
        )
    except PromptError as e:
        raise HTTPException(400, str(e))

    logger.info("chat stream session=%d prompt_len=%d", body.session_id, len(prompt))
    return StreamingResponse(
        stream_answer(llm, prompt),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
