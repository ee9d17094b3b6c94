"""Conversation session controller: the client side of one play session.

Turn lifecycle:

    idle → sending → streaming → completed
                 ↘            ↘ failed

  sending    The user message is persisted and appended to the transcript
             before the chat-stream request is issued. At most one turn is in
             flight per controller; send() while busy is a no-op.
  streaming  Text frames grow the per-turn accumulator and the live preview.
             The done frame's fullText (or the accumulator when absent) is
             unwrapped and persisted as the assistant message.
  failed     Server errors are shown verbatim, transport errors with a
             generic message. The failed input is remembered; retry() resends
             it without writing a second user message. cancel() interrupts the
             stream task even while a read is stalled; a turn abandoned by the
             host (task cancelled) or broken by any other error also ends here.

Completed and failed both leave the controller ready for the next turn.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

import httpx

from storyteller.models import (
    ChatStreamRequest,
    Message,
    RenderBlock,
    Role,
    SessionSettings,
)
from storyteller.render import decode_stream, render_message, render_preview, unwrap_streamed

logger = logging.getLogger(__name__)

CHAT_STREAM_PATH = "/api/chat/stream"

CONNECTION_ERROR = "서버와 연결할 수 없습니다. 잠시 후 다시 시도해 주세요."
CANCELLED_ERROR = "응답 생성이 취소되었습니다."


class TurnState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class CancelToken:
    """Checked by the read loop between chunks."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


# ---------------------------------------------------------------------------
# Message store: where the controller persists transcript entries
# ---------------------------------------------------------------------------

class MessageStore(Protocol):
    async def create_message(
        self, session_id: int, role: Role, content: str, character: str | None = None
    ) -> Message: ...


class HttpMessageStore:
    """Persists messages through POST /api/sessions/{id}/messages."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def create_message(
        self, session_id: int, role: Role, content: str, character: str | None = None
    ) -> Message:
        body = {"role": role, "content": content}
        if character is not None:
            body["character"] = character
        resp = await self._client.post(f"/api/sessions/{session_id}/messages", json=body)
        resp.raise_for_status()
        return Message.model_validate(resp.json())


def _error_from(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return f"HTTP {resp.status_code}"


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class ConversationController:
    """Owns the send/receive lifecycle of one session.

    Args:
        client:     httpx.AsyncClient whose base_url points at the server.
        session_id: Session being played.
        story_id:   Story the session belongs to.
        store:      Message store; defaults to HttpMessageStore(client).
        on_update:  Called with the controller after every visible change
                    (new transcript entry, preview growth, state change).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        session_id: int,
        story_id: int,
        store: MessageStore | None = None,
        on_update: Callable[[ConversationController], None] | None = None,
    ) -> None:
        self._client = client
        self.session_id = session_id
        self.story_id = story_id
        self.store = store or HttpMessageStore(client)
        self._on_update = on_update

        self.transcript: list[Message] = []
        self.preview = ""
        self.state = TurnState.IDLE
        self.last_error: str | None = None
        self.failed_input: str | None = None
        self._failed_persisted = False
        self._cancel: CancelToken | None = None
        self._stream_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # UI-facing state
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self.state in (TurnState.SENDING, TurnState.STREAMING)

    @property
    def preview_blocks(self) -> list[RenderBlock]:
        if not self.in_flight:
            return []
        return render_preview(self.preview)

    def blocks_for(self, message: Message) -> list[RenderBlock]:
        if message.role == "assistant":
            return render_message(message.content)
        return [RenderBlock(kind="prose", text=message.content)]

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self)

    # ------------------------------------------------------------------
    # Turn operations
    # ------------------------------------------------------------------

    async def send(self, text: str) -> bool:
        """Start a turn. Returns True when an assistant message was stored."""
        if not text.strip() or self.in_flight:
            return False
        self._begin()
        try:
            message = await self.store.create_message(self.session_id, "user", text)
        except asyncio.CancelledError:
            self._fail(text, CANCELLED_ERROR, user_persisted=False)
            raise
        except Exception as e:
            logger.warning("Could not store user message: %s", e)
            self._fail(text, CONNECTION_ERROR, user_persisted=False)
            return False
        self.transcript.append(message)
        self._notify()
        return await self._run_turn(text)

    async def retry(self) -> bool:
        """Resend the last failed input unchanged."""
        if self.in_flight or self.failed_input is None:
            return False
        text = self.failed_input
        if not self._failed_persisted:
            return await self.send(text)
        self._begin()
        return await self._run_turn(text)

    def cancel(self) -> None:
        """Abandon the in-flight turn; nothing further is persisted for it."""
        if self._cancel is None or not self.in_flight:
            return
        self._cancel.set()
        if self._stream_task is not None:
            self._stream_task.cancel()

    def _begin(self) -> None:
        self.state = TurnState.SENDING
        self.last_error = None
        self.preview = ""
        self._cancel = CancelToken()
        self._notify()

    def _fail(self, text: str, message: str, user_persisted: bool = True) -> None:
        self.state = TurnState.FAILED
        self.last_error = message
        self.failed_input = text
        self._failed_persisted = user_persisted
        self.preview = ""
        self._notify()

    async def _run_turn(self, text: str) -> bool:
        """Run the stream as its own task so cancel() can interrupt a stalled read."""
        cancel = self._cancel
        if cancel is not None and cancel.is_set():
            self._fail(text, CANCELLED_ERROR)
            return False
        self._stream_task = asyncio.create_task(self._stream_turn(text, cancel))
        try:
            return await self._stream_task
        except asyncio.CancelledError:
            self._fail(text, CANCELLED_ERROR)
            if cancel is not None and cancel.is_set():
                logger.info("Chat stream cancelled session=%d", self.session_id)
                return False
            raise
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.warning("Chat stream failed session=%d: %s", self.session_id, e)
            self._fail(text, CONNECTION_ERROR)
            return False
        except Exception:
            logger.exception("Chat turn failed session=%d", self.session_id)
            self._fail(text, CONNECTION_ERROR)
            return False
        finally:
            self._stream_task = None

    async def _stream_turn(self, text: str, cancel: CancelToken | None) -> bool:
        accumulated = ""
        request = ChatStreamRequest(
            session_id=self.session_id, user_message=text, story_id=self.story_id
        )
        async with self._client.stream("POST", CHAT_STREAM_PATH, json=request.wire()) as resp:
            if not resp.is_success:
                await resp.aread()
                self._fail(text, _error_from(resp))
                return False
            self.state = TurnState.STREAMING
            self._notify()

            async for frame in decode_stream(resp.aiter_bytes(), cancel):
                if frame.kind == "text":
                    accumulated += frame.delta
                    self.preview = accumulated
                    self._notify()
                elif frame.kind == "error":
                    self._fail(text, frame.message)
                    return False
                else:
                    content = unwrap_streamed(frame.full_text or accumulated)
                    message = await self.store.create_message(
                        self.session_id, "assistant", content
                    )
                    self.transcript.append(message)
                    self.preview = ""
                    self.failed_input = None
                    self.state = TurnState.COMPLETED
                    self._notify()
                    return True

        if cancel is not None and cancel.is_set():
            logger.info("Chat stream cancelled session=%d", self.session_id)
            self._fail(text, CANCELLED_ERROR)
        else:
            logger.warning("Chat stream ended without a done frame session=%d", self.session_id)
            self._fail(text, CONNECTION_ERROR)
        return False

    # ------------------------------------------------------------------
    # Transcript and settings
    # ------------------------------------------------------------------

    async def load_transcript(self) -> list[Message]:
        resp = await self._client.get(f"/api/sessions/{self.session_id}/messages")
        resp.raise_for_status()
        self.transcript = [Message.model_validate(m) for m in resp.json()]
        self._notify()
        return self.transcript

    async def load_settings(self) -> SessionSettings:
        resp = await self._client.get(f"/api/sessions/{self.session_id}")
        resp.raise_for_status()
        return SessionSettings.model_validate(resp.json())

    async def update_settings(self, **fields: str | None) -> SessionSettings:
        """PATCH the given settings, e.g. update_settings(user_note="...")."""
        body = SessionSettings(**fields).model_dump(by_alias=True, exclude_unset=True)
        resp = await self._client.patch(f"/api/sessions/{self.session_id}", json=body)
        resp.raise_for_status()
        return SessionSettings.model_validate(resp.json())
