"""Core domain models.

Every stage of the streaming/rendering pipeline and every storage function
operates on these types. Pydantic is used for validation and serialisation at
each data boundary; wire payloads use camelCase names (``sessionId``,
``fullText``) while Python code uses snake_case attributes.
"""

from __future__ import annotations

import html
import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models that cross the HTTP boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Stream frames
# ---------------------------------------------------------------------------

class TextFrame(WireModel):
    kind: Literal["text"] = "text"
    delta: str


class ErrorFrame(WireModel):
    kind: Literal["error"] = "error"
    message: str


class DoneFrame(WireModel):
    kind: Literal["done"] = "done"
    full_text: str | None = None  # server's own accumulated copy


StreamFrame = Annotated[
    Union[TextFrame, ErrorFrame, DoneFrame],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Segments and render blocks
# ---------------------------------------------------------------------------

SegmentType = Literal["narration", "dialogue", "summary", "text"]


class Segment(BaseModel):
    """A typed span of the unwrapped narrative string."""

    type: SegmentType
    content: str
    character: str | None = None  # dialogue only


class DialogueLine(BaseModel):
    speaker: str | None = None
    quote: str


BlockKind = Literal["prose", "dialogue", "summary", "raw"]

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_EMPHASIS = re.compile(r"\*(.+?)\*")


def _inline_markup(text: str) -> str:
    escaped = html.escape(text, quote=True)
    escaped = _BOLD.sub(r"<strong>\1</strong>", escaped)
    escaped = _EMPHASIS.sub(r"<em>\1</em>", escaped)
    return escaped.replace("\n", "<br>")


class RenderBlock(BaseModel):
    """One presentation block produced by the composer."""

    kind: BlockKind
    text: str = ""
    lines: list[DialogueLine] = Field(default_factory=list)
    speaker: str | None = None
    label: str | None = None
    cursor: bool = False  # typing indicator while a response is in flight

    def to_html(self) -> str:
        if self.kind == "dialogue":
            parts = []
            for line in self.lines:
                quote = f'<span class="quote">"{html.escape(line.quote)}"</span>'
                if line.speaker:
                    parts.append(f"<p><b>{html.escape(line.speaker)}</b> {quote}</p>")
                else:
                    parts.append(f"<p>{quote}</p>")
            body = "".join(parts)
        elif self.kind == "summary":
            body = (
                f'<div class="label">{html.escape(self.label or "")}</div>'
                f"<pre>{html.escape(self.text)}</pre>"
            )
        elif self.kind == "raw":
            body = f"<p>{html.escape(self.text)}</p>"
        else:
            body = f"<p>{_inline_markup(self.text)}</p>"
        if self.cursor:
            body += '<span class="cursor"></span>'
        return f'<div class="block block-{self.kind}">{body}</div>'


# ---------------------------------------------------------------------------
# Persisted entities (owned by the storage collaborator)
# ---------------------------------------------------------------------------

Role = Literal["user", "assistant"]


class Message(WireModel):
    """A single entry in a session's append-only transcript."""

    id: int
    session_id: int
    role: Role
    content: str
    character: str | None = None
    created_at: str


class SessionSettings(WireModel):
    """Per-conversation configuration, editable while playing."""

    conversation_profile: str | None = None
    user_note: str | None = None
    summary_memory: str | None = None
    session_provider: str | None = None
    session_model: str | None = None


class ChatStreamRequest(WireModel):
    session_id: int
    user_message: str
    story_id: int
