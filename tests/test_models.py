"""Tests for storyteller.models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from storyteller.models import (
    ChatStreamRequest,
    DoneFrame,
    Message,
    Segment,
    SessionSettings,
    StreamFrame,
)


class TestStreamFrame:
    def test_discriminated_on_kind(self) -> None:
        adapter = TypeAdapter(StreamFrame)
        frame = adapter.validate_python({"kind": "done", "fullText": "끝"})
        assert isinstance(frame, DoneFrame)
        assert frame.full_text == "끝"

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TypeAdapter(StreamFrame).validate_python({"kind": "progress"})


class TestMessage:
    def test_wire_uses_camel_case(self) -> None:
        m = Message(id=1, session_id=7, role="user", content="안녕", created_at="2026-01-01T00:00:00Z")
        wire = m.wire()
        assert wire["sessionId"] == 7
        assert wire["createdAt"] == "2026-01-01T00:00:00Z"

    def test_accepts_camel_and_snake_input(self) -> None:
        a = Message.model_validate({"id": 1, "sessionId": 2, "role": "assistant", "content": "x", "createdAt": "t"})
        b = Message.model_validate({"id": 1, "session_id": 2, "role": "assistant", "content": "x", "created_at": "t"})
        assert a == b

    def test_invalid_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Message(id=1, session_id=1, role="narrator", content="x", created_at="t")


class TestSegment:
    def test_character_defaults_to_none(self) -> None:
        assert Segment(type="narration", content="x").character is None

    def test_invalid_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Segment(type="scene", content="x")


def test_session_settings_all_optional() -> None:
    settings = SessionSettings.model_validate({"userNote": "메모"})
    assert settings.user_note == "메모"
    assert settings.session_provider is None


def test_chat_stream_request_wire_names() -> None:
    body = ChatStreamRequest(session_id=1, user_message="문을 연다", story_id=3).wire()
    assert body == {"sessionId": 1, "userMessage": "문을 연다", "storyId": 3}
