"""Chat message storage (append-only transcript per session)."""

from datetime import datetime, timezone

from storyteller.models import Message, Role

from .core import read_json, sessions_dir, write_json
from .sessions import touch_session


def _messages_path(session_id: int):
    return sessions_dir() / str(session_id) / "messages.json"


def get_messages(session_id: int) -> list[Message]:
    """Load a session's transcript. Returns [] if none exist."""
    path = _messages_path(session_id)
    if not path.is_file():
        return []
    return [Message.model_validate(m) for m in read_json(path)]


def append_message(
    session_id: int,
    role: Role,
    content: str,
    character: str | None = None,
) -> Message:
    """Append one message, assigning the next id and a UTC timestamp."""
    existing = get_messages(session_id)
    message = Message(
        id=max((m.id for m in existing), default=0) + 1,
        session_id=session_id,
        role=role,
        content=content,
        character=character,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    existing.append(message)
    path = _messages_path(session_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_json(path, [m.model_dump() for m in existing])
    touch_session(session_id)
    return message


def delete_message(session_id: int, message_id: int) -> list[Message]:
    """Delete a message by id. Returns the updated transcript."""
    messages = get_messages(session_id)
    remaining = [m for m in messages if m.id != message_id]
    if len(remaining) == len(messages):
        raise KeyError(f"Message {message_id} not found")
    write_json(_messages_path(session_id), [m.model_dump() for m in remaining])
    touch_session(session_id)
    return remaining


def get_recent_ai_messages(session_id: int, limit: int) -> list[Message]:
    """The last ``limit`` assistant messages, oldest first."""
    if limit <= 0:
        return []
    ai = [m for m in get_messages(session_id) if m.role == "assistant"]
    return ai[-limit:]
