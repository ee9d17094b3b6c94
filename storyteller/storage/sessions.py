"""Play sessions and their per-conversation settings."""

import shutil
from datetime import datetime, timezone
from typing import Any

from storyteller.models import SessionSettings

from .core import next_id, read_json, sessions_dir, write_json

SETTINGS_FIELDS = tuple(SessionSettings.model_fields)


def _session_path(session_id: int):
    return sessions_dir() / f"{session_id}.json"


def list_sessions(story_id: int | None = None) -> list[dict[str, Any]]:
    sessions = [read_json(p) for p in sessions_dir().glob("*.json")]
    if story_id is not None:
        sessions = [s for s in sessions if s["story_id"] == story_id]
    return sorted(sessions, key=lambda s: s["id"])


def get_session(session_id: int) -> dict[str, Any] | None:
    path = _session_path(session_id)
    if not path.is_file():
        return None
    return read_json(path)


def create_session(story_id: int, title: str = "") -> dict[str, Any]:
    """Start a new playthrough of a story with empty settings and zeroed summary counters."""
    now = datetime.now(timezone.utc).isoformat()
    session: dict[str, Any] = {
        "id": next_id(sessions_dir()),
        "story_id": story_id,
        "title": title,
        "created_at": now,
        "updated_at": now,
        "ai_message_count": 0,
        "last_summary_turn": 0,
    }
    session.update(SessionSettings().model_dump())
    write_json(_session_path(session["id"]), session)
    (sessions_dir() / str(session["id"])).mkdir(exist_ok=True)
    return session


def get_session_settings(session_id: int) -> SessionSettings | None:
    session = get_session(session_id)
    if session is None:
        return None
    return SessionSettings.model_validate(
        {key: session.get(key) for key in SETTINGS_FIELDS}
    )


def update_session_settings(session_id: int, fields: dict[str, Any]) -> SessionSettings | None:
    """Overwrite the given settings fields. Unknown keys are ignored."""
    session = get_session(session_id)
    if session is None:
        return None
    for key, value in fields.items():
        if key in SETTINGS_FIELDS:
            session[key] = value
    touch_session(session_id, session)
    return get_session_settings(session_id)


def touch_session(session_id: int, session: dict[str, Any] | None = None) -> None:
    """Bump updated_at (and persist ``session`` if given)."""
    if session is None:
        session = get_session(session_id)
        if session is None:
            return
    session["updated_at"] = datetime.now(timezone.utc).isoformat()
    write_json(_session_path(session_id), session)


def delete_session(session_id: int) -> bool:
    """Delete a session and its transcript."""
    path = _session_path(session_id)
    if not path.is_file():
        return False
    path.unlink()
    shutil.rmtree(sessions_dir() / str(session_id), ignore_errors=True)
    return True


# Auto-summary bookkeeping: ai_message_count counts stored assistant turns,
# last_summary_turn is the count at the last summary refresh.

def increment_ai_message_count(session_id: int) -> int:
    session = get_session(session_id)
    if session is None:
        raise KeyError(f"Session {session_id} not found")
    session["ai_message_count"] = session.get("ai_message_count", 0) + 1
    touch_session(session_id, session)
    return session["ai_message_count"]


def record_summary(session_id: int, summary: str, turn: int | None = None) -> SessionSettings | None:
    """Store a new summary memory and mark the turn it covers."""
    session = get_session(session_id)
    if session is None:
        return None
    session["summary_memory"] = summary
    session["last_summary_turn"] = session.get("ai_message_count", 0) if turn is None else turn
    touch_session(session_id, session)
    return get_session_settings(session_id)
