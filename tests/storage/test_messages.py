"""Tests for transcript storage."""

import pytest

from storyteller import storage


def _session() -> int:
    story = storage.create_story("무림영웅전", genre="무협")
    return storage.create_session(story["id"])["id"]


def test_get_messages_empty():
    """Returns [] when no messages file exists."""
    assert storage.get_messages(_session()) == []


def test_append_assigns_ids_and_timestamps():
    sid = _session()
    first = storage.append_message(sid, "user", "주변을 둘러본다")
    second = storage.append_message(sid, "assistant", "<Narration>객잔이 보인다.</Narration>")
    assert (first.id, second.id) == (1, 2)
    assert first.session_id == sid
    assert first.created_at


def test_append_and_get_round_trip():
    sid = _session()
    storage.append_message(sid, "user", "안녕")
    storage.append_message(sid, "assistant", "반갑소.", character="조설연")
    result = storage.get_messages(sid)
    assert [m.role for m in result] == ["user", "assistant"]
    assert result[1].character == "조설연"
    assert result[1].content == "반갑소."


def test_messages_are_per_session():
    a, b = _session(), _session()
    storage.append_message(a, "user", "A")
    assert storage.get_messages(b) == []


def test_delete_message():
    sid = _session()
    storage.append_message(sid, "user", "A")
    storage.append_message(sid, "assistant", "B")
    remaining = storage.delete_message(sid, 1)
    assert [m.content for m in remaining] == ["B"]
    # ids are not reused after a delete
    assert storage.append_message(sid, "user", "C").id == 3


def test_delete_missing_message_raises():
    sid = _session()
    with pytest.raises(KeyError):
        storage.delete_message(sid, 99)


def test_recent_ai_messages_oldest_first():
    sid = _session()
    for i in range(4):
        storage.append_message(sid, "user", f"u{i}")
        storage.append_message(sid, "assistant", f"a{i}")
    recent = storage.get_recent_ai_messages(sid, 2)
    assert [m.content for m in recent] == ["a2", "a3"]
    assert len(storage.get_recent_ai_messages(sid, 10)) == 4
    assert storage.get_recent_ai_messages(sid, 0) == []
