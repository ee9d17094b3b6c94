"""Story template CRUD (title, genre, world settings, prologue, examples)."""

from datetime import datetime, timezone
from typing import Any

from .core import next_id, read_json, stories_dir, write_json
from .sessions import delete_session, list_sessions


def list_stories() -> list[dict[str, Any]]:
    stories = [read_json(p) for p in stories_dir().glob("*.json")]
    return sorted(stories, key=lambda s: s["id"])


def get_story(story_id: int) -> dict[str, Any] | None:
    path = stories_dir() / f"{story_id}.json"
    if not path.is_file():
        return None
    return read_json(path)


def create_story(
    title: str,
    genre: str = "",
    world_settings: str = "",
    prologue: str = "",
    prompt_template: str | None = None,
    description: str = "",
    starting_situation: str = "",
    example_user_input: str = "",
    example_ai_response: str = "",
) -> dict[str, Any]:
    story = {
        "id": next_id(stories_dir()),
        "title": title,
        "genre": genre,
        "world_settings": world_settings,
        "prologue": prologue,
        "prompt_template": prompt_template,
        "description": description,
        "starting_situation": starting_situation,
        "example_user_input": example_user_input,
        "example_ai_response": example_ai_response,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    write_json(stories_dir() / f"{story['id']}.json", story)
    return story


def delete_story(story_id: int) -> bool:
    """Delete a story and every session played from it."""
    path = stories_dir() / f"{story_id}.json"
    if not path.is_file():
        return False
    path.unlink()
    for session in list_sessions(story_id):
        delete_session(session["id"])
    return True
