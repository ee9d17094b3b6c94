"""Story template endpoints and session start."""

from fastapi import APIRouter, HTTPException

from storyteller import storage

from .models import CreateStory, StartSession

router = APIRouter()


@router.get("/stories")
async def list_stories():
    """List all story templates."""
    return storage.list_stories()


@router.post("/stories", status_code=201)
async def create_story(body: CreateStory):
    """Create a story template."""
    if not body.title.strip():
        raise HTTPException(400, "Title is required")
    return storage.create_story(**body.model_dump())


@router.get("/stories/{story_id}")
async def get_story(story_id: int):
    story = storage.get_story(story_id)
    if not story:
        raise HTTPException(404, "Story not found")
    return story


@router.delete("/stories/{story_id}")
async def delete_story(story_id: int):
    """Delete a story together with its sessions and transcripts."""
    if not storage.delete_story(story_id):
        raise HTTPException(404, "Story not found")
    return {"ok": True}


@router.get("/stories/{story_id}/sessions")
async def list_story_sessions(story_id: int):
    """List play sessions of a story."""
    if not storage.get_story(story_id):
        raise HTTPException(404, "Story not found")
    return storage.list_sessions(story_id)


@router.post("/stories/{story_id}/sessions", status_code=201)
async def start_session(story_id: int, body: StartSession):
    """Start a new play session; the prologue becomes the first assistant message."""
    story = storage.get_story(story_id)
    if not story:
        raise HTTPException(404, "Story not found")
    session = storage.create_session(story_id, body.title or story["title"])
    if story.get("prologue"):
        storage.append_message(session["id"], "assistant", story["prologue"])
    return session
