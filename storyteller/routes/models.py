"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel

from storyteller.models import ChatStreamRequest, Role, SessionSettings, WireModel  # noqa: F401


class CreateStory(WireModel):
    title: str
    genre: str = ""
    world_settings: str = ""
    prologue: str = ""
    prompt_template: str | None = None
    description: str = ""
    starting_situation: str = ""
    example_user_input: str = ""
    example_ai_response: str = ""


class StartSession(WireModel):
    title: str = ""


class UpdateSession(SessionSettings):
    """Partial settings update; only fields present in the body are written."""


class CreateMessage(WireModel):
    role: Role
    content: str
    character: str | None = None


class UpdateConfig(BaseModel):
    llm_connections: list[dict] | None = None
    default_connection: str | None = None
    recent_message_count: int | None = None
    auto_summary_interval: int | None = None
    summary_message_limit: int | None = None
