"""Summary memory: a running turn timeline distilled from assistant messages.

Each stored assistant message bumps the session's ai_message_count. Once
``auto_summary_interval`` new assistant turns have accumulated since
last_summary_turn, the timeline is regenerated from the most recent
``summary_message_limit`` assistant messages and carried forward.
"""

import logging
from typing import Any

from storyteller import storage
from storyteller.llm import LLM, LLMError
from storyteller.models import Message, SessionSettings
from storyteller.prompts import PromptError, build_summary_prompt
from storyteller.render import unwrap_stored

logger = logging.getLogger(__name__)


async def generate_summary(
    messages: list[Message],
    existing_summary: str | None,
    llm: LLM,
    template: str | None = None,
) -> str:
    """Return the updated timeline; the existing one is carried forward by the prompt."""
    ai_messages = [unwrap_stored(m.content) for m in messages if m.role == "assistant"]
    if not ai_messages:
        raise ValueError("No assistant messages to summarize")
    prompt = build_summary_prompt(ai_messages, existing_summary, template)
    summary = (await llm("summary", prompt)).strip()
    logger.info("summary generated messages=%d len=%d", len(ai_messages), len(summary))
    return summary


def summary_due(session: dict[str, Any], config: dict[str, Any]) -> bool:
    interval = config.get("auto_summary_interval", 0)
    if interval <= 0:
        return False
    pending = session.get("ai_message_count", 0) - session.get("last_summary_turn", 0)
    return pending >= interval


async def refresh_session_summary(session_id: int, llm: LLM) -> SessionSettings:
    """Regenerate and store a session's summary memory.

    Raises ValueError when there is nothing to summarize; LLMError and
    PromptError propagate from the LLM call and the template.
    """
    settings = storage.get_session_settings(session_id)
    if settings is None:
        raise KeyError(f"Session {session_id} not found")
    limit = storage.get_config()["summary_message_limit"]
    recent = storage.get_recent_ai_messages(session_id, limit)
    summary = await generate_summary(recent, settings.summary_memory, llm)
    return storage.record_summary(session_id, summary)


async def auto_summarize(session_id: int, llm: LLM) -> None:
    """Background refresh after an assistant turn; failures are logged only."""
    try:
        await refresh_session_summary(session_id, llm)
    except (LLMError, PromptError, ValueError, KeyError) as e:
        logger.warning("Auto-summary failed session=%d: %s", session_id, e)
        return
    logger.info("Auto-summary refreshed session=%d", session_id)
