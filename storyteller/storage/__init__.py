"""File-based JSON storage.

Data layout:
  data/
    stories/
      <id>.json          Story template (title, genre, world_settings, prologue,
                         description, starting_situation, example_*)
    sessions/
      <id>.json          Session metadata + settings (conversation_profile,
                         user_note, summary_memory, session_provider, session_model)
                         + auto-summary counters (ai_message_count,
                         last_summary_turn)
      <id>/
        messages.json    Append-only transcript (user / assistant messages)
    config.json          App settings (LLM connections, default connection,
                         history and auto-summary limits)

Ids are small integers allocated per directory. Messages get the next id in
their session and a UTC ISO timestamp on append.
"""

# Re-export all public symbols so `from storyteller import storage` works.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    sessions_dir,
    stories_dir,
)

from .stories import (  # noqa: F401
    create_story,
    delete_story,
    get_story,
    list_stories,
)

from .sessions import (  # noqa: F401
    create_session,
    delete_session,
    get_session,
    get_session_settings,
    list_sessions,
    increment_ai_message_count,
    record_summary,
    touch_session,
    update_session_settings,
)

from .messages import (  # noqa: F401
    append_message,
    delete_message,
    get_messages,
    get_recent_ai_messages,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)
