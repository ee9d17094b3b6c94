"""FastAPI API endpoints under /api.

Endpoint groups: health + settings, stories (templates and session start),
sessions (settings, transcript, summary memory), chat (streaming narrator).
A session's child resources (messages, summary) are nested under
/api/sessions/{id}/. Errors are returned as {"error": "..."}.
"""

from fastapi import APIRouter

from .chat import router as chat_router
from .sessions import router as sessions_router
from .settings import router as settings_router
from .stories import router as stories_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(stories_router)
router.include_router(sessions_router)
router.include_router(chat_router)
