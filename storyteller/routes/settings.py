"""Health check and global settings endpoints."""

from fastapi import APIRouter

from storyteller import storage

from .models import UpdateConfig

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get global app settings (LLM connections, default connection)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: UpdateConfig):
    """Update global app settings (partial merge)."""
    return storage.update_config(body.model_dump(exclude_none=True))
