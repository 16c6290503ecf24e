"""
Health check endpoint.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel
from datetime import datetime

from app.utils.config import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    archiver_running: bool
    pending_events: int
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Verifies:
    - API is running
    - Background archive pass is scheduled
    """
    settings = get_settings()
    manager = getattr(request.app.state, "archive_manager", None)

    running = manager is not None and manager.is_running
    pending = len(manager.events) if manager is not None else 0

    return HealthResponse(
        status="healthy" if running else "degraded",
        timestamp=datetime.now(),
        archiver_running=running,
        pending_events=pending,
        version=settings.api_version
    )
