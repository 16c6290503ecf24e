"""
Admin endpoints for archive management.

Includes:
- In-flight motion event listing
- Forced archive flush
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from typing import List
from loguru import logger

from app.models.schemas import ArchiveEventSummary

router = APIRouter()


class ArchiveEventList(BaseModel):
    """In-flight motion events."""
    events: List[ArchiveEventSummary]
    total: int


class FlushResponse(BaseModel):
    """Flush operation response."""
    status: str
    actioned: int
    remaining: int


def _get_manager(request: Request):
    manager = getattr(request.app.state, "archive_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Archiver not initialized")
    return manager


@router.get("/archive/events", response_model=ArchiveEventList)
async def list_archive_events(request: Request):
    """
    List motion events waiting to be archived.

    Returns:
        Events with their registered files
    """
    events = _get_manager(request).summary()
    return ArchiveEventList(events=events, total=len(events))


@router.post("/archive/flush", response_model=FlushResponse)
async def flush_archive(request: Request):
    """
    Archive every pending event now, ignoring retention windows.

    Returns:
        Flush status
    """
    manager = _get_manager(request)
    logger.info("Manual archive flush triggered")

    outcomes = await manager.run_pass(enforce_eligibility=False)

    return FlushResponse(
        status="completed",
        actioned=sum(1 for o in outcomes if o.actioned),
        remaining=len(manager.events)
    )
