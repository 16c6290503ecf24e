"""
Pydantic models for the Detection Archive.

Shared data models across the application.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


# =====================================================
# Trigger Models
# =====================================================

class ArchiveConfig(BaseModel):
    """Per-trigger archive settings."""
    enabled: bool = True
    # archive images blocked by masks into the semi-match folder
    semi_matched_archive_enabled: bool = False
    time_to_keep: float = Field(default=60.0, ge=0)  # seconds


class TriggerConfig(BaseModel):
    """A trigger watching for detection images."""
    name: str
    watch_pattern: str = "*"
    archive_config: Optional[ArchiveConfig] = None


class TriggerFlags(BaseModel):
    """Flags computed for a prediction against a trigger."""
    registered: bool = False
    confidence_threshold_met: bool = False
    blocking_mask_overlap: bool = False
    active_region_overlap: bool = False
    is_triggered: bool = False


class FlaggedPrediction(BaseModel):
    """A prediction together with the flags it raised."""
    label: str
    confidence: float = 0.0
    flags: TriggerFlags = Field(default_factory=TriggerFlags)


# =====================================================
# API Models
# =====================================================

class ArchiveEntrySummary(BaseModel):
    """Registered file within an in-flight event."""
    file: str
    action: str
    folder: Optional[str] = None
    attempt: int
    success: bool
    date_added: datetime
    date_eligible: datetime


class ArchiveEventSummary(BaseModel):
    """In-flight motion event."""
    event_id: str
    start_time: Optional[datetime] = None
    base_path: str
    eligible: bool
    resolved: bool
    entries: List[ArchiveEntrySummary] = []
