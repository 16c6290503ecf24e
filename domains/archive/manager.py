"""
Archive manager.

Keeps the registry of in-flight motion events and periodically archives
or purges every event whose retention window has passed.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from loguru import logger

from app.models.schemas import ArchiveConfig, ArchiveEventSummary, FlaggedPrediction, TriggerConfig
from app.utils.config import Settings, get_settings
from domains.archive.discovery import CandidateChecker, CompanionFinder
from domains.archive.file_ops import FileOperations
from domains.archive.identity import EventIdentity, resolve_identity, unmatched_identity
from domains.archive.motion_event import (
    ANNOTATIONS_FOLDER,
    ARCHIVE_FOLDER,
    SEMI_MATCHED_FOLDER,
    ArchiveAction,
    EventRules,
    ExecutionOutcome,
    MotionEvent,
    Move,
    Remove,
)


class ArchiveManager:
    """Registry and scheduler for motion-event archiving."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        file_ops: Optional[FileOperations] = None,
        checker: Optional[CandidateChecker] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize archive manager.

        Args:
            settings: Application settings (defaults to cached settings)
            file_ops: Move/remove primitives
            checker: Candidate existence check used for companion discovery
            clock: Source of the current time
        """
        self.settings = settings or get_settings()
        self.storage_root = str(Path(self.settings.storage_root).expanduser())
        self.file_ops = file_ops or FileOperations()
        self.clock = clock
        self.postfixes = self.settings.get_event_postfixes()

        self.rules = EventRules(
            storage_root=self.storage_root,
            longest_event_duration=self.settings.longest_event_duration,
            lead_in=self.settings.event_lead_in,
            retry_budget=self.settings.archive_retry_budget,
        )
        self.finder = CompanionFinder(
            annotations_dir=self.rules.annotations_dir,
            postfixes=self.postfixes,
            longest_event_duration=self.settings.longest_event_duration,
            checker=checker,
        )

        self._events: List[MotionEvent] = []
        self._task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Event] = None
        # Serializes passes from the periodic task, admin flush and shutdown
        self._pass_lock = asyncio.Lock()

    @property
    def events(self) -> Sequence[MotionEvent]:
        """Snapshot of in-flight events."""
        return tuple(self._events)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # Lifecycle ------------------------------------------------------------------------

    async def initialize(self, start_background: bool = True) -> None:
        """Create storage folders, reset the registry and start the periodic pass."""
        for folder in (
            os.path.join(self.storage_root, ARCHIVE_FOLDER),
            os.path.join(self.storage_root, SEMI_MATCHED_FOLDER),
            os.path.join(self.storage_root, ARCHIVE_FOLDER, ANNOTATIONS_FOLDER),
        ):
            await asyncio.to_thread(os.makedirs, folder, exist_ok=True)

        self._events = []
        if start_background:
            self._stopping = asyncio.Event()
            self._task = asyncio.create_task(self._run_periodically())

        logger.info(f"Archiver initialized, storage root {self.storage_root}")

    async def shutdown(self) -> None:
        """Stop the periodic pass and flush every pending event."""
        await self.stop_background()
        await self.run_pass(enforce_eligibility=False)
        logger.info("Archiver shut down")

    async def stop_background(self) -> None:
        """Stop scheduling passes, letting an in-flight pass finish."""
        if self._stopping is not None:
            self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.debug("Background archive stopped")

    async def _run_periodically(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.run_pass()
            except Exception as e:
                logger.error(f"Archive pass failed: {e}")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.settings.archive_interval)
            except asyncio.TimeoutError:
                pass

    # Registration ---------------------------------------------------------------------

    def process_trigger(
        self,
        file_path: str,
        trigger: TriggerConfig,
        predictions: Optional[List[FlaggedPrediction]] = None,
    ) -> Optional[MotionEvent]:
        """
        Register a triggered detection for archiving.

        Args:
            file_path: Detection image
            trigger: Trigger that fired
            predictions: Flagged predictions; when given, only semi-matched
                detections are archived and everything else is removed

        Returns:
            Owning event, or None when archiving is disabled for the trigger
        """
        config = trigger.archive_config if trigger else None
        if not config or not config.enabled:
            return None

        folder = ARCHIVE_FOLDER
        if predictions is not None:
            semi_matched = any(
                p.flags.registered and p.flags.confidence_threshold_met for p in predictions
            )
            if not (config.semi_matched_archive_enabled and semi_matched):
                return self.register_removal(file_path, config)
            logger.debug(f"Semi matched file {file_path}, adding to archive log")
            folder = SEMI_MATCHED_FOLDER

        return self.register_archival(file_path, config, folder)

    def remove_file(self, file_path: str, trigger: TriggerConfig) -> Optional[MotionEvent]:
        """Register a detection for removal, if archiving is enabled for the trigger."""
        config = trigger.archive_config if trigger else None
        if not config or not config.enabled:
            return None
        return self.register_removal(file_path, config)

    def register_removal(self, file_path: str, config: ArchiveConfig) -> MotionEvent:
        return self._mark_for_action(file_path, Remove(), config)

    def register_archival(
        self, file_path: str, config: ArchiveConfig, folder: Optional[str] = None
    ) -> MotionEvent:
        return self._mark_for_action(file_path, Move(folder), config)

    def _mark_for_action(self, file_path: str, action: ArchiveAction, config: ArchiveConfig) -> MotionEvent:
        file_path = os.path.abspath(file_path)
        identity = resolve_identity(file_path, self.postfixes, self.rules.lead_in)
        if identity is None:
            logger.warning(f"No timestamp in {file_path}, archiving it as a standalone event")
            identity = unmatched_identity(file_path)

        event = self._find_event(identity)
        if event is None:
            event = MotionEvent(identity, self.rules, self.finder)
            self._events.append(event)
            logger.info(f"Adding new event {event.event_id}/{event.start_time}")
        elif not event.matches(identity).earlier_first:
            event.merge(identity)

        event.add_entry(file_path, action, config, now=self.clock())
        return event

    def _find_event(self, identity: EventIdentity) -> Optional[MotionEvent]:
        for event in self._events:
            if event.matches(identity).same:
                return event
        return None

    # Archive pass ---------------------------------------------------------------------

    async def run_pass(self, enforce_eligibility: bool = True) -> List[ExecutionOutcome]:
        """
        Action every event once and evict resolved events.

        Args:
            enforce_eligibility: Respect retention windows (False on shutdown)

        Returns:
            Outcome per event that was in the registry at the start of the pass
        """
        async with self._pass_lock:
            return await self._run_pass(enforce_eligibility)

    async def _execute_event(self, event: MotionEvent, enforce_eligibility: bool) -> ExecutionOutcome:
        try:
            return await event.execute(
                self.file_ops.move,
                self.file_ops.remove,
                enforce_eligibility=enforce_eligibility,
                now=self.clock(),
            )
        except Exception as e:
            logger.error(f"Archiving event {event.event_id} {event.start_time} failed: {e!r}")
            return ExecutionOutcome(actioned=True, failed=[f for f, entry in event.entries.items() if not entry.success])

    async def _run_pass(self, enforce_eligibility: bool) -> List[ExecutionOutcome]:
        snapshot = list(self._events)
        outcomes = await asyncio.gather(*(
            self._execute_event(event, enforce_eligibility) for event in snapshot
        ))

        resolved = [e for e in self._events if e.is_resolved()]
        for event in resolved:
            exhausted = event.exhausted_entries()
            if exhausted:
                logger.warning(
                    f"Event {event.event_id} {event.start_time} dropped with unresolved entries: "
                    f"{[e.file for e in exhausted]}"
                )
        self._events = [e for e in self._events if not e.is_resolved()]

        actioned = sum(1 for o in outcomes if o.actioned)
        if actioned:
            logger.info(f"Archive pass actioned {actioned} events, {len(self._events)} still pending")
        return list(outcomes)

    def summary(self) -> List[ArchiveEventSummary]:
        now = self.clock()
        return [event.summary(now) for event in self._events]
