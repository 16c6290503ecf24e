"""
Motion event aggregate.

A motion event collects every file registered for the same camera
detection episode and archives or purges them, plus any companion files
found on disk, in a single pass.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Union

from loguru import logger

from app.models.schemas import ArchiveConfig, ArchiveEntrySummary, ArchiveEventSummary
from domains.archive.discovery import CompanionFinder
from domains.archive.identity import EventIdentity

ARCHIVE_FOLDER = "archive"
SEMI_MATCHED_FOLDER = "maybeMatched"
ANNOTATIONS_FOLDER = "annotations"
UNSORTED_FOLDER = "unsorted"

MoveFn = Callable[[str, str], Awaitable[bool]]
RemoveFn = Callable[[str], Awaitable[bool]]


@dataclass(frozen=True)
class Move:
    """Archive the file, optionally into a specific top-level folder."""

    folder: Optional[str] = None

    name = "move"


@dataclass(frozen=True)
class Remove:
    """Delete the file."""

    name = "remove"


ArchiveAction = Union[Move, Remove]


@dataclass
class ArchiveEntry:
    """A file explicitly registered on an event."""

    file: str
    action: ArchiveAction
    date_added: datetime
    date_eligible: datetime
    attempt: int = 0
    success: bool = False

    def is_exhausted(self, retry_budget: int) -> bool:
        return self.attempt > retry_budget

    def is_pending(self, retry_budget: int) -> bool:
        return not self.success and not self.is_exhausted(retry_budget)


@dataclass(frozen=True)
class MatchResult:
    same: bool
    earlier_first: bool = False


@dataclass
class ExecutionOutcome:
    """What a single archive pass did for one event."""

    actioned: bool
    action: Optional[str] = None
    folder: Optional[str] = None
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    companions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EventRules:
    """Tunables shared by every event in a registry."""

    storage_root: str
    longest_event_duration: int = 15
    lead_in: int = 3
    retry_budget: int = 3

    @property
    def annotations_dir(self) -> str:
        return os.path.join(self.storage_root, ANNOTATIONS_FOLDER)


class MotionEvent:
    """State for one logical motion event."""

    def __init__(self, identity: EventIdentity, rules: EventRules, finder: CompanionFinder):
        self.event_id = identity.event_id
        self.start_time = identity.start_time
        self.base_path = identity.base_path
        self.rules = rules
        self.finder = finder
        self.entries: Dict[str, ArchiveEntry] = {}

    @property
    def identity(self) -> EventIdentity:
        return EventIdentity(self.event_id, self.start_time, self.base_path)

    def __repr__(self) -> str:
        return f"MotionEvent({self.event_id!r}, {self.start_time}, entries={len(self.entries)})"

    # Identity -------------------------------------------------------------------------

    def matches(self, other: Union["MotionEvent", EventIdentity]) -> MatchResult:
        """
        Check whether ``other`` describes the same motion event.

        Args:
            other: Event or identity to compare against

        Returns:
            MatchResult; ``earlier_first`` is True when this event starts no
            later than ``other`` and so keeps its start time on merge
        """
        if other.event_id != self.event_id:
            return MatchResult(same=False)

        if self.start_time is None or other.start_time is None:
            same = self.start_time is None and other.start_time is None and other.base_path == self.base_path
            return MatchResult(same=same, earlier_first=same)

        window = timedelta(seconds=self.rules.longest_event_duration)
        if self.start_time <= other.start_time < self.start_time + window:
            return MatchResult(same=True, earlier_first=True)
        if other.start_time <= self.start_time < other.start_time + window:
            return MatchResult(same=True, earlier_first=False)
        return MatchResult(same=False)

    def merge(self, other: Union["MotionEvent", EventIdentity]) -> None:
        """Absorb ``other``, keeping the earlier start time and its base path."""

        if other.start_time is not None and (self.start_time is None or other.start_time < self.start_time):
            self.start_time = other.start_time
            self.base_path = other.base_path

        if isinstance(other, MotionEvent):
            for entry in other.entries.values():
                self._add(entry)

    # Entries --------------------------------------------------------------------------

    def add_entry(
        self,
        file_path: str,
        action: ArchiveAction,
        config: ArchiveConfig,
        now: Optional[datetime] = None,
    ) -> ArchiveEntry:
        """
        Register a file on this event.

        Registering an already-known path only replaces a ``Remove`` entry,
        resetting its attempts and retention window.

        Returns:
            The entry now held for ``file_path``
        """
        now = now or datetime.now()
        entry = ArchiveEntry(
            file=file_path,
            action=action,
            date_added=now,
            date_eligible=now + timedelta(seconds=config.time_to_keep),
        )
        return self._add(entry)

    def _add(self, entry: ArchiveEntry) -> ArchiveEntry:
        existing = self.entries.get(entry.file)
        if existing is None:
            self.entries[entry.file] = entry
            return entry

        if isinstance(existing.action, Remove):
            existing.action = entry.action
            existing.attempt = 0
            existing.success = False
            existing.date_added = entry.date_added
            existing.date_eligible = entry.date_eligible
        return existing

    def is_eligible(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return all(e.date_eligible <= now for e in self.entries.values())

    def is_resolved(self) -> bool:
        return not any(e.is_pending(self.rules.retry_budget) for e in self.entries.values())

    def exhausted_entries(self) -> List[ArchiveEntry]:
        return [
            e for e in self.entries.values()
            if not e.success and e.is_exhausted(self.rules.retry_budget)
        ]

    # Execution ------------------------------------------------------------------------

    def main_action(self) -> ArchiveAction:
        """Event-wide intent: move when any entry moves, otherwise remove."""

        moves = [e.action for e in self.entries.values() if isinstance(e.action, Move)]
        if not moves:
            return Remove()

        folders = {m.folder for m in moves if m.folder}
        if len(folders) > 1:
            logger.warning(
                f"Event {self.event_id} entries disagree on destination ({sorted(folders)}), "
                f"falling back to per-entry folders"
            )
        return Move(folders.pop() if len(folders) == 1 else None)

    def destination_for(self, file_path: str, folder: Optional[str]) -> str:
        """
        Archive directory for ``file_path``.

        ``<root>/<folder>/<YYYY/MM/DD>/<event id>/<HHmmss>/[annotations/]``
        using the earliest capture time of the event.
        """
        root = os.path.join(self.rules.storage_root, folder or ARCHIVE_FOLDER)

        if self.start_time is None:
            return os.path.join(root, UNSORTED_FOLDER)

        captured = self.start_time + timedelta(seconds=self.rules.lead_in)
        destination = os.path.join(
            root,
            captured.strftime("%Y"),
            captured.strftime("%m"),
            captured.strftime("%d"),
            self.event_id,
            captured.strftime("%H%M%S"),
        )
        if self._is_annotation(file_path):
            destination = os.path.join(destination, ANNOTATIONS_FOLDER)
        return destination

    def _is_annotation(self, file_path: str) -> bool:
        annotations = os.path.abspath(self.rules.annotations_dir)
        return os.path.commonpath([annotations, os.path.abspath(file_path)]) == annotations

    async def execute(
        self,
        move: MoveFn,
        remove: RemoveFn,
        enforce_eligibility: bool = True,
        now: Optional[datetime] = None,
    ) -> ExecutionOutcome:
        """
        Archive or purge the event's files and companions.

        Args:
            move: Coroutine ``(file, destination_dir) -> bool``
            remove: Coroutine ``(file) -> bool``
            enforce_eligibility: Skip unless every entry's retention elapsed
            now: Current time, for eligibility

        Returns:
            ExecutionOutcome describing the pass
        """
        if enforce_eligibility and not self.is_eligible(now):
            return ExecutionOutcome(actioned=False)

        intent = self.main_action()
        event_folder = intent.folder if isinstance(intent, Move) else None
        pending = [e for e in self.entries.values() if e.is_pending(self.rules.retry_budget)]
        # Attempts are consumed before discovery so a crashing pass still counts
        for entry in pending:
            entry.attempt += 1

        companions = [
            f for f in await asyncio.to_thread(self.finder.find, self.identity)
            if f not in self.entries
        ]

        logger.info(
            f"Archiving event {self.event_id} {self.start_time} with {len(pending)} entries "
            f"and {len(companions)} companions, action '{intent.name}', folder '{event_folder}'"
        )

        async def action_entry(entry: ArchiveEntry) -> None:
            if isinstance(intent, Move):
                folder = event_folder
                if folder is None and isinstance(entry.action, Move):
                    folder = entry.action.folder
                entry.success = await move(entry.file, self.destination_for(entry.file, folder))
            else:
                entry.success = await remove(entry.file)

        async def action_companion(file_path: str) -> None:
            if isinstance(intent, Move):
                ok = await move(file_path, self.destination_for(file_path, event_folder))
            else:
                ok = await remove(file_path)
            if not ok:
                logger.warning(f"Companion {file_path} of event {self.event_id} was not actioned")

        await asyncio.gather(
            *(action_entry(e) for e in pending),
            *(action_companion(f) for f in companions),
        )

        outcome = ExecutionOutcome(
            actioned=True,
            action=intent.name,
            folder=event_folder,
            succeeded=[e.file for e in pending if e.success],
            failed=[e.file for e in pending if not e.success],
            companions=companions,
        )
        logger.info(
            f"Archiving of event {self.event_id} finished: {len(outcome.succeeded)} succeeded, "
            f"{len(outcome.failed)} failed, resolved={self.is_resolved()}"
        )
        return outcome

    def summary(self, now: Optional[datetime] = None) -> ArchiveEventSummary:
        return ArchiveEventSummary(
            event_id=self.event_id,
            start_time=self.start_time,
            base_path=self.base_path,
            eligible=self.is_eligible(now),
            resolved=self.is_resolved(),
            entries=[
                ArchiveEntrySummary(
                    file=e.file,
                    action=e.action.name,
                    folder=e.action.folder if isinstance(e.action, Move) else None,
                    attempt=e.attempt,
                    success=e.success,
                    date_added=e.date_added,
                    date_eligible=e.date_eligible,
                )
                for e in self.entries.values()
            ],
        )
