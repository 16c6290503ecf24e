"""Companion file discovery for motion events."""

from __future__ import annotations

import glob
import os
from datetime import timedelta
from typing import Iterable, List, Protocol, Sequence

from loguru import logger

from domains.archive.identity import TIMESTAMP_FORMAT, EventIdentity

MEDIA_EXTENSIONS = (".mp4", ".jpg")


class CandidateChecker(Protocol):
    """Answers which files on disk match a candidate pattern."""

    def find(self, pattern: str) -> List[str]:
        ...


class GlobCandidateChecker:
    """Candidate checker backed by the real filesystem."""

    def find(self, pattern: str) -> List[str]:
        return [os.path.abspath(p) for p in glob.glob(pattern)]


class CompanionFinder:
    """Enumerate files on disk that plausibly belong to an event."""

    def __init__(
        self,
        annotations_dir: str,
        postfixes: Sequence[str] = ("_att",),
        longest_event_duration: int = 15,
        extensions: Sequence[str] = MEDIA_EXTENSIONS,
        checker: CandidateChecker | None = None,
    ) -> None:
        self.annotations_dir = annotations_dir
        self.postfixes = list(postfixes)
        self.longest_event_duration = longest_event_duration
        self.extensions = list(extensions)
        self.checker = checker or GlobCandidateChecker()

    def candidate_patterns(self, identity: EventIdentity) -> List[str]:
        """
        Build every glob pattern a companion of ``identity`` could match.

        Directories × postfixes × seconds in the event window × extensions.
        """
        if identity.is_unmatched:
            return []

        stem = identity.event_id.rstrip("_")
        patterns: List[str] = []
        for directory in (identity.base_path, self.annotations_dir):
            for postfix in ["", *self.postfixes]:
                for offset in range(self.longest_event_duration):
                    moment = identity.start_time + timedelta(seconds=offset)
                    name = f"{stem}{postfix}_{moment.strftime(TIMESTAMP_FORMAT)}"
                    base = glob.escape(os.path.join(directory, name))
                    for extension in self.extensions:
                        patterns.append(f"{base}*{extension}")
        return patterns

    def find(self, identity: EventIdentity) -> List[str]:
        """
        Return existing companion files for ``identity``.

        Args:
            identity: Event to search for

        Returns:
            De-duplicated absolute paths in discovery order
        """
        patterns = self.candidate_patterns(identity)
        logger.debug(f"Checking {len(patterns)} candidate patterns for {identity.event_id}")
        return _unique(self._matches(patterns))

    def _matches(self, patterns: Iterable[str]) -> Iterable[str]:
        for pattern in patterns:
            try:
                yield from self.checker.find(pattern)
            except OSError as e:
                logger.warning(f"Candidate check failed for {pattern}: {e}")


def _unique(paths: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            result.append(path)
    return result
