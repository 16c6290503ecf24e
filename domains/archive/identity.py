"""Derive motion-event identity from detection filenames."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
TIMESTAMP_LENGTH = 14


@dataclass(frozen=True, slots=True)
class EventIdentity:
    """Who and when a detection file belongs to."""

    event_id: str
    start_time: Optional[datetime]
    base_path: str

    @property
    def is_unmatched(self) -> bool:
        return self.start_time is None


def parse_filename_timestamp(file_path: str) -> Optional[datetime]:
    """Return the ``YYYYMMDDHHmmss`` timestamp after the last underscore, if any."""

    stem, _ = os.path.splitext(os.path.basename(file_path))
    underscore = stem.rfind("_")
    if underscore < 0:
        return None

    stamp = stem[underscore + 1:]
    if len(stamp) != TIMESTAMP_LENGTH or not stamp.isdigit():
        return None

    try:
        return datetime.strptime(stamp, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def strip_postfixes(prefix: str, postfixes: Iterable[str]) -> str:
    """Remove postfix markers from the tail of ``cam1_att_`` style prefixes."""

    body = prefix[:-1] if prefix.endswith("_") else prefix
    stripped = True
    while stripped:
        stripped = False
        for marker in postfixes:
            if marker and body.endswith(marker):
                body = body[: -len(marker)]
                stripped = True
    return body + "_"


def resolve_identity(
    file_path: str,
    postfixes: Iterable[str] = ("_att",),
    lead_in: int = 3,
) -> Optional[EventIdentity]:
    """
    Resolve the motion event a file belongs to.

    The event id is the filename prefix up to and including the last
    underscore, with postfix markers removed. The start time is the
    filename timestamp moved ``lead_in`` seconds earlier.

    Args:
        file_path: Path to a detection image or clip
        postfixes: Markers appended to the prefix by annotated variants
        lead_in: Seconds the capture started before the filename timestamp

    Returns:
        EventIdentity, or None when the name carries no parseable timestamp
    """
    timestamp = parse_filename_timestamp(file_path)
    if timestamp is None:
        return None

    base_name = os.path.basename(file_path)
    prefix = base_name[: base_name.rfind("_") + 1]

    return EventIdentity(
        event_id=strip_postfixes(prefix, postfixes),
        start_time=timestamp - timedelta(seconds=lead_in),
        base_path=os.path.dirname(os.path.abspath(file_path)),
    )


def unmatched_identity(file_path: str) -> EventIdentity:
    """Standalone identity for files whose name could not be parsed."""

    return EventIdentity(
        event_id=os.path.basename(file_path),
        start_time=None,
        base_path=os.path.dirname(os.path.abspath(file_path)),
    )
