"""Test doubles for the archive domain."""

import fnmatch
from datetime import datetime, timedelta


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class MemoryChecker:
    """Candidate checker over an in-memory set of paths."""

    def __init__(self, files=()):
        self.files = set(files)
        self.patterns = []

    def find(self, pattern):
        self.patterns.append(pattern)
        return sorted(f for f in self.files if fnmatch.fnmatchcase(f, pattern))


class RecordingOps:
    """Move/remove coroutines that record calls instead of touching disk."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.moved = []
        self.removed = []

    async def move(self, file_path, destination_dir):
        self.moved.append((file_path, destination_dir))
        return file_path not in self.fail

    async def remove(self, file_path):
        self.removed.append(file_path)
        return file_path not in self.fail
