import asyncio
from pathlib import Path

import pytest

from app.models.schemas import ArchiveConfig, TriggerConfig

pytest.importorskip("watchdog", reason="watchdog dependency is required for handler tests")
from domains.archive.watcher import DetectionEventHandler, DetectionWatcher


class Event:
    def __init__(self, src: Path, dest: Path | None = None, is_directory: bool = False):
        self.src_path = str(src)
        self.dest_path = str(dest) if dest else None
        self.is_directory = is_directory


class StubManager:
    def __init__(self, storage_root: Path):
        self.storage_root = str(storage_root)
        self.calls = []

    def process_trigger(self, path, trigger, predictions=None):
        self.calls.append((path, trigger.name))


@pytest.fixture
def loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def triggers():
    return [
        TriggerConfig(name="driveway", watch_pattern="Driveway_*.jpg", archive_config=ArchiveConfig()),
        TriggerConfig(name="any", watch_pattern="*_cam*.jpg"),
    ]


def make_handler(tmp_path, loop, triggers):
    manager = StubManager(tmp_path / "store")
    handler = DetectionEventHandler(manager, triggers, loop, {".jpg", ".png"})
    return handler, manager


def drain(loop):
    loop.run_until_complete(asyncio.sleep(0))


def test_created_image_is_forwarded_to_first_matching_trigger(tmp_path, loop, triggers):
    handler, manager = make_handler(tmp_path, loop, triggers)
    image = tmp_path / "Driveway_20230101120000.jpg"

    handler.on_created(Event(image))
    drain(loop)

    assert manager.calls == [(str(image), "driveway")]


def test_moved_in_image_uses_destination_path(tmp_path, loop, triggers):
    handler, manager = make_handler(tmp_path, loop, triggers)
    src = tmp_path / "Driveway_20230101120000.jpg.part"
    dest = tmp_path / "Driveway_20230101120000.jpg"

    handler.on_moved(Event(src, dest))
    drain(loop)

    assert manager.calls == [(str(dest), "driveway")]


def test_ignored_files(tmp_path, loop, triggers):
    handler, manager = make_handler(tmp_path, loop, triggers)

    handler.on_created(Event(tmp_path / "Driveway_20230101120000.mp4"))
    handler.on_created(Event(tmp_path / ".Driveway_20230101120000.jpg"))
    handler.on_created(Event(tmp_path / "Garden_20230101120000.jpg"))
    handler.on_created(Event(tmp_path / "store" / "archive" / "Driveway_20230101120000.jpg"))
    handler.on_created(Event(tmp_path / "Driveway_dir.jpg", is_directory=True))
    drain(loop)

    assert manager.calls == []


def test_should_process_is_case_insensitive(tmp_path, loop, triggers):
    handler, _ = make_handler(tmp_path, loop, triggers)

    assert handler.should_process(str(tmp_path / "Driveway_20230101120000.JPG"))
    assert not handler.should_process(str(tmp_path / "Driveway_20230101120000.tmp"))


def test_watcher_skips_missing_directories(tmp_path, loop, triggers):
    handler, _ = make_handler(tmp_path, loop, triggers)
    existing = tmp_path / "aiinput"
    existing.mkdir()
    watcher = DetectionWatcher(handler, [existing, tmp_path / "missing"])

    try:
        assert watcher.start_watching() == 1
    finally:
        watcher.stop_watching()
