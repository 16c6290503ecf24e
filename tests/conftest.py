import sys
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.config import Settings
from tests.fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock(datetime(2023, 1, 1, 12, 0, 30))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        storage_root=tmp_path / "store",
        watch_dirs=str(tmp_path / "aiinput"),
        triggers_file=tmp_path / "triggers.json",
        archive_interval=0.05,
    )
