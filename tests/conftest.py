"""
Test configuration — ensures repo root is in sys.path and provides the
shared engine fixtures.

Every test runs against FakeTaskStore with a pinned clock; nothing touches
the network or the user's ~/.slotkeeper.
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import slotkeeper.*, api.*, tests.fixtures.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from slotkeeper.config import EngineConfig  # noqa: E402
from slotkeeper.engine import ScheduleEngine  # noqa: E402
from slotkeeper.notifier import Notifier  # noqa: E402
from tests.fixtures import FakeTaskStore, RecordingChannel  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point SLOTKEEPER_HOME at a temp dir and clear env overrides."""
    monkeypatch.setenv("SLOTKEEPER_HOME", str(tmp_path / "home"))
    for var in (
        "SLOTKEEPER_CONFIG",
        "SLOTKEEPER_NOTION_TOKEN",
        "SLOTKEEPER_NOTION_DATABASE_ID",
        "SLOTKEEPER_SLACK_WEBHOOK_URL",
        "SLOTKEEPER_TIMEZONE",
        "SLOTKEEPER_LOG_LEVEL",
        "SLOTKEEPER_API_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def store():
    return FakeTaskStore()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def notifier(channel):
    return Notifier(channel)


class Clock:
    """Settable clock injected into the engine."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def make_engine(store, config, notifier):
    """Build an engine over the fake store with the clock pinned at `now`."""

    def _make(now: datetime, **kwargs) -> ScheduleEngine:
        clock = Clock(now)
        engine = ScheduleEngine(
            kwargs.pop("store", store),
            kwargs.pop("config", config),
            notifier=kwargs.pop("notifier", notifier),
            now_fn=clock,
            **kwargs,
        )
        engine.clock = clock
        return engine

    return _make
