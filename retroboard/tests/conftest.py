"""
Pytest fixtures for Retroboard tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from ..relay import Connection, EventRelay
from ..session import Phase, RetroManager
from ..storage import FileSessionStore


class FixedClock:
    """Controllable clock for the manager."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class RecordingConnection(Connection):
    """Connection that keeps every message it was sent."""

    def __init__(self, connection_id: str):
        super().__init__(connection_id)
        self.messages: list[dict] = []

    def send(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def types(self) -> list[str]:
        return [m["type"] for m in self.messages]

    def of_type(self, event_type: str) -> list[dict]:
        return [m["payload"] for m in self.messages if m["type"] == event_type]

    def clear(self):
        self.messages.clear()


class FlakyStore(FileSessionStore):
    """File store whose writes can be made to fail.

    `fail_writes` fails the whole save or archive call up front.
    `fail_suffix` fails only low-level writes of files with that suffix,
    e.g. ".csv" to break an archive between its two files.
    """

    def __init__(self, data_dir):
        super().__init__(data_dir)
        self.fail_writes = False
        self.fail_suffix: str | None = None

    def save_active(self, session):
        if self.fail_writes:
            raise OSError("disk full")
        super().save_active(session)

    def archive(self, session):
        if self.fail_writes:
            raise OSError("disk full")
        return super().archive(session)

    def _write_text(self, path, content):
        if self.fail_suffix and path.suffix == self.fail_suffix:
            raise OSError("disk full")
        super()._write_text(path, content)


def advance_to(manager: RetroManager, admin_token: str, phase: Phase):
    """Change phase until the session reaches `phase`."""
    while manager.get_session().phase != phase:
        manager.change_phase(admin_token)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 2, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store(data_dir) -> FileSessionStore:
    return FileSessionStore(data_dir)


@pytest.fixture
def manager(store, clock) -> RetroManager:
    return RetroManager(store, clock=clock)


@pytest.fixture
def created(manager) -> dict:
    """A fresh session in the lobby."""
    return manager.create_session("Sprint 12", 300)


@pytest.fixture
def admin_token(created) -> str:
    return created["adminToken"]


@pytest.fixture
def relay(manager) -> EventRelay:
    return EventRelay(manager)

