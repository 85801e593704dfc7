from datetime import datetime, timedelta, timezone

import pytest

from backend import MemoryBackend
from service import RoomService


class FakeClock:
    """Drives both the service (datetime) and the memory store (seconds) from one timeline."""

    def __init__(self):
        self.current = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def seconds(self) -> float:
        return self.current.timestamp()

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryBackend(clock=clock.seconds)


@pytest.fixture
def service(store, clock):
    return RoomService(store, clock=clock)


@pytest.fixture
def make_room(service):
    """Create a room owned by ``owner`` and join ``others``; returns (room_id, {name: member_id})."""

    def _make(name="Lobby", owner="alice", others=("bob",), member_limit=8, password=None):
        ticket = service.create_room(name, password, member_limit, owner)
        ids = {owner: ticket.member_id}
        for display_name in others:
            joined = service.join_room(name, display_name, password)
            ids[display_name] = joined.member_id
        return ticket.room_id, ids

    return _make
