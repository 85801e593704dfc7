from datetime import timedelta

import pytest

from markers import EventMarkerLedger, notify_user_removed
from models import KickReason, RoomRemovalReason


@pytest.fixture
def ledger(store, clock):
    return EventMarkerLedger(store, ttl=60, clock=clock)


def test_user_marker_round_trip(ledger, clock):
    marker = ledger.set_user_marker("eve", KickReason.INACTIVITY)
    assert marker.expires_at == clock() + timedelta(seconds=60)

    read = ledger.get_user_marker("eve")
    assert read.reason == KickReason.INACTIVITY
    assert read.related_room_reason is None


def test_marker_visible_for_whole_ttl_window(ledger, clock):
    ledger.set_room_marker("r1", RoomRemovalReason.ADMIN_DISMISSED)
    for _ in range(5):
        clock.advance(seconds=11)
        assert ledger.get_room_marker("r1").reason == RoomRemovalReason.ADMIN_DISMISSED
    clock.advance(seconds=5)
    assert ledger.get_room_marker("r1") is None


def test_reads_do_not_consume(ledger):
    ledger.set_user_marker("eve", KickReason.OWNER_KICK)
    assert ledger.get_user_marker("eve") == ledger.get_user_marker("eve")


def test_clear(ledger):
    ledger.set_user_marker("eve", KickReason.OWNER_KICK)
    ledger.set_room_marker("r1", RoomRemovalReason.EMPTY)
    ledger.clear_user_marker("eve")
    ledger.clear_room_marker("r1")
    assert ledger.get_user_marker("eve") is None
    assert ledger.get_room_marker("r1") is None


def test_missing_lookups(ledger):
    assert ledger.get_user_marker(None) is None
    assert ledger.get_room_marker("") is None


def test_unreadable_markers_read_as_missing(ledger, store):
    store.put("marker:user:eve", "{not json")
    store.put("marker:room:r1", '{"room_id": "r1", "reason": "bogus"}')
    assert ledger.get_user_marker("eve") is None
    assert ledger.get_room_marker("r1") is None

    notify_user_removed(ledger, "eve", KickReason.INACTIVITY)
    assert ledger.get_user_marker("eve").reason == KickReason.INACTIVITY


def test_related_room_reason_is_kept(ledger):
    ledger.set_user_marker("eve", KickReason.ROOM_DISMISSED, RoomRemovalReason.ADMIN_DISMISSED)
    assert ledger.get_user_marker("eve").related_room_reason == RoomRemovalReason.ADMIN_DISMISSED


def test_ledger_itself_does_not_arbitrate(ledger):
    ledger.set_user_marker("eve", KickReason.ADMIN_KICK)
    ledger.set_user_marker("eve", KickReason.INACTIVITY)
    assert ledger.get_user_marker("eve").reason == KickReason.INACTIVITY


@pytest.mark.parametrize("first,second,expected", [
    (KickReason.ADMIN_KICK, KickReason.INACTIVITY, KickReason.ADMIN_KICK),
    (KickReason.OWNER_KICK, KickReason.ROOM_DISMISSED, KickReason.OWNER_KICK),
    (KickReason.INACTIVITY, KickReason.OWNER_KICK, KickReason.OWNER_KICK),
    (KickReason.ROOM_DISMISSED, KickReason.ADMIN_KICK, KickReason.ADMIN_KICK),
])
def test_notify_keeps_highest_priority(ledger, first, second, expected):
    notify_user_removed(ledger, "eve", first)
    notify_user_removed(ledger, "eve", second)
    assert ledger.get_user_marker("eve").reason == expected
