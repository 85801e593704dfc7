import pytest

from directory import RoomDirectory
from exceptions import DisplayNameTaken, NameTaken
from models import ActiveUser, Member, Room


@pytest.fixture
def directory(store):
    return RoomDirectory(store)


def new_room(room_id, name):
    room = Room(id=room_id, name=name, member_limit=4)
    room.add_member(Member(id=f"{room_id}-m", display_name=f"owner-{room_id}"))
    return room


def test_create_and_fetch(directory):
    directory.create_room(new_room("r1", "Friday Night"))
    assert directory.get_room_by_id("r1").name == "Friday Night"
    assert directory.get_room_by_name("friday night").id == "r1"
    assert directory.get_room_by_name("  FRIDAY NIGHT ").id == "r1"


def test_name_unique_case_insensitive(directory):
    directory.create_room(new_room("r1", "Lobby"))
    with pytest.raises(NameTaken):
        directory.create_room(new_room("r2", "LOBBY"))
    assert directory.get_room_by_id("r2") is None
    assert directory.list_room_ids() == ["r1"]


def test_delete_frees_name(directory):
    room = directory.create_room(new_room("r1", "Lobby"))
    directory.delete_room(room)
    assert directory.get_room_by_id("r1") is None
    assert directory.name_available("lobby")
    directory.create_room(new_room("r2", "lobby"))


def test_delete_keeps_name_claimed_by_newer_room(directory, store):
    old = new_room("r1", "Lobby")
    directory.create_room(old)
    store.put("room-name:lobby", "r2")
    directory.delete_room(old)
    assert store.get("room-name:lobby") == "r2"


def test_save_room_overwrites(directory):
    room = directory.create_room(new_room("r1", "Lobby"))
    room.selections["a"] = "b"
    directory.save_room(room)
    assert directory.get_room_by_id("r1").selections == {"a": "b"}


def test_room_document_round_trip_keeps_sets(directory):
    room = directory.create_room(new_room("r1", "Lobby"))
    room.returned_acknowledgers.add("r1-m")
    directory.save_room(room)
    assert directory.get_room_by_id("r1").returned_acknowledgers == {"r1-m"}


def test_unreadable_room_document(directory, store):
    store.put("room:broken", "not json")
    assert directory.get_room_by_id("broken") is None


def test_active_users(directory):
    directory.reserve_active_user(ActiveUser(display_name="eve", room_id="r1", member_id="m1"))
    with pytest.raises(DisplayNameTaken):
        directory.reserve_active_user(ActiveUser(display_name="eve", room_id="r2", member_id="m2"))

    assert directory.get_active_user("eve").member_id == "m1"
    assert [u.display_name for u in directory.list_active_users()] == ["eve"]

    directory.delete_active_user("eve")
    assert directory.get_active_user("eve") is None
    assert directory.list_active_users() == []


def test_unreadable_active_user_is_skipped(directory, store):
    directory.reserve_active_user(ActiveUser(display_name="eve", room_id="r1", member_id="m1"))
    store.put("active-user:zzz", "{not json")
    assert directory.get_active_user("zzz") is None
    assert [u.display_name for u in directory.list_active_users()] == ["eve"]


def test_shutdown_flag(directory):
    assert directory.is_shutdown() is False
    directory.set_shutdown(True)
    assert directory.is_shutdown() is True
    directory.set_shutdown(False)
    assert directory.is_shutdown() is False
