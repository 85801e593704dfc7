from typing import List, Optional

from pydantic import ValidationError

from backend import SessionStore
from exceptions import DisplayNameTaken, NameTaken
from logging_config import get_logger
from models import ActiveUser, Room
from redis_keys import (
    ACTIVE_USER_KEY,
    ACTIVE_USER_PREFIX,
    APP_SHUTDOWN_KEY,
    ROOM_KEY,
    ROOM_NAME_KEY,
    ROOM_PREFIX,
)

logger = get_logger(__name__)


class RoomDirectory:
    """Room and ActiveUser records on top of a SessionStore.

    All writes are full-document overwrites; callers re-fetch right before
    mutating so a lost update can only come from a truly simultaneous write.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    # ---------- rooms ----------

    def create_room(self, room: Room) -> Room:
        """Persist a new room, failing with NameTaken on a case-insensitive clash."""
        name_key = ROOM_NAME_KEY.format(name=room.name_key)
        if not self.store.put_if_absent(name_key, room.id):
            logger.warning(f"Room name '{room.name}' already taken")
            raise NameTaken(f"Room name '{room.name}' is already taken")
        self.store.put(ROOM_KEY.format(room_id=room.id), room.model_dump_json())
        logger.info(f"Room {room.id} created with name '{room.name}'")
        return room

    def get_room_by_id(self, room_id: str) -> Optional[Room]:
        if not room_id:
            return None
        raw = self.store.get(ROOM_KEY.format(room_id=room_id))
        if raw is None:
            logger.debug(f"Room {room_id} not found")
            return None
        try:
            return Room.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Room {room_id} has an unreadable document: {e}", exc_info=True)
            return None

    def get_room_by_name(self, name: str) -> Optional[Room]:
        if not name or not name.strip():
            return None
        room_id = self.store.get(ROOM_NAME_KEY.format(name=name.strip().lower()))
        if room_id is None:
            return None
        return self.get_room_by_id(room_id)

    def name_available(self, name: str) -> bool:
        return self.store.get(ROOM_NAME_KEY.format(name=name.strip().lower())) is None

    def save_room(self, room: Room):
        self.store.put(ROOM_KEY.format(room_id=room.id), room.model_dump_json())
        logger.debug(f"Room {room.id} saved (state={room.state.value}, members={len(room.members)})")

    def delete_room(self, room: Room):
        self.store.delete(ROOM_KEY.format(room_id=room.id))
        name_key = ROOM_NAME_KEY.format(name=room.name_key)
        # A newer room may already have claimed the same name
        if self.store.get(name_key) == room.id:
            self.store.delete(name_key)
        logger.info(f"Room {room.id} ('{room.name}') deleted")

    def list_room_ids(self) -> List[str]:
        return [key[len(ROOM_PREFIX):] for key in self.store.list_keys(ROOM_PREFIX)]

    def list_rooms(self) -> List[Room]:
        rooms = []
        for room_id in self.list_room_ids():
            room = self.get_room_by_id(room_id)
            if room is not None:
                rooms.append(room)
        return rooms

    # ---------- active users ----------

    def reserve_active_user(self, user: ActiveUser) -> ActiveUser:
        """Claim a display name system-wide, failing with DisplayNameTaken if it is in use."""
        key = ACTIVE_USER_KEY.format(display_name=user.display_name)
        if not self.store.put_if_absent(key, user.model_dump_json()):
            logger.warning(f"Display name '{user.display_name}' already in use")
            raise DisplayNameTaken(f"Display name '{user.display_name}' is already in use")
        return user

    def get_active_user(self, display_name: str) -> Optional[ActiveUser]:
        if not display_name:
            return None
        raw = self.store.get(ACTIVE_USER_KEY.format(display_name=display_name))
        if raw is None:
            return None
        try:
            return ActiveUser.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Active user {display_name} has an unreadable document: {e}", exc_info=True)
            return None

    def save_active_user(self, user: ActiveUser):
        self.store.put(ACTIVE_USER_KEY.format(display_name=user.display_name), user.model_dump_json())

    def delete_active_user(self, display_name: str):
        self.store.delete(ACTIVE_USER_KEY.format(display_name=display_name))
        logger.debug(f"Active user {display_name} deleted")

    def list_active_users(self) -> List[ActiveUser]:
        users = []
        for key in self.store.list_keys(ACTIVE_USER_PREFIX):
            user = self.get_active_user(key[len(ACTIVE_USER_PREFIX):])
            if user is not None:
                users.append(user)
        return users

    # ---------- maintenance flag ----------

    def is_shutdown(self) -> bool:
        return self.store.get(APP_SHUTDOWN_KEY) == "1"

    def set_shutdown(self, shutdown: bool):
        if shutdown:
            self.store.put(APP_SHUTDOWN_KEY, "1")
        else:
            self.store.delete(APP_SHUTDOWN_KEY)
        logger.info(f"Shutdown flag set to {shutdown}")
