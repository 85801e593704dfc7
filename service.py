"""
Room operations used by the request handlers.

Each public method is one stateless request: it re-reads the records it
needs from the session store, applies the change through the lifecycle
functions, writes the full records back and returns a view or raises a
typed error from exceptions.py.
"""
import math
import uuid
from datetime import datetime
from functools import lru_cache
from typing import Callable, List, Optional, Union

import lifecycle
from backend import SessionStore, get_store
from constants import (
    ADMIN_DISPLAY_NAME,
    MARKER_TTL_SECONDS,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_MEMBER_LIMIT,
    MAX_ROOM_NAME_LENGTH,
    MIN_MEMBER_LIMIT,
    ROOM_TIMEOUT_SECONDS,
    USER_TIMEOUT_SECONDS,
    WARNING_LEAD_SECONDS,
)
from directory import RoomDirectory
from eviction import EvictionMonitor
from exceptions import (
    ActiveUserNotFound,
    CannotKickSelf,
    DisplayNameInvalid,
    DisplayNameReserved,
    DisplayNameTaken,
    LinkRoomsError,
    MemberLimitInvalid,
    NameInvalid,
    NameTaken,
    RoleInvalid,
    RoomFull,
    RoomNotFound,
    RoomNotWaiting,
    ServiceShutdown,
    ValidationFailed,
    WrongPassword,
)
from logging_config import get_logger
from markers import EventMarkerLedger, notify_user_removed
from models import (
    AcknowledgeResult,
    ActiveUser,
    AdminRoomEntry,
    AdminStatus,
    AdminUserEntry,
    KickReason,
    Member,
    MemberRole,
    PasswordRequired,
    Room,
    RoomCounts,
    RoomRemovalReason,
    RoomSnapshot,
    RoomState,
    RoomView,
    SessionStatus,
    SessionTicket,
    SweepReport,
    UserCounts,
    utcnow,
)

logger = get_logger(__name__)

USER_FILTERS = ("all", "not_in_room", "waiting", "linking", "completed")


def generate_id() -> str:
    return uuid.uuid4().hex


def clean_room_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name or len(name) > MAX_ROOM_NAME_LENGTH:
        raise NameInvalid(f"Room name must be 1-{MAX_ROOM_NAME_LENGTH} characters")
    return name


def clean_display_name(display_name: Optional[str]) -> str:
    display_name = (display_name or "").strip()
    if not display_name or len(display_name) > MAX_DISPLAY_NAME_LENGTH:
        raise DisplayNameInvalid(f"Display name must be 1-{MAX_DISPLAY_NAME_LENGTH} characters")
    if display_name.lower() == ADMIN_DISPLAY_NAME.lower():
        raise DisplayNameReserved("This display name is reserved for the administrator")
    return display_name


def check_member_limit(member_limit) -> int:
    try:
        member_limit = int(member_limit)
    except (TypeError, ValueError):
        raise MemberLimitInvalid(f"Member limit must be between {MIN_MEMBER_LIMIT} and {MAX_MEMBER_LIMIT}")
    if member_limit < MIN_MEMBER_LIMIT or member_limit > MAX_MEMBER_LIMIT:
        raise MemberLimitInvalid(f"Member limit must be between {MIN_MEMBER_LIMIT} and {MAX_MEMBER_LIMIT}")
    return member_limit


class RoomService:
    def __init__(self, store: SessionStore, clock: Callable[[], datetime] = utcnow,
                 user_timeout: float = USER_TIMEOUT_SECONDS,
                 room_timeout: float = ROOM_TIMEOUT_SECONDS,
                 marker_ttl: float = MARKER_TTL_SECONDS,
                 warning_lead: float = WARNING_LEAD_SECONDS):
        self.clock = clock
        self.user_timeout = user_timeout
        self.room_timeout = room_timeout
        self.warning_lead = warning_lead
        self.directory = RoomDirectory(store)
        self.ledger = EventMarkerLedger(store, ttl=marker_ttl, clock=clock)
        self.monitor = EvictionMonitor(
            self.directory, self.ledger, clock=clock,
            user_timeout=user_timeout, room_timeout=room_timeout,
        )

    # ---------- helpers ----------

    def _load_room(self, room_id: str) -> Room:
        room = self.directory.get_room_by_id(room_id)
        if room is None:
            logger.warning(f"Room {room_id} not found")
            raise RoomNotFound(room_id)
        return room

    def _ensure_open(self):
        if self.directory.is_shutdown():
            logger.warning("Rejected new session: service is shut down")
            raise ServiceShutdown("The service is closed for new games")

    def _ticket(self, room: Room, member_id: str) -> SessionTicket:
        return SessionTicket(
            room_id=room.id,
            member_id=member_id,
            is_owner=room.owner_id == member_id,
            room=RoomView.from_room(room),
        )

    def _touch_user(self, room: Room, member_id: str, now: datetime):
        member = room.members.get(member_id)
        if member is None:
            return
        user = self.directory.get_active_user(member.display_name)
        if user is not None and user.member_id == member_id:
            user.last_activity_at = now
            self.directory.save_active_user(user)

    def _release_active_user(self, display_name: str, room_id: str, member_id: str):
        """Delete the ActiveUser only if it still belongs to this room membership."""
        user = self.directory.get_active_user(display_name)
        if user is not None and user.room_id == room_id and user.member_id == member_id:
            self.directory.delete_active_user(display_name)

    def _persist_after_removal(self, room: Room) -> Optional[Room]:
        if room.members:
            self.directory.save_room(room)
            return room
        if room.had_members:
            self.ledger.set_room_marker(room.id, RoomRemovalReason.EMPTY)
        self.directory.delete_room(room)
        return None

    def _destroy_room(self, room: Room, room_reason: RoomRemovalReason, spare_member_id: Optional[str] = None):
        """Delete a populated room, telling every member why."""
        self.ledger.set_room_marker(room.id, room_reason)
        for member in room.members.values():
            if member.id != spare_member_id:
                notify_user_removed(self.ledger, member.display_name, KickReason.ROOM_DISMISSED, room_reason)
            self._release_active_user(member.display_name, room.id, member.id)
        self.directory.delete_room(room)

    # ---------- create / join ----------

    def create_room(self, name: str, password: Optional[str], member_limit: int,
                    display_name: str) -> SessionTicket:
        self._ensure_open()
        name = clean_room_name(name)
        display_name = clean_display_name(display_name)
        member_limit = check_member_limit(member_limit)

        if not self.directory.name_available(name):
            logger.warning(f"Create room failed: name '{name}' already exists")
            raise NameTaken(f"Room name '{name}' is already taken")

        now = self.clock()
        room_id = generate_id()
        member_id = generate_id()
        self.directory.reserve_active_user(
            ActiveUser(display_name=display_name, room_id=room_id, member_id=member_id, last_activity_at=now)
        )

        room = Room(
            id=room_id,
            name=name,
            password=password or None,
            member_limit=member_limit,
            created_at=now,
            last_activity_at=now,
        )
        room.add_member(Member(id=member_id, display_name=display_name, joined_at=now))
        try:
            self.directory.create_room(room)
        except LinkRoomsError:
            self.directory.delete_active_user(display_name)
            raise

        self.ledger.clear_user_marker(display_name)
        logger.info(f"Room '{name}' ({room_id}) created by {display_name}, limit {member_limit}")
        return self._ticket(room, member_id)

    def join_room(self, name: str, display_name: str,
                  password: Optional[str] = None) -> Union[SessionTicket, PasswordRequired]:
        self._ensure_open()
        display_name = clean_display_name(display_name)
        room = self.directory.get_room_by_name(name or "")
        if room is None:
            logger.warning(f"Join failed: room '{name}' not found")
            raise RoomNotFound(name)
        return self._join(room, display_name, password)

    def join_room_by_id(self, room_id: str, display_name: str,
                        password: Optional[str] = None) -> Union[SessionTicket, PasswordRequired]:
        self._ensure_open()
        display_name = clean_display_name(display_name)
        return self._join(self._load_room(room_id), display_name, password)

    def _check_joinable(self, room: Room):
        if room.is_full():
            raise RoomFull(f"Room '{room.name}' is full ({len(room.members)}/{room.member_limit})")
        if room.state != RoomState.WAITING:
            raise RoomNotWaiting(f"Room '{room.name}' has a game in progress")

    def _join(self, room: Room, display_name: str,
              password: Optional[str]) -> Union[SessionTicket, PasswordRequired]:
        self._check_joinable(room)
        if self.directory.get_active_user(display_name) is not None:
            logger.warning(f"Join failed: display name '{display_name}' already in use")
            raise DisplayNameTaken(f"Display name '{display_name}' is already in use")
        if room.password:
            if not password:
                logger.info(f"Room {room.id} requires a password, asking {display_name}")
                return PasswordRequired(room_id=room.id)
            if password != room.password:
                logger.warning(f"Join failed: wrong password for room {room.id} from {display_name}")
                raise WrongPassword("Wrong room password")

        now = self.clock()
        member_id = generate_id()
        self.directory.reserve_active_user(
            ActiveUser(display_name=display_name, room_id=room.id, member_id=member_id, last_activity_at=now)
        )
        try:
            room = self._load_room(room.id)
            self._check_joinable(room)
            room.add_member(Member(id=member_id, display_name=display_name, joined_at=now))
            room.touch(now)
            self.directory.save_room(room)
        except LinkRoomsError:
            self.directory.delete_active_user(display_name)
            raise

        self.ledger.clear_user_marker(display_name)
        logger.info(f"{display_name} joined room '{room.name}' ({len(room.members)}/{room.member_limit})")
        return self._ticket(room, member_id)

    def name_available(self, name: str) -> bool:
        return self.directory.name_available(clean_room_name(name))

    def display_name_available(self, display_name: str) -> bool:
        try:
            display_name = clean_display_name(display_name)
        except DisplayNameReserved:
            return False
        return self.directory.get_active_user(display_name) is None

    # ---------- game actions ----------

    def start_game(self, room_id: str, member_id: str) -> RoomView:
        room = self._load_room(room_id)
        now = self.clock()
        lifecycle.start(room, member_id, now)
        self.directory.save_room(room)
        self._touch_user(room, member_id, now)
        return RoomView.from_room(room)

    def submit_vote(self, room_id: str, member_id: str, chosen_id: str) -> RoomView:
        room = self._load_room(room_id)
        now = self.clock()
        lifecycle.record_selection(room, member_id, chosen_id, now)
        self.directory.save_room(room)
        self._touch_user(room, member_id, now)
        return RoomView.from_room(room)

    def acknowledge_result(self, room_id: str, member_id: str) -> AcknowledgeResult:
        room = self._load_room(room_id)
        now = self.clock()
        if lifecycle.acknowledge(room, member_id, now):
            logger.info(f"Room '{room.name}' released by the last acknowledgement")
        self.directory.save_room(room)
        self._touch_user(room, member_id, now)

        voters = room.voter_ids()
        all_returned = room.state == RoomState.WAITING
        if all_returned:
            returned = len(voters)
        else:
            returned = sum(1 for v in voters if v in room.returned_acknowledgers)
        return AcknowledgeResult(
            all_returned=all_returned,
            returned_count=returned,
            total_voters=len(voters),
            state=room.state,
        )

    def change_role(self, room_id: str, member_id: str, role: Union[str, MemberRole]) -> RoomView:
        try:
            role = MemberRole(role)
        except ValueError:
            raise RoleInvalid(f"Unknown role '{role}'")
        room = self._load_room(room_id)
        now = self.clock()
        lifecycle.change_role(room, member_id, role, now)
        self.directory.save_room(room)
        self._touch_user(room, member_id, now)
        return RoomView.from_room(room)

    def keep_room_alive(self, room_id: str, member_id: str) -> RoomView:
        room = self._load_room(room_id)
        lifecycle.require_member(room, member_id)
        now = self.clock()
        room.touch(now)
        self.directory.save_room(room)
        self._touch_user(room, member_id, now)
        logger.info(f"Room '{room.name}' lifetime extended")
        return RoomView.from_room(room)

    # ---------- leaving ----------

    def kick_member(self, room_id: str, owner_id: str, target_id: str) -> Optional[RoomView]:
        room = self._load_room(room_id)
        lifecycle.require_owner(room, owner_id)
        if target_id == owner_id:
            raise CannotKickSelf("The owner cannot kick themselves")
        target = lifecycle.require_member(room, target_id)

        now = self.clock()
        notify_user_removed(self.ledger, target.display_name, KickReason.OWNER_KICK)
        lifecycle.remove_member(room, target_id, now)
        self._release_active_user(target.display_name, room.id, target_id)
        room.touch(now)
        self._touch_user(room, owner_id, now)
        logger.info(f"{target.display_name} kicked from room '{room.name}' by owner")

        room = self._persist_after_removal(room)
        return RoomView.from_room(room) if room else None

    def leave_room(self, room_id: str, member_id: str):
        room = self._load_room(room_id)
        member = lifecycle.require_member(room, member_id)
        lifecycle.remove_member(room, member_id, self.clock())
        self._release_active_user(member.display_name, room.id, member_id)
        logger.info(f"{member.display_name} left room '{room.name}'")
        self._persist_after_removal(room)

    def dismiss_room(self, room_id: str, owner_id: str):
        room = self._load_room(room_id)
        lifecycle.require_owner(room, owner_id)
        self._destroy_room(room, RoomRemovalReason.OWNER_DISMISSED, spare_member_id=owner_id)
        logger.info(f"Room '{room.name}' dismissed by its owner")

    def exit_session(self, display_name: str) -> bool:
        """Log a display name out entirely, leaving its room first if it is in one."""
        user = self.directory.get_active_user(display_name)
        if user is None:
            return False
        room = self.directory.get_room_by_id(user.room_id) if user.room_id else None
        if room is not None and user.member_id in room.members:
            lifecycle.remove_member(room, user.member_id, self.clock())
            self._persist_after_removal(room)
        self.directory.delete_active_user(display_name)
        logger.info(f"{display_name} exited")
        return True

    # ---------- presence / polling ----------

    def heartbeat(self, display_name: str, member_id: str) -> bool:
        user = self.directory.get_active_user(display_name)
        if user is None or user.member_id != member_id:
            return False
        user.last_activity_at = self.clock()
        self.directory.save_active_user(user)
        return True

    def get_room_snapshot(self, room_id: str, display_name: Optional[str] = None) -> RoomSnapshot:
        room = self.directory.get_room_by_id(room_id)
        user_marker = self.ledger.get_user_marker(display_name) if display_name else None
        if room is None:
            return RoomSnapshot(
                found=False,
                user_marker=user_marker,
                room_marker=self.ledger.get_room_marker(room_id),
            )
        return RoomSnapshot(found=True, room=RoomView.from_room(room), user_marker=user_marker)

    def _seconds_left(self, idle: float, timeout: float) -> int:
        if timeout - self.warning_lead <= idle < timeout:
            return math.ceil(timeout - idle)
        return 0

    def get_session_status(self, display_name: str, member_id: Optional[str] = None,
                           room_id: Optional[str] = None) -> SessionStatus:
        now = self.clock()
        status = SessionStatus(active=False)

        user = self.directory.get_active_user(display_name) if display_name else None
        if user is not None and (member_id is None or user.member_id == member_id):
            status.active = True
            status.user_seconds_left = self._seconds_left(
                (now - user.last_activity_at).total_seconds(), self.user_timeout)
            status.user_warning = status.user_seconds_left > 0

        if room_id:
            room = self.directory.get_room_by_id(room_id)
            if room is not None and room.members:
                status.room_seconds_left = self._seconds_left(
                    (now - room.last_activity_at).total_seconds(), self.room_timeout)
                status.room_warning = status.room_seconds_left > 0
            elif room is None:
                status.room_marker = self.ledger.get_room_marker(room_id)

        if display_name:
            status.user_marker = self.ledger.get_user_marker(display_name)
        return status

    # ---------- administration ----------

    def admin_kick_user(self, display_name: str):
        user = self.directory.get_active_user(display_name)
        if user is None:
            raise ActiveUserNotFound(display_name)

        self.ledger.set_user_marker(display_name, KickReason.ADMIN_KICK)
        room = self.directory.get_room_by_id(user.room_id) if user.room_id else None
        if room is not None and user.member_id in room.members:
            lifecycle.remove_member(room, user.member_id, self.clock())
            self._persist_after_removal(room)
        self.directory.delete_active_user(display_name)
        logger.info(f"Admin kicked {display_name}")

    def admin_delete_room(self, room_id: str):
        room = self._load_room(room_id)
        self._destroy_room(room, RoomRemovalReason.ADMIN_DISMISSED)
        logger.info(f"Admin deleted room '{room.name}' with {len(room.members)} members")

    def _user_rooms(self, rooms: List[Room]) -> dict:
        by_member = {}
        for room in rooms:
            for member in room.members.values():
                by_member[(room.id, member.id)] = room
        return by_member

    def admin_status(self) -> AdminStatus:
        rooms = self.directory.list_rooms()
        users = self.directory.list_active_users()
        room_counts = RoomCounts(total=len(rooms))
        for room in rooms:
            setattr(room_counts, room.state.value, getattr(room_counts, room.state.value) + 1)

        user_counts = UserCounts(total=len(users))
        by_member = self._user_rooms(rooms)
        for user in users:
            room = by_member.get((user.room_id, user.member_id))
            if room is None:
                user_counts.not_in_room += 1
            else:
                setattr(user_counts, room.state.value, getattr(user_counts, room.state.value) + 1)

        return AdminStatus(rooms=room_counts, users=user_counts, shutdown=self.directory.is_shutdown())

    def admin_list_rooms(self, state: Optional[str] = None) -> List[AdminRoomEntry]:
        rooms = self.directory.list_rooms()
        if state and state != "all":
            rooms = [r for r in rooms if r.state.value == state]
        return [
            AdminRoomEntry(
                id=r.id,
                name=r.name,
                state=r.state,
                member_count=len(r.members),
                member_limit=r.member_limit,
                has_password=r.has_password,
                owner_id=r.owner_id,
            )
            for r in rooms
        ]

    def admin_list_users(self, user_filter: Optional[str] = None) -> List[AdminUserEntry]:
        user_filter = user_filter or "all"
        if user_filter not in USER_FILTERS:
            raise ValidationFailed(f"Unknown filter '{user_filter}'")
        by_member = self._user_rooms(self.directory.list_rooms())
        entries = []
        for user in self.directory.list_active_users():
            room = by_member.get((user.room_id, user.member_id))
            entry = AdminUserEntry(
                display_name=user.display_name,
                room_id=room.id if room else None,
                room_name=room.name if room else None,
                state=room.state.value if room else "not_in_room",
                is_owner=bool(room and room.owner_id == user.member_id),
                last_activity_at=user.last_activity_at,
            )
            if user_filter == "all" or entry.state == user_filter:
                entries.append(entry)
        return entries

    def admin_cleanup(self) -> SweepReport:
        return self.monitor.run_once()

    def is_shutdown(self) -> bool:
        return self.directory.is_shutdown()

    def set_shutdown(self, shutdown: bool):
        self.directory.set_shutdown(shutdown)


@lru_cache()
def get_room_service() -> RoomService:
    return RoomService(get_store())
