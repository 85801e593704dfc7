from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from constants import MAX_MEMBER_LIMIT, MIN_MEMBER_LIMIT


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoomState(str, Enum):
    WAITING = "waiting"
    LINKING = "linking"
    COMPLETED = "completed"


class MemberRole(str, Enum):
    VOTER = "voter"
    OBSERVER = "observer"


class KickReason(str, Enum):
    OWNER_KICK = "owner_kick"
    ADMIN_KICK = "admin_kick"
    ROOM_DISMISSED = "room_dismissed"
    INACTIVITY = "inactivity"

    @property
    def priority(self) -> int:
        return KICK_PRIORITY[self]


# Higher wins when several causes apply to the same user
KICK_PRIORITY = {
    KickReason.ADMIN_KICK: 4,
    KickReason.OWNER_KICK: 3,
    KickReason.ROOM_DISMISSED: 2,
    KickReason.INACTIVITY: 1,
}


class RoomRemovalReason(str, Enum):
    ADMIN_DISMISSED = "admin_dismissed"
    OWNER_DISMISSED = "owner_dismissed"
    INACTIVITY = "inactivity"
    EMPTY = "empty"


class Member(BaseModel):
    id: str
    display_name: str
    role: MemberRole = MemberRole.VOTER
    joined_at: datetime = Field(default_factory=utcnow)


class MatchPair(BaseModel):
    first: str
    second: str


class MatchResult(BaseModel):
    pairs: List[MatchPair] = Field(default_factory=list)
    leftovers: List[str] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=utcnow)


class Room(BaseModel):
    id: str
    name: str
    password: Optional[str] = None
    member_limit: int = Field(ge=MIN_MEMBER_LIMIT, le=MAX_MEMBER_LIMIT)
    members: Dict[str, Member] = Field(default_factory=dict)
    selections: Dict[str, str] = Field(default_factory=dict)
    state: RoomState = RoomState.WAITING
    match_result: Optional[MatchResult] = None
    returned_acknowledgers: Set[str] = Field(default_factory=set)
    owner_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    had_members: bool = False

    @property
    def name_key(self) -> str:
        return self.name.lower()

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def voter_ids(self) -> List[str]:
        return [m.id for m in self.members.values() if m.role == MemberRole.VOTER]

    def is_full(self) -> bool:
        return len(self.members) >= self.member_limit

    def add_member(self, member: Member):
        self.members[member.id] = member
        self.had_members = True
        if self.owner_id is None:
            self.owner_id = member.id

    def touch(self, now: datetime):
        self.last_activity_at = now


class ActiveUser(BaseModel):
    display_name: str
    room_id: Optional[str] = None
    member_id: Optional[str] = None
    last_activity_at: datetime = Field(default_factory=utcnow)


class UserRemovalMarker(BaseModel):
    display_name: str
    reason: KickReason
    related_room_reason: Optional[RoomRemovalReason] = None
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime


class RoomRemovalMarker(BaseModel):
    room_id: str
    reason: RoomRemovalReason
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime


# ============ Views returned to callers ============

class MemberView(BaseModel):
    id: str
    display_name: str
    role: MemberRole
    joined_at: datetime
    is_owner: bool
    has_voted: bool
    has_acknowledged: bool


class RoomView(BaseModel):
    id: str
    name: str
    member_limit: int
    has_password: bool
    state: RoomState
    owner_id: Optional[str]
    members: List[MemberView]
    selections: Dict[str, str]
    match_result: Optional[MatchResult]
    created_at: datetime
    last_activity_at: datetime

    @classmethod
    def from_room(cls, room: Room) -> "RoomView":
        members = [
            MemberView(
                id=m.id,
                display_name=m.display_name,
                role=m.role,
                joined_at=m.joined_at,
                is_owner=m.id == room.owner_id,
                has_voted=m.id in room.selections,
                has_acknowledged=m.id in room.returned_acknowledgers,
            )
            for m in room.members.values()
        ]
        return cls(
            id=room.id,
            name=room.name,
            member_limit=room.member_limit,
            has_password=room.has_password,
            state=room.state,
            owner_id=room.owner_id,
            members=members,
            # Votes stay secret until the round is over
            selections=dict(room.selections) if room.state == RoomState.COMPLETED else {},
            match_result=room.match_result,
            created_at=room.created_at,
            last_activity_at=room.last_activity_at,
        )


class SessionTicket(BaseModel):
    room_id: str
    member_id: str
    is_owner: bool
    room: RoomView


class PasswordRequired(BaseModel):
    room_id: str
    requires_password: bool = True


class RoomSnapshot(BaseModel):
    found: bool
    room: Optional[RoomView] = None
    user_marker: Optional[UserRemovalMarker] = None
    room_marker: Optional[RoomRemovalMarker] = None


class AcknowledgeResult(BaseModel):
    all_returned: bool
    returned_count: int
    total_voters: int
    state: RoomState


class SessionStatus(BaseModel):
    active: bool
    user_warning: bool = False
    user_seconds_left: int = 0
    room_warning: bool = False
    room_seconds_left: int = 0
    user_marker: Optional[UserRemovalMarker] = None
    room_marker: Optional[RoomRemovalMarker] = None


class RoomCounts(BaseModel):
    total: int = 0
    waiting: int = 0
    linking: int = 0
    completed: int = 0


class UserCounts(BaseModel):
    total: int = 0
    not_in_room: int = 0
    waiting: int = 0
    linking: int = 0
    completed: int = 0


class AdminStatus(BaseModel):
    rooms: RoomCounts
    users: UserCounts
    shutdown: bool


class AdminRoomEntry(BaseModel):
    id: str
    name: str
    state: RoomState
    member_count: int
    member_limit: int
    has_password: bool
    owner_id: Optional[str]


class AdminUserEntry(BaseModel):
    display_name: str
    room_id: Optional[str]
    room_name: Optional[str]
    state: str
    is_owner: bool
    last_activity_at: datetime


class SweepReport(BaseModel):
    users_evicted: int = 0
    rooms_emptied: int = 0
    zombie_rooms: int = 0
