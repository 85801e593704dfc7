from pydantic import BaseModel
from typing import Optional

from models import MemberRole


class CreateRoomRequest(BaseModel):
    name: str
    password: Optional[str] = None
    member_limit: int = 8
    display_name: str

class JoinRoomRequest(BaseModel):
    name: str
    display_name: str
    password: Optional[str] = None

class JoinRoomByIdRequest(BaseModel):
    display_name: str
    password: Optional[str] = None

class MemberRequest(BaseModel):
    member_id: str

class VoteRequest(BaseModel):
    member_id: str
    chosen_id: str

class ChangeRoleRequest(BaseModel):
    member_id: str
    role: MemberRole

class KickRequest(BaseModel):
    owner_id: str
    target_id: str

class HeartbeatRequest(BaseModel):
    display_name: str
    member_id: str

class ExitRequest(BaseModel):
    display_name: str

class SessionStatusRequest(BaseModel):
    display_name: str
    member_id: Optional[str] = None
    room_id: Optional[str] = None

class AvailabilityResponse(BaseModel):
    available: bool

class HeartbeatResponse(BaseModel):
    active: bool

class AdminKickRequest(BaseModel):
    display_name: str

class ShutdownRequest(BaseModel):
    shutdown: bool
