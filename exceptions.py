"""
Typed errors raised by the room core.

Every error carries a stable ``code`` so the transport layer can map it
without string matching. The four category classes mirror how a caller is
expected to react: fix the input, pick something else, reconcile via the
event markers, or retry later.
"""


class LinkRoomsError(Exception):
    """Base class for all core errors"""
    code = "Error"
    status_code = 400

    def __init__(self, message: str = None):
        self.message = message or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationFailed(LinkRoomsError):
    """Bad input shape or length; nothing was changed"""
    code = "ValidationFailed"
    status_code = 400


class Conflict(LinkRoomsError):
    """Request collides with the current state; nothing was changed"""
    code = "Conflict"
    status_code = 409


class NotFound(LinkRoomsError):
    """Stale reference; consult the event markers to learn why"""
    code = "NotFound"
    status_code = 404


class StorageUnavailable(LinkRoomsError):
    """Session store unreachable; safe to retry"""
    code = "StorageUnavailable"
    status_code = 503


# ============ Validation ============

class NameInvalid(ValidationFailed):
    code = "NameInvalid"


class DisplayNameInvalid(ValidationFailed):
    code = "DisplayNameInvalid"


class DisplayNameReserved(ValidationFailed):
    code = "DisplayNameReserved"


class MemberLimitInvalid(ValidationFailed):
    code = "MemberLimitInvalid"


class SelfSelection(ValidationFailed):
    code = "SelfSelection"


class RoleInvalid(ValidationFailed):
    code = "RoleInvalid"


# ============ Conflicts ============

class NameTaken(Conflict):
    code = "NameTaken"


class DisplayNameTaken(Conflict):
    code = "DisplayNameTaken"


class RoomFull(Conflict):
    code = "RoomFull"


class RoomNotWaiting(Conflict):
    code = "RoomNotWaiting"


class WrongPassword(Conflict):
    code = "WrongPassword"
    status_code = 401


class NotOwner(Conflict):
    code = "NotOwner"
    status_code = 403


class NotWaiting(Conflict):
    code = "NotWaiting"


class NotLinking(Conflict):
    code = "NotLinking"


class NotEnoughVoters(Conflict):
    code = "NotEnoughVoters"


class NotAVoter(Conflict):
    code = "NotAVoter"


class TargetNotAVoter(Conflict):
    code = "TargetNotAVoter"


class AlreadyVoted(Conflict):
    code = "AlreadyVoted"


class RoleChangeNotAllowed(Conflict):
    code = "RoleChangeNotAllowed"


class CannotKickSelf(Conflict):
    code = "CannotKickSelf"


class ServiceShutdown(Conflict):
    code = "ServiceShutdown"
    status_code = 503


# ============ Not found ============

class RoomNotFound(NotFound):
    code = "RoomNotFound"

    def __init__(self, room_ref):
        self.room_ref = room_ref
        super().__init__(f"Room {room_ref} not found")


class NotInRoom(NotFound):
    code = "NotInRoom"

    def __init__(self, member_id, room_id):
        self.member_id = member_id
        self.room_id = room_id
        super().__init__(f"Member {member_id} is not in room {room_id}")


class TargetNotInRoom(NotFound):
    code = "TargetNotInRoom"

    def __init__(self, member_id, room_id):
        self.member_id = member_id
        self.room_id = room_id
        super().__init__(f"Selected member {member_id} is not in room {room_id}")


class ActiveUserNotFound(NotFound):
    code = "ActiveUserNotFound"

    def __init__(self, display_name):
        self.display_name = display_name
        super().__init__(f"Active user {display_name} not found")
