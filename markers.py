"""
Event marker ledger.

A marker is a short-lived, reason-coded fact ("this user was removed
because ...", "this room was deleted because ...") written once and read by
any number of polling clients until its TTL runs out. The ledger stores
whatever it is given; choosing the right reason is up to the caller, see
``notify_user_removed`` for the priority rule.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import ValidationError

from backend import SessionStore
from constants import MARKER_TTL_SECONDS
from logging_config import get_logger
from models import (
    KickReason,
    RoomRemovalMarker,
    RoomRemovalReason,
    UserRemovalMarker,
    utcnow,
)
from redis_keys import ROOM_MARKER_KEY, USER_MARKER_KEY

logger = get_logger(__name__)


class EventMarkerLedger:
    def __init__(self, store: SessionStore, ttl: float = MARKER_TTL_SECONDS,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.ttl = ttl
        self.clock = clock

    def _expires_at(self) -> datetime:
        return self.clock() + timedelta(seconds=self.ttl)

    # ---------- user markers ----------

    def set_user_marker(self, display_name: str, reason: KickReason,
                        related_room_reason: Optional[RoomRemovalReason] = None) -> UserRemovalMarker:
        marker = UserRemovalMarker(
            display_name=display_name,
            reason=reason,
            related_room_reason=related_room_reason,
            created_at=self.clock(),
            expires_at=self._expires_at(),
        )
        self.store.put(USER_MARKER_KEY.format(display_name=display_name), marker.model_dump_json(), ttl=self.ttl)
        logger.info(f"User marker set for {display_name}: reason={reason.value}, "
                    f"room_reason={related_room_reason.value if related_room_reason else None}")
        return marker

    def get_user_marker(self, display_name: str) -> Optional[UserRemovalMarker]:
        if not display_name:
            return None
        raw = self.store.get(USER_MARKER_KEY.format(display_name=display_name))
        if raw is None:
            return None
        try:
            return UserRemovalMarker.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"User marker for {display_name} is unreadable: {e}", exc_info=True)
            return None

    def clear_user_marker(self, display_name: str):
        self.store.delete(USER_MARKER_KEY.format(display_name=display_name))
        logger.debug(f"User marker cleared for {display_name}")

    # ---------- room markers ----------

    def set_room_marker(self, room_id: str, reason: RoomRemovalReason) -> RoomRemovalMarker:
        marker = RoomRemovalMarker(
            room_id=room_id,
            reason=reason,
            created_at=self.clock(),
            expires_at=self._expires_at(),
        )
        self.store.put(ROOM_MARKER_KEY.format(room_id=room_id), marker.model_dump_json(), ttl=self.ttl)
        logger.info(f"Room marker set for {room_id}: reason={reason.value}")
        return marker

    def get_room_marker(self, room_id: str) -> Optional[RoomRemovalMarker]:
        if not room_id:
            return None
        raw = self.store.get(ROOM_MARKER_KEY.format(room_id=room_id))
        if raw is None:
            return None
        try:
            return RoomRemovalMarker.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Room marker for {room_id} is unreadable: {e}", exc_info=True)
            return None

    def clear_room_marker(self, room_id: str):
        self.store.delete(ROOM_MARKER_KEY.format(room_id=room_id))
        logger.debug(f"Room marker cleared for {room_id}")


def notify_user_removed(ledger: EventMarkerLedger, display_name: str, reason: KickReason,
                        related_room_reason: Optional[RoomRemovalReason] = None) -> UserRemovalMarker:
    """Record why a user was removed without downgrading an earlier explanation.

    Priority is admin_kick > owner_kick > room_dismissed > inactivity. If a
    marker with a strictly higher priority is still live, it is kept and
    returned unchanged.
    """
    existing = ledger.get_user_marker(display_name)
    if existing is not None and existing.reason.priority > reason.priority:
        logger.debug(f"Keeping {existing.reason.value} marker for {display_name} over {reason.value}")
        return existing
    return ledger.set_user_marker(display_name, reason, related_room_reason)
