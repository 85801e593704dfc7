import asyncio
from datetime import datetime
from typing import Callable, Optional

import lifecycle
from constants import ROOM_TIMEOUT_SECONDS, SWEEP_INTERVAL_SECONDS, USER_TIMEOUT_SECONDS
from directory import RoomDirectory
from logging_config import get_logger
from markers import EventMarkerLedger, notify_user_removed
from models import KickReason, Room, RoomRemovalReason, SweepReport, utcnow

logger = get_logger(__name__)


class EvictionMonitor:
    """Periodic sweep that removes idle users, empty rooms and zombie rooms.

    Every service instance may run its own monitor against the shared store.
    A sweep only acts on records that are still past their timeout, so
    running it twice, or from two instances, does nothing the second time.
    """

    def __init__(self, directory: RoomDirectory, ledger: EventMarkerLedger,
                 clock: Callable[[], datetime] = utcnow,
                 user_timeout: float = USER_TIMEOUT_SECONDS,
                 room_timeout: float = ROOM_TIMEOUT_SECONDS,
                 interval: float = SWEEP_INTERVAL_SECONDS):
        self.directory = directory
        self.ledger = ledger
        self.clock = clock
        self.user_timeout = user_timeout
        self.room_timeout = room_timeout
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or self.clock()
        report = SweepReport()
        logger.info("Running eviction sweep")
        self.sweep_users(now, report)
        self.sweep_rooms(now, report)
        logger.info(f"Eviction sweep complete: {report.users_evicted} users evicted, "
                    f"{report.rooms_emptied} empty rooms, {report.zombie_rooms} zombie rooms")
        return report

    def _delete_empty(self, room: Room, report: SweepReport):
        # Nobody is left to notify; the room marker only explains the missing room
        if room.had_members:
            self.ledger.set_room_marker(room.id, RoomRemovalReason.EMPTY)
        self.directory.delete_room(room)
        report.rooms_emptied += 1

    def sweep_users(self, now: datetime, report: SweepReport):
        for user in self.directory.list_active_users():
            idle = (now - user.last_activity_at).total_seconds()
            if idle <= self.user_timeout:
                continue

            logger.info(f"Evicting inactive user {user.display_name} (idle {int(idle)}s)")
            notify_user_removed(self.ledger, user.display_name, KickReason.INACTIVITY)

            room = self.directory.get_room_by_id(user.room_id) if user.room_id else None
            if room is not None and user.member_id in room.members:
                lifecycle.remove_member(room, user.member_id, now)
                if room.members:
                    self.directory.save_room(room)
                else:
                    self._delete_empty(room, report)

            self.directory.delete_active_user(user.display_name)
            report.users_evicted += 1

    def sweep_rooms(self, now: datetime, report: SweepReport):
        for room in self.directory.list_rooms():
            if not room.members:
                logger.info(f"Deleting empty room '{room.name}' ({room.id})")
                self._delete_empty(room, report)
                continue

            idle = (now - room.last_activity_at).total_seconds()
            if idle <= self.room_timeout:
                continue

            logger.info(f"Deleting zombie room '{room.name}' ({room.id}), no game activity for {int(idle // 60)} minutes")
            self.ledger.set_room_marker(room.id, RoomRemovalReason.INACTIVITY)
            for member in room.members.values():
                notify_user_removed(self.ledger, member.display_name, KickReason.INACTIVITY,
                                    RoomRemovalReason.INACTIVITY)
                user = self.directory.get_active_user(member.display_name)
                if user is not None and user.room_id == room.id and user.member_id == member.id:
                    self.directory.delete_active_user(member.display_name)
            self.directory.delete_room(room)
            report.zombie_rooms += 1

    # ---------- background loop ----------

    async def _run(self):
        logger.info(f"Eviction monitor started (every {self.interval}s)")
        loop = asyncio.get_running_loop()
        try:
            while True:
                try:
                    # Store access is blocking; keep it off the event loop
                    await loop.run_in_executor(None, self.run_once)
                except Exception as e:
                    logger.error(f"Eviction sweep failed, retrying next tick: {e}", exc_info=True)
                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            logger.info("Eviction monitor cancelled")
            raise

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
