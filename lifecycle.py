"""
Room state machine.

    waiting --start (owner, >=2 voters)--> linking
    linking --every voter selected-------> completed
    completed --every voter acknowledged-> waiting

There is no terminal state; rooms are destroyed from outside (eviction,
kick/leave down to zero members, admin or owner deletion). Every function
here mutates the Room in place and leaves persistence to the caller.
"""
from datetime import datetime
from typing import Optional

from exceptions import (
    AlreadyVoted,
    NotAVoter,
    NotEnoughVoters,
    NotInRoom,
    NotLinking,
    NotOwner,
    NotWaiting,
    RoleChangeNotAllowed,
    SelfSelection,
    TargetNotAVoter,
    TargetNotInRoom,
)
from logging_config import get_logger
from matching import match
from models import MatchPair, MatchResult, Member, MemberRole, Room, RoomState

logger = get_logger(__name__)

MIN_VOTERS = 2


def _reset_round(room: Room):
    room.selections.clear()
    room.match_result = None
    room.returned_acknowledgers.clear()


def require_member(room: Room, member_id: str) -> Member:
    member = room.members.get(member_id)
    if member is None:
        raise NotInRoom(member_id, room.id)
    return member


def require_owner(room: Room, member_id: str):
    if room.owner_id != member_id:
        raise NotOwner(f"Only the room owner can do this in room {room.id}")


def start(room: Room, member_id: str, now: datetime):
    require_owner(room, member_id)
    if room.state != RoomState.WAITING:
        raise NotWaiting(f"Room {room.id} is {room.state.value}, wait until everyone is back in the waiting room")

    voter_count = len(room.voter_ids())
    if voter_count < MIN_VOTERS:
        raise NotEnoughVoters(f"Need at least {MIN_VOTERS} voters to start, got {voter_count}")

    _reset_round(room)
    room.state = RoomState.LINKING
    room.touch(now)
    logger.info(f"Room {room.id} started linking with {voter_count} voters")


def record_selection(room: Room, voter_id: str, chosen_id: str, now: datetime) -> bool:
    """Store a vote and complete the round if it was the last one missing.

    Returns True when the vote closed the round.
    """
    voter = require_member(room, voter_id)
    if voter.role != MemberRole.VOTER:
        raise NotAVoter(f"Member {voter_id} is an observer and cannot vote")
    if room.state != RoomState.LINKING:
        raise NotLinking(f"Room {room.id} is {room.state.value}, not linking")
    if voter_id in room.selections:
        raise AlreadyVoted(f"Member {voter_id} already voted")
    if chosen_id == voter_id:
        raise SelfSelection("A voter cannot select themselves")
    target = room.members.get(chosen_id)
    if target is None:
        raise TargetNotInRoom(chosen_id, room.id)
    if target.role != MemberRole.VOTER:
        raise TargetNotAVoter(f"Member {chosen_id} is an observer and cannot be selected")

    room.selections[voter_id] = chosen_id
    room.touch(now)
    logger.info(f"Room {room.id}: {len(room.selections)}/{len(room.voter_ids())} voters selected")
    return maybe_complete(room, now)


def maybe_complete(room: Room, now: datetime) -> bool:
    """linking -> completed once every current voter has a selection."""
    if room.state != RoomState.LINKING:
        return False
    voter_ids = room.voter_ids()
    if any(v not in room.selections for v in voter_ids):
        return False

    outcome = match(voter_ids, room.selections)
    room.match_result = MatchResult(
        pairs=[MatchPair(first=a, second=b) for a, b in outcome.pairs],
        leftovers=list(outcome.leftovers),
        completed_at=now,
    )
    room.returned_acknowledgers.clear()
    room.state = RoomState.COMPLETED
    logger.info(f"Room {room.id} completed: {len(outcome.pairs)} pairs, {len(outcome.leftovers)} leftovers")
    return True


def acknowledge(room: Room, member_id: str, now: datetime) -> bool:
    """Mark a member as back from the result screen.

    Outside ``completed`` this is a no-op. Returns True when the last voter's
    acknowledgement moved the room back to waiting.
    """
    require_member(room, member_id)
    if room.state != RoomState.COMPLETED:
        return False
    room.returned_acknowledgers.add(member_id)
    room.touch(now)
    return maybe_release(room)


def maybe_release(room: Room) -> bool:
    """completed -> waiting once every current voter has acknowledged."""
    if room.state != RoomState.COMPLETED:
        return False
    voter_ids = room.voter_ids()
    waiting_on = [v for v in voter_ids if v not in room.returned_acknowledgers]
    if waiting_on:
        logger.debug(f"Room {room.id} waiting on {len(waiting_on)}/{len(voter_ids)} acknowledgements")
        return False
    _reset_round(room)
    room.state = RoomState.WAITING
    logger.info(f"Room {room.id} back to waiting, all voters returned")
    return True


def change_role(room: Room, member_id: str, role: MemberRole, now: datetime):
    member = require_member(room, member_id)
    if room.state != RoomState.WAITING:
        raise RoleChangeNotAllowed(f"Roles can only change while room {room.id} is waiting")
    member.role = role
    room.touch(now)
    logger.info(f"Member {member.display_name} in room {room.id} is now {role.value}")


def remove_member(room: Room, member_id: str, now: Optional[datetime] = None) -> Optional[Member]:
    """Take a member out of the room and keep the room consistent.

    While linking, drops the member's vote and votes cast for them; a
    finished round keeps its selections so they still match the result.
    Hands ownership to the longest-present remaining member, then re-checks
    the linking/completed barriers so nobody waits on a departed voter. A
    round left with fewer than two voters is abandoned back to waiting.
    """
    member = room.members.pop(member_id, None)
    if member is None:
        return None

    if room.state == RoomState.LINKING:
        room.selections.pop(member_id, None)
        for voter_id, chosen_id in list(room.selections.items()):
            if chosen_id == member_id:
                # The voter picks again; their target no longer exists
                del room.selections[voter_id]
    room.returned_acknowledgers.discard(member_id)

    if room.owner_id == member_id:
        room.owner_id = next(iter(room.members), None)
        if room.owner_id is not None:
            logger.info(f"Ownership of room {room.id} handed to {room.members[room.owner_id].display_name}")

    if room.state == RoomState.LINKING and len(room.voter_ids()) < MIN_VOTERS:
        _reset_round(room)
        room.state = RoomState.WAITING
        logger.info(f"Room {room.id} back to waiting, not enough voters left to finish the round")

    if room.members and now is not None:
        maybe_complete(room, now)
        maybe_release(room)
    return member
