from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query

from exceptions import LinkRoomsError
from logging_config import get_logger
from models import (
    AcknowledgeResult,
    PasswordRequired,
    RoomSnapshot,
    RoomView,
    SessionStatus,
    SessionTicket,
)
from schemas.rooms import (
    AvailabilityResponse,
    ChangeRoleRequest,
    CreateRoomRequest,
    ExitRequest,
    HeartbeatRequest,
    HeartbeatResponse,
    JoinRoomByIdRequest,
    JoinRoomRequest,
    KickRequest,
    MemberRequest,
    SessionStatusRequest,
    VoteRequest,
)
from service import RoomService, get_room_service

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])
session_router = APIRouter(prefix="/session", tags=["session"])


def to_http_error(e: LinkRoomsError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


@rooms_router.post("/", response_model=SessionTicket)
def create_room(body: CreateRoomRequest, service: RoomService = Depends(get_room_service)):
    logger.info(f"Room creation request: name={body.name}, member_limit={body.member_limit}, by={body.display_name}")
    try:
        return service.create_room(body.name, body.password, body.member_limit, body.display_name)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/join", response_model=Union[SessionTicket, PasswordRequired])
def join_room(body: JoinRoomRequest, service: RoomService = Depends(get_room_service)):
    logger.info(f"Join room request for '{body.name}', display_name: {body.display_name}")
    try:
        return service.join_room(body.name, body.display_name, body.password)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.get("/name-available", response_model=AvailabilityResponse)
def check_room_name(name: str = Query(...), service: RoomService = Depends(get_room_service)):
    try:
        return AvailabilityResponse(available=service.name_available(name))
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.get("/{room_id}", response_model=RoomSnapshot)
def get_room_snapshot(
    room_id: str,
    display_name: Optional[str] = Query(None, description="Caller's display name, used to look up removal markers"),
    service: RoomService = Depends(get_room_service),
):
    # Polled by every client; a missing room is reported in the body, not as an error
    try:
        return service.get_room_snapshot(room_id, display_name)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/join", response_model=Union[SessionTicket, PasswordRequired])
def join_room_by_id(room_id: str, body: JoinRoomByIdRequest, service: RoomService = Depends(get_room_service)):
    logger.info(f"Join room request for {room_id}, display_name: {body.display_name}")
    try:
        return service.join_room_by_id(room_id, body.display_name, body.password)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/start", response_model=RoomView)
def start_game(room_id: str, body: MemberRequest, service: RoomService = Depends(get_room_service)):
    try:
        return service.start_game(room_id, body.member_id)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/vote", response_model=RoomView)
def submit_vote(room_id: str, body: VoteRequest, service: RoomService = Depends(get_room_service)):
    try:
        return service.submit_vote(room_id, body.member_id, body.chosen_id)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/acknowledge", response_model=AcknowledgeResult)
def acknowledge_result(room_id: str, body: MemberRequest, service: RoomService = Depends(get_room_service)):
    try:
        return service.acknowledge_result(room_id, body.member_id)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/role", response_model=RoomView)
def change_role(room_id: str, body: ChangeRoleRequest, service: RoomService = Depends(get_room_service)):
    try:
        return service.change_role(room_id, body.member_id, body.role)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/kick", response_model=Optional[RoomView])
def kick_member(room_id: str, body: KickRequest, service: RoomService = Depends(get_room_service)):
    try:
        return service.kick_member(room_id, body.owner_id, body.target_id)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/leave")
def leave_room(room_id: str, body: MemberRequest, service: RoomService = Depends(get_room_service)):
    try:
        service.leave_room(room_id, body.member_id)
    except LinkRoomsError as e:
        raise to_http_error(e)
    return {"message": "Left room"}


@rooms_router.post("/{room_id}/keep-alive", response_model=RoomView)
def keep_room_alive(room_id: str, body: MemberRequest, service: RoomService = Depends(get_room_service)):
    try:
        return service.keep_room_alive(room_id, body.member_id)
    except LinkRoomsError as e:
        raise to_http_error(e)


@rooms_router.post("/{room_id}/dismiss")
def dismiss_room(room_id: str, body: MemberRequest, service: RoomService = Depends(get_room_service)):
    try:
        service.dismiss_room(room_id, body.member_id)
    except LinkRoomsError as e:
        raise to_http_error(e)
    return {"message": "Room dismissed"}


@session_router.get("/display-name-available", response_model=AvailabilityResponse)
def check_display_name(display_name: str = Query(...), service: RoomService = Depends(get_room_service)):
    try:
        return AvailabilityResponse(available=service.display_name_available(display_name))
    except LinkRoomsError as e:
        raise to_http_error(e)


@session_router.post("/heartbeat", response_model=HeartbeatResponse)
def heartbeat(body: HeartbeatRequest, service: RoomService = Depends(get_room_service)):
    try:
        return HeartbeatResponse(active=service.heartbeat(body.display_name, body.member_id))
    except LinkRoomsError as e:
        raise to_http_error(e)


@session_router.post("/status", response_model=SessionStatus)
def session_status(body: SessionStatusRequest, service: RoomService = Depends(get_room_service)):
    try:
        return service.get_session_status(body.display_name, body.member_id, body.room_id)
    except LinkRoomsError as e:
        raise to_http_error(e)


@session_router.post("/exit")
def exit_session(body: ExitRequest, service: RoomService = Depends(get_room_service)):
    try:
        removed = service.exit_session(body.display_name)
    except LinkRoomsError as e:
        raise to_http_error(e)
    return {"removed": removed}
