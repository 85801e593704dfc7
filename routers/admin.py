from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from constants import ADMIN_SECRET_KEY
from exceptions import LinkRoomsError
from logging_config import get_logger
from models import AdminRoomEntry, AdminStatus, AdminUserEntry, SweepReport
from routers.rooms import to_http_error
from schemas.rooms import AdminKickRequest, ShutdownRequest
from service import RoomService, get_room_service

logger = get_logger(__name__)


def require_admin(x_admin_key: Optional[str] = Header(None)):
    if not ADMIN_SECRET_KEY:
        logger.warning("Admin request rejected: ADMIN_SECRET_KEY is not configured")
        raise HTTPException(status_code=503, detail="Admin access is not configured")
    if x_admin_key != ADMIN_SECRET_KEY:
        logger.warning("Admin request rejected: invalid admin key")
        raise HTTPException(status_code=403, detail="Invalid admin key")


admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@admin_router.get("/status", response_model=AdminStatus)
def admin_status(service: RoomService = Depends(get_room_service)):
    try:
        return service.admin_status()
    except LinkRoomsError as e:
        raise to_http_error(e)


@admin_router.get("/rooms", response_model=List[AdminRoomEntry])
def admin_rooms(state: Optional[str] = Query(None), service: RoomService = Depends(get_room_service)):
    try:
        return service.admin_list_rooms(state)
    except LinkRoomsError as e:
        raise to_http_error(e)


@admin_router.get("/users", response_model=List[AdminUserEntry])
def admin_users(filter: Optional[str] = Query(None), service: RoomService = Depends(get_room_service)):
    try:
        return service.admin_list_users(filter)
    except LinkRoomsError as e:
        raise to_http_error(e)


@admin_router.post("/kick")
def admin_kick_user(body: AdminKickRequest, service: RoomService = Depends(get_room_service)):
    logger.info(f"Admin kick request for {body.display_name}")
    try:
        service.admin_kick_user(body.display_name)
    except LinkRoomsError as e:
        raise to_http_error(e)
    return {"message": f"User '{body.display_name}' was kicked"}


@admin_router.delete("/rooms/{room_id}")
def admin_delete_room(room_id: str, service: RoomService = Depends(get_room_service)):
    logger.info(f"Admin delete request for room {room_id}")
    try:
        service.admin_delete_room(room_id)
    except LinkRoomsError as e:
        raise to_http_error(e)
    return {"message": f"Room {room_id} was deleted"}


@admin_router.post("/cleanup", response_model=SweepReport)
def admin_cleanup(service: RoomService = Depends(get_room_service)):
    try:
        return service.admin_cleanup()
    except LinkRoomsError as e:
        raise to_http_error(e)


@admin_router.get("/shutdown")
def get_shutdown(service: RoomService = Depends(get_room_service)):
    try:
        return {"shutdown": service.is_shutdown()}
    except LinkRoomsError as e:
        raise to_http_error(e)


@admin_router.post("/shutdown")
def set_shutdown(body: ShutdownRequest, service: RoomService = Depends(get_room_service)):
    try:
        service.set_shutdown(body.shutdown)
    except LinkRoomsError as e:
        raise to_http_error(e)
    return {"shutdown": body.shutdown}
