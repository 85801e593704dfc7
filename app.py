import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from constants import EVICTION_ENABLED
from exceptions import StorageUnavailable
from logging_config import get_logger, setup_logging
from routers.admin import admin_router
from routers.rooms import rooms_router, session_router
from service import RoomService, get_room_service

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Each instance runs its own monitor; sweeps are idempotent against the shared store
    monitor = get_room_service().monitor if EVICTION_ENABLED else None
    if monitor is not None:
        monitor.start()
    yield
    if monitor is not None:
        await monitor.stop()


app = FastAPI(title="Link Rooms", lifespan=lifespan)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allow all HTTP methods
    allow_headers=["*"],  # Allow all headers
)

app.include_router(rooms_router)
app.include_router(session_router)
app.include_router(admin_router)

logger.info("FastAPI application initialized")


@app.get("/health")
def health(service: RoomService = Depends(get_room_service)):
    try:
        service.directory.store.ping()
    except StorageUnavailable as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "degraded"}
    return {"status": "healthy"}
