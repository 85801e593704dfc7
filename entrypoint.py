import os
import sys

import uvicorn

from logging_config import get_logger, setup_logging

# Configure logging before the app module is imported
setup_logging(log_level=os.getenv("LOG_LEVEL", "DEBUG"), log_file=os.getenv("LOG_FILE", None))
logger = get_logger(__name__)


def serve():
    from app import app

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    logger.info(f"Starting Link Rooms server on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


def sweep():
    """Run a single eviction pass against the configured store and exit."""
    from service import get_room_service

    report = get_room_service().admin_cleanup()
    logger.info(f"One-off sweep finished: {report.model_dump()}")


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "serve"
    if command == "serve":
        serve()
    elif command == "sweep":
        sweep()
    else:
        logger.error(f"Unknown command '{command}', expected 'serve' or 'sweep'")
        sys.exit(2)
