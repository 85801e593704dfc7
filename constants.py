import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))

# "redis" for shared deployments, "memory" for a single local instance
STORE_BACKEND = os.getenv("STORE_BACKEND", "redis").lower()

# Timeouts (seconds)
USER_TIMEOUT_SECONDS = int(os.getenv("USER_TIMEOUT_SECONDS", 30 * 60))
ROOM_TIMEOUT_SECONDS = int(os.getenv("ROOM_TIMEOUT_SECONDS", 2 * 60 * 60))
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", 5 * 60))
MARKER_TTL_SECONDS = int(os.getenv("MARKER_TTL_SECONDS", 60))
WARNING_LEAD_SECONDS = int(os.getenv("WARNING_LEAD_SECONDS", 60))

EVICTION_ENABLED = os.getenv("EVICTION_ENABLED", "true").lower() in ("1", "true", "yes")

# Room / member limits
MIN_MEMBER_LIMIT = 2
MAX_MEMBER_LIMIT = 99
MAX_ROOM_NAME_LENGTH = 40
MAX_DISPLAY_NAME_LENGTH = 20

ADMIN_DISPLAY_NAME = os.getenv("ADMIN_DISPLAY_NAME", "link-station-admin")
ADMIN_SECRET_KEY = os.getenv("ADMIN_SECRET_KEY", None)
