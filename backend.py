import threading
import time
from abc import ABC, abstractmethod
from functools import lru_cache, wraps
from typing import Callable, Dict, List, Optional, Tuple

import redis

from constants import REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT, STORE_BACKEND
from exceptions import StorageUnavailable
from logging_config import get_logger

logger = get_logger(__name__)


class SessionStore(ABC):
    """Key/value store with optional per-key expiry.

    Values are plain strings (json documents). A ttl of None means the key
    never expires on its own.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def put(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        ...

    @abstractmethod
    def put_if_absent(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        """Atomically write ``value`` only if ``key`` does not exist yet."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def list_keys(self, prefix: str) -> List[str]:
        ...

    @abstractmethod
    def ttl(self, key: str) -> Optional[float]:
        """Seconds left before ``key`` expires, None if missing or persistent."""

    @abstractmethod
    def ping(self) -> bool:
        ...


def redis_call(func):
    """Turn redis-py failures into StorageUnavailable so callers see one retryable error type."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except redis.RedisError as e:
            logger.error(f"Redis operation {func.__name__} failed (args={args}): {e}", exc_info=True)
            raise StorageUnavailable(f"Session store unavailable during {func.__name__}") from e

    return wrapper


class RedisBackend(SessionStore):
    def __init__(self, client: Optional[redis.Redis] = None):
        if client is not None:
            self.redis_client = client
            return

        logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
        try:
            self.redis_client = redis.Redis(
                host=REDIS_HOST,
                port=REDIS_PORT,
                password=REDIS_PASSWORD,
                db=REDIS_DB,
                decode_responses=True,
            )
            # Test connection
            self.redis_client.ping()
            logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            raise StorageUnavailable(f"Cannot connect to Redis at {REDIS_HOST}:{REDIS_PORT}") from e

    @staticmethod
    def _px(ttl: Optional[float]) -> Optional[int]:
        if ttl is None:
            return None
        return max(1, int(ttl * 1000))

    @redis_call
    def get(self, key: str) -> Optional[str]:
        value = self.redis_client.get(key)
        logger.debug(f"GET {key} -> {'hit' if value is not None else 'miss'}")
        return value

    @redis_call
    def put(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        self.redis_client.set(key, value, px=self._px(ttl))
        logger.debug(f"SET {key} (ttl={ttl})")

    @redis_call
    def put_if_absent(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        created = bool(self.redis_client.set(key, value, nx=True, px=self._px(ttl)))
        logger.debug(f"SET NX {key} -> {'created' if created else 'exists'}")
        return created

    @redis_call
    def delete(self, key: str) -> None:
        deleted = self.redis_client.delete(key)
        logger.debug(f"DEL {key} -> {deleted}")

    @redis_call
    def list_keys(self, prefix: str) -> List[str]:
        # SCAN instead of KEYS so a large keyspace never blocks the server
        keys = list(self.redis_client.scan_iter(match=f"{prefix}*", count=500))
        logger.debug(f"SCAN {prefix}* -> {len(keys)} keys")
        return keys

    @redis_call
    def ttl(self, key: str) -> Optional[float]:
        remaining = self.redis_client.pttl(key)
        if remaining is None or remaining < 0:
            return None
        return remaining / 1000.0

    @redis_call
    def ping(self) -> bool:
        return bool(self.redis_client.ping())


class MemoryBackend(SessionStore):
    """Process-local store for a single instance and for tests.

    Expiry is checked lazily on access. ``clock`` returns seconds and can be
    replaced to drive expiry deterministically.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()
        logger.info("Initializing in-memory session store (not shared across instances)")

    def _expires_at(self, ttl: Optional[float]) -> Optional[float]:
        return None if ttl is None else self._clock() + ttl

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def put(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expires_at(ttl))

    def put_if_absent(self, key: str, value: str, ttl: Optional[float] = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._expires_at(ttl))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list_keys(self, prefix: str) -> List[str]:
        with self._lock:
            return [key for key in list(self._data) if key.startswith(prefix) and self._live(key) is not None]

    def ttl(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[1] is None:
                return None
            return entry[1] - self._clock()

    def ping(self) -> bool:
        return True


@lru_cache()
def get_store() -> SessionStore:
    if STORE_BACKEND == "memory":
        return MemoryBackend()
    if STORE_BACKEND != "redis":
        logger.warning(f"Unknown STORE_BACKEND '{STORE_BACKEND}', falling back to redis")
    return RedisBackend()
