"""
Read-through cache for the permission slugs of a user.

Entries live for ``PERMISSION_CACHE_TTL`` seconds and are dropped explicitly
with ``invalidate(user_id)`` whenever a user's permission set changes.
"""
from typing import Callable, Dict, List, Optional, Tuple
import json
import logging
import threading
import time

import redis

from ledgerpos.core.config import settings

logger = logging.getLogger(__name__)


class PermissionCache:
    """Interface shared by the cache backends."""

    def __init__(self, ttl: int):
        self.ttl = ttl

    @staticmethod
    def key(user_id) -> str:
        return f"user.{user_id}.permissions"

    def get(self, user_id) -> Optional[List[str]]:
        raise NotImplementedError

    def set(self, user_id, slugs: List[str]) -> None:
        raise NotImplementedError

    def invalidate(self, user_id) -> None:
        raise NotImplementedError

    def remember(self, user_id, loader: Callable[[], List[str]]) -> List[str]:
        """Return cached slugs, loading and storing them on a miss."""
        slugs = self.get(user_id)
        if slugs is None:
            slugs = list(loader())
            self.set(user_id, slugs)
        return slugs


class MemoryPermissionCache(PermissionCache):
    """Process-local backend, thread safe."""

    def __init__(self, ttl: int, clock: Callable[[], float] = time.monotonic):
        super().__init__(ttl)
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[str]]] = {}
        self._lock = threading.Lock()

    def get(self, user_id) -> Optional[List[str]]:
        key = self.key(user_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, slugs = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return list(slugs)

    def set(self, user_id, slugs: List[str]) -> None:
        with self._lock:
            self._entries[self.key(user_id)] = (self._clock() + self.ttl, list(slugs))

    def invalidate(self, user_id) -> None:
        with self._lock:
            self._entries.pop(self.key(user_id), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisPermissionCache(PermissionCache):
    """Shared backend for deployments running several worker processes."""

    def __init__(self, ttl: int, client: redis.Redis):
        super().__init__(ttl)
        self.client = client

    def get(self, user_id) -> Optional[List[str]]:
        raw = self.client.get(self.key(user_id))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, user_id, slugs: List[str]) -> None:
        self.client.setex(self.key(user_id), self.ttl, json.dumps(list(slugs)))

    def invalidate(self, user_id) -> None:
        self.client.delete(self.key(user_id))


def build_permission_cache() -> PermissionCache:
    if settings.PERMISSION_CACHE_BACKEND == "redis":
        logger.info(f"Permission cache backend: redis ({settings.REDIS_HOST}:{settings.REDIS_PORT})")
        return RedisPermissionCache(settings.PERMISSION_CACHE_TTL, redis.Redis.from_url(settings.redis_url))
    return MemoryPermissionCache(settings.PERMISSION_CACHE_TTL)


permission_cache = build_permission_cache()
