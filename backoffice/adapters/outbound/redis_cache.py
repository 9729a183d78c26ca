"""Read-model caches implementing CachePort.

The cache only ever holds derived report data, so it is allowed to lose
entries: a Redis outage or a corrupt entry turns into a miss and the
report is recomputed from the store. Writes and invalidations that fail
are logged and skipped.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
import time

import redis

from domain.ports import CachePort

logger = logging.getLogger(__name__)

# Keys deleted per DEL command during prefix invalidation.
DELETE_BATCH = 500


class RedisCacheAdapter(CachePort):
    """JSON values in Redis under ``<namespace><key>`` with a per-entry TTL.

    A ``None`` client disables caching (every read misses). Errors from
    the Redis client never reach the caller.
    """

    def __init__(self, redis_client=None, namespace: str = "ledger:"):
        self._redis = redis_client
        self._namespace = namespace

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def get(self, key: str) -> object | None:
        if self._redis is None:
            return None
        full_key = self._key(key)
        try:
            raw = self._redis.get(full_key)
        except redis.exceptions.RedisError as exc:
            logger.warning("Cache read of %s failed (%s), recomputing", full_key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable cache entry %s", full_key)
            self._delete([full_key])
            return None

    def set(self, key: str, value: object, ttl: int = 3600) -> None:
        if self._redis is None:
            return
        full_key = self._key(key)
        try:
            self._redis.setex(full_key, ttl, json.dumps(value, default=str))
        except redis.exceptions.RedisError as exc:
            logger.warning("Cache write of %s failed (%s)", full_key, exc)

    def invalidate(self, prefix: str) -> None:
        if self._redis is None:
            return
        pattern = f"{self._key(prefix)}*"
        batch, removed = [], 0
        try:
            for found in self._redis.scan_iter(match=pattern, count=DELETE_BATCH):
                batch.append(found)
                if len(batch) >= DELETE_BATCH:
                    removed += self._delete(batch)
                    batch = []
            removed += self._delete(batch)
        except redis.exceptions.RedisError as exc:
            logger.warning("Cache invalidation of %s failed (%s)", pattern, exc)
            return
        logger.debug("Invalidated %d cache keys under %r", removed, prefix)

    def _delete(self, keys) -> int:
        if not keys:
            return 0
        return self._redis.delete(*keys) or 0


class InMemoryCacheAdapter(CachePort):
    """Process-local cache honouring TTLs.

    Values are deep-copied in and out, like a JSON round trip through
    Redis. *clock* returns seconds and defaults to ``time.monotonic``.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float | None, object]] = {}

    def get(self, key: str) -> object | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value: object, ttl: int = 3600) -> None:
        expires_at = self._clock() + ttl if ttl and ttl > 0 else None
        with self._lock:
            self._entries[key] = (expires_at, copy.deepcopy(value))

    def invalidate(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def connect_redis(url: str | None = None):
    """Return a connected Redis client for *url* (or ``REDIS_URL``), or None.

    A missing URL or a failed ping yields ``None`` so callers fall back to
    the in-process adapters.
    """
    url = url or os.environ.get("REDIS_URL")
    if not url:
        return None
    try:
        client = redis.from_url(url)
        client.ping()
        return client
    except redis.exceptions.RedisError as exc:
        logger.warning("Redis unavailable at %s (%s), caching disabled", url, exc)
    return None
