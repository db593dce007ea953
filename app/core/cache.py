from __future__ import annotations

# redis + in-memory storage for challenges, sessions and rate-limit counters
import json
import logging
import time
from functools import lru_cache
from threading import Lock
from typing import Any, Dict, Optional, Tuple

from redis import Connection, ConnectionPool, Redis, SSLConnection
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)


class HybridCacheManager:
    """Hybrid cache manager with Redis + in-memory fallback

    Values are JSON encoded. Every write takes an explicit TTL in seconds
    (None = no expiry). When Redis is not configured or unreachable, the
    in-memory store is used and Redis is re-checked every
    `recheck_interval` seconds.
    """

    def __init__(
        self,
        redis_host: Optional[str] = None,
        redis_port: Optional[int] = 6379,
        redis_ssl: bool = False,
        max_connections: Optional[int] = None,
        memory_max_size: int = settings.MEMORY_CACHE_MAX_SIZE,
        recheck_interval: int = settings.REDIS_RECHECK_INTERVAL,
    ):
        if redis_host is None or redis_host.strip() == "":
            self.pool = None
        else:
            self.pool = ConnectionPool(
                host=redis_host,
                port=redis_port,
                socket_connect_timeout=0.05,
                socket_timeout=5,
                retry_on_timeout=False,
                max_connections=max_connections,
                connection_class=SSLConnection if redis_ssl else Connection
            )
        self.redis_available = False
        self.memory_cache: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._memory_cache_size = 0
        self._memory_max_size = memory_max_size
        self._memory_lock = Lock()
        self._recheck_interval = recheck_interval
        self._last_redis_check: Optional[float] = None

    def redis_connect(self) -> Optional[Redis]:
        """Connect to Redis, with a cooldown when unavailable"""
        # If Redis is not configured, skip
        if self.pool is None:
            return None

        # If Redis was available, try immediately
        if self.redis_available:
            try:
                rc = Redis(connection_pool=self.pool)
                if rc.ping():
                    return rc
                self.redis_available = False
                self._last_redis_check = time.time()
            except RedisError:
                logger.warning("Redis connection lost, falling back to memory cache")
                self.redis_available = False
                self._last_redis_check = time.time()
            return None

        # If Redis is unavailable, only check every recheck_interval
        now = time.time()
        if self._last_redis_check is not None:
            if now - self._last_redis_check < self._recheck_interval:
                return None

        self._last_redis_check = now
        try:
            rc = Redis(connection_pool=self.pool)
            if rc.ping():
                self.redis_available = True
                return rc
        except RedisError:
            logger.warning("Redis unavailable, using memory cache")

        return None

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        """Get cached value, deserializing from JSON"""
        result = self._get_redis(key)
        if result is None:
            result = self._get_memory(key)
        return self._loads(result)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Set cached value, serializing to JSON"""
        try:
            data = json.dumps(value, default=str).encode('utf-8')
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize cache value for %s: %s", key, e)
            return False

        if self._set_redis(key, data, ttl_seconds):
            return True

        self._set_memory(key, data, ttl_seconds)
        return True

    def pop(self, key: str) -> Optional[Any]:
        """Atomically read and delete a value. Only one caller ever sees it."""
        rc = self.redis_connect()
        if rc is not None:
            try:
                return self._loads(rc.getdel(key))
            except RedisError as e:
                logger.warning("Redis GETDEL failed for %s: %s", key, e)
            finally:
                rc.close()

        now = time.time()
        with self._memory_lock:
            cached = self.memory_cache.pop(key, None)
            if cached is None:
                return None
            value, expires_at = cached
            self._memory_cache_size -= len(value)
            if expires_at is not None and expires_at <= now:
                return None
            return self._loads(value)

    def delete(self, key: str) -> None:
        rc = self.redis_connect()
        if rc is not None:
            try:
                rc.delete(key)
            except RedisError as e:
                logger.warning("Redis DELETE failed for %s: %s", key, e)
            finally:
                rc.close()

        with self._memory_lock:
            cached = self.memory_cache.pop(key, None)
            if cached is not None:
                self._memory_cache_size -= len(cached[0])

    def incr(self, key: str, ttl_seconds: int) -> int:
        """
        Increment a counter, starting a TTL window on first use.

        Returns the value after increment.
        """
        rc = self.redis_connect()
        if rc is not None:
            try:
                value = rc.incr(key)
                if value == 1:
                    rc.expire(key, ttl_seconds)
                return int(value)
            except RedisError as e:
                logger.warning("Redis INCR failed for %s: %s", key, e)
            finally:
                rc.close()

        now = time.time()
        with self._memory_lock:
            cached = self.memory_cache.get(key)
            if cached is None or (cached[1] is not None and cached[1] <= now):
                count, expires_at = 0, now + ttl_seconds
            else:
                count, expires_at = int(cached[0]), cached[1]
                self._memory_cache_size -= len(cached[0])
            count += 1
            data = str(count).encode('utf-8')
            self.memory_cache[key] = (data, expires_at)
            self._memory_cache_size += len(data)
            return count

    def ttl(self, key: str) -> Optional[int]:
        """Remaining seconds before `key` expires, None if missing or persistent"""
        rc = self.redis_connect()
        if rc is not None:
            try:
                remaining = rc.ttl(key)
                return int(remaining) if remaining is not None and remaining >= 0 else None
            except RedisError:
                return None
            finally:
                rc.close()

        with self._memory_lock:
            cached = self.memory_cache.get(key)
            if cached is None or cached[1] is None:
                return None
            return max(int(cached[1] - time.time()), 0)

    # ------------------------------------------------------------------
    # backends
    # ------------------------------------------------------------------

    @staticmethod
    def _loads(raw: Optional[bytes]) -> Optional[Any]:
        if raw is None or raw == b'':
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None

    def _set_redis(self, key: str, data: bytes, ttl_seconds: Optional[int]) -> bool:
        rc = self.redis_connect()
        if rc is None:
            return False
        try:
            if ttl_seconds is not None and ttl_seconds > 0:
                rc.set(key, data, ex=ttl_seconds)
            else:
                rc.set(key, data)
            return True
        except RedisError as e:
            logger.warning("Redis SET failed for %s: %s", key, e)
            return False
        finally:
            rc.close()

    def _get_redis(self, key: str) -> Optional[bytes]:
        rc = self.redis_connect()
        if rc is None:
            return None
        try:
            result = rc.get(key)
            if result is not None and result != b'':
                return result
            return None
        except RedisError:
            return None
        finally:
            rc.close()

    def _set_memory(self, key: str, data: bytes, ttl_seconds: Optional[int]) -> None:
        """Set memory cache with a size limit, evicting expired entries first"""
        expires_at = None if ttl_seconds is None else time.time() + ttl_seconds
        data_size = len(data)

        with self._memory_lock:
            if key in self.memory_cache:
                old_data, _ = self.memory_cache.pop(key)
                self._memory_cache_size -= len(old_data)

            while (self._memory_cache_size + data_size > self._memory_max_size and
                   self.memory_cache):
                now = time.time()
                expired_keys = [
                    k for k, (_, exp) in self.memory_cache.items()
                    if exp is not None and exp <= now
                ]

                if expired_keys:
                    for k in expired_keys:
                        old_data, _ = self.memory_cache.pop(k)
                        self._memory_cache_size -= len(old_data)
                else:
                    # evict whatever expires soonest
                    oldest_key = min(
                        self.memory_cache.keys(),
                        key=lambda k: self.memory_cache[k][1] or float('inf')
                    )
                    old_data, _ = self.memory_cache.pop(oldest_key)
                    self._memory_cache_size -= len(old_data)

            self.memory_cache[key] = (data, expires_at)
            self._memory_cache_size += data_size

    def _get_memory(self, key: str) -> Optional[bytes]:
        """Get from memory cache, removing expired entries"""
        now = time.time()
        with self._memory_lock:
            cached = self.memory_cache.get(key)
            if cached is None:
                return None
            value, expires_at = cached
            if expires_at is not None and expires_at <= now:
                self.memory_cache.pop(key, None)
                self._memory_cache_size -= len(value)
                return None
            return value


@lru_cache
def get_cache() -> HybridCacheManager:
    """Process-wide cache built from settings (FastAPI dependency)."""
    return HybridCacheManager(
        redis_host=settings.REDIS_HOST,
        redis_port=settings.REDIS_PORT,
        redis_ssl=settings.REDIS_SSL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
    )
