"""
Redis cache for the admin dashboard and rate-limit counters.

Redis is optional: while it is unreachable reads miss, writes are
skipped, and the API keeps answering from the database.
"""

import json
from functools import wraps
from typing import Any, Callable

import redis.asyncio as aioredis

from app.config import settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "filevault"

# Platform dashboard; dropped whenever organizations change
DASHBOARD_NAMESPACE = "admin"
DASHBOARD_STATS_KEY = "dashboard_stats"


class CacheManager:
    """Owns the Redis client and namespaces every key under ``filevault:``."""

    def __init__(self) -> None:
        self._client: aioredis.Redis | None = None

    async def init(self) -> None:
        """Connect, or leave the cache disabled when Redis does not answer."""
        logger.info("cache_initializing", redis_url=str(settings.redis_url))

        client = aioredis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )
        try:
            await client.ping()
        except Exception as e:
            logger.warning("cache_unavailable", error=str(e))
            await client.aclose()
            return

        self._client = client
        logger.info("cache_initialized")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("cache_closed")

    @property
    def available(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> aioredis.Redis:
        if not self._client:
            raise RuntimeError("Cache not initialized. Call init() first.")
        return self._client

    def _build_key(self, namespace: str, key: str) -> str:
        return f"{KEY_PREFIX}:{namespace}:{key}"

    async def get(self, namespace: str, key: str) -> Any | None:
        """Decoded JSON value, or None on a miss or any Redis error."""
        if not self.available:
            return None

        cache_key = self._build_key(namespace, key)
        try:
            value = await self.client.get(cache_key)
        except Exception as e:
            logger.warning("cache_get_failed", key=cache_key, error=str(e))
            return None
        return json.loads(value) if value is not None else None

    async def set(self, namespace: str, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value`` as JSON for ``ttl`` seconds (default ``redis_cache_ttl``)."""
        if not self.available:
            return False

        cache_key = self._build_key(namespace, key)
        try:
            await self.client.set(
                cache_key,
                json.dumps(value, default=str),
                ex=ttl or settings.redis_cache_ttl,
            )
        except Exception as e:
            logger.warning("cache_set_failed", key=cache_key, error=str(e))
            return False
        return True

    async def delete(self, namespace: str, *keys: str) -> int:
        """Drop entries; returns how many existed."""
        if not self.available or not keys:
            return 0

        cache_keys = [self._build_key(namespace, key) for key in keys]
        try:
            return await self.client.delete(*cache_keys)
        except Exception as e:
            logger.warning("cache_delete_failed", keys=cache_keys, error=str(e))
            return 0

    async def hit_window(self, namespace: str, key: str, window: int) -> tuple[int, int]:
        """
        Count one hit in a fixed window.

        The window starts with the first hit and lasts ``window`` seconds.

        Returns:
            (hits so far, seconds until the window resets)

        Raises:
            RuntimeError: Cache not initialized
        """
        cache_key = self._build_key(namespace, key)

        pipe = self.client.pipeline()
        pipe.set(cache_key, 0, ex=window, nx=True)
        pipe.incr(cache_key)
        pipe.ttl(cache_key)
        _, count, ttl = await pipe.execute()
        return count, ttl


cache_manager = CacheManager()


async def invalidate_dashboard() -> None:
    """Forget the cached platform dashboard."""
    await cache_manager.delete(DASHBOARD_NAMESPACE, DASHBOARD_STATS_KEY)


def cached(namespace: str, ttl: int = 300, key_builder: Callable | None = None):
    """
    Cache an async function's JSON-ready result.

    Without ``key_builder`` the key is the function name plus its
    arguments. ``None`` results are not stored.

    Usage:
        @cached(namespace="admin", ttl=60, key_builder=lambda db: "dashboard_stats")
        async def dashboard_stats(db) -> dict:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if key_builder:
                cache_key = key_builder(*args, **kwargs)
            else:
                parts = [func.__name__, *(str(a) for a in args)]
                parts.extend(f"{k}={v}" for k, v in sorted(kwargs.items()))
                cache_key = ":".join(parts)

            hit = await cache_manager.get(namespace, cache_key)
            if hit is not None:
                logger.debug("cache_hit", namespace=namespace, key=cache_key)
                return hit

            result = await func(*args, **kwargs)
            if result is not None:
                await cache_manager.set(namespace, cache_key, result, ttl=ttl)
            return result

        return wrapper
    return decorator
