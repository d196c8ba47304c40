"""
Redis cache for event listing pages.

CACHING STRATEGY
================

What we cache:
  - Paginated event listing responses (JSON-serialized)
  - Key pattern: "events:list:page={page}&size={size}&upcoming={upcoming}"

What we never cache:
  - Single events and anything the registration engine reads. Capacity
    shown in a cached listing is for display only and may lag by up to one
    invalidation; the engine always reads the database.

Invalidation:
  - After every successful register / unregister / bulk register and after
    event creation, all listing keys are deleted by prefix (SCAN + DEL).
  - TTL as a safety net.

Failure policy:
  - Redis errors are logged and treated as a miss. The API keeps serving
    from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from eventease.core.config import Settings, get_settings
from eventease.core.logging import get_logger
from eventease.core.metrics import record_cache_operation

logger = get_logger(__name__)

LIST_KEY_PREFIX = "events:list:"


class EventListCache:
    """Wraps an optional Redis client. With no client every call is a no-op."""

    def __init__(self, client: Optional[redis.Redis] = None, ttl: int = 300):
        self.client = client
        self.ttl = ttl

    @classmethod
    async def connect(cls, settings: Optional[Settings] = None) -> "EventListCache":
        settings = settings or get_settings()
        if not settings.REDIS_ENABLED:
            return cls(None, settings.REDIS_CACHE_TTL)

        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return cls(None, settings.REDIS_CACHE_TTL)

        logger.info("redis_connected", url=settings.REDIS_URL)
        return cls(client, settings.REDIS_CACHE_TTL)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    @staticmethod
    def make_key(page: int, page_size: int, upcoming_only: bool) -> str:
        return f"{LIST_KEY_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"

    async def get_events(self, page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
        if not self.enabled:
            return None

        key = self.make_key(page, page_size, upcoming_only)
        try:
            data = await self.client.get(key)
        except redis.RedisError as e:
            record_cache_operation("get", "error")
            logger.error("cache_get_error", key=key, error=str(e))
            return None

        if data:
            record_cache_operation("get", "hit")
            return json.loads(data)
        record_cache_operation("get", "miss")
        return None

    async def set_events(self, page: int, page_size: int, upcoming_only: bool, data: dict) -> None:
        if not self.enabled:
            return

        key = self.make_key(page, page_size, upcoming_only)
        try:
            await self.client.setex(key, self.ttl, json.dumps(data, default=str))
            record_cache_operation("set", "ok")
        except redis.RedisError as e:
            record_cache_operation("set", "error")
            logger.error("cache_set_error", key=key, error=str(e))

    async def invalidate(self) -> None:
        """Drop every cached listing page."""
        if not self.enabled:
            return

        try:
            deleted = 0
            async for key in self.client.scan_iter(match=f"{LIST_KEY_PREFIX}*", count=100):
                deleted += await self.client.delete(key)
            record_cache_operation("invalidate", "ok")
            logger.debug("cache_invalidated", keys_deleted=deleted)
        except redis.RedisError as e:
            record_cache_operation("invalidate", "error")
            logger.error("cache_invalidation_error", error=str(e))

    async def stats(self) -> dict:
        if not self.enabled:
            return {"status": "disabled"}

        try:
            info = await self.client.info("stats")
        except redis.RedisError as e:
            return {"status": "error", "error": str(e)}

        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
