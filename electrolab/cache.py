import json
import logging
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from electrolab.config import settings

logger = logging.getLogger(__name__)

# Key namespaces. Every cached value lives under exactly one of them so a
# write can drop the whole namespace with one SCAN.
ANALYTICS_NS = "analytics"
CATEGORIES_NS = "categories"


def analytics_summary_key(days: int) -> str:
    return f"{ANALYTICS_NS}:summary:{days}"


CATEGORY_LIST_KEY = f"{CATEGORIES_NS}:list"

# Session.info key holding namespaces written by the open transaction.
_STALE_KEY = "electrolab.stale_cache"


class CacheManager:
    """
    Read-through JSON cache for the public category list and the analytics
    summary, backed by Redis.

    Redis is optional.  When it is not connected (or a call fails) reads
    behave as misses and writes are dropped; the caller always falls back
    to the database.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits = 0
        self._misses = 0

    async def connect(self) -> None:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis at %s unreachable, running uncached: %s", settings.REDIS_URL, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Cache backed by Redis at %s", settings.REDIS_URL)

    async def disconnect(self) -> None:
        client, self._redis = self._redis, None
        if client is not None:
            await client.aclose()

    async def get(self, key: str) -> Any | None:
        """Decoded value for *key*; None on a miss or when Redis is down."""
        raw = None
        if self._redis is not None:
            try:
                raw = await self._redis.get(key)
            except Exception as exc:
                logger.debug("cache read %s failed: %s", key, exc)
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("cache write %s failed: %s", key, exc)

    async def remember(self, key: str, ttl: int, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for *key*, computing and storing it on a miss."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        await self.set(key, value, ttl=ttl)
        return value

    async def invalidate(self, namespace: str) -> None:
        """Drop every key under *namespace*."""
        if self._redis is None:
            return
        try:
            stale = [key async for key in self._redis.scan_iter(match=f"{namespace}:*")]
            if stale:
                await self._redis.delete(*stale)
                logger.debug("Dropped %d cached %s entries", len(stale), namespace)
        except Exception as exc:
            logger.debug("cache invalidation of %s failed: %s", namespace, exc)

    def mark_stale(self, db: AsyncSession, namespace: str) -> None:
        """Queue *namespace* for invalidation once *db* has committed."""
        db.info.setdefault(_STALE_KEY, set()).add(namespace)

    async def invalidate_stale(self, db: AsyncSession) -> None:
        """Drop the namespaces queued on *db*.  Call only after its commit."""
        for namespace in sorted(db.info.pop(_STALE_KEY, ())):
            await self.invalidate(namespace)

    @property
    def stats(self) -> dict:
        """Connection state and hit/miss counters for the admin dashboard."""
        lookups = self._hits + self._misses
        return {
            "connected": self._redis is not None,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(100 * self._hits / lookups, 1) if lookups else 0.0,
        }


cache = CacheManager()
