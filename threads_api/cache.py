import json
import logging

import redis.asyncio as redis

from threads_api.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Cache-aside manager for the post feed, backed by Redis.

    The whole enriched feed lives under one fixed key with no expiry; every
    post write deletes it and the next read rebuilds it from the database.

    Redis being unavailable never fails a request: reads report a miss and
    writes are skipped, so callers fall through to the database.
    """

    def __init__(self, url: str, feed_key: str = "posts", client: redis.Redis | None = None) -> None:
        self._url = url
        self.feed_key = feed_key
        self._redis: redis.Redis | None = client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", self._url)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, feed cache degraded: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the decoded value for *key*, or None on a miss / error."""
        if not self._redis:
            return None
        try:
            data = await self._redis.get(key)
            if data is None:
                return None
            return json.loads(data)
        except ValueError as exc:
            logger.warning("Cache value for key=%r is not valid JSON, dropping it: %s", key, exc)
            await self.delete(key)
            return None
        except Exception as exc:
            logger.warning("Cache GET error for key=%r: %s", key, exc)
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """Store *value* under *key*; no expiry unless *ttl* is given."""
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.warning("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, key: str) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(key)
        except Exception as exc:
            logger.error("Cache DELETE error for key=%r: %s", key, exc)

    # ------------------------------------------------------------------
    # Feed helpers
    #
    # A counter under "<feed_key>:gen" is bumped by every invalidation.  A
    # rebuild records it before querying the database and, after writing
    # the feed back, drops what it wrote if the counter moved meanwhile.
    # Invalidation bumps before it deletes, so a rebuild that read the
    # database before a write can never leave its snapshot behind.
    # ------------------------------------------------------------------

    @property
    def generation_key(self) -> str:
        return f"{self.feed_key}:gen"

    async def feed_generation(self) -> int | None:
        """Current invalidation counter, or None when Redis is unusable."""
        if not self._redis:
            return None
        try:
            value = await self._redis.get(self.generation_key)
        except Exception as exc:
            logger.warning("Cache GET error for key=%r: %s", self.generation_key, exc)
            return None
        return int(value) if value is not None else 0

    async def get_feed(self) -> list | None:
        feed = await self.get(self.feed_key)
        if feed is None:
            logger.debug("Feed cache miss")
        else:
            logger.debug("Feed cache hit (%d posts)", len(feed))
        return feed

    async def set_feed(self, posts: list[dict], generation: int | None) -> None:
        """
        Cache a feed built from a database read that started at
        *generation*.  Nothing is kept if an invalidation happened since.
        """
        if generation is None:
            return
        await self.set(self.feed_key, posts)
        if await self.feed_generation() != generation:
            logger.debug("Feed changed during rebuild, discarding snapshot")
            await self.delete(self.feed_key)

    async def invalidate_feed(self) -> None:
        """Drop the cached feed.  Must run after every committed post write."""
        if self._redis:
            try:
                await self._redis.incr(self.generation_key)
            except Exception as exc:
                logger.error("Cache INCR error for key=%r: %s", self.generation_key, exc)
        await self.delete(self.feed_key)
        logger.debug("Feed cache invalidated")


# Module-level singleton shared across all request handlers.
cache = CacheManager(settings.REDIS_URL, feed_key=settings.FEED_CACHE_KEY)


def get_cache() -> CacheManager:
    """FastAPI dependency; tests override it with an in-memory backend."""
    return cache
