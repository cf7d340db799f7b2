import json
import logging

import redis.asyncio as redis

from conduit.config import settings

logger = logging.getLogger(__name__)

TAGS_KEY = "conduit:tags"

# Set in Session.info when the unit of work created Tag rows.
STALE_FLAG = "conduit.tags_stale"


class TagCache:
    """
    Cache-aside store for the global tag list, backed by Redis.

    The tag list is read on every page load and only changes when an
    article introduces a brand-new tag, so it is cached until a
    transaction that created a tag commits.  Redis being down is never an
    error: reads miss and writes are skipped.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, tag cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def get_tags(self) -> list[str] | None:
        if not self._redis:
            return None
        try:
            data = await self._redis.get(TAGS_KEY)
        except Exception as exc:
            logger.debug("Tag cache read failed: %s", exc)
            return None
        return json.loads(data) if data is not None else None

    async def set_tags(self, tags: list[str]) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(TAGS_KEY, json.dumps(tags), ex=settings.CACHE_TTL_TAGS)
        except Exception as exc:
            logger.debug("Tag cache write failed: %s", exc)

    async def invalidate(self) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(TAGS_KEY)
        except Exception as exc:
            logger.debug("Tag cache invalidation failed: %s", exc)

    # Tag creation only flags the session; the entry is dropped once the
    # transaction commits, so a reader in between cannot re-cache the old list.

    def mark_stale(self, session) -> None:
        session.info[STALE_FLAG] = True

    async def invalidate_if_stale(self, session) -> None:
        """Drop the cached list if *session* committed new tags.  Call after commit."""
        if session.info.pop(STALE_FLAG, False):
            await self.invalidate()

    def discard_stale(self, session) -> None:
        session.info.pop(STALE_FLAG, None)


# Module-level singleton shared across all request handlers.
tag_cache = TagCache()
