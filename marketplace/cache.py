import hashlib
import json
import logging

import redis.asyncio as redis

from marketplace.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Redis-backed read-through cache for catalog reads.

    Key layout::

        services:list:<sha1>        one cursor page of services
        services:detail:<id>        one service by id
        services:slug:<slug>        one service by slug
        categories:list:<sha1>      one cursor page of categories
        categories:detail:<id>      one category with its children
        categories:slug:<slug>      the same, addressed by slug

    Redis is optional.  With no connection every lookup is a miss and every
    write is dropped, and Redis errors are logged at debug level instead of
    reaching the request.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Create the client and ping it; on failure the cache stays off."""
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Redis connected: %s", settings.REDIS_URL)

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def list_key(namespace: str, **params) -> str:
        """
        Key for one list page.  The cursor is client input of arbitrary
        length, so the full parameter set is hashed instead of embedded.
        """
        canonical = json.dumps(params, sort_keys=True, default=str)
        digest = hashlib.sha1(canonical.encode("utf-8")).hexdigest()
        return f"{namespace}:list:{digest}"

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    def _miss(self) -> None:
        self._misses += 1

    async def get(self, key: str) -> dict | list | None:
        if not self._redis:
            self._miss()
            return None
        try:
            raw = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache GET failed for %r: %s", key, exc)
            self._miss()
            return None
        if raw is None:
            self._miss()
            return None
        self._hits += 1
        return json.loads(raw)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """Store *value* as JSON for *ttl* seconds.  Decimals become strings."""
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET failed for %r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Drop every key matching *pattern*, walking the keyspace with SCAN."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache dropped %d key(s) for %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache DELETE failed for %r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def invalidate_service(self, service_id: int | None = None) -> None:
        """
        Called after every service write.  Pages always go; the id entry
        and the slug entries go too when *service_id* is known, since a
        slug rename leaves the old slug key pointing at stale data.
        """
        await self.delete_pattern("services:list:*")
        if service_id is not None:
            await self.delete_pattern(f"services:detail:{service_id}")
            await self.delete_pattern("services:slug:*")

    async def invalidate_category(self) -> None:
        """
        Called after every category write.  Category entries embed their
        children and service entries embed their category summary, so
        both namespaces are dropped.
        """
        await self.delete_pattern("categories:*")
        await self.delete_pattern("services:*")

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hitRate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


cache = CacheManager()
