"""
Redis client for report caching.
Provides an async Redis connection with connection pooling.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis

from affitrack.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client wrapper used as a best-effort cache.

    Cache reads and writes never raise: a Redis outage degrades reports to
    uncached database queries.
    """

    def __init__(self, url: Optional[str] = None):
        self._url = url or settings.redis_url
        self._client: Optional[aioredis.Redis] = None

    async def _get_client(self) -> aioredis.Redis:
        """Get or create Redis client with connection pool."""
        if self._client is None:
            self._client = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self._client

    async def get_json(self, key: str) -> Optional[Any]:
        """Get and deserialize a JSON value, None on miss or error."""
        try:
            client = await self._get_client()
            raw = await client.get(key)
        except aioredis.RedisError as exc:
            logger.warning("Redis read failed for %s: %s", key, exc)
            return None
        if raw:
            return json.loads(raw)
        return None

    async def set_json(self, key: str, value: Any, ex: Optional[int] = None) -> None:
        """Serialize and set a JSON value with optional TTL."""
        try:
            client = await self._get_client()
            await client.set(key, json.dumps(value, default=str), ex=ex)
        except aioredis.RedisError as exc:
            logger.warning("Redis write failed for %s: %s", key, exc)

    async def close(self):
        """Close the Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            client = await self._get_client()
            return await client.ping()
        except aioredis.RedisError:
            return False


# Singleton instance
redis_client = RedisClient()
