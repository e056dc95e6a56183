# -*- coding: utf-8 -*-
"""
Redis cache for attempt history.

Redis is optional: when it cannot be reached the cache reports misses and the
service reads from the database. A failed connection is not retried for a
short cool-down so a dead Redis does not slow every request.
"""

import json
import time
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from attempt_engine.config.logger import configure_logger
from attempt_engine.config.redis_settings import (get_redis_connection_params,
                                                  redis_settings)
from attempt_engine.config.settings import settings

logger = configure_logger(__name__)

RECONNECT_COOLDOWN_SECONDS = 30.0


class CacheService:
    """Thin JSON cache over Redis."""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.cache_enabled if enabled is None else enabled
        self._redis: Optional[Redis] = None
        self._connection_params = get_redis_connection_params()
        self._unavailable_until = 0.0

    async def get_redis(self) -> Optional[Redis]:
        """Lazily connect. Returns ``None`` while Redis is disabled or down."""
        if not self.enabled:
            return None
        if self._redis is not None:
            return self._redis
        if time.monotonic() < self._unavailable_until:
            return None
        try:
            client = redis.Redis(**self._connection_params)
            await client.ping()
        except Exception as e:
            self._unavailable_until = time.monotonic() + RECONNECT_COOLDOWN_SECONDS
            logger.warning(f"Redis unavailable, caching disabled for now: {e}")
            return None
        self._redis = client
        logger.info("Connected to Redis")
        return self._redis

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")

    def _build_key(self, prefix: str, *parts: Any) -> str:
        return f"{prefix}:{':'.join(str(part) for part in parts)}"

    async def get(self, key: str) -> Optional[Any]:
        """Cached value or ``None`` on a miss or a Redis error."""
        client = await self.get_redis()
        if client is None:
            return None
        try:
            data = await client.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for '{key}': {e}")
            return None
        if data is None:
            return None
        try:
            return json.loads(data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Dropping undecodable cache entry '{key}': {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        client = await self.get_redis()
        if client is None:
            return False
        try:
            payload = json.dumps(value, default=str, ensure_ascii=False)
            if ttl:
                await client.setex(key, ttl, payload)
            else:
                await client.set(key, payload)
            return True
        except Exception as e:
            logger.warning(f"Cache write failed for '{key}': {e}")
            return False

    async def delete(self, key: str) -> bool:
        client = await self.get_redis()
        if client is None:
            return False
        try:
            return await client.delete(key) > 0
        except Exception as e:
            logger.warning(f"Cache delete failed for '{key}': {e}")
            return False

    # ----------------------------- attempt history -------------------------

    def attempts_key(self, test_id: int, user_id: int) -> str:
        return self._build_key(redis_settings.cache_prefix_attempts, test_id, user_id)

    async def get_attempts(self, test_id: int, user_id: int) -> Optional[list]:
        return await self.get(self.attempts_key(test_id, user_id))

    async def set_attempts(self, test_id: int, user_id: int, attempts: list) -> bool:
        return await self.set(
            self.attempts_key(test_id, user_id),
            attempts,
            settings.cache_ttl_attempts_seconds,
        )

    async def invalidate_attempts(self, test_id: int, user_id: int) -> bool:
        return await self.delete(self.attempts_key(test_id, user_id))


cache_service = CacheService()
