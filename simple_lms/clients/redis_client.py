"""
Redis client for short-lived counters.

Features:
    - Fixed-window counters with TTL (completion rate limiting)
    - Degrades to "unavailable" when Redis is not configured or unreachable
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from simple_lms.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client for rate-limit counters"""

    KEY_PREFIX = "lms"

    def __init__(self, settings: Settings):
        self._redis_url = settings.redis_url
        self._client: Optional[Redis] = None

    async def connect(self):
        """Establish Redis connection"""
        if not self._redis_url:
            logger.warning("Redis URL not configured, Redis features disabled")
            return

        try:
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            # Test connection
            await self._client.ping()
            logger.info("Redis connection established successfully")
        except RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._client = None

    async def disconnect(self):
        """Close Redis connection"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    def is_available(self) -> bool:
        """Check if Redis is available"""
        return self._client is not None

    async def ping(self) -> bool:
        """Ping Redis server to check connectivity"""
        if not self.is_available():
            return False
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    # =============================
    #   Window Counters
    # =============================
    def key(self, *parts) -> str:
        """Namespaced key, e.g. lms:rate:complete:42"""
        return ":".join([self.KEY_PREFIX, *(str(part) for part in parts)])

    async def incr_window(self, key: str, ttl: int) -> Optional[int]:
        """
        Increment a counter that expires ttl seconds after its first hit.

        Args:
            key: Counter key
            ttl: Window length in seconds

        Returns:
            Counter value after the increment, or None if Redis is unavailable
        """
        if not self.is_available():
            return None

        try:
            count = await self._client.incr(key)
            if count == 1:
                await self._client.expire(key, ttl)
            logger.debug(f"Counter {key} = {count}")
            return count
        except RedisError as e:
            logger.error(f"Failed to increment counter {key}: {e}")
            return None
