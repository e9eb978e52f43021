import logging

from simple_lms.clients.redis_client import RedisClient
from simple_lms.utils.exceptions import RateLimitExceededException

logger = logging.getLogger(__name__)


class CompletionRateLimiter:
    """
    Per-user fixed-window limit on completion toggles.

    Without Redis every request is allowed.
    """

    def __init__(self, redis_client: RedisClient, limit: int = 20, window_seconds: int = 60):
        self._redis_client = redis_client
        self._limit = limit
        self._window_seconds = window_seconds

    async def check(self, user_id: int, action: str = "complete"):
        """
        Count one attempt and reject it past the limit.

        Raises:
            RateLimitExceededException: If the user exceeded the limit in the current window
        """
        if not self._redis_client.is_available():
            logger.debug("Redis not available, skipping rate limit")
            return

        key = self._redis_client.key("rate", action, user_id)
        count = await self._redis_client.incr_window(key, self._window_seconds)
        if count is not None and count > self._limit:
            logger.warning(f"User {user_id} exceeded {action} rate limit ({count}/{self._limit})")
            raise RateLimitExceededException()
