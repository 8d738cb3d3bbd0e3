"""Fixed-window rate limiter shared by every worker through Redis."""
import asyncio
import logging
import time
import redis.asyncio as redis
from shared.config import settings
from shared.errors import RateLimitedError
from shared.utils import calculate_exponential_backoff

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Allows ``max_requests`` generation calls per ``window`` seconds across all
    processes sharing the Redis instance.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        max_requests: int = None,
        window: int = None,
        max_wait: float = None,
        prefix: str = None
    ):
        self.redis = redis_client
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window = window or settings.rate_limit_window
        self.max_wait = settings.rate_limit_max_wait if max_wait is None else max_wait
        self.prefix = prefix or settings.redis_rate_limit_prefix

    async def _try_acquire(self) -> bool:
        bucket = int(time.time() // self.window)
        key = f"{self.prefix}:{bucket}"
        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, self.window * 2)
        return count <= self.max_requests

    async def acquire(self):
        """
        Take one slot, waiting with backoff while the window is full.

        Raises RateLimitedError once ``max_wait`` seconds have been spent.
        """
        waited = 0.0
        attempt = 0
        while True:
            if await self._try_acquire():
                return

            delay = calculate_exponential_backoff(attempt, base_delay=0.5, max_delay=float(self.window))
            if waited + delay > self.max_wait:
                raise RateLimitedError(
                    f"Rate limit of {self.max_requests} calls per {self.window}s exceeded"
                )

            logger.info(f"Rate limit reached, waiting {delay:.1f}s")
            await asyncio.sleep(delay)
            waited += delay
            attempt += 1
