"""Redis-backed cache for generated section text."""
import logging
from typing import Optional
import redis.asyncio as redis
from shared.config import settings

logger = logging.getLogger(__name__)


class GenerationCache:
    """Caches generation responses by content-hash key."""

    def __init__(self, redis_client: redis.Redis, prefix: str = None):
        self.redis = redis_client
        self.prefix = prefix or settings.redis_cache_prefix

    def _key(self, cache_key: str) -> str:
        return f"{self.prefix}:{cache_key}"

    async def get(self, cache_key: str) -> Optional[str]:
        """Return cached text, or None on a miss."""
        value = await self.redis.get(self._key(cache_key))
        if value is not None:
            logger.debug(f"Generation cache hit for {cache_key[:12]}")
        return value

    async def set(self, cache_key: str, value: str, ttl_seconds: int):
        """Store text with an expiry."""
        await self.redis.set(self._key(cache_key), value, ex=ttl_seconds)
