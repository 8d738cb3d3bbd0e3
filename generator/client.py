"""Client for the external text-generation service."""
import asyncio
import logging
from typing import Optional
import aiohttp
from shared.config import settings
from shared.errors import (
    PermanentGenerationError,
    RateLimitedError,
    TransientGenerationError,
)
from generator.cache import GenerationCache
from generator.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior business consultant writing documents for creators "
    "launching their own brands. Write clear, specific, actionable markdown."
)


class GenerationClient:
    """
    Issues one generation call per section.

    The cache and rate limiter are injected so callers (and tests) decide
    which implementations are shared across jobs.
    """

    def __init__(
        self,
        cache: Optional[GenerationCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: int = None,
        api_url: str = None,
        api_key: str = None,
        model: str = None
    ):
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.timeout = timeout or settings.generation_timeout
        self.api_url = api_url or settings.generation_api_url
        self.model = model or settings.generation_model
        self.headers = {
            "x-api-key": api_key or settings.generation_api_key,
            "anthropic-version": settings.generation_api_version,
            "content-type": "application/json",
        }

    async def generate(
        self,
        instruction: str,
        cache_key: Optional[str] = None,
        cache_ttl: Optional[int] = None,
        operation: Optional[str] = None,
        system_prompt: str = SYSTEM_PROMPT
    ) -> str:
        """
        Generate text for a rendered instruction.

        Raises TransientGenerationError (or RateLimitedError) for failures
        worth retrying and PermanentGenerationError when the service rejects
        the request.
        """
        if self.cache and cache_key:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.info(f"Serving {operation or 'generation'} from cache")
                return cached

        if self.rate_limiter:
            await self.rate_limiter.acquire()

        text = await self._request(instruction, system_prompt, operation)

        if self.cache and cache_key:
            ttl = cache_ttl or settings.generation_cache_ttl_hours * 3600
            await self.cache.set(cache_key, text, ttl)

        return text

    async def _request(self, instruction: str, system_prompt: str, operation: Optional[str]) -> str:
        body = {
            "model": self.model,
            "max_tokens": settings.generation_max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": instruction}],
        }
        logger.info(f"Requesting {operation or 'generation'} from {self.model}")

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self.headers
            ) as session:
                async with session.post(self.api_url, json=body) as response:
                    if response.status == 429:
                        raise RateLimitedError("Generation service rate limited the request")

                    if response.status >= 500:
                        raise TransientGenerationError(
                            f"Generation service error: HTTP {response.status}"
                        )

                    if response.status >= 400:
                        detail = await response.text()
                        raise PermanentGenerationError(
                            f"Generation request rejected: HTTP {response.status} {detail[:200]}"
                        )

                    data = await response.json()

        except asyncio.TimeoutError as e:
            raise TransientGenerationError(f"Timeout after {self.timeout} seconds") from e
        except aiohttp.ClientError as e:
            raise TransientGenerationError(f"Network error: {str(e)}") from e

        return self._extract_text(data)

    def _extract_text(self, data: dict) -> str:
        """Pull the first text block out of a messages response."""
        for block in data.get("content", []):
            if block.get("type") == "text" and block.get("text"):
                return block["text"]
        raise TransientGenerationError("No text content in generation response")
