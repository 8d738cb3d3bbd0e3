"""Generation client, cache and rate limiter tests."""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from generator.cache import GenerationCache
from generator.client import GenerationClient
from generator.rate_limiter import RateLimiter
from shared.errors import (
    PermanentGenerationError,
    RateLimitedError,
    TransientGenerationError,
)


def mock_session(status=200, json_data=None, text="", post_side_effect=None):
    """Build a mock aiohttp.ClientSession context manager."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value=text)

    post_cm = MagicMock()
    post_cm.__aenter__ = AsyncMock(return_value=response)
    post_cm.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    if post_side_effect is not None:
        session.post = MagicMock(side_effect=post_side_effect)
    else:
        session.post = MagicMock(return_value=post_cm)

    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return session_cm, session


MESSAGE_RESPONSE = {
    "content": [{"type": "text", "text": "## Executive Summary\n\nGlow Co makes serums."}]
}


class TestGenerationClient:
    """Tests for GenerationClient."""

    @pytest.mark.asyncio
    async def test_generate_success_writes_cache(self, mock_redis_client):
        """Test a successful call returns the text and caches it."""
        session_cm, session = mock_session(json_data=MESSAGE_RESPONSE)
        client = GenerationClient(
            cache=GenerationCache(mock_redis_client, prefix="test_cache"),
            api_key="test-key",
            model="test-model"
        )

        with patch("generator.client.aiohttp.ClientSession", return_value=session_cm):
            text = await client.generate("Write it", cache_key="abc", cache_ttl=60)

        assert text.startswith("## Executive Summary")
        body = session.post.call_args.kwargs["json"]
        assert body["model"] == "test-model"
        assert body["messages"] == [{"role": "user", "content": "Write it"}]
        mock_redis_client.set.assert_called_once_with("test_cache:abc", text, ex=60)

    @pytest.mark.asyncio
    async def test_cache_hit_skips_request(self, mock_redis_client):
        """Test a cached section is returned without calling the service."""
        mock_redis_client.get.return_value = "## Cached"
        client = GenerationClient(cache=GenerationCache(mock_redis_client, prefix="test_cache"))

        with patch("generator.client.aiohttp.ClientSession") as session_class:
            text = await client.generate("Write it", cache_key="abc")

        assert text == "## Cached"
        session_class.assert_not_called()
        mock_redis_client.get.assert_called_once_with("test_cache:abc")

    @pytest.mark.asyncio
    async def test_rate_limiter_acquired_before_request(self):
        """Test every uncached call takes a rate limiter slot."""
        session_cm, _ = mock_session(json_data=MESSAGE_RESPONSE)
        limiter = MagicMock()
        limiter.acquire = AsyncMock()
        client = GenerationClient(rate_limiter=limiter)

        with patch("generator.client.aiohttp.ClientSession", return_value=session_cm):
            await client.generate("Write it")

        limiter.acquire.assert_called_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error_class", [
        (429, RateLimitedError),
        (500, TransientGenerationError),
        (503, TransientGenerationError),
        (400, PermanentGenerationError),
        (401, PermanentGenerationError),
    ])
    async def test_http_status_mapping(self, status, error_class):
        """Test HTTP failures map to transient or permanent errors."""
        session_cm, _ = mock_session(status=status, text="bad request")
        client = GenerationClient()

        with patch("generator.client.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(error_class):
                await client.generate("Write it")

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        """Test a request timeout is retriable."""
        session_cm, _ = mock_session(post_side_effect=asyncio.TimeoutError())
        client = GenerationClient(timeout=5)

        with patch("generator.client.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(TransientGenerationError) as exc_info:
                await client.generate("Write it")

        assert exc_info.value.message == "Timeout after 5 seconds"
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self):
        """Test connection errors are retriable."""
        session_cm, _ = mock_session(post_side_effect=aiohttp.ClientConnectionError("refused"))
        client = GenerationClient()

        with patch("generator.client.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(TransientGenerationError):
                await client.generate("Write it")

    @pytest.mark.asyncio
    async def test_empty_response_is_transient(self):
        """Test a response without text content is retried."""
        session_cm, _ = mock_session(json_data={"content": []})
        client = GenerationClient()

        with patch("generator.client.aiohttp.ClientSession", return_value=session_cm):
            with pytest.raises(TransientGenerationError):
                await client.generate("Write it")


class TestRateLimiter:
    """Tests for the Redis fixed-window rate limiter."""

    @pytest.mark.asyncio
    async def test_first_request_sets_window_expiry(self, mock_redis_client):
        """Test the window key expires after two windows."""
        limiter = RateLimiter(mock_redis_client, max_requests=5, window=60, prefix="test_rate")

        await limiter.acquire()

        key = mock_redis_client.incr.call_args[0][0]
        assert key.startswith("test_rate:")
        mock_redis_client.expire.assert_called_once_with(key, 120)

    @pytest.mark.asyncio
    async def test_waits_for_next_window(self, mock_redis_client):
        """Test a full window backs off and retries."""
        mock_redis_client.incr.side_effect = [6, 1]
        limiter = RateLimiter(mock_redis_client, max_requests=5, window=60, max_wait=30)

        with patch("generator.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()

        sleep.assert_called_once_with(0.5)
        assert mock_redis_client.incr.call_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_wait(self, mock_redis_client):
        """Test the limiter raises once waiting would exceed max_wait."""
        mock_redis_client.incr.return_value = 99
        limiter = RateLimiter(mock_redis_client, max_requests=5, window=60, max_wait=2)

        with patch("generator.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(RateLimitedError):
                await limiter.acquire()

        # 0.5 + 1.0 fit in the budget, the next 2.0 does not
        assert sleep.call_count == 2
