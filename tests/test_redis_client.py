"""Tests for the shared Redis client wrapper."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from price_ingest.core import redis_client


@pytest.fixture(autouse=True)
def reset_client(monkeypatch):
    monkeypatch.setattr(redis_client, "_client", None)


class TestRedisClient:
    def test_get_before_init_raises(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            redis_client.get_redis_client()

    def test_init_uses_settings(self):
        with patch("price_ingest.core.redis_client.redis_lib.Redis") as redis_cls:
            client = redis_client.init_redis_client()
        kwargs = redis_cls.call_args.kwargs
        assert kwargs["decode_responses"] is True
        assert kwargs["host"] == redis_client.settings.redis_host
        assert redis_client.get_redis_client() is client

    @pytest.mark.asyncio
    async def test_check_connection_without_client(self):
        assert await redis_client.check_connection() is False

    @pytest.mark.asyncio
    async def test_check_connection_ping(self, monkeypatch):
        fake = MagicMock()
        fake.ping = AsyncMock(return_value=True)
        monkeypatch.setattr(redis_client, "_client", fake)
        assert await redis_client.check_connection() is True

    @pytest.mark.asyncio
    async def test_check_connection_error(self, monkeypatch):
        fake = MagicMock()
        fake.ping = AsyncMock(side_effect=ConnectionError("refused"))
        monkeypatch.setattr(redis_client, "_client", fake)
        assert await redis_client.check_connection() is False

    @pytest.mark.asyncio
    async def test_close(self, monkeypatch):
        fake = MagicMock()
        fake.aclose = AsyncMock()
        monkeypatch.setattr(redis_client, "_client", fake)

        await redis_client.close_redis_client()

        fake.aclose.assert_awaited_once()
        with pytest.raises(RuntimeError):
            redis_client.get_redis_client()
