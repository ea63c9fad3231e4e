"""Redis client wrapper for durable snapshot slots.

One shared asyncio client per process; snapshot stores receive it
explicitly or fall back to the initialized one.
"""

import logging
from typing import Optional

import redis.asyncio as redis_lib

from price_ingest.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[redis_lib.Redis] = None


def init_redis_client() -> redis_lib.Redis:
    """Initialize the Redis client."""
    global _client
    _client = redis_lib.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        decode_responses=True,
    )
    logger.info(f"Redis client initialized for {settings.redis_host}:{settings.redis_port}")
    return _client


def get_redis_client() -> redis_lib.Redis:
    """Get the active Redis client."""
    if _client is None:
        raise RuntimeError("Redis client not initialized.")
    return _client


async def close_redis_client() -> None:
    """Close the Redis client."""
    global _client
    if _client:
        await _client.aclose()
        _client = None
        logger.info("Redis client closed")


async def check_connection() -> bool:
    """Check if Redis is reachable."""
    try:
        if _client is None:
            return False
        return bool(await _client.ping())
    except Exception:
        return False
