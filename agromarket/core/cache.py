import logging
from typing import Optional

from fastapi import Request
from redis import asyncio as aioredis

from . import config

logger = logging.getLogger(__name__)


def make_redis_client(url: Optional[str] = None) -> aioredis.Redis:
    """Create the async Redis client; the connection is opened lazily on first use."""
    return aioredis.from_url(
        url or config.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )


def get_cache_client(request: Request):
    """Dependency returning the app-wide cache client (None when caching is disabled)."""
    return request.app.state.cache


# Every helper below is best-effort: a missing or unreachable cache is logged
# and reported as a miss / no-op so callers fall back to the database.

async def get_cache(client, key: str) -> Optional[str]:
    if client is None:
        return None
    try:
        return await client.get(key)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {str(e)}")
        return None


async def set_cache(client, key: str, value: str, expire: int) -> bool:
    if client is None:
        return False
    try:
        await client.setex(key, expire, value)
        return True
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {str(e)}")
        return False


async def ping_cache(client) -> bool:
    if client is None:
        return False
    try:
        return bool(await client.ping())
    except Exception as e:
        logger.error(f"Redis connection failed: {str(e)}")
        return False
