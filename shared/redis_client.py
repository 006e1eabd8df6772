"""
Shared redis.asyncio client for the session and current-agent stores.

Only used when SESSION_BACKEND=redis. Socket timeouts are short: a slow or
unreachable Redis surfaces as a RedisError on the command and the stores
switch to their in-memory fallback.

Keys written through this client (see agent.state.session_store):
    session:{tenant}:{agent}:{phone}
    current_agent:{tenant}:{phone}
"""

import logging
from functools import lru_cache

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_redis_client() -> "redis.Redis[str]":
    """
    Process-wide client (lazy: no connection until the first command).

    Returns:
        redis.asyncio.Redis with decoded (str) responses
    """
    settings = get_settings()
    client = redis.from_url(
        settings.REDIS_URL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        health_check_interval=30,
    )
    logger.info(
        f"Redis client created | url={settings.REDIS_URL} | "
        f"max_connections={settings.REDIS_MAX_CONNECTIONS}"
    )
    return client


async def ping_redis() -> bool:
    """True when Redis answers PING (used by /health)."""
    try:
        return bool(await get_redis_client().ping())
    except (RedisError, OSError) as e:
        logger.warning(f"Redis ping failed | error={e}")
        return False


async def close_redis_client() -> None:
    """Close the pool on shutdown and forget the cached client."""
    if get_redis_client.cache_info().currsize == 0:
        return
    client = get_redis_client()
    try:
        await client.aclose()
        logger.info("Redis client closed")
    except (RedisError, OSError) as e:
        logger.warning(f"Error closing Redis client | error={e}")
    finally:
        get_redis_client.cache_clear()
