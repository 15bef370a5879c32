"""
Redis Configuration

Async Redis client construction for the shared rate limit store.
The client is owned by the application context, not a module global.
"""

import logging

from redis.asyncio import Redis, from_url

from app.core.config import Settings

logger = logging.getLogger(__name__)


async def init_redis(settings: Settings) -> Redis | None:
    """
    Connect to Redis if REDIS_URL is configured.

    Returns:
        A connected client, or None when no URL is configured
    """
    if not settings.redis_url:
        logger.info("REDIS_URL not set, rate limit counters will be kept in process")
        return None

    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
    )
    await client.ping()
    return client


async def close_redis(client: Redis | None) -> None:
    """Close the Redis connection pool."""
    if client is not None:
        await client.aclose()
