"""
Application Context

Owns every long-lived client of the API process: settings, database engine
and session factory, Redis client, rate limiter and email notifier.

Built once in the FastAPI lifespan with init_context(), stored on
app.state.context, and torn down with close_context(). Tests build their own
context (or override the dependencies) instead of patching module globals.
"""

import logging
from dataclasses import dataclass

from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.database import close_db, create_engine, create_session_maker, init_db
from app.core.email import EmailNotifier
from app.core.rate_limit import RateLimiter
from app.core.redis import close_redis, init_redis

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Process-wide clients shared by request handlers and jobs."""

    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    redis: Redis | None
    rate_limiter: RateLimiter
    notifier: EmailNotifier


async def init_context(settings: Settings) -> AppContext:
    """
    Build and connect all clients.

    Redis failures are fatal in production and degrade to in-process rate
    limit counters elsewhere. Database failures are fatal in production.
    """
    engine = create_engine(settings)
    try:
        await init_db(engine)
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        if settings.is_production:
            await close_db(engine)
            raise

    redis_client: Redis | None = None
    try:
        redis_client = await init_redis(settings)
        if redis_client is not None:
            logger.info("Redis connected")
    except (RedisError, OSError) as e:
        logger.error(f"Redis connection failed: {e}")
        if settings.is_production:
            await close_db(engine)
            raise

    return AppContext(
        settings=settings,
        engine=engine,
        session_maker=create_session_maker(engine),
        redis=redis_client,
        rate_limiter=RateLimiter.from_settings(settings, redis_client),
        notifier=EmailNotifier.from_settings(settings),
    )


async def close_context(context: AppContext) -> None:
    """Release all clients."""
    await close_redis(context.redis)
    await close_db(context.engine)
    logger.info("Application context closed")


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the application context."""
    return request.app.state.context


def get_notifier(request: Request) -> EmailNotifier:
    """FastAPI dependency returning the email notifier."""
    return request.app.state.context.notifier
