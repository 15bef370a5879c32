"""
Database Configuration

Async SQLAlchemy engine and session factory construction.
The engine and session factory are owned by the application context
(see app.core.context); this module only knows how to build them.
"""

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import Settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Build the async engine with bounded timeouts.

    pool_timeout bounds the wait for a pooled connection and asyncpg's
    command_timeout bounds every statement.
    """
    connect_args: dict = {}
    if settings.database_url.startswith("postgresql+asyncpg"):
        connect_args["command_timeout"] = settings.database_command_timeout

    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_timeout=settings.database_pool_timeout,
        connect_args=connect_args,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory bound to an engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """
    Verify the database is reachable.

    Schema is managed by Alembic migrations, not created here.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the connection pool."""
    await engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency yielding a database session from the app context.

    Usage:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    session_maker = request.app.state.context.session_maker
    async with session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
