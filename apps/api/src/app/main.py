"""
Kiki API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging
- Application context (database, Redis, rate limiter, email notifier)
- Role reference data
- Password expiration sweep on the background scheduler
- Error handlers, CORS middleware and API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import exc as sa_exc
from sqlalchemy import text

from app.api import api_router
from app.core.config import settings
from app.core.context import close_context, init_context
from app.core.logging_config import configure_logging
from app.core.scheduler import start_scheduler, stop_scheduler
from app.modules.password_expiration import (
    PasswordExpirationChecker,
    register_password_expiration_jobs,
)
from app.modules.roles.repository import RoleRepository
from app.modules.shared.errors import PersistenceUnavailableError, ServiceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup builds the application context, seeds roles and starts the
    scheduler. Shutdown stops the sweep between users, stops the scheduler
    and releases every client.
    """
    configure_logging(settings.log_level)
    logger.info(f"Starting Kiki API in {settings.python_env} mode...")

    context = await init_context(settings)
    app.state.context = context

    try:
        async with context.session_maker() as db:
            await RoleRepository.seed_defaults(db)
            await db.commit()
    except (sa_exc.OperationalError, sa_exc.InterfaceError, OSError) as e:
        logger.error(f"Role seeding skipped, database unavailable: {e}")
        if settings.is_production:
            raise

    checker = PasswordExpirationChecker.from_settings(
        context.session_maker, context.notifier, settings
    )
    app.state.password_checker = checker
    register_password_expiration_jobs(checker, settings)
    await start_scheduler()

    yield

    logger.info("Shutting down Kiki API...")
    checker.request_stop()
    await stop_scheduler()
    await close_context(context)
    logger.info("Cleanup complete")


app = FastAPI(
    title="Kiki API",
    description="Kiki school management API: accounts, access approval and login",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Error Handlers
# ============================================


@app.exception_handler(ServiceError)
async def service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    """Service errors raised outside a router's own handling."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


async def persistence_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Database unreachable or timed out: 503, safe to retry."""
    logger.error(f"Persistence unavailable on {request.method} {request.url.path}: {exc!r}")
    error = PersistenceUnavailableError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.to_detail()})


for _exc_type in (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.TimeoutError,
    TimeoutError,
    ConnectionError,
):
    app.add_exception_handler(_exc_type, persistence_error_handler)


# ============================================
# Health
# ============================================


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to Kiki API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: database reachable, Redis reachable when configured."""
    context = request.app.state.context
    checks: dict[str, str] = {}

    try:
        async with context.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except (sa_exc.SQLAlchemyError, OSError, TimeoutError) as e:
        logger.warning(f"Readiness: database check failed: {e}")
        checks["database"] = "unavailable"

    if context.redis is None:
        checks["redis"] = "not configured"
    else:
        try:
            await context.redis.ping()
            checks["redis"] = "ok"
        except (RedisError, OSError) as e:
            # The limiter fails open, so Redis does not gate readiness
            logger.warning(f"Readiness: redis check failed: {e}")
            checks["redis"] = "unavailable"

    ready = checks["database"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "not ready", "checks": checks},
    )
