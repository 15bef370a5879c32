"""
Platform Admin Router

Operational endpoints for super admins.

Endpoints:
- GET /admin/rate-limits?ip= - Live rate limit counters for a client IP
- DELETE /admin/rate-limits?operation=&ip=&email= - Reset one counter
- GET /admin/jobs - Registered background jobs
- POST /admin/jobs/{job_id}/trigger - Run a job now
- POST /admin/jobs/{job_id}/pause - Pause a scheduled job
- POST /admin/jobs/{job_id}/resume - Resume a paused job
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth import AuthenticatedUser, get_current_superadmin
from app.core.rate_limit import OperationClass, RateLimiter, get_rate_limiter
from app.core.scheduler import (
    JobNotFoundError,
    list_registered_jobs,
    pause_job,
    resume_job,
    trigger_job_manually,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limits
# ============================================


@router.get("/rate-limits")
async def get_rate_limit_stats(
    ip: str = Query(..., min_length=1, max_length=64, description="Client IP address"),
    limiter: RateLimiter = Depends(get_rate_limiter),
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> dict[str, Any]:
    """Live counters (count and seconds until reset) for a client IP."""
    counters = await limiter.get_stats(ip)
    return {"ip": ip, "counters": counters}


@router.delete("/rate-limits")
async def clear_rate_limit(
    operation: OperationClass = Query(..., description="Operation class"),
    ip: str = Query(..., min_length=1, max_length=64, description="Client IP address"),
    email: str | None = Query(None, max_length=255, description="Attempted email (login only)"),
    limiter: RateLimiter = Depends(get_rate_limiter),
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> dict[str, Any]:
    """Reset one rate limit counter."""
    cleared = await limiter.clear(operation, ip, email)
    logger.info(f"Admin {admin.id} cleared {operation.value} rate limit for {ip}: {cleared}")
    return {"operation": operation.value, "ip": ip, "cleared": cleared}


# ============================================
# Background Jobs
# ============================================


@router.get("/jobs")
async def list_jobs(
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> dict[str, Any]:
    """Registered background jobs with next run time and pause state."""
    return {"jobs": list_registered_jobs()}


@router.post("/jobs/{job_id}/trigger")
async def trigger_job(
    job_id: str,
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> dict[str, Any]:
    """Run a background job immediately, outside its schedule."""
    try:
        return await trigger_job_manually(job_id)
    except JobNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": str(e)},
        ) from e


@router.post("/jobs/{job_id}/pause")
async def pause_job_endpoint(
    job_id: str,
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> dict[str, Any]:
    """Pause a scheduled job. It stays registered and can be resumed."""
    return {"job_id": job_id, "paused": pause_job(job_id)}


@router.post("/jobs/{job_id}/resume")
async def resume_job_endpoint(
    job_id: str,
    admin: AuthenticatedUser = Depends(get_current_superadmin),
) -> dict[str, Any]:
    """Resume a paused job."""
    return {"job_id": job_id, "resumed": resume_job(job_id)}
