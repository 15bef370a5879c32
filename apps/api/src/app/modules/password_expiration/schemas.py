"""Password expiration admin schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ExpirationStatsResponse(BaseModel):
    total_users: int
    expired: int
    expiring_in_7_days: int
    expiring_in_30_days: int
    generated_at: datetime


class SweepError(BaseModel):
    user_id: str
    stage: str
    error: str


class SweepResponse(BaseModel):
    started_at: str
    finished_at: str | None = None
    expired_count: int
    expiring_soon_count: int
    warnings_sent: int
    notifications_failed: int
    errors: list[SweepError] = Field(default_factory=list)
    skipped: bool
    cancelled: bool


class ExtendExpirationRequest(BaseModel):
    days: int = Field(90, ge=1, le=365)


class ExtendExpirationResponse(BaseModel):
    message: str
    user_id: UUID
    status: str
    password_expires_at: datetime
