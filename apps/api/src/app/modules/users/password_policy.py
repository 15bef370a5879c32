"""
Password Policy

Free functions over a User record for the password lifecycle:
expiry checks, warning bookkeeping and window refresh.

None of these touch the database; callers persist the record.
"""

import math
from datetime import UTC, datetime, timedelta

from app.core.security import hash_password
from app.modules.users.models import User

PASSWORD_EXPIRATION_DAYS = 90
WARNING_COOLDOWN = timedelta(hours=24)


def _aware(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def is_password_expired(user: User, now: datetime) -> bool:
    """True once now has reached the password's expiry instant."""
    return now >= _aware(user.password_expires_at)


def is_password_expiring(user: User, now: datetime, within: timedelta) -> bool:
    """True if the password expires after now and no later than now + within."""
    return now < _aware(user.password_expires_at) <= now + within


def days_until_password_expiration(user: User, now: datetime) -> int:
    """
    Whole days until expiry, rounded up, never negative.

    Example: 36 hours left -> 2
    """
    remaining = (_aware(user.password_expires_at) - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / 86400)


def last_warning_at(user: User) -> datetime | None:
    warnings = user.password_expiration_warnings or []
    if not warnings:
        return None
    return max(_aware(datetime.fromisoformat(stamp)) for stamp in warnings)


def has_recent_warning(user: User, now: datetime, cooldown: timedelta = WARNING_COOLDOWN) -> bool:
    """True if an expiry warning was recorded within the cooldown."""
    last = last_warning_at(user)
    return last is not None and now - last < cooldown


def mark_password_expiration_warning(user: User, now: datetime) -> None:
    """Record that an expiry warning was sent at now."""
    # Reassign so the JSONB column is flagged as modified
    user.password_expiration_warnings = [*(user.password_expiration_warnings or []), now.isoformat()]


def extend_password_expiration(
    user: User,
    now: datetime,
    days: int = PASSWORD_EXPIRATION_DAYS,
) -> None:
    """Start a fresh expiry window of `days` from now and clear warnings."""
    user.password_expires_at = now + timedelta(days=days)
    user.password_expiration_warnings = []


def apply_new_password(
    user: User,
    new_password: str,
    now: datetime,
    days: int = PASSWORD_EXPIRATION_DAYS,
) -> None:
    """Set a new password hash and restart the expiry window."""
    user.password_hash = hash_password(new_password)
    user.password_changed_at = now
    extend_password_expiration(user, now, days)
