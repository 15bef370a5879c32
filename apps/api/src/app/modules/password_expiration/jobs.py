"""
Password Expiration Background Job

Periodic sweep over approved users:
1. Passwords already expired: the user is demoted to pending and told to
   change their password
2. Passwords expiring within PASSWORD_WARNING_DAYS: a warning is recorded
   and emailed, at most once per 24 hours per user

Design Principles:
- Idempotent: running twice in a day sends no duplicate warnings and
  demotes nobody twice (the demotion is conditional on status=approved)
- Each user is processed in its own session; one failure never stops the run
- Never overlaps itself: a run started while another is in progress is skipped
- Cooperative cancellation: on shutdown the sweep stops between users
- Email failures are logged; database changes are kept

Schedule:
- Every PASSWORD_CHECK_INTERVAL_HOURS (default 6), plus manual triggers from
  the admin endpoints
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.email import EmailNotifier, NotificationKind
from app.core.scheduler import register_job
from app.modules.users.models import User, UserStatus
from app.modules.users.password_policy import (
    days_until_password_expiration,
    has_recent_warning,
    is_password_expiring,
    mark_password_expiration_warning,
)
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

JOB_ID_PASSWORD_EXPIRATION_CHECK = "password_expiration_check"


@dataclass
class SweepResult:
    """Outcome of one sweep."""

    started_at: str
    expired_count: int = 0
    expiring_soon_count: int = 0
    warnings_sent: int = 0
    notifications_failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    skipped: bool = False
    cancelled: bool = False
    finished_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PasswordExpirationChecker:
    """Runs the password expiration sweep."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        notifier: EmailNotifier,
        warning_days: int = 7,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._session_maker = session_maker
        self._notifier = notifier
        self._warning_days = warning_days
        self._clock = clock
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()

    @classmethod
    def from_settings(
        cls,
        session_maker: async_sessionmaker[AsyncSession],
        notifier: EmailNotifier,
        settings: Settings,
    ) -> "PasswordExpirationChecker":
        return cls(session_maker, notifier, warning_days=settings.password_warning_days)

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def request_stop(self) -> None:
        """Ask a running sweep to stop before the next user."""
        self._stop.set()

    async def run_scheduled_check(self) -> dict[str, Any]:
        """
        Run one sweep.

        Returns:
            SweepResult as a dict; skipped=True if another sweep was running
        """
        now = self._clock()
        if self._lock.locked():
            logger.info("Password expiration sweep already running, skipping this run")
            return SweepResult(started_at=now.isoformat(), skipped=True).to_dict()

        async with self._lock:
            result = SweepResult(started_at=now.isoformat())
            logger.info("Starting password expiration sweep")

            await self._process_expired(now, result)
            if not result.cancelled:
                await self._process_expiring(now, result)

            result.finished_at = self._clock().isoformat()
            logger.info(
                f"Password expiration sweep finished: expired={result.expired_count}, "
                f"expiring_soon={result.expiring_soon_count}, warnings={result.warnings_sent}, "
                f"errors={len(result.errors)}, cancelled={result.cancelled}"
            )
            return result.to_dict()

    async def _process_expired(self, now: datetime, result: SweepResult) -> None:
        async with self._session_maker() as db:
            expired = await UserRepository.list_expired(db, now)
        logger.info(f"Found {len(expired)} user(s) with expired passwords")

        for user in expired:
            if self._stop.is_set():
                result.cancelled = True
                logger.info("Password expiration sweep cancelled")
                return
            try:
                await self._expire_user(user, now, result)
            except Exception as e:
                logger.error(f"Failed to process expired password for user {user.id}: {e}")
                result.errors.append({"user_id": str(user.id), "stage": "expired", "error": str(e)})

    async def _expire_user(self, user: User, now: datetime, result: SweepResult) -> None:
        async with self._session_maker() as db:
            demoted = await UserRepository.demote_if_approved(db, user.id, now)
            await db.commit()

        if not demoted:
            # Suspended, demoted or password changed since the query ran
            return

        result.expired_count += 1
        logger.info(f"User {user.id} demoted to pending: password expired")

        delivered = await self._notifier.try_send(
            user.email,
            NotificationKind.PASSWORD_EXPIRED,
            {"name": user.name},
        )
        if not delivered:
            result.notifications_failed += 1

    async def _process_expiring(self, now: datetime, result: SweepResult) -> None:
        async with self._session_maker() as db:
            expiring = await UserRepository.list_expiring(
                db, now, now + timedelta(days=self._warning_days)
            )
        result.expiring_soon_count = len(expiring)
        logger.info(f"Found {len(expiring)} user(s) with passwords expiring soon")

        for user in expiring:
            if self._stop.is_set():
                result.cancelled = True
                logger.info("Password expiration sweep cancelled")
                return
            try:
                await self._warn_user(user.id, now, result)
            except Exception as e:
                logger.error(f"Failed to send expiry warning to user {user.id}: {e}")
                result.errors.append({"user_id": str(user.id), "stage": "expiring", "error": str(e)})

    def _should_warn(self, user: User, now: datetime) -> bool:
        # Re-read state: status or password may have changed since the listing
        return (
            user.status == UserStatus.APPROVED
            and is_password_expiring(user, now, timedelta(days=self._warning_days))
            and not has_recent_warning(user, now)
        )

    async def _warn_user(self, user_id: UUID, now: datetime, result: SweepResult) -> None:
        async with self._session_maker() as db:
            user = await UserRepository.get_by_id(db, user_id)
            if user is None or not self._should_warn(user, now):
                return

            # Recorded before sending so a crash cannot cause a duplicate warning
            mark_password_expiration_warning(user, now)
            await db.commit()

            email, name = user.email, user.name
            days_remaining = days_until_password_expiration(user, now)

        result.warnings_sent += 1
        delivered = await self._notifier.try_send(
            email,
            NotificationKind.PASSWORD_EXPIRING,
            {"name": name, "days_remaining": days_remaining},
        )
        if not delivered:
            result.notifications_failed += 1


def register_password_expiration_jobs(
    checker: PasswordExpirationChecker,
    settings: Settings,
) -> None:
    """Register the sweep with the background scheduler."""
    register_job(
        job_id=JOB_ID_PASSWORD_EXPIRATION_CHECK,
        func=checker.run_scheduled_check,
        trigger=IntervalTrigger(hours=settings.password_check_interval_hours),
    )
    logger.info(
        f"Password expiration sweep registered: every {settings.password_check_interval_hours}h"
    )
