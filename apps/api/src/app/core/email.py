"""
Email Service using Resend

Sends transactional notifications: password expiry warnings, password
expired notices, association decisions and account welcome emails.

Delivery contract:
- Each attempt is bounded by EMAIL_TIMEOUT_SECONDS
- Failed attempts are retried with exponential backoff
- After the last attempt NotificationDeliveryFailedError is raised; callers
  treat delivery as fire-and-forget and log the failure
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from html import escape
from typing import Any

import resend

from app.core.config import Settings
from app.modules.shared.errors import NotificationDeliveryFailedError

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    """Templates the notifier knows how to render."""

    PASSWORD_EXPIRED = "password_expired"
    PASSWORD_EXPIRING = "password_expiring"
    ASSOCIATION_APPROVED = "association_approved"
    ASSOCIATION_REJECTED = "association_rejected"
    ACCOUNT_WELCOME = "account_welcome"


_STYLE = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { margin-bottom: 24px; }
    .box { padding: 16px; border-radius: 8px; margin: 16px 0; }
    .danger { background-color: #fee2e2; border: 1px solid #ef4444; }
    .warning { background-color: #fef3c7; border: 1px solid #f59e0b; }
    .success { background-color: #d1fae5; border: 1px solid #22c55e; }
    .button { display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _layout(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head><style>{_STYLE}</style></head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>Kiki App - School Management</p>
            </div>
        </div>
    </body>
    </html>
    """


def _render_password_expired(data: dict[str, Any], frontend_url: str) -> tuple[str, str]:
    name = escape(data.get("name", ""))
    body = f"""
        <p>Hello {name},</p>
        <div class="box danger">
            Your password has expired and your account has been temporarily deactivated.
        </div>
        <p>To reactivate your account, change your password:</p>
        <ol>
            <li>Open the password change page</li>
            <li>Enter your current password</li>
            <li>Choose a new, secure password</li>
        </ol>
        <a href="{frontend_url}/change-password" class="button">Change Password</a>
        <p>If you need help, contact your institution's administrator.</p>
    """
    return "Your password has expired - Kiki App", _layout("Password Expired", body)


def _render_password_expiring(data: dict[str, Any], frontend_url: str) -> tuple[str, str]:
    name = escape(data.get("name", ""))
    days = int(data.get("days_remaining", 0))
    body = f"""
        <p>Hello {name},</p>
        <p>Your password will expire in <strong>{days} day(s)</strong>.</p>
        <div class="box warning">
            <p><strong>Security recommendations:</strong></p>
            <ul>
                <li>Use at least 8 characters</li>
                <li>Mix upper and lower case letters, numbers and symbols</li>
                <li>Avoid personal information</li>
                <li>Do not reuse previous passwords</li>
            </ul>
        </div>
        <a href="{frontend_url}/change-password" class="button">Change Password</a>
    """
    return f"Your password expires in {days} day(s) - Kiki App", _layout(
        "Password Expiring Soon", body
    )


def _render_association_approved(data: dict[str, Any], frontend_url: str) -> tuple[str, str]:
    name = escape(data.get("name", ""))
    account_name = escape(data.get("account_name", ""))
    body = f"""
        <p>Hello {name},</p>
        <div class="box success">
            Your access to <strong>{account_name}</strong> has been approved.
        </div>
        <p>You can now sign in with your email and password.</p>
        <a href="{frontend_url}/login" class="button">Sign In</a>
    """
    return f"Your access to {account_name} was approved - Kiki App", _layout(
        "Access Approved", body
    )


def _render_association_rejected(data: dict[str, Any], frontend_url: str) -> tuple[str, str]:
    name = escape(data.get("name", ""))
    account_name = escape(data.get("account_name", ""))
    body = f"""
        <p>Hello {name},</p>
        <p>Your request to join <strong>{account_name}</strong> was not approved.</p>
        <p>If you believe this is a mistake, contact the institution directly.</p>
    """
    return f"Your request to join {account_name} - Kiki App", _layout("Request Declined", body)


def _render_account_welcome(data: dict[str, Any], frontend_url: str) -> tuple[str, str]:
    name = escape(data.get("name", ""))
    account_name = escape(data.get("account_name", ""))
    body = f"""
        <p>Hello {name},</p>
        <div class="box success">
            You have been given access to <strong>{account_name}</strong> on Kiki App.
        </div>
        <p>Sign in with this email address and the password provided by your administrator.
        You will be asked to change it periodically.</p>
        <a href="{frontend_url}/login" class="button">Sign In</a>
    """
    return f"Welcome to {account_name} on Kiki App", _layout("Welcome", body)


_RENDERERS: dict[NotificationKind, Callable[[dict[str, Any], str], tuple[str, str]]] = {
    NotificationKind.PASSWORD_EXPIRED: _render_password_expired,
    NotificationKind.PASSWORD_EXPIRING: _render_password_expiring,
    NotificationKind.ASSOCIATION_APPROVED: _render_association_approved,
    NotificationKind.ASSOCIATION_REJECTED: _render_association_rejected,
    NotificationKind.ACCOUNT_WELCOME: _render_account_welcome,
}


class EmailNotifier:
    """Notification sender backed by the Resend API."""

    def __init__(
        self,
        *,
        api_key: str,
        email_from: str,
        frontend_url: str,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.email_from = email_from
        self.frontend_url = frontend_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep
        if api_key:
            resend.api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailNotifier":
        return cls(
            api_key=settings.resend_api_key,
            email_from=settings.email_from,
            frontend_url=settings.frontend_url,
            timeout_seconds=settings.email_timeout_seconds,
            max_attempts=settings.email_max_attempts,
        )

    def render(self, kind: NotificationKind, data: dict[str, Any]) -> tuple[str, str]:
        """Render (subject, html) for a notification kind."""
        return _RENDERERS[kind](data, self.frontend_url)

    async def send(self, to_email: str, kind: NotificationKind, data: dict[str, Any]) -> None:
        """
        Render and deliver a notification.

        Raises:
            NotificationDeliveryFailedError: If every attempt failed
        """
        subject, html_content = self.render(kind, data)
        await self.send_email(to_email, subject, html_content)
        logger.info(f"Sent {kind.value} notification to {to_email}")

    async def send_email(self, to_email: str, subject: str, html_content: str) -> None:
        """
        Send an email, retrying with exponential backoff.

        Without an API key the email is logged instead of sent.
        """
        if not self.api_key:
            logger.warning("RESEND_API_KEY not set - logging email instead of sending")
            logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
            return

        params: resend.Emails.SendParams = {
            "from": self.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        last_error = "unknown error"
        for attempt in range(1, self.max_attempts + 1):
            try:
                # Resend's client is synchronous, keep it off the event loop
                email = await asyncio.wait_for(
                    asyncio.to_thread(resend.Emails.send, params),
                    timeout=self.timeout_seconds,
                )
                logger.info(f"Email sent to {to_email}, id: {email['id']}")
                return
            except TimeoutError:
                last_error = f"timed out after {self.timeout_seconds}s"
            except Exception as e:
                last_error = str(e)

            logger.warning(
                f"Email to {to_email} failed (attempt {attempt}/{self.max_attempts}): {last_error}"
            )
            if attempt < self.max_attempts:
                await self._sleep(self.retry_base_delay * 2 ** (attempt - 1))

        raise NotificationDeliveryFailedError(to_email, last_error)

    async def try_send(self, to_email: str, kind: NotificationKind, data: dict[str, Any]) -> bool:
        """
        Send a notification, logging instead of raising on delivery failure.

        Returns:
            True if delivered
        """
        try:
            await self.send(to_email, kind, data)
            return True
        except NotificationDeliveryFailedError as e:
            logger.error(f"{kind.value} notification to {to_email} not delivered: {e.reason}")
            return False
