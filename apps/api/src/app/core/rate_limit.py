"""
Rate Limiting Module

Bounds the rate of sensitive operations per client key to blunt brute force
and abuse. Counters live in Redis when REDIS_URL is configured, otherwise in
a lock-guarded in-process map.

Operation classes and their keys:
- login: client IP + attempted email
- register, password_change: client IP
- sensitive_generic, api_generic: client IP

SECURITY: the counter is incremented BEFORE any downstream logic runs, so
failed attempts count toward the limit even when credentials are invalid.

AVAILABILITY: if the counter store is unavailable the limiter fails open.
Login availability never depends on the rate limit backend.
"""

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from fastapi import Depends, HTTPException, Request, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import Settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate_limit"


class OperationClass(str, enum.Enum):
    """Classes of rate limited operations."""

    LOGIN = "login"
    REGISTER = "register"
    PASSWORD_CHANGE = "password_change"
    SENSITIVE_GENERIC = "sensitive_generic"
    API_GENERIC = "api_generic"


@dataclass(frozen=True)
class RateLimitRule:
    """Window length and request budget for one operation class."""

    window_seconds: int
    max_requests: int
    message: str


DEFAULT_RULES: dict[OperationClass, RateLimitRule] = {
    OperationClass.LOGIN: RateLimitRule(
        window_seconds=15 * 60,
        max_requests=5,
        message="Too many login attempts. Please try again in 15 minutes.",
    ),
    OperationClass.REGISTER: RateLimitRule(
        window_seconds=60 * 60,
        max_requests=3,
        message="Too many registration attempts. Please try again in 1 hour.",
    ),
    OperationClass.PASSWORD_CHANGE: RateLimitRule(
        window_seconds=60 * 60,
        max_requests=3,
        message="Too many password change attempts. Please try again in 1 hour.",
    ),
    OperationClass.SENSITIVE_GENERIC: RateLimitRule(
        window_seconds=5 * 60,
        max_requests=10,
        message="Too many requests to sensitive endpoints. Please try again in 5 minutes.",
    ),
    OperationClass.API_GENERIC: RateLimitRule(
        window_seconds=15 * 60,
        max_requests=100,
        message="Too many requests. Please try again in 15 minutes.",
    ),
}

# Generic API budget outside production
RELAXED_API_GENERIC_MAX = 1000


def build_rules(settings: Settings) -> dict[OperationClass, RateLimitRule]:
    """
    Resolve the effective rules for this process.

    Applies the non-production relaxation of api_generic first, then any
    per-class overrides from RATE_LIMIT_OVERRIDES.
    """
    rules = dict(DEFAULT_RULES)

    if not settings.is_production:
        generic = rules[OperationClass.API_GENERIC]
        rules[OperationClass.API_GENERIC] = RateLimitRule(
            window_seconds=generic.window_seconds,
            max_requests=RELAXED_API_GENERIC_MAX,
            message=generic.message,
        )

    for name, override in settings.rate_limit_overrides.items():
        try:
            operation = OperationClass(name)
        except ValueError:
            logger.warning(f"Ignoring rate limit override for unknown operation class: {name}")
            continue
        current = rules[operation]
        rules[operation] = RateLimitRule(
            window_seconds=int(override.get("window_seconds", current.window_seconds)),
            max_requests=int(override.get("max_requests", current.max_requests)),
            message=current.message,
        )
        logger.info(
            f"Rate limit override for {operation.value}: "
            f"{rules[operation].max_requests}/{rules[operation].window_seconds}s"
        )

    return rules


def rate_limit_key(operation: OperationClass, client_ip: str, email: str | None = None) -> str:
    """Build the counter key for an operation class."""
    if operation == OperationClass.LOGIN:
        attempted = (email or "unknown").strip().lower()
        return f"{KEY_PREFIX}:{operation.value}:{client_ip}:{attempted}"
    return f"{KEY_PREFIX}:{operation.value}:{client_ip}"


@dataclass(frozen=True)
class Allowed:
    """The request is within its budget."""

    remaining: int | None = None


@dataclass(frozen=True)
class Limited:
    """The request exceeded its budget."""

    message: str
    retry_after_seconds: int


RateLimitResult = Allowed | Limited


# ============================================
# Counter Stores
# ============================================


class MemoryRateLimitStore:
    """
    In-process fixed window counters.

    Used when Redis is not configured. Does not share state across server
    instances. Expired counters are dropped from within increment once every
    purge_interval seconds.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        purge_interval: float = 60.0,
    ) -> None:
        self._clock = clock
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = Lock()
        self._purge_interval = purge_interval
        self._next_purge = clock() + purge_interval

    async def increment(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Increment a counter, returning (count, seconds until the window resets)."""
        now = self._clock()
        with self._lock:
            if now >= self._next_purge:
                self._purge_locked(now)
                self._next_purge = now + self._purge_interval
            count, expires_at = self._counters.get(key, (0, 0.0))
            if expires_at <= now:
                count, expires_at = 0, now + window_seconds
            count += 1
            self._counters[key] = (count, expires_at)
            return count, max(1, int(expires_at - now + 0.999))

    async def stats(self, prefixes: list[str]) -> dict[str, dict[str, int]]:
        now = self._clock()
        with self._lock:
            return {
                key: {"count": count, "ttl": max(0, int(expires_at - now))}
                for key, (count, expires_at) in self._counters.items()
                if expires_at > now and any(_key_matches(key, prefix) for prefix in prefixes)
            }

    async def clear(self, key: str) -> bool:
        with self._lock:
            return self._counters.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Drop expired counters. Returns the number removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def __len__(self) -> int:
        return len(self._counters)

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, (_, expires_at) in self._counters.items() if expires_at <= now]
        for key in expired:
            del self._counters[key]
        return len(expired)


class RedisRateLimitStore:
    """
    Redis fixed window counters shared by all server instances.

    SET NX EX, INCR and TTL run in one MULTI/EXEC transaction so a burst of
    concurrent requests cannot slip past the limit.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def increment(self, key: str, window_seconds: int) -> tuple[int, int]:
        pipe = self._client.pipeline(transaction=True)
        pipe.set(key, 0, ex=window_seconds, nx=True)
        pipe.incr(key)
        pipe.ttl(key)
        _, count, ttl = await pipe.execute()

        if ttl is None or int(ttl) < 0:
            # Key lost its expiry (e.g. manual edit); restore the window
            await self._client.expire(key, window_seconds)
            ttl = window_seconds

        return int(count), max(1, int(ttl))

    async def stats(self, prefixes: list[str]) -> dict[str, dict[str, int]]:
        result: dict[str, dict[str, int]] = {}
        for prefix in prefixes:
            for pattern in (prefix, f"{prefix}:*"):
                async for key in self._client.scan_iter(match=pattern):
                    count = await self._client.get(key)
                    ttl = await self._client.ttl(key)
                    result[key] = {"count": int(count or 0), "ttl": int(ttl)}
        return result

    async def clear(self, key: str) -> bool:
        return bool(await self._client.delete(key))


def _key_matches(key: str, prefix: str) -> bool:
    return key == prefix or key.startswith(f"{prefix}:")


# ============================================
# Limiter
# ============================================


class RateLimiter:
    """Check-and-increment rate limiter over a counter store."""

    def __init__(
        self,
        store: MemoryRateLimitStore | RedisRateLimitStore,
        rules: dict[OperationClass, RateLimitRule] | None = None,
        exempt_ips: frozenset[str] = frozenset(),
    ) -> None:
        self.store = store
        self.rules = rules or dict(DEFAULT_RULES)
        self.exempt_ips = exempt_ips

    @classmethod
    def from_settings(cls, settings: Settings, redis_client: Redis | None) -> "RateLimiter":
        """Build the limiter for this process from settings."""
        store = (
            RedisRateLimitStore(redis_client)
            if redis_client is not None
            else MemoryRateLimitStore()
        )
        exempt_ips = frozenset(settings.rate_limit_exempt_ips)
        if exempt_ips:
            logger.warning(f"Rate limiting disabled for client IPs: {sorted(exempt_ips)}")
        return cls(store, rules=build_rules(settings), exempt_ips=exempt_ips)

    async def check_and_increment(self, operation: OperationClass, key: str) -> RateLimitResult:
        """
        Count this request against its key and decide whether it may proceed.

        Store failures are logged and the request is allowed (fail open).
        """
        rule = self.rules[operation]
        try:
            count, ttl = await self.store.increment(key, rule.window_seconds)
        except (RedisError, OSError, TimeoutError) as e:
            logger.warning(f"Rate limit store unavailable, allowing request for {key}: {e}")
            return Allowed()

        if count > rule.max_requests:
            return Limited(message=rule.message, retry_after_seconds=ttl)
        return Allowed(remaining=rule.max_requests - count)

    async def check_request(
        self,
        operation: OperationClass,
        client_ip: str,
        email: str | None = None,
    ) -> RateLimitResult:
        """Derive the key for a request and check it, honoring exempt IPs."""
        if client_ip in self.exempt_ips:
            return Allowed()
        return await self.check_and_increment(operation, rate_limit_key(operation, client_ip, email))

    async def enforce(
        self,
        operation: OperationClass,
        client_ip: str,
        email: str | None = None,
    ) -> None:
        """
        Check a request and raise when it is over the limit.

        Raises:
            RateLimitExceeded: HTTP 429 with a retry-after hint
        """
        result = await self.check_request(operation, client_ip, email)
        if isinstance(result, Limited):
            logger.warning(
                f"Rate limit exceeded for {operation.value} from {client_ip}, "
                f"retry after {result.retry_after_seconds}s"
            )
            raise RateLimitExceeded(result.message, result.retry_after_seconds)

    async def get_stats(self, client_ip: str) -> dict[str, dict[str, int]]:
        """Live counters for a client IP across all operation classes."""
        prefixes = [f"{KEY_PREFIX}:{operation.value}:{client_ip}" for operation in OperationClass]
        return await self.store.stats(prefixes)

    async def clear(
        self,
        operation: OperationClass,
        client_ip: str,
        email: str | None = None,
    ) -> bool:
        """Reset one counter. Returns True if a counter existed."""
        key = rate_limit_key(operation, client_ip, email)
        cleared = await self.store.clear(key)
        if cleared:
            logger.info(f"Cleared rate limit counter {key}")
        return cleared


# ============================================
# HTTP Integration
# ============================================


class RateLimitExceeded(HTTPException):
    """HTTP 429 raised when a request is over its rate limit."""

    def __init__(self, message: str, retry_after_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "code": "RATE_LIMITED",
                "message": message,
                "retryAfter": retry_after_seconds,
            },
            headers={"Retry-After": str(retry_after_seconds)},
        )


def client_ip(request: Request) -> str:
    """Client address as seen by the server (proxy headers are resolved by uvicorn)."""
    return request.client.host if request.client else "unknown"


def get_rate_limiter(request: Request) -> RateLimiter:
    """FastAPI dependency returning the process rate limiter."""
    return request.app.state.context.rate_limiter


def rate_limit(operation: OperationClass) -> Callable:
    """
    Build a FastAPI dependency enforcing an IP-keyed operation class.

    Usage:
        @router.put("/approve", dependencies=[Depends(rate_limit(OperationClass.SENSITIVE_GENERIC))])
        async def approve(...):
            ...
    """

    async def dependency(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> None:
        await limiter.enforce(operation, client_ip(request))

    return dependency


__all__ = [
    "Allowed",
    "Limited",
    "MemoryRateLimitStore",
    "OperationClass",
    "RateLimitExceeded",
    "RateLimitResult",
    "RateLimitRule",
    "RateLimiter",
    "RedisRateLimitStore",
    "build_rules",
    "client_ip",
    "get_rate_limiter",
    "rate_limit",
    "rate_limit_key",
]
