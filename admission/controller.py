"""
Transactional admission controller (rate limiter).

Every admitted attempt is stored as a ticket that expires ``window_ms``
after it was issued; a caller is admitted while fewer than
``max_attempts`` of its tickets are live. The purge, count and insert run
in a single store transaction, serialized per key.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.middleware.metrics import record_admission
from database.repositories import RateLimitRepository

from .security_monitor import SecurityEventType, Severity, log_security_event

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED_MESSAGE = "Rate limit exceeded. Please try again later."
STORE_UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again later."


@dataclass(frozen=True)
class RateLimitConfig:
    """Admission policy for one endpoint class."""
    window_ms: int
    max_attempts: int
    key_prefix: str
    fail_closed: bool = False

    @property
    def window(self) -> timedelta:
        return timedelta(milliseconds=self.window_ms)


@dataclass
class RateLimitResult:
    """Outcome of one admission check."""
    success: bool
    remaining: int
    reset_time: datetime
    error: Optional[str] = None
    store_unavailable: bool = False

    @property
    def reset_epoch(self) -> int:
        """reset_time as epoch seconds (reset_time is naive UTC)."""
        return calendar.timegm(self.reset_time.utctimetuple())

    def headers(self, limit: int) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_epoch),
        }


RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "LOGIN_ATTEMPTS": RateLimitConfig(
        window_ms=15 * 60 * 1000,
        max_attempts=5,
        key_prefix="login_attempts",
        fail_closed=True,
    ),
    "PASSWORD_RESET": RateLimitConfig(
        window_ms=15 * 60 * 1000,
        max_attempts=3,
        key_prefix="password_reset",
        fail_closed=True,
    ),
    "REGISTRATION": RateLimitConfig(
        window_ms=60 * 60 * 1000,
        max_attempts=3,
        key_prefix="registration",
        fail_closed=True,
    ),
    "GENERAL_API": RateLimitConfig(
        window_ms=60 * 1000,
        max_attempts=100,
        key_prefix="general_api",
        fail_closed=False,
    ),
}


class RateLimitExceeded(Exception):
    """Admission was declined; carries the result for the HTTP response."""

    def __init__(self, result: RateLimitResult, config: RateLimitConfig):
        self.result = result
        self.config = config
        super().__init__(result.error or RATE_LIMIT_EXCEEDED_MESSAGE)


class RateLimitStoreUnavailable(Exception):
    """The rate limit store transaction could not complete."""


class AdmissionController:
    """
    Admission checks against the persisted ticket store.

    Args:
        session_factory: Async session factory bound to the rate limit store
        clock: Returns the current naive-UTC time
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.clock = clock

    async def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """
        Admit or decline one attempt for ``identifier`` under ``config``.

        Never raises: store failures are resolved by ``config.fail_closed``.
        """
        key = f"{config.key_prefix}:{identifier}"
        now = self.clock()
        reset_time = now + config.window

        try:
            result = await self._check_in_store(key, config, now, reset_time)
        except RateLimitStoreUnavailable as e:
            return self._resolve_store_failure(identifier, config, reset_time, e)

        if result.success:
            record_admission(config.key_prefix, "admitted")
        else:
            record_admission(config.key_prefix, "denied")
            logger.info(f"Rate limit reached for {config.key_prefix}")
        return result

    async def _check_in_store(
        self,
        key: str,
        config: RateLimitConfig,
        now: datetime,
        reset_time: datetime,
    ) -> RateLimitResult:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    repo = RateLimitRepository(session)
                    await repo.lock_identifier(key)
                    await repo.purge_expired(key, now)
                    live = await repo.count_live(key, now)

                    if live >= config.max_attempts:
                        return RateLimitResult(
                            success=False,
                            remaining=0,
                            reset_time=reset_time,
                            error=RATE_LIMIT_EXCEEDED_MESSAGE,
                        )

                    await repo.add_ticket(key, reset_time)
                    return RateLimitResult(
                        success=True,
                        remaining=config.max_attempts - live - 1,
                        reset_time=reset_time,
                    )
        except (SQLAlchemyError, OSError) as e:
            # DBAPI error only; the wrapped statement parameters hold the raw identifier
            cause = getattr(e, "orig", None) or e
            raise RateLimitStoreUnavailable(f"{type(e).__name__}: {cause}") from e

    def _resolve_store_failure(
        self,
        identifier: str,
        config: RateLimitConfig,
        reset_time: datetime,
        error: RateLimitStoreUnavailable,
    ) -> RateLimitResult:
        metadata = {
            "key_prefix": config.key_prefix,
            "error": str(error),
            "fail_closed": config.fail_closed,
        }

        if config.fail_closed:
            log_security_event(
                SecurityEventType.DATABASE_ERROR,
                Severity.HIGH,
                identifier,
                {**metadata, "action": "blocked"},
            )
            record_admission(config.key_prefix, "blocked")
            return RateLimitResult(
                success=False,
                remaining=0,
                reset_time=reset_time,
                error=STORE_UNAVAILABLE_MESSAGE,
                store_unavailable=True,
            )

        log_security_event(
            SecurityEventType.RATE_LIMIT_FAILURE,
            Severity.MEDIUM,
            identifier,
            {**metadata, "action": "bypassed due to error"},
        )
        record_admission(config.key_prefix, "bypassed")
        return RateLimitResult(
            success=True,
            remaining=config.max_attempts - 1,
            reset_time=reset_time,
            store_unavailable=True,
        )
