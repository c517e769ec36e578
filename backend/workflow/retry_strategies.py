"""Retry strategies shared by collaborator calls.

Three consumers:
- Idempotent storage calls (template lookup, lead mutation) run through
  ``execute_with_retry`` with ``RetryStrategy.for_storage``.
- The ``retry`` fallback of an email step takes the delay of its single
  deferred attempt from ``RetryStrategy.for_fallback_retry``.
- The Claude client spaces its attempts with ``RetryStrategy.for_claude``.

Message sends are never retried inline; a failed send goes through the
step's fallback policy instead.

Usage:
    strategy = RetryStrategy.fixed(retries=2, delay=0.5)
    template = await execute_with_retry(provider.get_template, strategy, "welcome")
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import structlog

from app.config import Settings
from core.exceptions import CollaboratorError

logger = structlog.get_logger(__name__)

# Substrings of error messages that usually mean "try again later".
TRANSIENT_MARKERS = ("timeout", "timed out", "connection", "temporar", "locked", "429", "502", "503", "504")


def is_transient(error: BaseException) -> bool:
    """Whether ``error`` looks like a passing backend problem."""
    if isinstance(error, (CollaboratorError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


@dataclass(frozen=True)
class RetryStrategy:
    """How many extra attempts to make and how long to wait before each.

    The wait before retry ``n`` (1-based) is ``delay * factor ** (n - 1)``,
    capped at ``max_delay``. ``factor == 1`` gives a fixed delay.
    """

    retries: int = 0
    delay: float = 0.0
    factor: float = 1.0
    max_delay: float = 3600.0

    @classmethod
    def none(cls) -> "RetryStrategy":
        return cls()

    @classmethod
    def fixed(cls, retries: int, delay: float) -> "RetryStrategy":
        return cls(retries=retries, delay=delay, max_delay=max(delay, 0.0))

    @classmethod
    def backoff(cls, retries: int, delay: float, max_delay: float, factor: float = 2.0) -> "RetryStrategy":
        return cls(retries=retries, delay=delay, factor=factor, max_delay=max_delay)

    @classmethod
    def for_storage(cls, settings: Settings) -> "RetryStrategy":
        if settings.STORAGE_RETRY_ATTEMPTS <= 0:
            return cls.none()
        return cls.fixed(settings.STORAGE_RETRY_ATTEMPTS, settings.STORAGE_RETRY_DELAY_SECONDS)

    @classmethod
    def for_fallback_retry(cls, settings: Settings) -> "RetryStrategy":
        """Single deferred attempt after FALLBACK_RETRY_DELAY_SECONDS."""
        return cls.fixed(1, settings.FALLBACK_RETRY_DELAY_SECONDS)

    @classmethod
    def for_claude(cls, settings: Settings) -> "RetryStrategy":
        """Doubling waits between Messages API attempts, capped at 30s."""
        return cls.backoff(
            retries=max(settings.CLAUDE_MAX_RETRIES, 1) - 1,
            delay=settings.CLAUDE_RETRY_DELAY,
            max_delay=30.0,
        )

    @property
    def attempts(self) -> int:
        return self.retries + 1

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before retry number ``retry`` (1-based)."""
        if retry < 1 or self.delay <= 0:
            return 0.0
        return round(min(self.delay * self.factor ** (retry - 1), self.max_delay), 3)

    def allows(self, retry: int, error: BaseException) -> bool:
        return retry <= self.retries and is_transient(error)


async def execute_with_retry(
    func: Callable[..., Awaitable[Any]],
    strategy: RetryStrategy,
    *args,
    **kwargs,
) -> Any:
    """Await ``func(*args, **kwargs)``, retrying transient failures.

    Raises:
        The last exception once the strategy is exhausted, or at once for
        an error that is not transient.
    """
    retry = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            retry += 1
            if not strategy.allows(retry, e):
                raise
            wait = strategy.delay_for(retry)
            logger.info(
                "Retrying collaborator call",
                call=getattr(func, "__qualname__", repr(func)),
                retry=retry,
                retries=strategy.retries,
                wait=wait,
                error=str(e),
            )
            await asyncio.sleep(wait)
