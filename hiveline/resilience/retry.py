"""Bounded exponential-backoff retry for async operations."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from hiveline.errors import (
    APIError,
    BudgetExceededError,
    TaskError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

_TRANSIENT_SIGNATURES = (
    "econnreset",
    "etimedout",
    "connection reset",
    "timed out",
    "rate limit",
)


def is_transient_error(error: BaseException) -> bool:
    """Classify an error as retry-worthy (rate limit, timeout, server error)."""
    if isinstance(error, ValidationError | BudgetExceededError | TaskError):
        return False
    if isinstance(error, APIError):
        return error.status_code in RETRYABLE_STATUS_CODES
    if isinstance(error, TimeoutError | ConnectionResetError):
        return True
    # Provider SDK exceptions (litellm, openai, httpx) expose status_code
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status in RETRYABLE_STATUS_CODES
    message = str(error).lower()
    return any(sig in message for sig in _TRANSIENT_SIGNATURES)


@dataclass
class RetryPolicy:
    """Retry an async callable with capped exponential backoff plus jitter.

    The delay after failed attempt ``n`` is
    ``min(initial_delay * factor ** (n - 1) + uniform(0, jitter), max_delay)``.
    Pass a seeded ``random.Random`` as *rng* for reproducible delays.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    factor: float = 2.0
    jitter: float = 1.0
    retry_if: Callable[[BaseException], bool] | None = None
    on_retry: Callable[[int, BaseException, float], Any] | None = None
    rng: random.Random = field(default_factory=random.Random)
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValidationError(
                f"max_attempts must be >= 1, got {self.max_attempts}", field="max_attempts"
            )

    def compute_delay(self, attempt: int) -> float:
        """Delay in seconds to wait after failed attempt number *attempt* (1-based)."""
        base = self.initial_delay * self.factor ** (attempt - 1)
        jitter = self.rng.uniform(0, self.jitter) if self.jitter > 0 else 0.0
        return min(base + jitter, self.max_delay)

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Call *fn* until it succeeds, fails permanently, or attempts run out.

        The last error is re-raised unchanged.
        """
        should_retry = self.retry_if or is_transient_error
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn()
            except Exception as e:
                if attempt >= self.max_attempts:
                    if self.max_attempts > 1:
                        logger.error("All %d attempts failed: %s", self.max_attempts, e)
                    raise
                if not should_retry(e):
                    raise
                delay = self.compute_delay(attempt)
                logger.warning(
                    "Attempt %d/%d failed (%s), retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                self._notify(attempt, e, delay)
                await self.sleep(delay)

    def _notify(self, attempt: int, error: BaseException, delay: float) -> None:
        if self.on_retry is None:
            return
        try:
            self.on_retry(attempt, error, delay)
        except Exception:
            logger.warning("on_retry hook raised; ignoring", exc_info=True)


async def retry(fn: Callable[[], Awaitable[T]], **options: Any) -> T:
    """Functional form: ``await retry(fn, max_attempts=5)``."""
    return await RetryPolicy(**options).run(fn)
