from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from .errors import AuthenticationError, ValidationError

log = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: delay = base * 2**(attempt - 1), no jitter."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("RetryPolicy.base_delay_seconds must be >= 0")

    def delay_for(self, attempt: int) -> float:
        # attempt: 1-based number of the attempt that just failed
        return self.base_delay_seconds * (2 ** (attempt - 1))


def is_retryable(exc: BaseException) -> bool:
    return not isinstance(exc, (ValidationError, AuthenticationError))


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    sleeper: Callable[[float], Awaitable[None]] | None = None,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    operation: str = "call",
) -> T:
    """Run `fn` until it succeeds or attempts run out; re-raises the last real error."""
    sleep = sleeper or asyncio.sleep
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if attempt >= policy.max_attempts or not should_retry(e):
                raise
            delay = policy.delay_for(attempt)
            log.info(
                "retry_scheduled",
                operation=operation,
                attempt=attempt,
                next_attempt=attempt + 1,
                delay_seconds=delay,
                error=str(e),
            )
            await sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
