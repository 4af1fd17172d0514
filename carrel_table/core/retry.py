from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_MODES = ("linear", "exponential")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently to retry a failing call.

    - max_attempts: total number of calls, including the first one
    - delay_ms: wait before the second attempt
    - backoff: "exponential" doubles the wait each time (d, 2d, 4d, ...),
               "linear" grows it by d each time (d, 2d, 3d, ...)
    - should_retry: returning False for an error stops retrying immediately
    """
    max_attempts: int = 3
    delay_ms: float = 1000
    backoff: str = "exponential"
    should_retry: Optional[Callable[[BaseException], bool]] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff not in BACKOFF_MODES:
            raise ValueError(f"backoff must be one of {BACKOFF_MODES}, got {self.backoff!r}")

    def delay_for(self, attempt: int) -> float:
        """Wait in milliseconds after the given (1-based) failed attempt."""
        if self.backoff == "exponential":
            return self.delay_ms * (2 ** (attempt - 1))
        return self.delay_ms * attempt


async def with_retry(
    policy: RetryPolicy,
    fn: Callable[[], Awaitable[T]],
    *,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """
    Await `fn()` until it succeeds or the policy gives up.

    The error of the last attempt is re-raised as-is. `sleep` takes seconds
    (asyncio.sleep signature) and can be swapped out in tests.
    """
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as error:
            if attempt >= policy.max_attempts:
                logger.warning(
                    "Giving up after %d attempt(s)",
                    attempt,
                    extra={"error": repr(error)},
                )
                raise

            if policy.should_retry is not None and not policy.should_retry(error):
                logger.debug("Error is not retriable", extra={"error": repr(error)})
                raise

            wait_ms = policy.delay_for(attempt)
            logger.info(
                "Attempt %d/%d failed, retrying in %.0f ms",
                attempt,
                policy.max_attempts,
                wait_ms,
                extra={"error": repr(error)},
            )
            await sleep(wait_ms / 1000.0)
            attempt += 1
