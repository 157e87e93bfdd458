"""Retry policy with exponential backoff and jitter.

delay(attempt) = min(base_delay * 2^(attempt - 1) * jitter, max_delay)
where jitter is drawn uniformly from jitter_range. Only errors accepted by
the is_retryable predicate are retried; anything else propagates at once.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Gave up after {attempts} attempts: {type(last_error).__name__}: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


def _never_retry(error: BaseException) -> bool:
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt cap, backoff parameters and retryable-error predicate."""

    max_attempts: int = 6
    base_delay: float = 1.5
    max_delay: float = 30.0
    jitter_range: tuple[float, float] = (0.75, 1.25)
    is_retryable: Callable[[BaseException], bool] = field(default=_never_retry)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        low, high = self.jitter_range
        if low <= 0 or high < low:
            raise ValueError(f"Invalid jitter range: {self.jitter_range}")

    def compute_delay(self, attempt: int, rng: random.Random | None = None) -> float:
        """Backoff delay in seconds after the given 1-based attempt."""
        jitter = (rng or random).uniform(*self.jitter_range)
        exponential = self.base_delay * (2 ** (attempt - 1))
        return min(exponential * jitter, self.max_delay)

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        on_retry: Callable[[int, BaseException, float], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> T:
        """Run func until it succeeds, fails fatally, or attempts run out.

        Args:
            func: Zero-argument coroutine factory, called once per attempt.
            on_retry: Called with (attempt, error, delay) before each sleep.
            sleep: Awaitable sleep, replaceable in tests.
            rng: Random source for jitter, replaceable in tests.

        Raises:
            RetryExhaustedError: If the last attempt failed with a retryable error.
            Exception: Any non-retryable error raised by func, unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func()
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                if attempt == self.max_attempts:
                    raise RetryExhaustedError(attempt, e) from e

                delay = self.compute_delay(attempt, rng)
                if on_retry is not None:
                    on_retry(attempt, e, delay)
                else:
                    logger.warning(
                        f"Attempt {attempt} failed, retrying in {delay:.2f}s",
                        extra={
                            "attempt": attempt,
                            "max_attempts": self.max_attempts,
                            "delay_seconds": round(delay, 3),
                            "error_type": type(e).__name__,
                        },
                    )
                await sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError("Retry loop exited without result")
