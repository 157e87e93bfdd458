"""Unit tests for the retry policy.

Tests cover:
- Delay growth, jitter bounds and the delay cap
- Only retryable errors are retried
- Exhaustion raises RetryExhaustedError chained to the last error
- on_retry receives attempt number and delay
"""

import random
from unittest.mock import AsyncMock

import pytest

from tagging_lambda.core.retry import RetryExhaustedError, RetryPolicy


class TransientError(Exception):
    pass


class FatalError(Exception):
    pass


def _retry_transient(error: BaseException) -> bool:
    return isinstance(error, TransientError)


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(is_retryable=_retry_transient)


# ---------------------------------------------------------------------------
# Delay Computation Tests
# ---------------------------------------------------------------------------


class TestComputeDelay:
    """Tests for RetryPolicy.compute_delay()."""

    def test_delay_stays_within_jitter_bounds(self, policy: RetryPolicy) -> None:
        """Delay for attempt n lies in base * 2^(n-1) * [0.75, 1.25]."""
        rng = random.Random(42)
        for attempt in (1, 2, 3):
            expected = 1.5 * 2 ** (attempt - 1)
            for _ in range(50):
                delay = policy.compute_delay(attempt, rng)
                assert expected * 0.75 <= delay <= expected * 1.25

    def test_delay_is_capped(self, policy: RetryPolicy) -> None:
        """Large attempt numbers never exceed max_delay."""
        rng = random.Random(1)
        assert all(policy.compute_delay(10, rng) == 30.0 for _ in range(20))

    def test_invalid_policy_rejected(self) -> None:
        """max_attempts below 1 and inverted jitter are rejected."""
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(jitter_range=(1.25, 0.75))


# ---------------------------------------------------------------------------
# Execute Tests
# ---------------------------------------------------------------------------


class TestExecute:
    """Tests for RetryPolicy.execute()."""

    @pytest.mark.asyncio
    async def test_returns_first_success(self, policy: RetryPolicy) -> None:
        """No sleep happens when the first attempt succeeds."""
        func = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        result = await policy.execute(func, sleep=sleep)

        assert result == "ok"
        func.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self, policy: RetryPolicy) -> None:
        """Transient errors are retried with a sleep between attempts."""
        func = AsyncMock(side_effect=[TransientError(), TransientError(), "ok"])
        sleep = AsyncMock()
        on_retry_calls: list[tuple[int, float]] = []

        result = await policy.execute(
            func,
            sleep=sleep,
            on_retry=lambda attempt, error, delay: on_retry_calls.append(
                (attempt, delay)
            ),
        )

        assert result == "ok"
        assert func.await_count == 3
        assert sleep.await_count == 2
        assert [attempt for attempt, _ in on_retry_calls] == [1, 2]
        assert [call.args[0] for call in sleep.await_args_list] == [
            delay for _, delay in on_retry_calls
        ]

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(
        self, policy: RetryPolicy
    ) -> None:
        """A non-retryable error is raised unchanged after one attempt."""
        func = AsyncMock(side_effect=FatalError("boom"))
        sleep = AsyncMock()

        with pytest.raises(FatalError, match="boom"):
            await policy.execute(func, sleep=sleep)

        func.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhaustion_raises_after_max_attempts(
        self, policy: RetryPolicy
    ) -> None:
        """Six transient failures raise RetryExhaustedError after five sleeps."""
        last = TransientError("last")
        func = AsyncMock(side_effect=[TransientError()] * 5 + [last])
        sleep = AsyncMock()

        with pytest.raises(RetryExhaustedError) as exc_info:
            await policy.execute(func, sleep=sleep)

        assert exc_info.value.attempts == 6
        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last
        assert func.await_count == 6
        assert sleep.await_count == 5
