"""AI label augmentation through Bedrock.

Asks the model for a fixed number of labels: exactly one picked from the
master category list plus (quota - 1) keywords taken from the tender text,
returned as a single comma-separated line.

Calls are serialized through a per-instance semaphore. The gate is held for
the whole retry sequence, backoff sleeps included, so a throttled record
does not let the next record pile onto the same rate limit.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from tagging_lambda.core.config import get_settings
from tagging_lambda.core.logging import bedrock_logger, get_logger
from tagging_lambda.core.retry import RetryExhaustedError, RetryPolicy
from tagging_lambda.integrations.bedrock import (
    BedrockClient,
    BedrockRateLimitError,
    extract_text,
)

logger = get_logger(__name__)


class AugmentationFailedError(Exception):
    """Raised when no model output could be obtained for a record."""

    def __init__(
        self, message: str, record_id: str | None = None, attempts: int | None = None
    ) -> None:
        super().__init__(message)
        self.record_id = record_id
        self.attempts = attempts


def is_rate_limit_error(error: BaseException) -> bool:
    """Only throttling is worth retrying."""
    return isinstance(error, BedrockRateLimitError)


def default_retry_policy() -> RetryPolicy:
    """Throttling retry policy built from settings."""
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.bedrock_max_attempts,
        base_delay=settings.bedrock_base_delay,
        max_delay=settings.bedrock_max_delay,
        is_retryable=is_rate_limit_error,
    )


def build_task_directive(quota: int) -> str:
    """Instruction appended after the combined prompt.

    Examples:
        >>> "exactly 6 additional" in build_task_directive(7)
        True
    """
    keyword_count = max(quota - 1, 0)
    return (
        "Analyze the following tender text. "
        "Select exactly 1 label from the MASTER TAG LIST above that best "
        "describes the tender. "
        f"Then generate exactly {keyword_count} additional keywords from the "
        "tender text, focusing on the core subject matter, required "
        "services/goods, industry and location. "
        f"Return all {quota} items as a single flat comma-separated list "
        "and nothing else."
    )


def build_prompt(combined_prompt: str, input_text: str, quota: int) -> str:
    return (
        f"{combined_prompt}\n\n{build_task_directive(quota)}"
        f"\n\nTender Text:\n{input_text}"
    )


def parse_candidate_labels(text: str | None, limit: int | None = None) -> list[str]:
    """Split comma-separated model output into trimmed, non-empty candidates."""
    if not text or not text.strip():
        return []
    candidates = [part.strip() for part in text.split(",")]
    candidates = [candidate for candidate in candidates if candidate]
    if limit is not None:
        candidates = candidates[: max(limit, 0)]
    return candidates


class AugmentationClient:
    """Generates candidate labels for one record with rate limiting and retry."""

    def __init__(
        self,
        bedrock: BedrockClient,
        retry_policy: RetryPolicy | None = None,
        gate: asyncio.Semaphore | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._bedrock = bedrock
        self._retry_policy = retry_policy or default_retry_policy()
        self._gate = gate or asyncio.Semaphore(1)
        self._sleep = sleep

    async def generate(
        self,
        combined_prompt: str,
        input_text: str,
        quota: int,
        record_id: str | None = None,
    ) -> list[str]:
        """Ask the model for up to quota candidate labels.

        Returns:
            Raw candidates in model output order, at most quota of them.
            An empty or malformed model response yields an empty list.

        Raises:
            AugmentationFailedError: If throttling outlasted every attempt
                or the model call failed with a non-retryable error.
        """
        if quota <= 0:
            return []

        prompt = build_prompt(combined_prompt, input_text, quota)
        model_id = self._bedrock.model_id
        policy = self._retry_policy
        attempt = 0

        async def _attempt() -> str:
            nonlocal attempt
            attempt += 1
            bedrock_logger.api_call_start(
                model_id, len(prompt), attempt, policy.max_attempts, record_id
            )
            response = await self._bedrock.invoke(prompt)
            text = extract_text(response)
            bedrock_logger.response_body(model_id, text)
            return text

        def _on_retry(failed_attempt: int, error: BaseException, delay: float) -> None:
            bedrock_logger.rate_limit(
                failed_attempt, policy.max_attempts, delay, record_id
            )

        start_time = time.monotonic()
        async with self._gate:
            try:
                text = await policy.execute(
                    _attempt, on_retry=_on_retry, sleep=self._sleep
                )
            except RetryExhaustedError as e:
                logger.error(
                    "Bedrock throttling persisted through all attempts",
                    extra={
                        "record_id": record_id,
                        "attempts": e.attempts,
                        "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
                    },
                )
                raise AugmentationFailedError(
                    f"Bedrock throttled on all {e.attempts} attempts",
                    record_id=record_id,
                    attempts=e.attempts,
                ) from e.last_error
            except Exception as e:
                logger.error(
                    "Bedrock request failed with non-retryable error",
                    extra={
                        "record_id": record_id,
                        "attempt": attempt,
                        "error_type": type(e).__name__,
                        "error_code": getattr(e, "error_code", None),
                    },
                    exc_info=True,
                )
                raise AugmentationFailedError(
                    f"Bedrock request failed: {e}",
                    record_id=record_id,
                    attempts=attempt,
                ) from e

        candidates = parse_candidate_labels(text, limit=quota)
        logger.debug(
            "Bedrock generated candidate labels",
            extra={"record_id": record_id, "count": len(candidates)},
        )
        return candidates
