"""Amazon Bedrock runtime client for Anthropic Claude models.

Features:
- Boto3 bedrock-runtime client created lazily, SDK retries disabled
  (throttling is retried by the caller's RetryPolicy)
- Throttling responses surfaced as BedrockRateLimitError, everything else
  as BedrockError
- Anthropic Messages API payloads
- Request/response logging at DEBUG level, token usage when reported

A single invoke() is one attempt. Retry and concurrency limits live in
services.augmentation.
"""

import asyncio
import json
import time
from typing import Any

import boto3
from botocore.config import Config as BotoConfig  # type: ignore[import-not-found]
from botocore.exceptions import (  # type: ignore[import-not-found]
    BotoCoreError,
    ClientError,
)

from tagging_lambda.core.config import get_settings
from tagging_lambda.core.logging import bedrock_logger, get_logger

logger = get_logger(__name__)

ANTHROPIC_BEDROCK_VERSION = "bedrock-2023-05-31"

# Error codes Bedrock uses to signal rate limiting
THROTTLING_ERROR_CODES = frozenset(
    {
        "ThrottlingException",
        "TooManyRequestsException",
        "ServiceQuotaExceededException",
    }
)


class BedrockError(Exception):
    """Base exception for Bedrock errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code


class BedrockRateLimitError(BedrockError):
    """Raised when Bedrock throttles the request."""

    pass


def extract_text(response: dict[str, Any] | None) -> str:
    """Return the text of the first text content block, or "".

    A missing or malformed content list is not an error at this layer.
    """
    if not isinstance(response, dict):
        return ""
    content = response.get("content")
    if not isinstance(content, list):
        logger.warning(
            "Unexpected Claude response format: 'content' list not found",
            extra={"response_keys": list(response.keys())},
        )
        return ""
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text")
            return text if isinstance(text, str) else ""
    logger.warning("Unexpected Claude response format: no text block found")
    return ""


class BedrockClient:
    """Invokes an Anthropic model on Bedrock with a single user message."""

    def __init__(
        self,
        model_id: str | None = None,
        region: str | None = None,
        timeout: float | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialize Bedrock client.

        Args:
            model_id: Bedrock model id. Defaults to settings.
            region: AWS region. Defaults to settings / runtime region.
            timeout: SDK connect/read timeout in seconds. Defaults to settings.
            max_tokens: Maximum response tokens. Defaults to settings.
            temperature: Sampling temperature. Defaults to settings.
            client: Pre-built boto3 bedrock-runtime client (tests).
        """
        settings = get_settings()

        self._model_id = model_id or settings.bedrock_model_id
        self._region = region or settings.aws_region
        self._timeout = timeout or settings.aws_timeout
        self._max_tokens = max_tokens or settings.bedrock_max_tokens
        self._temperature = (
            temperature if temperature is not None else settings.bedrock_temperature
        )
        self._client = client

    @property
    def model_id(self) -> str:
        """Get the model being used."""
        return self._model_id

    def _get_client(self) -> Any:
        """Get or create the boto3 bedrock-runtime client."""
        if self._client is None:
            boto_config = BotoConfig(
                connect_timeout=self._timeout,
                read_timeout=self._timeout,
                retries={"max_attempts": 0},  # Throttling is retried by the caller
            )
            self._client = boto3.client(
                "bedrock-runtime", region_name=self._region, config=boto_config
            )
        return self._client

    def _build_body(self, prompt: str, max_tokens: int, temperature: float) -> str:
        return json.dumps(
            {
                "anthropic_version": ANTHROPIC_BEDROCK_VERSION,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": [
                    {
                        "role": "user",
                        "content": [{"type": "text", "text": prompt}],
                    }
                ],
            }
        )

    async def invoke(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """Send one invocation and return the decoded response payload.

        An undecodable response body is returned as an empty dict.

        Raises:
            BedrockRateLimitError: If Bedrock throttled the request.
            BedrockError: For any other SDK failure.
        """
        client = self._get_client()
        body = self._build_body(
            prompt,
            max_tokens or self._max_tokens,
            temperature if temperature is not None else self._temperature,
        )
        bedrock_logger.request_body(self._model_id, prompt)

        def _invoke() -> bytes:
            response = client.invoke_model(
                modelId=self._model_id,
                contentType="application/json",
                accept="application/json",
                body=body,
            )
            return response["body"].read()

        start_time = time.monotonic()
        try:
            loop = asyncio.get_running_loop()
            raw_body = await loop.run_in_executor(None, _invoke)
        except ClientError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            if error_code in THROTTLING_ERROR_CODES:
                raise BedrockRateLimitError(
                    f"Bedrock throttled ({error_code}): {error_message}",
                    error_code=error_code,
                ) from e
            bedrock_logger.api_call_error(
                self._model_id,
                duration_ms,
                error_message,
                f"ClientError:{error_code}",
                error_code=error_code,
            )
            raise BedrockError(
                f"Bedrock error ({error_code}): {error_message}",
                error_code=error_code,
            ) from e
        except BotoCoreError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            bedrock_logger.api_call_error(
                self._model_id, duration_ms, str(e), type(e).__name__
            )
            raise BedrockError(f"Bedrock error: {e}") from e

        duration_ms = (time.monotonic() - start_time) * 1000

        try:
            payload = json.loads(raw_body)
        except (TypeError, ValueError) as e:
            logger.error(
                "Failed to parse Claude response JSON",
                extra={"error": str(e), "response": str(raw_body)[:500]},
            )
            return {}
        if not isinstance(payload, dict):
            return {}

        usage = payload.get("usage") or {}
        bedrock_logger.api_call_success(
            self._model_id,
            duration_ms,
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
        )
        return payload
