"""Structured logging configuration for the Lambda runtime.

All logs go to stdout, which the Lambda runtime forwards to CloudWatch.
Uses JSON format for structured logging in deployed environments.

ERROR LOGGING REQUIREMENTS:
- Bedrock calls with model, attempt number and timing
- Throttling (rate limit) events with the chosen backoff delay
- Queue operations with masked queue URL, message counts and timing
- Failed-queue send failures at CRITICAL level
- Record identifiers (tender number, message id) in all per-record logs
"""

import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from pythonjsonlogger import jsonlogger

from tagging_lambda.core.config import get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined]
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


_ACCOUNT_ID_PATTERN = re.compile(r"(amazonaws\.com/)(\d{8})(\d{4})(/)")


def mask_queue_url(queue_url: str | None) -> str:
    """Mask the AWS account id embedded in an SQS queue URL."""
    if not queue_url:
        return ""
    return _ACCOUNT_ID_PATTERN.sub(r"\1********\3\4", queue_url)


def setup_logging() -> None:
    """Configure application logging.

    Outputs to stdout only. Uses JSON format by default, text format
    when LOG_FORMAT=text (local runs).
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))

    # The Lambda runtime installs its own handler; replace it
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    formatter: logging.Formatter
    if settings.log_format == "json":
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Set log levels for noisy libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


class BedrockLogger:
    """Logger for Bedrock model invocations with required error logging.

    Logs every invocation attempt with model and timing.
    Logs request/response text at DEBUG level (truncated).
    Logs throttling with the backoff delay and attempt number.
    """

    def __init__(self) -> None:
        self.logger = get_logger("bedrock")

    def api_call_start(
        self,
        model: str,
        prompt_length: int,
        attempt: int,
        max_attempts: int,
        record_id: str | None = None,
    ) -> None:
        """Log outbound invocation start at DEBUG level."""
        self.logger.debug(
            f"Bedrock invoke: {model} (attempt {attempt}/{max_attempts})",
            extra={
                "model": model,
                "prompt_length": prompt_length,
                "attempt": attempt,
                "max_attempts": max_attempts,
                "record_id": record_id,
            },
        )

    def api_call_success(
        self,
        model: str,
        duration_ms: float,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> None:
        """Log successful invocation at DEBUG level with token usage."""
        self.logger.debug(
            f"Bedrock invoke completed: {model}",
            extra={
                "model": model,
                "duration_ms": round(duration_ms, 2),
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "success": True,
            },
        )

    def api_call_error(
        self,
        model: str,
        duration_ms: float,
        error: str,
        error_type: str,
        error_code: str | None = None,
    ) -> None:
        """Log failed invocation at ERROR level."""
        self.logger.error(
            f"Bedrock invoke failed: {model}",
            extra={
                "model": model,
                "duration_ms": round(duration_ms, 2),
                "error": error,
                "error_type": error_type,
                "error_code": error_code,
                "success": False,
            },
        )

    def rate_limit(
        self,
        attempt: int,
        max_attempts: int,
        delay_seconds: float | None,
        record_id: str | None = None,
    ) -> None:
        """Log throttling at WARNING level."""
        self.logger.warning(
            "Bedrock throttling detected",
            extra={
                "attempt": attempt,
                "max_attempts": max_attempts,
                "delay_seconds": (
                    round(delay_seconds, 3) if delay_seconds is not None else None
                ),
                "record_id": record_id,
            },
        )

    def request_body(self, model: str, prompt: str) -> None:
        """Log request prompt at DEBUG level (truncated)."""
        self.logger.debug(
            "Bedrock request body",
            extra={"model": model, "prompt": self._truncate_text(prompt, 500)},
        )

    def response_body(self, model: str, response_text: str) -> None:
        """Log response text at DEBUG level (truncated)."""
        self.logger.debug(
            "Bedrock response body",
            extra={
                "model": model,
                "response_text": self._truncate_text(response_text, 500),
            },
        )

    def _truncate_text(self, text: str, max_length: int = 500) -> str:
        """Truncate text for logging."""
        if len(text) <= max_length:
            return text
        return text[:max_length] + f"... (truncated, {len(text)} chars)"


# Singleton Bedrock logger
bedrock_logger = BedrockLogger()


class QueueLogger:
    """Logger for SQS operations and batch routing.

    Queue URLs are masked in every log record.
    """

    def __init__(self) -> None:
        self.logger = get_logger("sqs")

    def operation_success(
        self,
        operation: str,
        queue_url: str,
        count: int,
        duration_ms: float,
    ) -> None:
        """Log a completed queue operation at DEBUG level."""
        self.logger.debug(
            f"SQS {operation} completed",
            extra={
                "sqs_operation": operation,
                "queue_url": mask_queue_url(queue_url),
                "message_count": count,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def operation_error(
        self,
        operation: str,
        queue_url: str,
        error: str,
        error_type: str,
        count: int | None = None,
    ) -> None:
        """Log a failed queue operation at ERROR level."""
        self.logger.error(
            f"SQS {operation} failed: {error}",
            extra={
                "sqs_operation": operation,
                "queue_url": mask_queue_url(queue_url),
                "message_count": count,
                "error": error,
                "error_type": error_type,
            },
        )

    def batch_start(self, batch_number: int, group_id: str, message_count: int) -> None:
        """Log batch processing start at INFO level."""
        self.logger.info(
            "Starting batch processing",
            extra={
                "batch_number": batch_number,
                "tender_source": group_id,
                "message_count": message_count,
            },
        )

    def batch_complete(
        self,
        batch_number: int,
        processed: int,
        failed: int,
        deleted: int,
        duration_ms: float,
    ) -> None:
        """Log batch processing completion at INFO level."""
        self.logger.info(
            f"Batch {batch_number} processing complete",
            extra={
                "batch_number": batch_number,
                "processed_count": processed,
                "failed_count": failed,
                "deleted_count": deleted,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def failed_queue_unreachable(self, count: int, error: Exception) -> None:
        """Log failed-queue send failure at CRITICAL level."""
        self.logger.critical(
            "CRITICAL: failed to send messages to failed queue. "
            "Messages will be redelivered by SQS.",
            extra={
                "message_count": count,
                "error": str(error),
                "error_type": type(error).__name__,
            },
            exc_info=error,
        )


# Singleton queue logger
queue_logger = QueueLogger()
