"""Core utilities and configuration."""

from tagging_lambda.core.config import Settings, get_settings
from tagging_lambda.core.logging import (
    bedrock_logger,
    get_logger,
    queue_logger,
    setup_logging,
)
from tagging_lambda.core.retry import RetryExhaustedError, RetryPolicy

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "bedrock_logger",
    "get_logger",
    "queue_logger",
    "setup_logging",
    # Retry
    "RetryExhaustedError",
    "RetryPolicy",
]
