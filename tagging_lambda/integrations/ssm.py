"""SSM Parameter Store client.

Features:
- Boto3-based client created lazily
- Blocking SDK calls run in the default executor
- Missing and empty parameters reported as ParameterNotFoundError
- Timing logged per fetch
"""

import asyncio
import time
from typing import Any

import boto3
from botocore.config import Config as BotoConfig  # type: ignore[import-not-found]
from botocore.exceptions import (  # type: ignore[import-not-found]
    BotoCoreError,
    ClientError,
)

from tagging_lambda.core.config import get_settings
from tagging_lambda.core.logging import get_logger

logger = get_logger(__name__)


class SSMError(Exception):
    """Base exception for Parameter Store errors."""

    def __init__(self, message: str, parameter_name: str | None = None) -> None:
        super().__init__(message)
        self.parameter_name = parameter_name


class ParameterNotFoundError(SSMError):
    """Raised when a parameter does not exist or has no value."""

    pass


class ParameterStoreClient:
    """Reads plain-text string parameters from SSM Parameter Store."""

    def __init__(
        self,
        region: str | None = None,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialize Parameter Store client.

        Args:
            region: AWS region. Defaults to settings / runtime region.
            timeout: SDK connect/read timeout in seconds. Defaults to settings.
            client: Pre-built boto3 SSM client (tests).
        """
        settings = get_settings()

        self._region = region or settings.aws_region
        self._timeout = timeout or settings.aws_timeout
        self._client = client

    def _get_client(self) -> Any:
        """Get or create the boto3 SSM client."""
        if self._client is None:
            boto_config = BotoConfig(
                connect_timeout=self._timeout,
                read_timeout=self._timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            )
            self._client = boto3.client(
                "ssm", region_name=self._region, config=boto_config
            )
        return self._client

    async def get_parameter(self, name: str, decrypt: bool = False) -> str:
        """Fetch a parameter value.

        Raises:
            ParameterNotFoundError: If the parameter is missing or empty.
            SSMError: For any other SDK failure.
        """
        client = self._get_client()
        start_time = time.monotonic()

        def _fetch() -> dict[str, Any]:
            return client.get_parameter(Name=name, WithDecryption=decrypt)

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, _fetch)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                logger.error(
                    "Required configuration parameter not found in Parameter Store",
                    extra={"parameter_name": name},
                )
                raise ParameterNotFoundError(
                    f"Required configuration parameter '{name}' not found "
                    "in AWS Parameter Store.",
                    parameter_name=name,
                ) from e
            logger.error(
                f"Failed to fetch parameter {name}",
                extra={"parameter_name": name, "error_code": error_code},
                exc_info=True,
            )
            raise SSMError(
                f"Parameter Store error ({error_code}) for '{name}'",
                parameter_name=name,
            ) from e
        except BotoCoreError as e:
            logger.error(
                f"Failed to fetch parameter {name}",
                extra={"parameter_name": name, "error_type": type(e).__name__},
                exc_info=True,
            )
            raise SSMError(
                f"Parameter Store error for '{name}': {e}", parameter_name=name
            ) from e

        value = (response.get("Parameter") or {}).get("Value")
        if not value:
            logger.error(
                "Parameter was found but has no value",
                extra={"parameter_name": name},
            )
            raise ParameterNotFoundError(
                f"Parameter '{name}' retrieved from Parameter Store has no value.",
                parameter_name=name,
            )

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            "Parameter fetched",
            extra={
                "parameter_name": name,
                "value_length": len(value),
                "duration_ms": round(duration_ms, 2),
            },
        )
        return value
