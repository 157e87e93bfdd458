"""SQS integration client for the tagging queues.

Features:
- Boto3-based SQS client created lazily
- Blocking SDK calls run in the default executor
- Batch send/delete split into chunks of the SQS 10-entry limit
- FIFO queues get MessageGroupId and a content-hash MessageDeduplicationId
- Partial batch failures raised as errors, never silently ignored
- Queue URLs masked in all logs
"""

import asyncio
import hashlib
import time
from collections.abc import Sequence
from typing import Any

import boto3
from botocore.config import Config as BotoConfig  # type: ignore[import-not-found]
from botocore.exceptions import (  # type: ignore[import-not-found]
    BotoCoreError,
    ClientError,
)

from tagging_lambda.core.config import get_settings
from tagging_lambda.core.logging import get_logger, queue_logger
from tagging_lambda.schemas.queue import OutboundMessage, QueueMessage

logger = get_logger(__name__)

# SQS limit for SendMessageBatch / DeleteMessageBatch / ReceiveMessage
SQS_MAX_BATCH_SIZE = 10


class SQSError(Exception):
    """Base exception for SQS errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        queue_url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.queue_url = queue_url


class SQSReceiveError(SQSError):
    """Raised when receiving from a queue fails."""

    pass


class SQSSendError(SQSError):
    """Raised when any entry of a batch send fails.

    failed_indexes holds positions in the sequence passed to send_batch;
    every other message was accepted by the queue.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        queue_url: str | None = None,
        failed_indexes: list[int] | None = None,
    ) -> None:
        super().__init__(message, operation=operation, queue_url=queue_url)
        self.failed_indexes = failed_indexes or []


class SQSDeleteError(SQSError):
    """Raised when any entry of a batch delete fails.

    failed_ids holds the message ids that were not deleted.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        queue_url: str | None = None,
        failed_ids: list[str] | None = None,
    ) -> None:
        super().__init__(message, operation=operation, queue_url=queue_url)
        self.failed_ids = failed_ids or []


def _chunks(items: Sequence[Any], size: int = SQS_MAX_BATCH_SIZE) -> list[Sequence[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _is_fifo(queue_url: str) -> bool:
    return queue_url.endswith(".fifo")


class SQSClient:
    """Client for the source, write and failed queues."""

    def __init__(
        self,
        region: str | None = None,
        timeout: float | None = None,
        wait_time_seconds: int | None = None,
        visibility_timeout: int | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialize SQS client.

        Args:
            region: AWS region. Defaults to settings / runtime region.
            timeout: SDK connect/read timeout in seconds. Defaults to settings.
            wait_time_seconds: Long-poll wait for receive. Defaults to settings.
            visibility_timeout: Visibility timeout for received messages.
                Defaults to settings.
            client: Pre-built boto3 SQS client (tests).
        """
        settings = get_settings()

        self._region = region or settings.aws_region
        self._timeout = timeout or settings.aws_timeout
        self._wait_time_seconds = (
            wait_time_seconds
            if wait_time_seconds is not None
            else settings.sqs_wait_time_seconds
        )
        self._visibility_timeout = visibility_timeout or settings.sqs_visibility_timeout
        self._client = client

    def _get_client(self) -> Any:
        """Get or create the boto3 SQS client."""
        if self._client is None:
            boto_config = BotoConfig(
                connect_timeout=self._timeout,
                # Read timeout must outlast the long-poll wait
                read_timeout=self._timeout + self._wait_time_seconds,
                retries={"max_attempts": 3, "mode": "standard"},
            )
            self._client = boto3.client(
                "sqs", region_name=self._region, config=boto_config
            )
        return self._client

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Run one SDK operation in the executor."""
        client = self._get_client()
        method = getattr(client, operation)

        def _run() -> dict[str, Any]:
            return method(**kwargs)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _run)

    async def receive(
        self, queue_url: str, max_messages: int = SQS_MAX_BATCH_SIZE
    ) -> list[QueueMessage]:
        """Receive up to max_messages from a queue.

        Raises:
            SQSReceiveError: If the receive call fails.
        """
        start_time = time.monotonic()
        try:
            response = await self._call(
                "receive_message",
                QueueUrl=queue_url,
                MaxNumberOfMessages=min(max_messages, SQS_MAX_BATCH_SIZE),
                WaitTimeSeconds=self._wait_time_seconds,
                VisibilityTimeout=self._visibility_timeout,
                MessageSystemAttributeNames=["All"],
                MessageAttributeNames=["All"],
            )
        except (ClientError, BotoCoreError) as e:
            queue_logger.operation_error("receive", queue_url, str(e), type(e).__name__)
            raise SQSReceiveError(
                f"Failed to receive messages: {e}",
                operation="receive",
                queue_url=queue_url,
            ) from e

        messages = [
            QueueMessage.from_sqs_message(message)
            for message in response.get("Messages") or []
        ]
        queue_logger.operation_success(
            "receive",
            queue_url,
            len(messages),
            (time.monotonic() - start_time) * 1000,
        )
        return messages

    async def send_batch(
        self, queue_url: str, messages: Sequence[OutboundMessage]
    ) -> None:
        """Send messages to a queue in chunks of ten.

        Every chunk is attempted even after an earlier one fails.

        Raises:
            SQSSendError: If any message was not accepted, with the positions
                of those messages in failed_indexes.
        """
        if not messages:
            return

        start_time = time.monotonic()
        fifo = _is_fifo(queue_url)
        failed_indexes: list[int] = []
        errors: list[str] = []
        last_error: Exception | None = None

        for offset in range(0, len(messages), SQS_MAX_BATCH_SIZE):
            chunk = messages[offset : offset + SQS_MAX_BATCH_SIZE]
            entries: list[dict[str, Any]] = []
            for position, message in enumerate(chunk, start=offset):
                entry: dict[str, Any] = {
                    "Id": f"msg-{position}",
                    "MessageBody": message.body,
                }
                if fifo:
                    entry["MessageGroupId"] = message.group_id
                    entry["MessageDeduplicationId"] = hashlib.sha256(
                        message.body.encode("utf-8")
                    ).hexdigest()
                entries.append(entry)
            position_by_entry = {
                entry["Id"]: position
                for position, entry in enumerate(entries, start=offset)
            }

            try:
                response = await self._call(
                    "send_message_batch", QueueUrl=queue_url, Entries=entries
                )
            except (ClientError, BotoCoreError) as e:
                queue_logger.operation_error(
                    "send_batch", queue_url, str(e), type(e).__name__, len(entries)
                )
                failed_indexes.extend(position_by_entry.values())
                errors.append(str(e))
                last_error = e
                continue

            failed = response.get("Failed") or []
            if failed:
                reasons = "; ".join(
                    f"{entry.get('Id')}: {entry.get('Code')} {entry.get('Message', '')}".strip()
                    for entry in failed
                )
                queue_logger.operation_error(
                    "send_batch", queue_url, reasons, "PartialBatchFailure", len(failed)
                )
                failed_indexes.extend(
                    position_by_entry[entry["Id"]]
                    for entry in failed
                    if entry.get("Id") in position_by_entry
                )
                errors.append(reasons)

        if failed_indexes:
            raise SQSSendError(
                f"{len(failed_indexes)} of {len(messages)} messages failed to send: "
                + "; ".join(errors),
                operation="send_batch",
                queue_url=queue_url,
                failed_indexes=sorted(failed_indexes),
            ) from last_error

        queue_logger.operation_success(
            "send_batch",
            queue_url,
            len(messages),
            (time.monotonic() - start_time) * 1000,
        )

    async def delete_batch(
        self, queue_url: str, entries: Sequence[tuple[str, str]]
    ) -> None:
        """Delete (message_id, receipt_handle) pairs from a queue.

        Every chunk is attempted even after an earlier one fails.

        Raises:
            SQSDeleteError: If any delete failed, with those message ids in
                failed_ids.
        """
        if not entries:
            return

        start_time = time.monotonic()
        failed_ids: list[str] = []
        last_error: Exception | None = None

        for chunk in _chunks(entries):
            id_by_entry = {
                f"del-{index}": message_id for index, (message_id, _) in enumerate(chunk)
            }
            request_entries = [
                {"Id": f"del-{index}", "ReceiptHandle": receipt_handle}
                for index, (_, receipt_handle) in enumerate(chunk)
            ]
            try:
                response = await self._call(
                    "delete_message_batch", QueueUrl=queue_url, Entries=request_entries
                )
            except (ClientError, BotoCoreError) as e:
                queue_logger.operation_error(
                    "delete_batch", queue_url, str(e), type(e).__name__, len(chunk)
                )
                failed_ids.extend(message_id for message_id, _ in chunk)
                last_error = e
                continue

            failed = response.get("Failed") or []
            if failed:
                queue_logger.operation_error(
                    "delete_batch",
                    queue_url,
                    f"{len(failed)} deletes failed",
                    "PartialBatchFailure",
                    len(failed),
                )
                failed_ids.extend(
                    id_by_entry[entry["Id"]]
                    for entry in failed
                    if entry.get("Id") in id_by_entry
                )

        if failed_ids:
            raise SQSDeleteError(
                f"{len(failed_ids)} of {len(entries)} messages failed to delete",
                operation="delete_batch",
                queue_url=queue_url,
                failed_ids=failed_ids,
            ) from last_error

        queue_logger.operation_success(
            "delete_batch",
            queue_url,
            len(entries),
            (time.monotonic() - start_time) * 1000,
        )
