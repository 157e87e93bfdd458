"""Batch orchestrator: drains the source queue and routes every record.

Each batch goes through three phases:
1. Process: records are deserialized and tagged one at a time; any error
   moves that record to the failure set
2. Route: successes go to the write queue, failures (wrapped in an error
   envelope) to the failed queue
3. Delete: only messages that reached one of those queues are removed
   from the source queue

A message that was not routed stays on the source queue and is
redelivered by SQS after its visibility timeout.
"""

import asyncio
import time
import traceback
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from tagging_lambda.core.config import Settings, get_settings
from tagging_lambda.core.logging import get_logger, queue_logger
from tagging_lambda.integrations.sqs import (
    SQSClient,
    SQSDeleteError,
    SQSError,
    SQSSendError,
)
from tagging_lambda.schemas.queue import (
    FailedMessageEnvelope,
    OutboundMessage,
    QueueMessage,
)
from tagging_lambda.schemas.tender import TenderMessageBase
from tagging_lambda.services.message_factory import MessageFactory
from tagging_lambda.services.tagging import TaggingEngine

logger = get_logger(__name__)


class LambdaContext(Protocol):
    """The part of the Lambda context object the orchestrator uses."""

    def get_remaining_time_in_millis(self) -> int: ...


class FailedQueueSendError(Exception):
    """Raised when failures could not be sent to the failed queue.

    Nothing from the current batch is deleted; SQS redelivers it.
    """

    def __init__(self, message: str, count: int) -> None:
        super().__init__(message)
        self.count = count


@dataclass
class _Failure:
    message: QueueMessage
    body: str
    error: BaseException


@dataclass
class BatchResult:
    """Outcome of one batch."""

    batch_number: int
    processed: int = 0
    failed: int = 0
    deleted: int = 0
    duration_ms: float = 0.0


@dataclass
class InvocationSummary:
    """Totals for one Lambda invocation."""

    batches: list[BatchResult] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def batch_count(self) -> int:
        return len(self.batches)

    @property
    def processed(self) -> int:
        return sum(batch.processed for batch in self.batches)

    @property
    def failed(self) -> int:
        return sum(batch.failed for batch in self.batches)

    @property
    def deleted(self) -> int:
        return sum(batch.deleted for batch in self.batches)

    @property
    def status(self) -> str:
        return (
            f"Success. Batches: {self.batch_count}, Processed: {self.processed}, "
            f"Failed: {self.failed}, Deleted: {self.deleted}, "
            f"Duration: {self.duration_ms:.0f}ms"
        )


class BatchOrchestrator:
    """Runs the receive -> tag -> route -> delete loop for one invocation."""

    def __init__(
        self,
        sqs: SQSClient,
        factory: MessageFactory,
        engine: TaggingEngine,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sqs = sqs
        self._factory = factory
        self._engine = engine
        self._settings = settings or get_settings()
        self._sleep = sleep

    def _has_time_left(self, context: LambdaContext | None) -> bool:
        if context is None:
            return True
        margin_ms = self._settings.poll_safety_margin_seconds * 1000
        return context.get_remaining_time_in_millis() > margin_ms

    async def run(
        self, event: dict[str, Any] | None, context: LambdaContext | None
    ) -> InvocationSummary:
        """Process the trigger event's records, then keep polling.

        Polling stops when a poll returns nothing or the remaining
        invocation time drops to the safety margin.

        Raises:
            FailedQueueSendError: If a batch's failures could not be routed.
        """
        start_time = time.monotonic()
        summary = InvocationSummary()
        records = (event or {}).get("Records") or []

        logger.info(
            "Lambda invocation started",
            extra={"initial_message_count": len(records)},
        )

        try:
            if records:
                messages = [QueueMessage.from_event_record(record) for record in records]
                summary.batches.append(await self.process_batch(messages, 1))

            while self._has_time_left(context):
                messages = await self.poll_messages()
                if not messages:
                    logger.info("Queue polling complete. No more messages found.")
                    break

                summary.batches.append(
                    await self.process_batch(messages, summary.batch_count + 1)
                )
                await self._sleep(self._settings.poll_interval_seconds)
        except Exception:
            summary.duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "Lambda execution failed unexpectedly",
                extra={
                    "batch_count": summary.batch_count,
                    "processed_count": summary.processed,
                    "failed_count": summary.failed,
                    "deleted_count": summary.deleted,
                },
                exc_info=True,
            )
            raise

        summary.duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(f"Lambda execution finished. {summary.status}")
        return summary

    async def poll_messages(self) -> list[QueueMessage]:
        """Receive the next batch from the source queue.

        A receive failure is logged and reported as an empty poll.
        """
        try:
            return await self._sqs.receive(
                self._settings.source_queue_url,
                self._settings.sqs_receive_batch_size,
            )
        except SQSError:
            logger.error("Failed to poll messages from source queue", exc_info=True)
            return []

    async def _process_message(self, message: QueueMessage) -> TenderMessageBase:
        tender = self._factory.create_message(message.body, message.message_group_id)
        await self._engine.generate_tags(tender)
        return tender

    async def process_batch(
        self, messages: list[QueueMessage], batch_number: int
    ) -> BatchResult:
        """Tag, route and delete one batch of messages.

        Raises:
            FailedQueueSendError: If failures could not be sent to the failed
                queue. Nothing from this batch is deleted in that case.
        """
        start_time = time.monotonic()
        settings = self._settings
        group_id = messages[0].message_group_id if messages else "Unknown"
        queue_logger.batch_start(batch_number, group_id, len(messages))

        successes: list[tuple[QueueMessage, TenderMessageBase]] = []
        failures: list[_Failure] = []

        for message in messages:
            try:
                tender = await self._process_message(message)
            except Exception as e:
                logger.warning(
                    "Message processing failed",
                    extra={
                        "message_id": message.message_id,
                        "message_group_id": message.message_group_id,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                failures.append(_Failure(message=message, body=message.body, error=e))
                continue
            successes.append((message, tender))

        routed_ids: set[str] = set()
        processed = 0

        if successes:
            outbound = [
                OutboundMessage(body=tender.to_json(), group_id=message.message_group_id)
                for message, tender in successes
            ]
            written = successes
            try:
                await self._sqs.send_batch(settings.write_queue_url, outbound)
            except SQSError as e:
                if isinstance(e, SQSSendError) and e.failed_indexes:
                    failed_indexes = set(e.failed_indexes)
                else:
                    failed_indexes = set(range(len(successes)))
                logger.error(
                    "Failed to send messages to write queue, routing to failed queue",
                    extra={"count": len(failed_indexes)},
                    exc_info=True,
                )
                failures.extend(
                    _Failure(message=successes[index][0], body=outbound[index].body, error=e)
                    for index in sorted(failed_indexes)
                )
                written = [
                    success
                    for index, success in enumerate(successes)
                    if index not in failed_indexes
                ]

            routed_ids.update(message.message_id for message, _ in written)
            processed = len(written)
            if processed:
                logger.info(
                    "Sent processed messages to write queue",
                    extra={"count": processed},
                )

        if failures:
            envelopes = [
                OutboundMessage(
                    body=self._build_envelope(failure).to_json(),
                    group_id=failure.message.message_group_id,
                )
                for failure in failures
            ]
            try:
                await self._sqs.send_batch(settings.failed_queue_url, envelopes)
            except SQSError as e:
                queue_logger.failed_queue_unreachable(len(failures), e)
                raise FailedQueueSendError(
                    f"Failed to send {len(failures)} messages to the failed queue: {e}",
                    count=len(failures),
                ) from e
            routed_ids.update(failure.message.message_id for failure in failures)
            logger.info(
                "Sent failed messages to failed queue",
                extra={"count": len(failures)},
            )

        to_delete = [
            (message.message_id, message.receipt_handle)
            for message in messages
            if message.message_id in routed_ids
        ]
        deleted = 0
        if to_delete:
            try:
                await self._sqs.delete_batch(settings.source_queue_url, to_delete)
                deleted = len(to_delete)
            except SQSError as e:
                if isinstance(e, SQSDeleteError) and e.failed_ids:
                    not_deleted = set(e.failed_ids)
                else:
                    not_deleted = {message_id for message_id, _ in to_delete}
                deleted = len(to_delete) - len(not_deleted)
                logger.error(
                    "Failed to delete messages from source queue, "
                    "they will likely be reprocessed",
                    extra={"count": len(not_deleted), "deleted_count": deleted},
                    exc_info=True,
                )

        result = BatchResult(
            batch_number=batch_number,
            processed=processed,
            failed=len(failures),
            deleted=deleted,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )
        queue_logger.batch_complete(
            batch_number, result.processed, result.failed, result.deleted, result.duration_ms
        )
        return result

    def _build_envelope(self, failure: _Failure) -> FailedMessageEnvelope:
        error = failure.error
        stack_trace = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        return FailedMessageEnvelope(
            original_message_body=failure.body,
            message_group_id=failure.message.message_group_id,
            error_message=str(error),
            error_type=type(error).__name__,
            stack_trace=stack_trace or None,
            processed_by=self._settings.processed_by,
        )
