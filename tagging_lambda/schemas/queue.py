"""Queue message wrappers and the failed-message envelope.

QueueMessage is built from either a Lambda SQS event record or a message
returned by ReceiveMessage; both shapes are normalized here so the
orchestrator never has to care where a message came from.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

UNKNOWN_GROUP = "UnknownGroup"


@dataclass
class QueueMessage:
    """A message received from the source queue."""

    message_id: str
    receipt_handle: str
    body: str
    message_group_id: str = UNKNOWN_GROUP
    attributes: dict[str, str] = field(default_factory=dict)
    message_attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_event_record(cls, record: dict[str, Any]) -> "QueueMessage":
        """Build from a record of the Lambda SQS trigger event.

        Event records use camelCase keys (messageId, receiptHandle, ...) and
        message attributes shaped {"stringValue": ..., "dataType": ...}.
        """
        attributes = record.get("attributes") or {}
        message_attributes = record.get("messageAttributes") or {}

        group_id = attributes.get("MessageGroupId")
        if not group_id:
            group_attr = message_attributes.get("MessageGroupId") or {}
            group_id = group_attr.get("stringValue")

        return cls(
            message_id=record["messageId"],
            receipt_handle=record["receiptHandle"],
            body=record.get("body") or "",
            message_group_id=group_id or UNKNOWN_GROUP,
            attributes=dict(attributes),
            message_attributes=dict(message_attributes),
        )

    @classmethod
    def from_sqs_message(cls, message: dict[str, Any]) -> "QueueMessage":
        """Build from a message returned by the ReceiveMessage API."""
        attributes = message.get("Attributes") or {}
        return cls(
            message_id=message["MessageId"],
            receipt_handle=message["ReceiptHandle"],
            body=message.get("Body") or "",
            message_group_id=attributes.get("MessageGroupId") or UNKNOWN_GROUP,
            attributes=dict(attributes),
            message_attributes=dict(message.get("MessageAttributes") or {}),
        )


@dataclass(frozen=True)
class OutboundMessage:
    """A message to send to a FIFO queue."""

    body: str
    group_id: str


class FailedMessageEnvelope(BaseModel):
    """Error report sent to the failed queue for inspection or replay."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    original_message_body: str
    message_group_id: str
    error_message: str
    error_type: str
    stack_trace: str | None = None
    processed_by: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_json(self) -> str:
        """Serialize to camelCase JSON, omitting null fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
