"""Schemas layer - Pydantic models and message wrappers.

Schemas define the shape of tender messages, queue messages and the
error envelope, and own their JSON serialization.
"""

from tagging_lambda.schemas.queue import (
    UNKNOWN_GROUP,
    FailedMessageEnvelope,
    OutboundMessage,
    QueueMessage,
)
from tagging_lambda.schemas.tender import (
    TENDER_MESSAGE_TYPES,
    EskomTenderMessage,
    ETenderMessage,
    SanralTenderMessage,
    SarsTenderMessage,
    TenderMessageBase,
    TransnetTenderMessage,
)

__all__ = [
    # Queue
    "UNKNOWN_GROUP",
    "FailedMessageEnvelope",
    "OutboundMessage",
    "QueueMessage",
    # Tender
    "TENDER_MESSAGE_TYPES",
    "ETenderMessage",
    "EskomTenderMessage",
    "SanralTenderMessage",
    "SarsTenderMessage",
    "TenderMessageBase",
    "TransnetTenderMessage",
]
