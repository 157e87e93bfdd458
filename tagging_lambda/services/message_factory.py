"""Message factory: queue message body + group id -> typed tender message.

The FIFO message group id names the tender source. Lookup is
case-insensitive; an unknown group id is a deserialization failure.
"""

from pydantic import ValidationError

from tagging_lambda.core.logging import get_logger
from tagging_lambda.schemas.tender import TENDER_MESSAGE_TYPES, TenderMessageBase

logger = get_logger(__name__)


class DeserializationError(Exception):
    """Raised when a message body cannot be turned into a tender message."""

    def __init__(self, message: str, message_group_id: str | None = None) -> None:
        super().__init__(message)
        self.message_group_id = message_group_id


class MessageFactory:
    """Creates typed tender messages from raw queue message bodies."""

    def __init__(
        self,
        message_types: tuple[type[TenderMessageBase], ...] = TENDER_MESSAGE_TYPES,
    ) -> None:
        self._types_by_group = {
            message_type.source_type.lower(): message_type
            for message_type in message_types
        }

    @property
    def known_sources(self) -> list[str]:
        """Group ids this factory understands (lowercase)."""
        return sorted(self._types_by_group)

    def resolve_type(self, message_group_id: str) -> type[TenderMessageBase]:
        """Map a message group id to its tender message class."""
        message_type = self._types_by_group.get((message_group_id or "").strip().lower())
        if message_type is None:
            raise DeserializationError(
                f"Unknown tender source for message group '{message_group_id}'",
                message_group_id=message_group_id,
            )
        return message_type

    def create_message(self, body: str, message_group_id: str) -> TenderMessageBase:
        """Deserialize a message body into the variant named by its group id.

        Raises:
            DeserializationError: If the body is empty, the group id is
                unknown, or the JSON does not validate.
        """
        if not body or not body.strip():
            raise DeserializationError(
                "Message body is null or empty.", message_group_id=message_group_id
            )

        message_type = self.resolve_type(message_group_id)
        try:
            message = message_type.model_validate_json(body)
        except ValidationError as e:
            logger.warning(
                "Validation failed: tender message body",
                extra={
                    "message_group_id": message_group_id,
                    "tender_source": message_type.source_type,
                    "error_count": e.error_count(),
                    "rejected_value": body[:200],
                },
            )
            raise DeserializationError(
                f"Invalid {message_type.source_type} message: {e}",
                message_group_id=message_group_id,
            ) from e

        logger.debug(
            "Tender message deserialized",
            extra={
                "tender_number": message.tender_number,
                "tender_source": message.get_source_type(),
            },
        )
        return message
