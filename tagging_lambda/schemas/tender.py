"""Pydantic schemas for tender messages flowing through the tagging stage.

Tender messages arrive as camelCase JSON. Each message group on the FIFO
queue carries exactly one tender source, so the variant is chosen from the
message group id (see services.message_factory). Fields this stage does not
know about are kept and written back out unchanged.

Variants:
- ETenderMessage: national eTenders portal
- EskomTenderMessage: Eskom tender bulletin
- TransnetTenderMessage: Transnet e-tender portal
- SanralTenderMessage: SANRAL, includes the full notice text
- SarsTenderMessage: SARS procurement notices
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TenderMessageBase(BaseModel):
    """Fields shared by every tender source."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    source_type: ClassVar[str] = ""

    tender_number: str | None = None
    title: str | None = None
    description: str | None = None
    ai_summary: str | None = None
    province: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_null_tags(cls, v: Any) -> Any:
        """Treat a null tags field as an empty list."""
        return [] if v is None else v

    def get_source_type(self) -> str:
        """Return the variant name (e.g. "Eskom")."""
        return self.source_type

    def to_json(self) -> str:
        """Serialize back to camelCase JSON, omitting null fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ETenderMessage(TenderMessageBase):
    """Tender from the national eTenders portal."""

    source_type: ClassVar[str] = "eTenders"

    status: str | None = None
    audience: str | None = None
    department: str | None = None


class EskomTenderMessage(TenderMessageBase):
    """Tender from the Eskom tender bulletin."""

    source_type: ClassVar[str] = "Eskom"

    institution: str | None = None
    is_briefing_compulsory: bool | None = None


class TransnetTenderMessage(TenderMessageBase):
    """Tender from the Transnet e-tender portal."""

    source_type: ClassVar[str] = "Transnet"

    institution: str | None = None
    category: str | None = None
    location: str | None = None


class SanralTenderMessage(TenderMessageBase):
    """Tender from SANRAL. The only variant with a long-form body."""

    source_type: ClassVar[str] = "SANRAL"

    category: str | None = None
    region: str | None = None
    full_notice_text: str | None = None


class SarsTenderMessage(TenderMessageBase):
    """Tender from SARS procurement."""

    source_type: ClassVar[str] = "SARS"

    briefing_session: str | None = None


TENDER_MESSAGE_TYPES: tuple[type[TenderMessageBase], ...] = (
    ETenderMessage,
    EskomTenderMessage,
    TransnetTenderMessage,
    SanralTenderMessage,
    SarsTenderMessage,
)
