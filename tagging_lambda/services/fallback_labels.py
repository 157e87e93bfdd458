"""Deterministic baseline labels taken from structured tender fields.

Every tender contributes its source name and province. Each source then
adds its own structured fields:
- eTenders: audience
- Eskom: "Compulsory Briefing" when the briefing flag is set
- Transnet: institution, category, location
- SANRAL: category, region
- SARS: nothing extra
"""

from tagging_lambda.schemas.tender import (
    EskomTenderMessage,
    ETenderMessage,
    SanralTenderMessage,
    TenderMessageBase,
    TransnetTenderMessage,
)

COMPULSORY_BRIEFING_LABEL = "Compulsory Briefing"


def _source_fields(tender: TenderMessageBase) -> list[str | None]:
    if isinstance(tender, ETenderMessage):
        return [tender.audience]
    if isinstance(tender, EskomTenderMessage):
        return [COMPULSORY_BRIEFING_LABEL] if tender.is_briefing_compulsory else []
    if isinstance(tender, TransnetTenderMessage):
        return [tender.institution, tender.category, tender.location]
    if isinstance(tender, SanralTenderMessage):
        return [tender.category, tender.region]
    return []


def extract_fallback_labels(tender: TenderMessageBase) -> list[str]:
    """Collect non-empty structured fields, de-duplicated case-insensitively.

    Never raises; returns an empty list when nothing is populated.
    """
    candidates = [tender.get_source_type(), tender.province, *_source_fields(tender)]

    labels: list[str] = []
    seen: set[str] = set()
    for value in candidates:
        if not value or not value.strip():
            continue
        value = value.strip()
        if value.lower() in seen:
            continue
        seen.add(value.lower())
        labels.append(value)
    return labels
