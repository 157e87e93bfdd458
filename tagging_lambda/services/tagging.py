"""Tagging engine: builds the final label list for one tender record.

Steps:
1. Clear the record's labels and resolve configuration
2. Extract fallback labels from structured fields and normalize them
   (the baseline, always kept)
3. If there is room under the cap, ask the model for the remaining labels
4. Normalize the model's candidates against the baseline
5. Keep the first max_tags labels, sort them, write them to the record

Model failures never fail the record; configuration errors do.
"""

import time

from tagging_lambda.core.config import get_settings
from tagging_lambda.core.logging import get_logger
from tagging_lambda.schemas.tender import SanralTenderMessage, TenderMessageBase
from tagging_lambda.services.augmentation import (
    AugmentationClient,
    AugmentationFailedError,
)
from tagging_lambda.services.fallback_labels import extract_fallback_labels
from tagging_lambda.services.label_normalizer import normalize_labels
from tagging_lambda.services.tagging_config import TaggingConfigService

logger = get_logger(__name__)

TRUNCATION_SUFFIX = "..."


def build_input_text(tender: TenderMessageBase, max_chars: int = 10000) -> str:
    """Assemble the tender text sent to the model.

    One "Name: value" line per populated field; SANRAL records also include
    the full notice text. Text longer than max_chars is cut and suffixed
    with "...".
    """
    lines: list[tuple[str, str | None]] = [
        ("Title", tender.title),
        ("Description", tender.description),
        ("Summary", tender.ai_summary),
    ]
    if isinstance(tender, SanralTenderMessage):
        lines.append(("Full Notice Text", tender.full_notice_text))

    text = "".join(
        f"{name}: {value}\n" for name, value in lines if value and value.strip()
    )
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_SUFFIX
    return text


class TaggingEngine:
    """Generates and cleans labels for tender records."""

    def __init__(
        self,
        config_service: TaggingConfigService,
        augmentation_client: AugmentationClient,
        max_tags: int | None = None,
        max_input_chars: int | None = None,
    ) -> None:
        settings = get_settings()
        self._config_service = config_service
        self._augmentation_client = augmentation_client
        self._max_tags = max_tags if max_tags is not None else settings.max_tags
        self._max_input_chars = (
            max_input_chars if max_input_chars is not None else settings.max_input_chars
        )

    @property
    def max_tags(self) -> int:
        return self._max_tags

    async def generate_tags(self, tender: TenderMessageBase) -> list[str]:
        """Replace tender.tags with a fresh, capped, sorted label list.

        Returns:
            The labels written to tender.tags.

        Raises:
            ConfigMissingError: If required configuration is missing.
            ConfigInvalidError: If the tag map is malformed.
            ValueError: If the record has no source type.
        """
        start_time = time.monotonic()
        record_id = tender.tender_number or "Unknown"
        tender.tags.clear()

        rules = await self._config_service.get_rules()
        combined_prompt = await self._config_service.get_combined_prompt(
            tender.get_source_type()
        )

        baseline = normalize_labels(
            extract_fallback_labels(tender), rules.blocklist, rules.tag_map
        )
        labels = baseline
        remaining = self._max_tags - len(baseline)

        if remaining <= 0:
            logger.info(
                "Fallback labels fill the cap, skipping Bedrock",
                extra={"record_id": record_id, "baseline_count": len(baseline)},
            )
        else:
            input_text = build_input_text(tender, self._max_input_chars)
            if not input_text.strip():
                logger.warning(
                    "No suitable text found for Bedrock tagging",
                    extra={"record_id": record_id},
                )
            else:
                try:
                    candidates = await self._augmentation_client.generate(
                        combined_prompt, input_text, remaining, record_id
                    )
                except AugmentationFailedError as e:
                    logger.error(
                        "Bedrock tag generation failed, keeping fallback labels only",
                        extra={
                            "record_id": record_id,
                            "error": str(e),
                            "baseline_count": len(baseline),
                        },
                    )
                else:
                    labels = normalize_labels(
                        candidates,
                        rules.blocklist,
                        rules.tag_map,
                        existing=baseline,
                        max_labels=self._max_tags,
                    )

        final_labels = sorted(labels[: self._max_tags])
        tender.tags.extend(final_labels)

        logger.info(
            "Generated final tags",
            extra={
                "record_id": record_id,
                "tag_count": len(final_labels),
                "baseline_count": len(baseline),
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return list(final_labels)
