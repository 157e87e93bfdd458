"""Services layer - Tagging logic and orchestration.

Services implement the tagging pipeline on top of the integrations: label
extraction and normalization, configuration, model augmentation and the
batch routing loop.
"""

from tagging_lambda.services.augmentation import (
    AugmentationClient,
    AugmentationFailedError,
    build_task_directive,
    parse_candidate_labels,
)
from tagging_lambda.services.batch import (
    BatchOrchestrator,
    BatchResult,
    FailedQueueSendError,
    InvocationSummary,
)
from tagging_lambda.services.fallback_labels import extract_fallback_labels
from tagging_lambda.services.label_normalizer import normalize_label, normalize_labels
from tagging_lambda.services.message_factory import DeserializationError, MessageFactory
from tagging_lambda.services.tagging import TaggingEngine, build_input_text
from tagging_lambda.services.tagging_config import (
    ConfigInvalidError,
    ConfigMissingError,
    TaggingConfigService,
    TaggingRules,
)

__all__ = [
    # Augmentation
    "AugmentationClient",
    "AugmentationFailedError",
    "build_task_directive",
    "parse_candidate_labels",
    # Batch
    "BatchOrchestrator",
    "BatchResult",
    "FailedQueueSendError",
    "InvocationSummary",
    # Labels
    "extract_fallback_labels",
    "normalize_label",
    "normalize_labels",
    # Messages
    "DeserializationError",
    "MessageFactory",
    # Tagging
    "TaggingEngine",
    "build_input_text",
    # Config
    "ConfigInvalidError",
    "ConfigMissingError",
    "TaggingConfigService",
    "TaggingRules",
]
