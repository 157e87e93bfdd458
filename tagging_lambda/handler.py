"""AWS Lambda entry point for the tagging stage.

Components are created once per container and reused across warm
invocations, so the configuration cache and the Bedrock gate persist.
All invocations run on one event loop owned by this module; the asyncio
primitives held by those components stay bound to it.
"""

import asyncio
from typing import Any

from tagging_lambda.core.config import get_settings
from tagging_lambda.core.logging import get_logger, mask_queue_url, setup_logging
from tagging_lambda.integrations.bedrock import BedrockClient
from tagging_lambda.integrations.sqs import SQSClient
from tagging_lambda.integrations.ssm import ParameterStoreClient
from tagging_lambda.services.augmentation import AugmentationClient
from tagging_lambda.services.batch import BatchOrchestrator
from tagging_lambda.services.message_factory import MessageFactory
from tagging_lambda.services.tagging import TaggingEngine
from tagging_lambda.services.tagging_config import TaggingConfigService

logger = get_logger(__name__)

_orchestrator: BatchOrchestrator | None = None
_loop: asyncio.AbstractEventLoop | None = None


def create_orchestrator() -> BatchOrchestrator:
    """Wire every component from settings."""
    settings = get_settings()

    config_service = TaggingConfigService(ParameterStoreClient(), settings)
    engine = TaggingEngine(
        config_service,
        AugmentationClient(BedrockClient()),
        max_tags=settings.max_tags,
        max_input_chars=settings.max_input_chars,
    )
    orchestrator = BatchOrchestrator(SQSClient(), MessageFactory(), engine, settings)

    logger.info(
        "Tagging lambda initialized",
        extra={
            "source_queue": mask_queue_url(settings.source_queue_url),
            "write_queue": mask_queue_url(settings.write_queue_url),
            "failed_queue": mask_queue_url(settings.failed_queue_url),
            "model_id": settings.bedrock_model_id,
        },
    )
    return orchestrator


def get_orchestrator() -> BatchOrchestrator:
    """Get or create the container-wide orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        setup_logging()
        _orchestrator = create_orchestrator()
    return _orchestrator


def _get_loop() -> asyncio.AbstractEventLoop:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop


def reset() -> None:
    """Drop the cached orchestrator and event loop (tests)."""
    global _orchestrator, _loop
    _orchestrator = None
    if _loop is not None and not _loop.is_closed():
        _loop.close()
    _loop = None


def handler(event: dict[str, Any] | None, context: Any) -> str:
    """Lambda handler: process the trigger batch, then drain the queue.

    Returns:
        The invocation status line.
    """
    orchestrator = get_orchestrator()
    summary = _get_loop().run_until_complete(orchestrator.run(event, context))
    return summary.status
