"""Pytest configuration and fixtures.

Provides fixtures for:
- Settings override for testing (queue URLs are required settings)
- Tagging rules and a mocked configuration service
- Sample tender records and queue messages
"""

import json
import os
from collections.abc import Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Required settings must exist before anything calls get_settings()
os.environ.setdefault(
    "SOURCE_QUEUE_URL", "https://sqs.af-south-1.amazonaws.com/123456789012/TagQueue.fifo"
)
os.environ.setdefault(
    "WRITE_QUEUE_URL", "https://sqs.af-south-1.amazonaws.com/123456789012/WriteQueue.fifo"
)
os.environ.setdefault(
    "FAILED_QUEUE_URL",
    "https://sqs.af-south-1.amazonaws.com/123456789012/TagFailedQueue.fifo",
)

from tagging_lambda.core.config import Settings, get_settings  # noqa: E402
from tagging_lambda.schemas.queue import QueueMessage  # noqa: E402
from tagging_lambda.services.tagging_config import TaggingRules  # noqa: E402

SOURCE_QUEUE_URL = os.environ["SOURCE_QUEUE_URL"]
WRITE_QUEUE_URL = os.environ["WRITE_QUEUE_URL"]
FAILED_QUEUE_URL = os.environ["FAILED_QUEUE_URL"]

# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------


def get_test_settings(**overrides: Any) -> Settings:
    """Get test settings with fast timings."""
    values: dict[str, Any] = {
        "source_queue_url": SOURCE_QUEUE_URL,
        "write_queue_url": WRITE_QUEUE_URL,
        "failed_queue_url": FAILED_QUEUE_URL,
        "environment": "test",
        "aws_region": "af-south-1",
        "poll_interval_seconds": 0,
        "log_level": "DEBUG",
        "log_format": "text",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings."""
    return get_test_settings()


# ---------------------------------------------------------------------------
# Tagging Configuration Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tagging_rules() -> TaggingRules:
    """Block-list and tag map used across tagging tests."""
    return TaggingRules(
        blocklist=frozenset({"tender", "rfq", "bid"}),
        tag_map={"gauteng": "Gauteng", "gp": "Gauteng"},
    )


@pytest.fixture
def mock_config_service(tagging_rules: TaggingRules) -> MagicMock:
    """Configuration service returning fixed rules and prompt."""
    service = MagicMock()
    service.get_rules = AsyncMock(return_value=tagging_rules)
    service.get_blocklist = AsyncMock(return_value=tagging_rules.blocklist)
    service.get_tag_map = AsyncMock(return_value=tagging_rules.tag_map)
    service.get_combined_prompt = AsyncMock(
        return_value='SYSTEM\n\nMASTER TAG LIST: ["Construction", "ICT"]\n\nSOURCE'
    )
    return service


# ---------------------------------------------------------------------------
# Tender / Queue Message Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def eskom_body() -> str:
    """Eskom tender body as produced by the upstream stage."""
    return json.dumps(
        {
            "tenderNumber": "E-001",
            "title": "Pipeline maintenance at Kendal",
            "description": "Maintenance of water pipelines",
            "aiSummary": "Construction and maintenance work.",
            "province": "Gauteng",
            "institution": "Eskom Generation",
            "isBriefingCompulsory": False,
            "tags": ["old", "labels"],
        }
    )


def make_queue_message(
    message_id: str, body: str, group_id: str = "Eskom"
) -> QueueMessage:
    """Build a QueueMessage as received from the source queue."""
    return QueueMessage(
        message_id=message_id,
        receipt_handle=f"receipt-{message_id}",
        body=body,
        message_group_id=group_id,
        attributes={"MessageGroupId": group_id},
    )
