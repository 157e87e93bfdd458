"""Unit tests for the Lambda entry point."""

import asyncio
from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tagging_lambda import handler as handler_module
from tagging_lambda.services.batch import (
    BatchOrchestrator,
    BatchResult,
    FailedQueueSendError,
    InvocationSummary,
)


@pytest.fixture(autouse=True)
def reset_handler() -> Generator[None, None, None]:
    handler_module.reset()
    yield
    handler_module.reset()


@pytest.fixture
def mock_orchestrator() -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(
        return_value=InvocationSummary(
            batches=[BatchResult(batch_number=1, processed=2, failed=1, deleted=3)],
            duration_ms=42,
        )
    )
    return orchestrator


class TestHandler:
    """Tests for handler()."""

    def test_returns_status_line(self, mock_orchestrator: MagicMock) -> None:
        with (
            patch.object(handler_module, "setup_logging"),
            patch.object(
                handler_module, "create_orchestrator", return_value=mock_orchestrator
            ),
        ):
            result = handler_module.handler({"Records": []}, MagicMock())

        assert result == (
            "Success. Batches: 1, Processed: 2, Failed: 1, Deleted: 3, Duration: 42ms"
        )

    def test_warm_invocations_reuse_components(
        self, mock_orchestrator: MagicMock
    ) -> None:
        """Components and the event loop are created once per container."""
        loops = []

        async def _run(event: object, context: object) -> InvocationSummary:
            loops.append(asyncio.get_running_loop())
            return InvocationSummary()

        mock_orchestrator.run = AsyncMock(side_effect=_run)

        with (
            patch.object(handler_module, "setup_logging") as setup_logging,
            patch.object(
                handler_module, "create_orchestrator", return_value=mock_orchestrator
            ) as create,
        ):
            handler_module.handler({}, MagicMock())
            handler_module.handler({}, MagicMock())

        create.assert_called_once()
        setup_logging.assert_called_once()
        assert loops[0] is loops[1]

    def test_fatal_errors_propagate(self, mock_orchestrator: MagicMock) -> None:
        mock_orchestrator.run = AsyncMock(
            side_effect=FailedQueueSendError("failed queue down", count=1)
        )

        with (
            patch.object(handler_module, "setup_logging"),
            patch.object(
                handler_module, "create_orchestrator", return_value=mock_orchestrator
            ),
        ):
            with pytest.raises(FailedQueueSendError):
                handler_module.handler({}, MagicMock())


class TestCreateOrchestrator:
    """Tests for create_orchestrator()."""

    def test_wires_components_without_aws_calls(self) -> None:
        """Clients are lazy, so wiring needs no AWS access."""
        with patch("boto3.client") as boto_client:
            orchestrator = handler_module.create_orchestrator()

        assert isinstance(orchestrator, BatchOrchestrator)
        boto_client.assert_not_called()
