"""Unit tests for the Bedrock runtime client.

Tests cover:
- invoke() request payload and response decoding
- Throttling error codes raise BedrockRateLimitError
- Other errors raise BedrockError
- extract_text() handles missing and malformed content

Uses unittest.mock for mocking the boto3 client.
"""

import json
from io import BytesIO
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, ReadTimeoutError

from tagging_lambda.integrations.bedrock import (
    ANTHROPIC_BEDROCK_VERSION,
    BedrockClient,
    BedrockError,
    BedrockRateLimitError,
    extract_text,
)


def make_client_error(code: str, message: str = "Test error") -> ClientError:
    """Create a botocore ClientError with specified error code."""
    return ClientError({"Error": {"Code": code, "Message": message}}, "InvokeModel")


def make_response(payload: object) -> dict[str, object]:
    """Wrap a payload the way invoke_model returns it."""
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return {"body": BytesIO(raw), "contentType": "application/json"}


@pytest.fixture
def mock_boto_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def bedrock_client(mock_boto_client: MagicMock) -> BedrockClient:
    return BedrockClient(model_id="test-model", client=mock_boto_client)


# ---------------------------------------------------------------------------
# Invoke Tests
# ---------------------------------------------------------------------------


class TestInvoke:
    """Tests for BedrockClient.invoke()."""

    @pytest.mark.asyncio
    async def test_sends_messages_api_payload(
        self, bedrock_client: BedrockClient, mock_boto_client: MagicMock
    ) -> None:
        """Payload carries version, limits and a single user message."""
        mock_boto_client.invoke_model.return_value = make_response(
            {"content": [{"type": "text", "text": "a, b"}]}
        )

        await bedrock_client.invoke("hello")

        kwargs = mock_boto_client.invoke_model.call_args.kwargs
        assert kwargs["modelId"] == "test-model"
        body = json.loads(kwargs["body"])
        assert body["anthropic_version"] == ANTHROPIC_BEDROCK_VERSION
        assert body["max_tokens"] == 300
        assert body["temperature"] == 0.2
        assert body["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "hello"}]}
        ]

    @pytest.mark.asyncio
    async def test_returns_decoded_payload(
        self, bedrock_client: BedrockClient, mock_boto_client: MagicMock
    ) -> None:
        payload = {
            "content": [{"type": "text", "text": "Construction, Roads"}],
            "usage": {"input_tokens": 10, "output_tokens": 4},
        }
        mock_boto_client.invoke_model.return_value = make_response(payload)

        assert await bedrock_client.invoke("prompt") == payload

    @pytest.mark.asyncio
    async def test_invalid_json_returns_empty_dict(
        self, bedrock_client: BedrockClient, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.invoke_model.return_value = make_response(b"not json")

        assert await bedrock_client.invoke("prompt") == {}

    @pytest.mark.parametrize(
        "code",
        [
            "ThrottlingException",
            "TooManyRequestsException",
            "ServiceQuotaExceededException",
        ],
    )
    @pytest.mark.asyncio
    async def test_throttling_raises_rate_limit_error(
        self, bedrock_client: BedrockClient, mock_boto_client: MagicMock, code: str
    ) -> None:
        mock_boto_client.invoke_model.side_effect = make_client_error(code)

        with pytest.raises(BedrockRateLimitError) as exc_info:
            await bedrock_client.invoke("prompt")

        assert exc_info.value.error_code == code

    @pytest.mark.asyncio
    async def test_validation_error_is_not_rate_limit(
        self, bedrock_client: BedrockClient, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.invoke_model.side_effect = make_client_error(
            "ValidationException"
        )

        with pytest.raises(BedrockError) as exc_info:
            await bedrock_client.invoke("prompt")

        assert not isinstance(exc_info.value, BedrockRateLimitError)
        assert exc_info.value.error_code == "ValidationException"

    @pytest.mark.asyncio
    async def test_botocore_error_is_bedrock_error(
        self, bedrock_client: BedrockClient, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.invoke_model.side_effect = ReadTimeoutError(
            endpoint_url="https://bedrock-runtime.us-east-1.amazonaws.com"
        )

        with pytest.raises(BedrockError):
            await bedrock_client.invoke("prompt")


# ---------------------------------------------------------------------------
# Response Parsing Tests
# ---------------------------------------------------------------------------


class TestExtractText:
    """Tests for extract_text()."""

    def test_first_text_block(self) -> None:
        response = {
            "content": [
                {"type": "tool_use", "id": "x"},
                {"type": "text", "text": "Construction, Roads"},
                {"type": "text", "text": "ignored"},
            ]
        }
        assert extract_text(response) == "Construction, Roads"

    @pytest.mark.parametrize(
        "response",
        [
            {},
            None,
            {"content": "not a list"},
            {"content": []},
            {"content": [{"type": "text", "text": None}]},
        ],
    )
    def test_missing_or_malformed_is_empty(self, response: object) -> None:
        assert extract_text(response) == ""  # type: ignore[arg-type]
