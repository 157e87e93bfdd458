"""Integrations layer - AWS service clients.

Integrations wrap boto3 calls for SQS, SSM Parameter Store and Bedrock
and translate SDK failures into their own exception types.
"""

from tagging_lambda.integrations.bedrock import (
    BedrockClient,
    BedrockError,
    BedrockRateLimitError,
    extract_text,
)
from tagging_lambda.integrations.sqs import (
    SQSClient,
    SQSDeleteError,
    SQSError,
    SQSReceiveError,
    SQSSendError,
)
from tagging_lambda.integrations.ssm import (
    ParameterNotFoundError,
    ParameterStoreClient,
    SSMError,
)

__all__ = [
    # Bedrock
    "BedrockClient",
    "BedrockError",
    "BedrockRateLimitError",
    "extract_text",
    # SQS
    "SQSClient",
    "SQSDeleteError",
    "SQSError",
    "SQSReceiveError",
    "SQSSendError",
    # SSM
    "ParameterNotFoundError",
    "ParameterStoreClient",
    "SSMError",
]
