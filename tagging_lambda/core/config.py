"""Application configuration loaded from environment variables.

All configuration is via environment variables set on the Lambda function.
The three queue URLs are required; everything else has a default.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Tender AI Tagging Lambda")
    processed_by: str = Field(
        default="Sqs_Tagging_Lambda",
        description="Component tag written into failed-message envelopes",
    )
    environment: str = Field(default="development")

    # AWS
    aws_region: str | None = Field(
        default=None,
        description="AWS region (falls back to the Lambda runtime region)",
    )
    aws_timeout: float = Field(
        default=30.0, description="Connect/read timeout for AWS SDK calls in seconds"
    )

    # Queues (TagQueue.fifo -> WriteQueue.fifo | TagFailedQueue.fifo)
    source_queue_url: str = Field(..., description="Source queue (TagQueue.fifo)")
    write_queue_url: str = Field(..., description="Success queue (WriteQueue.fifo)")
    failed_queue_url: str = Field(
        ..., description="Failure queue (TagFailedQueue.fifo)"
    )
    sqs_receive_batch_size: int = Field(
        default=10, description="Max messages per receive call (SQS limit is 10)"
    )
    sqs_wait_time_seconds: int = Field(
        default=2, description="Long-poll wait time for receive calls"
    )
    sqs_visibility_timeout: int = Field(
        default=300, description="Visibility timeout for polled messages in seconds"
    )
    poll_safety_margin_seconds: float = Field(
        default=30.0,
        description="Stop polling when less than this much invocation time remains",
    )
    poll_interval_seconds: float = Field(
        default=0.1, description="Pause between consecutive polls"
    )

    # Parameter Store
    prompt_base_path: str = Field(default="/TenderSummary/Prompts/")
    tagging_system_prompt_name: str = Field(default="TaggingSystem")
    tagging_source_prompt_prefix: str = Field(default="Tagging")
    tag_blocklist_parameter: str = Field(
        default="/tenders/ai-processor/tag-blocklist"
    )
    tag_map_parameter: str = Field(default="/tenders/ai-processor/tag-map")
    master_tag_list_parameter: str = Field(
        default="/tenders/ai-processor/master-tag-categories"
    )

    # Bedrock
    bedrock_model_id: str = Field(
        default="anthropic.claude-3-sonnet-20240229-v1:0",
        description="Bedrock model used for tag generation",
    )
    bedrock_max_tokens: int = Field(
        default=300, description="Maximum tokens in the tagging response"
    )
    bedrock_temperature: float = Field(
        default=0.2, description="Sampling temperature for tag generation"
    )
    bedrock_max_attempts: int = Field(
        default=6, description="Maximum attempts when Bedrock throttles"
    )
    bedrock_base_delay: float = Field(
        default=1.5, description="Base backoff delay in seconds"
    )
    bedrock_max_delay: float = Field(
        default=30.0, description="Upper bound for a single backoff delay in seconds"
    )

    # Tagging rules
    max_tags: int = Field(default=10, description="Hard cap on labels per record")
    max_input_chars: int = Field(
        default=10000, description="Tender text truncation length for the prompt"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()  # type: ignore[call-arg]
