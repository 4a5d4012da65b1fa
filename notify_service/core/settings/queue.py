"""Notification queue settings.

Environment variables use QUEUE_ prefix.
Example: QUEUE_CONCURRENCY=10, QUEUE_MAX_RETRIES=3
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QueueSettings(BaseSettings):
    """Durable notification queue configuration."""

    enabled: bool = Field(
        default=True,
        description="Route non-urgent notifications through the durable queue",
    )
    concurrency: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Jobs claimed and processed concurrently per poll",
    )
    max_retries: int = Field(default=3, ge=0, le=50)
    retry_delay: float = Field(
        default=5.0,
        ge=0.0,
        description="Base delay in seconds before a failed job is retried",
    )
    retry_backoff: bool = Field(
        default=True,
        description="Double the retry delay with every attempt",
    )
    max_retry_delay: float = Field(
        default=3600.0,
        ge=1.0,
        description="Upper bound for the backoff delay in seconds",
    )
    expire_in: float = Field(
        default=3600.0,
        ge=1.0,
        description="Seconds after which an active job is considered abandoned",
    )
    poll_interval: float = Field(default=1.0, gt=0.0, le=60.0)

    model_config = SettingsConfigDict(
        env_prefix="QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
