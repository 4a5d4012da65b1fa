"""Redis settings for live-update broadcasting.

Environment variables use REDIS_ prefix.
Example: REDIS_URL=redis://localhost:6379/0
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Redis pub/sub connection used by the event broadcaster."""

    url: str | None = Field(
        default=None,
        description="Redis URL. Broadcasting is disabled when unset.",
    )
    channel_prefix: str = Field(
        default="ws:",
        description="Prefix for pub/sub channels (matches the websocket gateway)",
    )
    socket_timeout: float = Field(default=5.0, ge=0.1, le=60.0)

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.url)
