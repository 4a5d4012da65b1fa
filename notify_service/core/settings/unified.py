"""Unified settings composition for convenient access.

Composes all domain-specific settings into a single object. Each nested
settings class still respects its own env prefix.

Usage:
    from notify_service.core.settings import get_settings

    settings = get_settings()
    print(settings.queue.concurrency)
    print(settings.email.provider)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field

from .email import EmailSettings
from .logs import LoggingSettings
from .messaging import PushSettings, TelegramSettings, TwilioSettings
from .postgres import PostgresSettings
from .queue import QueueSettings
from .redis import RedisSettings


class Settings(BaseModel):
    """All settings domains for the notification service.

    Example:
        settings = Settings(queue=QueueSettings(enabled=False))
        assert settings.queue.enabled is False
    """

    model_config = ConfigDict(frozen=True)

    db: PostgresSettings = Field(default_factory=PostgresSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    twilio: TwilioSettings = Field(default_factory=TwilioSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    push: PushSettings = Field(default_factory=PushSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get unified settings instance (cached).

    In tests, call ``get_settings.cache_clear()`` after changing the environment.
    """
    return Settings()
