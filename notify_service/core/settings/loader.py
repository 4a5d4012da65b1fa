"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from notify_service.core.settings.loader import get_queue_settings

    settings = get_queue_settings()  # First call: loads and validates
    settings = get_queue_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_queue_settings.cache_clear()
"""

from __future__ import annotations

from functools import lru_cache

from .email import EmailSettings
from .logs import LoggingSettings
from .messaging import PushSettings, TelegramSettings, TwilioSettings
from .postgres import PostgresSettings
from .queue import QueueSettings
from .redis import RedisSettings


@lru_cache(maxsize=1)
def get_db_settings() -> PostgresSettings:
    """Get cached database settings."""
    return PostgresSettings()


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    """Get cached Redis settings."""
    return RedisSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_queue_settings() -> QueueSettings:
    """Get cached notification queue settings."""
    return QueueSettings()


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    """Get cached email settings."""
    return EmailSettings()


@lru_cache(maxsize=1)
def get_twilio_settings() -> TwilioSettings:
    """Get cached Twilio settings."""
    return TwilioSettings()


@lru_cache(maxsize=1)
def get_telegram_settings() -> TelegramSettings:
    """Get cached Telegram settings."""
    return TelegramSettings()


@lru_cache(maxsize=1)
def get_push_settings() -> PushSettings:
    """Get cached APNs settings."""
    return PushSettings()


def clear_all_caches() -> None:
    """Clear every settings cache (tests and reloads)."""
    from .unified import get_settings

    for loader in (
        get_db_settings,
        get_redis_settings,
        get_logging_settings,
        get_queue_settings,
        get_email_settings,
        get_twilio_settings,
        get_telegram_settings,
        get_push_settings,
        get_settings,
    ):
        loader.cache_clear()
