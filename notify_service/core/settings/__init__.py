"""Modular Pydantic Settings v2 configuration.

One settings class per domain, each with its own environment prefix
(DB_, REDIS_, LOG_, QUEUE_, EMAIL_, TWILIO_, TELEGRAM_, APNS_). Settings
are frozen and loaded through LRU-cached loaders.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .email import EmailSettings
from .loader import (
    clear_all_caches,
    get_db_settings,
    get_email_settings,
    get_logging_settings,
    get_push_settings,
    get_queue_settings,
    get_redis_settings,
    get_telegram_settings,
    get_twilio_settings,
)
from .logs import LoggingSettings
from .messaging import PushSettings, TelegramSettings, TwilioSettings
from .postgres import PostgresSettings
from .queue import QueueSettings
from .redis import RedisSettings
from .unified import Settings, get_settings

__all__ = [
    "EmailSettings",
    "LoggingSettings",
    "PostgresSettings",
    "PushSettings",
    "QueueSettings",
    "RedisSettings",
    "Settings",
    "TelegramSettings",
    "TwilioSettings",
    "clear_all_caches",
    "get_db_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_push_settings",
    "get_queue_settings",
    "get_redis_settings",
    "get_settings",
    "get_telegram_settings",
    "get_twilio_settings",
]
