"""Delivery providers for each notification channel."""

from .base import (
    BaseNotificationProvider,
    HttpNotificationProvider,
    ProviderError,
    ProviderResult,
    exception_result,
    is_retryable_status,
    is_transport_error,
    provider_message_id,
)
from .email import ConsoleEmailProvider, ResendEmailProvider, SmtpEmailProvider
from .payloads import (
    EmailPayload,
    InAppPayload,
    NotificationPayload,
    PushPayload,
    SmsPayload,
    TelegramPayload,
    WhatsAppPayload,
    payload_body,
)
from .push import ApnsPushProvider
from .registry import ProviderRegistry, build_provider_registry
from .telegram import TelegramProvider
from .twilio import TwilioSmsProvider, TwilioWhatsAppProvider

__all__ = [
    "ApnsPushProvider",
    "BaseNotificationProvider",
    "ConsoleEmailProvider",
    "EmailPayload",
    "HttpNotificationProvider",
    "InAppPayload",
    "NotificationPayload",
    "ProviderError",
    "ProviderRegistry",
    "ProviderResult",
    "PushPayload",
    "ResendEmailProvider",
    "SmsPayload",
    "SmtpEmailProvider",
    "TelegramPayload",
    "TelegramProvider",
    "TwilioSmsProvider",
    "TwilioWhatsAppProvider",
    "WhatsAppPayload",
    "build_provider_registry",
    "exception_result",
    "is_retryable_status",
    "is_transport_error",
    "payload_body",
    "provider_message_id",
]
