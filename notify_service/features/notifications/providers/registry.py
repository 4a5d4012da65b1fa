"""Provider registry: one optional provider per external channel.

The registry is built once from settings and passed explicitly to the
service and the queue worker.

Usage:
    registry = build_provider_registry(get_settings())
    result = await registry.send(Channel.SMS, SmsPayload(to="+15550001111", body="Hi"))
"""

from __future__ import annotations

from dataclasses import dataclass, fields
import logging
import time
from typing import TYPE_CHECKING

import httpx

from notify_service.features.notifications.enums import Channel, ErrorCode

from .base import BaseNotificationProvider, ProviderResult, exception_result
from .email import ConsoleEmailProvider, ResendEmailProvider, SmtpEmailProvider
from .push import ApnsPushProvider
from .telegram import TelegramProvider
from .twilio import TwilioSmsProvider, TwilioWhatsAppProvider

if TYPE_CHECKING:
    from notify_service.core.settings.unified import Settings

    from .payloads import NotificationPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderRegistry:
    """Fixed-shape set of configured providers; ``None`` means not configured."""

    email: BaseNotificationProvider | None = None
    sms: BaseNotificationProvider | None = None
    whatsapp: BaseNotificationProvider | None = None
    telegram: BaseNotificationProvider | None = None
    push: BaseNotificationProvider | None = None

    def get(self, channel: Channel) -> BaseNotificationProvider | None:
        match channel:
            case Channel.EMAIL:
                return self.email
            case Channel.SMS:
                return self.sms
            case Channel.WHATSAPP:
                return self.whatsapp
            case Channel.TELEGRAM:
                return self.telegram
            case Channel.PUSH:
                return self.push
            case _:
                return None

    def configured_channels(self) -> list[Channel]:
        return [Channel(f.name) for f in fields(self) if getattr(self, f.name) is not None]

    async def send(self, channel: Channel, payload: NotificationPayload) -> ProviderResult:
        """Dispatch one payload to the provider for ``channel``.

        Never raises. Channel ``none`` is an in-app notification and
        succeeds without contacting anything.
        """
        match channel:
            case Channel.NONE:
                return ProviderResult.success_result(
                    message_id=f"none-{int(time.time() * 1000)}",
                    provider="none",
                )
            case Channel.EMAIL | Channel.SMS | Channel.WHATSAPP | Channel.TELEGRAM | Channel.PUSH:
                provider = self.get(channel)
                if provider is None:
                    return ProviderResult.failure_result(
                        provider="none",
                        code=ErrorCode.PROVIDER_NOT_CONFIGURED,
                        message=f"No provider configured for channel {channel.value}",
                    )
                try:
                    return await provider.send(payload)
                except Exception as e:
                    logger.exception(
                        f"Provider {provider.provider_name} raised during send",
                        extra={"channel": channel.value},
                    )
                    return exception_result(provider.provider_name, e)
            case _:
                return ProviderResult.failure_result(
                    provider="none",
                    code=ErrorCode.UNKNOWN_CHANNEL,
                    message=f"Unknown channel: {channel}",
                )

    async def aclose(self) -> None:
        """Close HTTP clients held by the providers."""
        for f in fields(self):
            provider = getattr(self, f.name)
            if provider is not None:
                await provider.aclose()


def _build_email_provider(settings: Settings, client: httpx.AsyncClient | None) -> BaseNotificationProvider | None:
    email = settings.email
    if not email.is_configured:
        return None
    match email.provider:
        case "resend":
            return ResendEmailProvider(email, client=client)
        case "smtp":
            return SmtpEmailProvider(email)
        case "console":
            return ConsoleEmailProvider(email)
        case _:
            return None


def build_provider_registry(
    settings: Settings,
    *,
    client: httpx.AsyncClient | None = None,
) -> ProviderRegistry:
    """Map settings to providers. No network calls are made.

    Args:
        settings: Aggregated application settings
        client: Optional shared httpx client for the HTTP/1.1 providers

    Returns:
        Registry with a slot filled for every configured channel
    """
    twilio = settings.twilio
    registry = ProviderRegistry(
        email=_build_email_provider(settings, client),
        sms=TwilioSmsProvider(twilio, client=client) if twilio.sms_configured else None,
        whatsapp=(
            TwilioWhatsAppProvider(twilio, client=client) if twilio.whatsapp_configured else None
        ),
        telegram=(
            TelegramProvider(settings.telegram, client=client)
            if settings.telegram.is_configured
            else None
        ),
        push=ApnsPushProvider(settings.push) if settings.push.is_configured else None,
    )
    logger.info(
        "Notification providers configured",
        extra={"channels": [c.value for c in registry.configured_channels()]},
    )
    return registry
