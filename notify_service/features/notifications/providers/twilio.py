"""Twilio providers for SMS and WhatsApp.

Both use the Messages resource of the Twilio REST API with HTTP basic
auth. WhatsApp differs only in the ``whatsapp:`` address prefix.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from notify_service.features.notifications.enums import Channel

from .base import HttpNotificationProvider, ProviderResult, provider_message_id
from .payloads import SmsPayload, WhatsAppPayload

if TYPE_CHECKING:
    from notify_service.core.settings.messaging import TwilioSettings

WHATSAPP_PREFIX = "whatsapp:"


def whatsapp_address(number: str) -> str:
    """Prefix a phone number for the WhatsApp channel (idempotent)."""
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


class _TwilioMessagesProvider(HttpNotificationProvider):
    """Shared Messages.json request handling."""

    def __init__(
        self,
        settings: TwilioSettings,
        sender: str | None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not settings.has_credentials or settings.auth_token is None:
            msg = "Twilio account_sid and auth_token are required"
            raise ValueError(msg)
        if not sender:
            msg = f"A Twilio sender number is required for {self.channel.value}"
            raise ValueError(msg)
        super().__init__(timeout=settings.timeout, client=client)
        self._account_sid = settings.account_sid or ""
        self._auth_token = settings.auth_token.get_secret_value()
        self._sender = sender
        self._url = f"{settings.api_url.rstrip('/')}/Accounts/{self._account_sid}/Messages.json"

    @property
    def provider_name(self) -> str:
        return "twilio"

    def _address(self, number: str) -> str:
        return number

    def validate_payload(self, payload: Any) -> bool:
        return isinstance(payload, (SmsPayload, WhatsAppPayload)) and bool(
            payload.to and payload.body
        )

    async def _do_send(self, payload: SmsPayload | WhatsAppPayload) -> ProviderResult:  # type: ignore[override]
        response = await self._get_client().post(
            self._url,
            data={
                "To": self._address(payload.to or ""),
                "From": self._address(self._sender),
                "Body": payload.body or "",
            },
            auth=(self._account_sid, self._auth_token),
        )
        if response.is_success:
            data = response.json()
            return ProviderResult.success_result(
                message_id=provider_message_id(self.provider_name, data.get("sid")),
                provider=self.provider_name,
                metadata={"status": data.get("status"), "status_code": response.status_code},
            )
        return self._http_failure(response)


class TwilioSmsProvider(_TwilioMessagesProvider):
    """SMS through Twilio."""

    channel = Channel.SMS

    def __init__(self, settings: TwilioSettings, *, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings, settings.sms_from, client=client)

    def validate_payload(self, payload: Any) -> bool:
        return isinstance(payload, SmsPayload) and super().validate_payload(payload)


class TwilioWhatsAppProvider(_TwilioMessagesProvider):
    """WhatsApp through Twilio; both addresses carry the ``whatsapp:`` prefix."""

    channel = Channel.WHATSAPP

    def __init__(self, settings: TwilioSettings, *, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings, settings.whatsapp_from, client=client)

    def _address(self, number: str) -> str:
        return whatsapp_address(number)

    def validate_payload(self, payload: Any) -> bool:
        return isinstance(payload, WhatsAppPayload) and super().validate_payload(payload)
