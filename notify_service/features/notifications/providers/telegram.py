"""Telegram Bot API provider."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from notify_service.features.notifications.enums import Channel, ErrorCode

from .base import HttpNotificationProvider, ProviderResult, is_retryable_status, provider_message_id
from .payloads import TelegramPayload

if TYPE_CHECKING:
    from notify_service.core.settings.messaging import TelegramSettings


class TelegramProvider(HttpNotificationProvider):
    """Sends chat messages with the Bot API ``sendMessage`` method.

    The API answers ``{"ok": false, "error_code": ..., "description": ...}``
    on failure, sometimes with a 200 status. Only 429 and 5xx error codes
    are retried; blocked bots and unknown chats are permanent.
    """

    channel = Channel.TELEGRAM

    def __init__(
        self,
        settings: TelegramSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if settings.bot_token is None:
            msg = "Telegram bot token is required"
            raise ValueError(msg)
        super().__init__(timeout=settings.timeout, client=client)
        token = settings.bot_token.get_secret_value()
        self._url = f"{settings.api_url.rstrip('/')}/bot{token}/sendMessage"
        self._default_parse_mode = settings.parse_mode

    @property
    def provider_name(self) -> str:
        return "telegram"

    def validate_payload(self, payload: Any) -> bool:
        return isinstance(payload, TelegramPayload) and bool(payload.chat_id and payload.text)

    async def _do_send(self, payload: TelegramPayload) -> ProviderResult:  # type: ignore[override]
        body: dict[str, Any] = {"chat_id": payload.chat_id, "text": payload.text}
        parse_mode = payload.parse_mode or self._default_parse_mode
        if parse_mode:
            body["parse_mode"] = parse_mode

        response = await self._get_client().post(self._url, json=body)
        try:
            data = response.json()
        except ValueError:
            return self._http_failure(response)

        if response.is_success and data.get("ok"):
            result = data.get("result") or {}
            return ProviderResult.success_result(
                message_id=provider_message_id(self.provider_name, result.get("message_id")),
                provider=self.provider_name,
            )

        error_code = int(data.get("error_code") or response.status_code)
        return ProviderResult.failure_result(
            provider=self.provider_name,
            code=ErrorCode.SEND_FAILED,
            message=f"telegram API error ({error_code}): {data.get('description', 'unknown error')}",
            retryable=is_retryable_status(error_code),
            metadata={"status_code": response.status_code, "error_code": error_code},
        )
