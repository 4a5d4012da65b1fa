"""Apple Push Notification service provider (token-based authentication).

Requests go over HTTP/2 to ``/3/device/<token>`` and are authorized with a
short-lived ES256 JWT signed by the team's .p8 key. Apple rejects tokens
refreshed more often than every 20 minutes and expires them after an
hour, so the token is cached and re-signed after ``TOKEN_TTL_SECONDS``.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import httpx
import jwt

from notify_service.features.notifications.enums import Channel, ErrorCode

from .base import (
    HttpNotificationProvider,
    ProviderResult,
    is_retryable_status,
    provider_message_id,
    response_error_detail,
)
from .payloads import PushPayload

if TYPE_CHECKING:
    from notify_service.core.settings.messaging import PushSettings

PRODUCTION_HOST = "https://api.push.apple.com"
SANDBOX_HOST = "https://api.sandbox.push.apple.com"

# Permanent rejections: malformed request, bad credentials, unregistered device
_PERMANENT_STATUS = frozenset({400, 403, 410})


class ApnsPushProvider(HttpNotificationProvider):
    """Push notifications to iOS devices through APNs."""

    channel = Channel.PUSH
    TOKEN_TTL_SECONDS = 50 * 60

    def __init__(self, settings: PushSettings, *, client: httpx.AsyncClient | None = None) -> None:
        if not settings.is_configured:
            msg = "APNs key_id, team_id, bundle_id and a private key are required"
            raise ValueError(msg)
        super().__init__(timeout=settings.timeout, client=client, http2=True)
        self._settings = settings
        self._key_id = settings.key_id or ""
        self._team_id = settings.team_id or ""
        self._topic = settings.bundle_id or ""
        self._host = SANDBOX_HOST if settings.use_sandbox else PRODUCTION_HOST
        self._token: str | None = None
        self._token_issued_at = 0.0

    @property
    def provider_name(self) -> str:
        return "apns"

    def validate_payload(self, payload: Any) -> bool:
        return isinstance(payload, PushPayload) and bool(
            payload.device_token and (payload.title or payload.body)
        )

    def _auth_token(self) -> str:
        now = time.time()
        if self._token is None or now - self._token_issued_at >= self.TOKEN_TTL_SECONDS:
            self._token = jwt.encode(
                {"iss": self._team_id, "iat": int(now)},
                self._settings.load_private_key(),
                algorithm="ES256",
                headers={"kid": self._key_id},
            )
            self._token_issued_at = now
        return self._token

    @staticmethod
    def _build_body(payload: PushPayload) -> dict[str, Any]:
        alert: dict[str, str] = {}
        if payload.title:
            alert["title"] = payload.title
        if payload.body:
            alert["body"] = payload.body
        # Custom keys sit next to "aps" at the top level
        return {**payload.data, "aps": {"alert": alert, "sound": "default"}}

    async def _do_send(self, payload: PushPayload) -> ProviderResult:  # type: ignore[override]
        response = await self._get_client().post(
            f"{self._host}/3/device/{payload.device_token}",
            json=self._build_body(payload),
            headers={
                "authorization": f"bearer {self._auth_token()}",
                "apns-topic": self._topic,
                "apns-push-type": "alert",
                "apns-priority": "10",
            },
        )
        if response.status_code == 200:
            return ProviderResult.success_result(
                message_id=provider_message_id(self.provider_name, response.headers.get("apns-id")),
                provider=self.provider_name,
                metadata={"status_code": response.status_code},
            )

        reason = response_error_detail(response)
        retryable = (
            response.status_code not in _PERMANENT_STATUS
            and is_retryable_status(response.status_code)
        )
        return ProviderResult.failure_result(
            provider=self.provider_name,
            code=ErrorCode.SEND_FAILED,
            message=f"apns error ({response.status_code}): {reason}",
            retryable=retryable,
            metadata={"status_code": response.status_code, "apns_id": response.headers.get("apns-id")},
        )
