"""Email providers: Resend HTTP API, SMTP and console.

All three share sender resolution: the payload's ``from_address`` wins,
then the configured default. A send with neither fails with
``missingFrom`` before anything is contacted.

Usage:
    provider = ResendEmailProvider(settings.email)
    result = await provider.send(EmailPayload(to="a@example.com", subject="Hi", text="..."))
"""

from __future__ import annotations

from email.message import EmailMessage
from email.utils import formataddr, make_msgid
import logging
import ssl
from typing import TYPE_CHECKING, Any
import uuid

import httpx

from notify_service.features.notifications.enums import Channel, ErrorCode

from .base import (
    BaseNotificationProvider,
    HttpNotificationProvider,
    ProviderResult,
    provider_message_id,
)
from .payloads import EmailPayload

if TYPE_CHECKING:
    from notify_service.core.settings.email import EmailSettings

logger = logging.getLogger(__name__)


class _EmailSenderMixin:
    """Sender resolution shared by the email providers."""

    channel = Channel.EMAIL
    _default_from: str | None
    _from_name: str | None

    def _init_sender(self, settings: EmailSettings) -> None:
        self._default_from = str(settings.from_address) if settings.from_address else None
        self._from_name = settings.from_name

    def _resolve_from(self, payload: EmailPayload) -> str | None:
        if payload.from_address:
            return payload.from_address
        if self._default_from:
            if self._from_name:
                return formataddr((self._from_name, self._default_from))
            return self._default_from
        return None

    def validate_payload(self, payload: Any) -> bool:
        return (
            isinstance(payload, EmailPayload)
            and bool(payload.to)
            and bool(payload.text or payload.html)
        )

    def _missing_from(self, provider: str) -> ProviderResult:
        return ProviderResult.failure_result(
            provider=provider,
            code=ErrorCode.MISSING_FROM,
            message="No sender address: set from_address or EMAIL_FROM_ADDRESS",
        )


class ResendEmailProvider(_EmailSenderMixin, HttpNotificationProvider):
    """Email delivery through the Resend HTTP API.

    Example:
        provider = ResendEmailProvider(EmailSettings(provider="resend", resend_api_key="re_..."))
        result = await provider.send(payload)
        result.message_id  # Resend email id
    """

    SEND_ENDPOINT = "/emails"

    def __init__(self, settings: EmailSettings, *, client: httpx.AsyncClient | None = None) -> None:
        if settings.resend_api_key is None:
            msg = "Resend API key is required for the resend provider"
            raise ValueError(msg)
        super().__init__(timeout=settings.timeout, client=client)
        self._init_sender(settings)
        self._api_key = settings.resend_api_key.get_secret_value()
        self._base_url = settings.resend_api_url.rstrip("/")

    @property
    def provider_name(self) -> str:
        return "resend"

    def _build_body(self, payload: EmailPayload, sender: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "from": sender,
            "to": [payload.to],
            "subject": payload.subject or "",
        }
        if payload.html:
            body["html"] = payload.html
        if payload.text:
            body["text"] = payload.text
        if payload.reply_to:
            body["reply_to"] = payload.reply_to
        return body

    async def _do_send(self, payload: EmailPayload) -> ProviderResult:  # type: ignore[override]
        sender = self._resolve_from(payload)
        if sender is None:
            return self._missing_from(self.provider_name)

        response = await self._get_client().post(
            f"{self._base_url}{self.SEND_ENDPOINT}",
            json=self._build_body(payload, sender),
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        if response.is_success:
            data = response.json()
            return ProviderResult.success_result(
                message_id=provider_message_id(self.provider_name, data.get("id")),
                provider=self.provider_name,
                metadata={"status_code": response.status_code},
            )
        return self._http_failure(response)


class SmtpEmailProvider(_EmailSenderMixin, BaseNotificationProvider):
    """Email delivery over SMTP using aiosmtplib.

    Supports:
    - STARTTLS (port 587)
    - Implicit SSL/TLS (port 465)
    - Plain text (port 25, not recommended)
    - Authentication when username and password are configured

    Error classification:
    - Connection failures, disconnects, timeouts and 4xx replies are retryable
    - Authentication failures, refused sender/recipients and 5xx replies are not
    """

    def __init__(self, settings: EmailSettings) -> None:
        if not settings.smtp_host:
            msg = "SMTP host is required for the smtp provider"
            raise ValueError(msg)
        self._init_sender(settings)
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = (
            settings.smtp_password.get_secret_value() if settings.smtp_password else None
        )
        self._use_tls = settings.use_tls
        self._start_tls = settings.start_tls
        self._timeout = settings.timeout

        logger.info(
            "SMTP provider initialized",
            extra={
                "host": self._host,
                "port": self._port,
                "use_tls": self._use_tls,
                "start_tls": self._start_tls,
            },
        )

    @property
    def provider_name(self) -> str:
        return "smtp"

    def _build_message(self, payload: EmailPayload, sender: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = sender
        message["To"] = payload.to
        message["Subject"] = payload.subject or ""
        message["Message-ID"] = make_msgid(domain=self._host)
        if payload.reply_to:
            message["Reply-To"] = payload.reply_to

        if payload.text and payload.html:
            message.set_content(payload.text)
            message.add_alternative(payload.html, subtype="html")
        elif payload.html:
            message.set_content(payload.html, subtype="html")
        else:
            message.set_content(payload.text or "")
        return message

    async def _do_send(self, payload: EmailPayload) -> ProviderResult:  # type: ignore[override]
        import aiosmtplib

        sender = self._resolve_from(payload)
        if sender is None:
            return self._missing_from(self.provider_name)

        message = self._build_message(payload, sender)
        message_id = message["Message-ID"]

        smtp = aiosmtplib.SMTP(
            hostname=self._host,
            port=self._port,
            use_tls=self._use_tls,
            start_tls=self._start_tls,
            tls_context=ssl.create_default_context() if (self._use_tls or self._start_tls) else None,
            timeout=self._timeout,
        )
        try:
            async with smtp:
                if self._username and self._password:
                    await smtp.login(self._username, self._password)
                await smtp.send_message(message)
        except aiosmtplib.SMTPAuthenticationError as e:
            return self._failure(f"SMTP authentication failed: {e}", retryable=False)
        except (aiosmtplib.SMTPSenderRefused, aiosmtplib.SMTPRecipientRefused) as e:
            return self._failure(f"SMTP address refused: {e}", retryable=False)
        except aiosmtplib.SMTPRecipientsRefused as e:
            return self._failure(f"All recipients refused: {e}", retryable=False)
        except aiosmtplib.SMTPResponseException as e:
            return self._failure(f"SMTP error ({e.code}): {e.message}", retryable=400 <= e.code < 500)
        except (
            aiosmtplib.SMTPConnectError,
            aiosmtplib.SMTPServerDisconnected,
            aiosmtplib.SMTPTimeoutError,
        ) as e:
            return self._failure(f"SMTP connection failed: {e}", retryable=True)
        except aiosmtplib.SMTPException as e:
            return self._failure(f"SMTP error: {e}", retryable=False)

        return ProviderResult.success_result(
            message_id=message_id,
            provider=self.provider_name,
            metadata={"host": self._host, "port": self._port},
        )

    def _failure(self, message: str, *, retryable: bool) -> ProviderResult:
        return ProviderResult.failure_result(
            provider=self.provider_name,
            code=ErrorCode.SEND_FAILED,
            message=message,
            retryable=retryable,
        )


class ConsoleEmailProvider(_EmailSenderMixin, BaseNotificationProvider):
    """Development provider that logs emails instead of sending them.

    Always succeeds once the payload is valid and a sender is known.
    """

    def __init__(self, settings: EmailSettings) -> None:
        self._init_sender(settings)
        logger.info("Console email provider initialized (development mode)")

    @property
    def provider_name(self) -> str:
        return "console"

    async def _do_send(self, payload: EmailPayload) -> ProviderResult:  # type: ignore[override]
        sender = self._resolve_from(payload)
        if sender is None:
            return self._missing_from(self.provider_name)

        message_id = f"console-{uuid.uuid4()}"
        separator = "=" * 60
        lines = [
            "",
            separator,
            "EMAIL (Console Provider - Not Actually Sent)",
            separator,
            f"Message-ID: {message_id}",
            f"From: {sender}",
            f"To: {payload.to}",
            f"Subject: {payload.subject or ''}",
            "-" * 60,
            payload.text or payload.html or "",
            separator,
        ]
        logger.info("\n".join(lines), extra={"message_id": message_id, "to": payload.to})
        return ProviderResult.success_result(message_id=message_id, provider=self.provider_name)
