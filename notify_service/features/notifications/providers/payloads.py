"""Channel payloads handed to providers.

One model per channel, discriminated by ``kind``. Fields are optional:
payloads are assembled from partial requests and each provider's
validate_payload() decides what is required.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class EmailPayload(BaseModel):
    """Email message handed to an email provider."""

    kind: Literal["email"] = "email"
    to: str | None = None
    subject: str | None = None
    text: str | None = None
    html: str | None = None
    from_address: str | None = None
    reply_to: str | None = None


class SmsPayload(BaseModel):
    kind: Literal["sms"] = "sms"
    to: str | None = None
    body: str | None = None


class WhatsAppPayload(BaseModel):
    kind: Literal["whatsapp"] = "whatsapp"
    to: str | None = None
    body: str | None = None


class TelegramPayload(BaseModel):
    kind: Literal["telegram"] = "telegram"
    chat_id: str | None = None
    text: str | None = None
    parse_mode: str | None = None


class PushPayload(BaseModel):
    kind: Literal["push"] = "push"
    device_token: str | None = None
    title: str | None = None
    body: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class InAppPayload(BaseModel):
    """Payload for channel ``none``: nothing leaves the system."""

    kind: Literal["none"] = "none"
    subject: str | None = None
    body: str | None = None


NotificationPayload = Annotated[
    EmailPayload | SmsPayload | WhatsAppPayload | TelegramPayload | PushPayload | InAppPayload,
    Field(discriminator="kind"),
]


def payload_body(payload: NotificationPayload) -> str | None:
    """Plain-text body of any payload, for storing on the notification."""
    match payload:
        case EmailPayload(text=text, html=html):
            return text or html
        case TelegramPayload(text=text):
            return text
        case SmsPayload(body=body) | WhatsAppPayload(body=body) | PushPayload(body=body):
            return body
        case InAppPayload(body=body):
            return body


