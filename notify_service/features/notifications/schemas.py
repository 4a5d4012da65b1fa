"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

import re
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .enums import Category, Channel, ErrorCode, Priority
from .providers.base import ProviderError, ProviderResult

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

OPTED_OUT_MESSAGE = "User has opted out of this notification type"


# ============================================================================
# Requests
# ============================================================================


class Recipient(BaseModel):
    """Addresses for a single recipient; only the one matching the channel is used."""

    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=32, description="E.164 phone number")
    telegram_chat_id: str | None = Field(default=None, max_length=64)
    device_token: str | None = Field(default=None, max_length=255)


class _ContentFields(BaseModel):
    template_id: str | None = Field(
        default=None,
        max_length=100,
        description="Built-in template to render; raw content is used when absent",
    )
    template_data: dict[str, Any] = Field(default_factory=dict)
    subject: str | None = Field(
        default=None,
        max_length=500,
        description="Subject; overrides the template's default subject",
    )
    body: str | None = None
    html: str | None = None

    @model_validator(mode="after")
    def _require_content(self) -> _ContentFields:
        if self.template_id is None and self.body is None and self.html is None:
            msg = "Either template_id or body/html must be provided"
            raise ValueError(msg)
        return self


class SendNotificationRequest(_ContentFields):
    """Request to send a single notification."""

    user_id: str | None = Field(
        default=None,
        max_length=255,
        description="Owning user; preferences are checked when set",
    )
    channel: Channel
    category: Category = Category.TRANSACTIONAL
    priority: Priority = Priority.NORMAL
    recipient: Recipient = Field(default_factory=Recipient)
    from_address: EmailStr | None = Field(
        default=None,
        description="Sender address for email; the configured default is used when absent",
    )
    campaign_id: str | None = Field(default=None, max_length=64)
    metadata: dict[str, Any] | None = None


class SendBulkRequest(_ContentFields):
    """Request to send the same notification to many users."""

    user_ids: list[str] = Field(..., min_length=1)
    channel: Channel
    category: Category = Category.MARKETING
    priority: Priority = Priority.LOW
    recipients: dict[str, Recipient] = Field(
        default_factory=dict,
        description="Per-user address overrides; preference contact fields are used otherwise",
    )
    campaign_id: str | None = Field(default=None, max_length=64)


class PreferenceUpdate(BaseModel):
    """Partial update of a user's preferences; unset fields are left alone."""

    email_enabled: bool | None = None
    sms_enabled: bool | None = None
    whatsapp_enabled: bool | None = None
    telegram_enabled: bool | None = None
    push_enabled: bool | None = None
    marketing_enabled: bool | None = None
    transactional_enabled: bool | None = None
    security_enabled: bool | None = None

    preferred_email: EmailStr | None = None
    preferred_phone: str | None = Field(default=None, max_length=32)
    telegram_chat_id: str | None = Field(default=None, max_length=64)
    push_device_token: str | None = Field(default=None, max_length=255)

    quiet_hours_enabled: bool | None = None
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    timezone: str | None = None

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def _validate_hhmm(cls, value: str | None) -> str | None:
        if value is not None and not _HHMM.match(value):
            msg = "Quiet hours must use 24h HH:MM format"
            raise ValueError(msg)
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {value}"
            raise ValueError(msg) from exc
        return value


# ============================================================================
# Results
# ============================================================================


class SendResult(BaseModel):
    """Outcome of NotificationService.send().

    ``message_id`` is the notification id so callers can look the record up;
    the id assigned by the external provider is in ``provider_message_id``.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    notification_id: str | None = None
    message_id: str | None = None
    provider: str
    provider_message_id: str | None = None
    error: ProviderError | None = None

    @classmethod
    def from_provider_result(cls, notification_id: str, result: ProviderResult) -> SendResult:
        return cls(
            success=result.success,
            notification_id=notification_id,
            message_id=notification_id,
            provider=result.provider,
            provider_message_id=result.message_id,
            error=result.error,
        )

    @classmethod
    def opted_out(cls, notification_id: str) -> SendResult:
        return cls(
            success=False,
            notification_id=notification_id,
            provider="none",
            error=ProviderError(
                code=ErrorCode.OPTED_OUT,
                message=OPTED_OUT_MESSAGE,
                retryable=False,
            ),
        )


class BulkSendResult(BaseModel):
    """Outcome of NotificationService.send_bulk()."""

    queued: int = 0
    skipped: int = 0
    campaign_id: str | None = None
