"""Settings for the SMS, WhatsApp, Telegram and push channels.

Each provider reads its own environment prefix:
- TWILIO_ for SMS and WhatsApp (TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, ...)
- TELEGRAM_ for the Telegram Bot API (TELEGRAM_BOT_TOKEN)
- APNS_ for Apple push notifications (APNS_KEY_ID, APNS_TEAM_ID, ...)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TwilioSettings(BaseSettings):
    """Twilio credentials shared by the SMS and WhatsApp providers."""

    account_sid: str | None = Field(default=None)
    auth_token: SecretStr | None = Field(default=None)
    sms_from: str | None = Field(
        default=None,
        description="E.164 sender number for SMS (e.g. +15005550006)",
    )
    whatsapp_from: str | None = Field(
        default=None,
        description="E.164 sender number for WhatsApp, without the whatsapp: prefix",
    )
    api_url: str = Field(default="https://api.twilio.com/2010-04-01")
    timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    model_config = SettingsConfigDict(
        env_prefix="TWILIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    @property
    def sms_configured(self) -> bool:
        return self.has_credentials and bool(self.sms_from)

    @property
    def whatsapp_configured(self) -> bool:
        return self.has_credentials and bool(self.whatsapp_from)


class TelegramSettings(BaseSettings):
    """Telegram Bot API configuration."""

    bot_token: SecretStr | None = Field(default=None)
    api_url: str = Field(default="https://api.telegram.org")
    parse_mode: str | None = Field(
        default=None,
        description="Default parse mode (HTML, MarkdownV2) when the payload sets none",
    )
    timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def is_configured(self) -> bool:
        return self.bot_token is not None


class PushSettings(BaseSettings):
    """Apple Push Notification service (token-based auth) configuration."""

    key_id: str | None = Field(default=None, description="10 character APNs key id")
    team_id: str | None = Field(default=None, description="Apple developer team id")
    bundle_id: str | None = Field(default=None, description="App bundle id used as apns-topic")
    private_key: SecretStr | None = Field(
        default=None,
        description="Contents of the .p8 signing key",
    )
    private_key_path: Path | None = Field(
        default=None,
        description="Path to the .p8 signing key (used when private_key is unset)",
    )
    use_sandbox: bool = Field(default=False)
    timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    model_config = SettingsConfigDict(
        env_prefix="APNS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def is_configured(self) -> bool:
        has_key = self.private_key is not None or self.private_key_path is not None
        return bool(self.key_id and self.team_id and self.bundle_id) and has_key

    def load_private_key(self) -> str:
        """Return the signing key contents, reading the key file if needed."""
        if self.private_key is not None:
            return self.private_key.get_secret_value()
        if self.private_key_path is None:
            msg = "APNs private key is not configured"
            raise ValueError(msg)
        return self.private_key_path.read_text(encoding="utf-8")
